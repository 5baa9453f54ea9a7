import config
import notifications


def test_low_stock_message_lists_every_record(sent_emails):
    records = [
        {"name": "Mozzarella", "item_type": "cheese", "quantity": 4.0, "unit": "kg"},
        {"name": "Basil", "item_type": "veggie", "quantity": 0, "unit": "kg"},
    ]
    assert notifications.notify_low_stock(records) is True
    assert len(sent_emails) == 1
    html = sent_emails[0]["html"]
    assert "Mozzarella (cheese): 4 kg remaining" in html
    assert "Basil (veggie): 0 kg remaining" in html


def test_missing_admin_address_skips_delivery(sent_emails, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAIL", None)
    assert notifications.notify_low_stock([{"name": "x", "item_type": "base", "quantity": 1, "unit": "pcs"}]) is False
    assert sent_emails == []


def test_delivery_errors_are_swallowed(monkeypatch):
    calls = []

    def broken(to, subject, html):
        calls.append(to)
        raise TimeoutError("smtp timed out")

    monkeypatch.setattr(notifications, "send_email", broken)
    order = {"_id": "abc", "status": "Delivered"}
    assert notifications.notify_order_status(order, {"name": "Alice", "email": "alice@example.com"}) is False
    assert calls == ["alice@example.com"]


def test_unconfigured_smtp_only_logs():
    # SMTP_HOST is unset in tests; nothing is sent and nothing raises
    notifications.send_email("alice@example.com", "Hello", "<p>hi</p>")
