"""
Email notifications

Every notify_* function is fire-and-forget: it is scheduled as a background
task, and a delivery failure is logged and dropped without retry.
"""
import smtplib
from email.message import EmailMessage
from typing import Iterable, Optional

import structlog

import config

logger = structlog.get_logger(__name__)


def send_email(to: str, subject: str, html: str) -> None:
    if not config.SMTP_HOST:
        logger.info("email_not_sent_smtp_unconfigured", to=to, subject=subject)
        return
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = config.ADMIN_EMAIL or config.SMTP_USER or "no-reply@slicecraft.local"
    msg["To"] = to
    msg.set_content("This message requires an HTML capable mail client.")
    msg.add_alternative(html, subtype="html")
    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as smtp:
        smtp.starttls()
        if config.SMTP_USER:
            smtp.login(config.SMTP_USER, config.SMTP_PASSWORD or "")
        smtp.send_message(msg)


def _dispatch(to: Optional[str], subject: str, html: str) -> bool:
    if not to:
        logger.warning("notification_skipped_no_recipient", subject=subject)
        return False
    try:
        send_email(to, subject, html)
    except Exception:
        logger.exception("notification_failed", to=to, subject=subject)
        return False
    logger.info("notification_sent", to=to, subject=subject)
    return True


def notify_low_stock(records: Iterable[dict]) -> bool:
    records = list(records)
    lines = "".join(
        f"<li>{r['name']} ({r['item_type']}): {r['quantity']:g} {r.get('unit', '')} remaining</li>"
        for r in records
    )
    html = (
        "<h2>Low Inventory Alert</h2>"
        "<p>The following items are running low:</p>"
        f"<ul>{lines}</ul>"
    )
    return _dispatch(config.ADMIN_EMAIL, "Low Inventory Alert", html)


def notify_order_status(order: dict, owner: dict) -> bool:
    html = (
        "<h2>Order Status Update</h2>"
        f"<p>Hi {owner.get('name', '')}, your order #{order['_id']} status has been updated to: "
        f"<strong>{order['status']}</strong></p>"
    )
    return _dispatch(owner.get("email"), "Order Status Update", html)


def notify_password_reset(email: str, token: str) -> bool:
    reset_url = f"{config.FRONTEND_URL}/reset-password/{token}"
    html = f'<p>Please click <a href="{reset_url}">here</a> to reset your password. The link expires in one hour.</p>'
    return _dispatch(email, "Reset your password", html)
