import json

import notifications


def _checkout(client, account, proof_image, price=12.5, quantity=2):
    client.post("/orders/add-to-cart", json={"name": "Custom Pizza", "price": price, "quantity": quantity},
                headers=account["headers"])
    return client.put("/orders/place-order",
                      data={"deliveryAddress": json.dumps({"street": "1 Main St", "city": "X", "postalCode": "1000"})},
                      files={"transferScreenshot": proof_image}, headers=account["headers"])


def test_order_lifecycle_end_to_end(client, customer, other_customer, admin, sent_emails, proof_image):
    cart = client.post("/orders/add-to-cart", json={"name": "Custom Pizza", "price": 12.5, "quantity": 2},
                       headers=customer["headers"]).json()
    assert cart["total_amount"] == 25.0

    placed = client.put("/orders/place-order",
                        data={"deliveryAddress": json.dumps({"street": "1 Main St", "city": "X", "postalCode": "1000"})},
                        files={"transferScreenshot": proof_image}, headers=customer["headers"]).json()
    assert placed["status"] == "Order Received"
    order_id = placed["_id"]

    r = client.put(f"/orders/{order_id}/status", json={"status": "Preparing"}, headers=admin["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "Preparing"
    assert len(sent_emails) == 1
    assert sent_emails[0]["to"] == "alice@example.com"
    assert sent_emails[0]["subject"] == "Order Status Update"
    assert "Preparing" in sent_emails[0]["html"]
    assert client.get(f"/orders/{order_id}", headers=customer["headers"]).json()["status"] == "Preparing"

    r = client.put(f"/orders/{order_id}/status", json={"status": "In Oven"}, headers=other_customer["headers"])
    assert r.status_code == 403
    r = client.put(f"/orders/{order_id}/status", json={"status": "In Oven"}, headers=customer["headers"])
    assert r.status_code == 403
    assert client.get(f"/orders/{order_id}", headers=admin["headers"]).json()["status"] == "Preparing"
    assert len(sent_emails) == 1


def test_status_accepts_any_enumerated_value_in_any_order(client, customer, admin, sent_emails, proof_image):
    order_id = _checkout(client, customer, proof_image).json()["_id"]
    for status in ["Delivered", "Preparing", "completed", "pending"]:
        r = client.patch(f"/orders/{order_id}/status", json={"status": status}, headers=admin["headers"])
        assert r.status_code == 200
        assert r.json()["status"] == status


def test_status_rejects_unknown_value(client, customer, admin, proof_image):
    order_id = _checkout(client, customer, proof_image).json()["_id"]
    r = client.put(f"/orders/{order_id}/status", json={"status": "Teleported"}, headers=admin["headers"])
    assert r.status_code == 400


def test_status_on_missing_order(client, admin):
    r = client.put("/orders/64b7f0c2a1b2c3d4e5f60718/status", json={"status": "Preparing"}, headers=admin["headers"])
    assert r.status_code == 404
    r = client.put("/orders/not-an-id/status", json={"status": "Preparing"}, headers=admin["headers"])
    assert r.status_code == 404


def test_notification_failure_does_not_fail_status_change(client, customer, admin, proof_image, monkeypatch):
    def broken(to, subject, html):
        raise ConnectionError("smtp down")

    monkeypatch.setattr(notifications, "send_email", broken)
    order_id = _checkout(client, customer, proof_image).json()["_id"]
    r = client.put(f"/orders/{order_id}/status", json={"status": "Out for Delivery"}, headers=admin["headers"])
    assert r.status_code == 200
    assert client.get(f"/orders/{order_id}", headers=customer["headers"]).json()["status"] == "Out for Delivery"


def test_cancelling_does_not_restock(client, db, customer, admin, margherita, proof_image):
    client.post("/orders/add-to-cart",
                json={"name": "Margherita", "price": 10.0, "quantity": 2, "pizza_id": margherita["_id"]},
                headers=customer["headers"])
    order = client.put("/orders/place-order",
                       data={"deliveryAddress": json.dumps({"street": "1 Main St", "city": "X", "postalCode": "1000"})},
                       files={"transferScreenshot": proof_image}, headers=customer["headers"]).json()
    client.post("/orders/verify-payment", json={"order_id": order["_id"], "payment_id": "p"}, headers=customer["headers"])
    client.put(f"/orders/{order['_id']}/status", json={"status": "cancelled"}, headers=admin["headers"])
    assert db["inventory"].find_one({"item_type": "base", "name": "Thin Crust"})["quantity"] == 18


def test_order_visibility(client, customer, other_customer, admin, proof_image):
    order_id = _checkout(client, customer, proof_image).json()["_id"]
    assert client.get(f"/orders/{order_id}", headers=customer["headers"]).status_code == 200
    assert client.get(f"/orders/{order_id}", headers=admin["headers"]).status_code == 200
    assert client.get(f"/orders/{order_id}", headers=other_customer["headers"]).status_code == 403
    assert client.get("/orders/64b7f0c2a1b2c3d4e5f60718", headers=admin["headers"]).status_code == 404


def test_list_orders_for_user(client, customer, other_customer, admin, proof_image):
    _checkout(client, customer, proof_image)
    client.post("/orders/add-to-cart", json={"name": "Second", "price": 3, "quantity": 1}, headers=customer["headers"])
    uid = customer["user"]["_id"]

    mine = client.get(f"/orders/user/{uid}", headers=customer["headers"])
    assert mine.status_code == 200
    assert sorted(o["status"] for o in mine.json()) == ["Order Received", "pending"]
    assert len(client.get("/orders/me", headers=customer["headers"]).json()) == 2
    assert client.get(f"/orders/user/{uid}", headers=admin["headers"]).status_code == 200
    assert client.get(f"/orders/user/{uid}", headers=other_customer["headers"]).status_code == 403


def test_admin_order_listing(client, customer, other_customer, admin, proof_image):
    _checkout(client, customer, proof_image)
    _checkout(client, other_customer, proof_image)
    r = client.get("/orders/admin", headers=admin["headers"])
    assert r.status_code == 200
    owners = sorted(o["user"]["email"] for o in r.json())
    assert owners == ["alice@example.com", "bob@example.com"]
    assert client.get("/orders/admin", headers=customer["headers"]).status_code == 403


def test_delete_pending_cart(client, db, customer):
    cart = client.post("/orders/add-to-cart", json={"name": "A", "price": 5, "quantity": 1},
                       headers=customer["headers"]).json()
    r = client.delete(f"/orders/{cart['_id']}", headers=customer["headers"])
    assert r.status_code == 200
    assert db["order"].count_documents({}) == 0


def test_cancel_received_order(client, customer, other_customer, admin, proof_image):
    order_id = _checkout(client, customer, proof_image).json()["_id"]
    assert client.delete(f"/orders/{order_id}", headers=other_customer["headers"]).status_code == 403
    r = client.delete(f"/orders/{order_id}", headers=customer["headers"])
    assert r.status_code == 200
    assert client.get(f"/orders/{order_id}", headers=customer["headers"]).json()["status"] == "cancelled"


def test_cannot_cancel_order_in_progress(client, customer, admin, proof_image):
    order_id = _checkout(client, customer, proof_image).json()["_id"]
    client.put(f"/orders/{order_id}/status", json={"status": "In Oven"}, headers=admin["headers"])
    r = client.delete(f"/orders/{order_id}", headers=admin["headers"])
    assert r.status_code == 400
    assert client.get(f"/orders/{order_id}", headers=customer["headers"]).json()["status"] == "In Oven"
