"""
Cart and order lifecycle.

The cart is simply the account's Order in ``pending`` status; checkout flips
the same record to ``Order Received``. There is at most one pending order per
account, enforced only by the find-or-create query below.
"""
import hashlib
import hmac
from numbers import Number
from typing import List, Optional

from fastapi import BackgroundTasks, HTTPException, UploadFile
from pydantic import ValidationError
import structlog

import config
import inventory
import notifications
from database import (
    create_document,
    delete_document,
    find_document,
    get_document_by_id,
    get_documents,
    update_document,
)
from schemas import (
    CANCELLED_STATUS,
    CART_STATUS,
    PLACED_STATUS,
    DeliveryAddress,
    Order,
    OrderItem,
)
from uploads import discard_image, save_image

logger = structlog.get_logger(__name__)

COLLECTION = "order"


def _is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def compute_total(items: List[dict]) -> float:
    """Sum of price * quantity over all lines, ignoring malformed ones."""
    total = 0.0
    for line in items:
        if isinstance(line, dict) and _is_number(line.get("price")) and _is_number(line.get("quantity")):
            total += line["price"] * line["quantity"]
    return total


def _can_access(order: dict, requester: dict) -> bool:
    return requester.get("role") == "admin" or order["user_id"] == requester["_id"]


def _get_or_404(order_id: str) -> dict:
    order = get_document_by_id(COLLECTION, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ===================== Cart =====================

def find_cart(account_id: str) -> Optional[dict]:
    return find_document(COLLECTION, {"user_id": account_id, "status": CART_STATUS})


def get_cart(account_id: str) -> dict:
    cart = find_cart(account_id)
    if not cart:
        raise HTTPException(status_code=404, detail="No active cart found")
    return cart


def add_item_to_cart(account_id: str, item: OrderItem) -> dict:
    cart = find_cart(account_id)
    if cart is None:
        cart_id = create_document(COLLECTION, Order(user_id=account_id))
        cart = get_document_by_id(COLLECTION, cart_id)
        logger.info("cart_created", user_id=account_id, order_id=cart_id)

    items = list(cart.get("items", []))
    items.append(item.model_dump())
    total = compute_total(items)
    update_document(COLLECTION, cart["_id"], {"items": items, "total_amount": total})
    logger.info("cart_item_added", user_id=account_id, order_id=cart["_id"], item=item.name, total=total)
    return get_document_by_id(COLLECTION, cart["_id"])


# ===================== Checkout =====================

def place_order(account_id: str, delivery_address: Optional[dict], payment_proof: Optional[UploadFile]) -> dict:
    """Attach address and payment proof to the cart and mark it received.

    All input is validated before anything is written.
    """
    cart = get_cart(account_id)
    if payment_proof is None:
        raise HTTPException(status_code=400, detail="Transfer screenshot is required")
    if not delivery_address:
        raise HTTPException(status_code=400, detail="Delivery address details are required")
    try:
        address = DeliveryAddress.model_validate(delivery_address)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Delivery address requires street, city and postal code")

    proof = save_image(payment_proof, "transferScreenshot")
    try:
        update_document(COLLECTION, cart["_id"], {
            "delivery_address": address.model_dump(),
            "payment_proof": proof,
            "status": PLACED_STATUS,
        })
    except Exception:
        discard_image(proof)
        raise
    logger.info("order_placed", user_id=account_id, order_id=cart["_id"], total=cart.get("total_amount"))
    return get_document_by_id(COLLECTION, cart["_id"])


# ===================== Payment =====================

def expected_signature(order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(config.PAYMENT_KEY_SECRET.encode(), message, hashlib.sha256).hexdigest()


def verify_payment(order_id: str, payment_id: str, signature: Optional[str],
                   background_tasks: BackgroundTasks) -> dict:
    if config.PAYMENT_MODE == "live":
        if not signature or not hmac.compare_digest(expected_signature(order_id, payment_id), signature):
            logger.warning("payment_signature_invalid", order_id=order_id)
            raise HTTPException(status_code=400, detail="Invalid payment signature")

    order = _get_or_404(order_id)
    update_document(COLLECTION, order_id, {
        "payment_status": "completed",
        "payment_id": payment_id,
        "status": PLACED_STATUS,
    })
    logger.info("payment_verified", order_id=order_id, mode=config.PAYMENT_MODE)

    inventory.decrement_for_order(order)
    low = inventory.find_low_stock()
    if low:
        logger.warning("low_stock_detected", items=[r["name"] for r in low])
        background_tasks.add_task(notifications.notify_low_stock, low)
    return get_document_by_id(COLLECTION, order_id)


# ===================== Status =====================

def set_order_status(order_id: str, new_status: str, acting_role: str,
                     background_tasks: BackgroundTasks) -> dict:
    """Any enumerated status may follow any other; cancelling does not restock."""
    if acting_role != "admin":
        raise HTTPException(status_code=403, detail="Not authorized")
    order = _get_or_404(order_id)
    update_document(COLLECTION, order_id, {"status": new_status})
    updated = get_document_by_id(COLLECTION, order_id)
    logger.info("order_status_changed", order_id=order_id, old=order["status"], new=new_status)

    owner = get_document_by_id("user", order["user_id"])
    if owner:
        background_tasks.add_task(notifications.notify_order_status, updated, owner)
    return updated


# ===================== Queries =====================

def list_user_orders(account_id: str, requester: dict) -> List[dict]:
    if requester["_id"] != account_id and requester.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Access denied")
    return get_documents(COLLECTION, {"user_id": account_id}, sort=[("created_at", -1)])


def list_all_orders() -> List[dict]:
    orders = get_documents(COLLECTION, sort=[("created_at", -1)])
    owners = {}
    for order in orders:
        uid = order["user_id"]
        if uid not in owners:
            user = get_document_by_id("user", uid)
            owners[uid] = {"_id": uid, "name": user["name"], "email": user["email"]} if user else None
        order["user"] = owners[uid]
    return orders


def get_order(order_id: str, requester: dict) -> dict:
    order = _get_or_404(order_id)
    if not _can_access(order, requester):
        raise HTTPException(status_code=403, detail="Not authorized to view this order")
    return order


def cancel_order(order_id: str, requester: dict) -> dict:
    """Discard a cart, or cancel an order that has only just been received."""
    order = _get_or_404(order_id)
    if not _can_access(order, requester):
        raise HTTPException(status_code=403, detail="Not authorized to delete this order")

    if order["status"] == CART_STATUS:
        delete_document(COLLECTION, order_id)
        logger.info("cart_discarded", order_id=order_id)
        return {"message": "Cart deleted successfully"}
    if order["status"] == PLACED_STATUS:
        update_document(COLLECTION, order_id, {"status": CANCELLED_STATUS})
        logger.info("order_cancelled", order_id=order_id)
        return {"message": "Order cancelled successfully"}
    raise HTTPException(status_code=400, detail="Can only cancel orders that are in 'Order Received' status")
