"""
Stock records and low-stock alerting.

Stock is shared, globally mutable state. Decrements after payment are
independent per-ingredient ``$inc`` updates with no surrounding transaction,
so concurrent fulfilments may drive a quantity below zero.
"""
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import BackgroundTasks, HTTPException
import structlog

import notifications
from database import (
    create_document,
    delete_document,
    find_document,
    get_document_by_id,
    get_documents,
    increment_field,
    update_document,
)
from schemas import Inventory

logger = structlog.get_logger(__name__)

COLLECTION = "inventory"


def is_low_stock(record: dict) -> bool:
    return record["quantity"] <= record["threshold"]


def list_stock() -> List[dict]:
    return get_documents(COLLECTION, sort=[("item_type", 1), ("name", 1)])


def list_in_stock(item_type: str) -> List[dict]:
    return get_documents(COLLECTION, {"item_type": item_type, "quantity": {"$gt": 0}}, sort=[("name", 1)])


def create_stock(item: Inventory) -> dict:
    if find_document(COLLECTION, {"item_type": item.item_type, "name": item.name}):
        raise HTTPException(status_code=400, detail="Item already exists in inventory")
    if item.last_restocked is None:
        item = item.model_copy(update={"last_restocked": datetime.now(timezone.utc)})
    item_id = create_document(COLLECTION, item)
    logger.info("stock_created", item_id=item_id, item_type=item.item_type, name=item.name)
    return get_document_by_id(COLLECTION, item_id)


def update_stock(item_id: str, quantity: float, threshold: float, acting_role: str,
                 background_tasks: BackgroundTasks) -> dict:
    """Set quantity and threshold; schedules one alert when the result is low."""
    if acting_role != "admin":
        raise HTTPException(status_code=403, detail="Not authorized")
    if quantity < 0 or threshold < 0:
        raise HTTPException(status_code=400, detail="Quantity and threshold must be positive numbers")
    record = get_document_by_id(COLLECTION, item_id)
    if not record:
        raise HTTPException(status_code=404, detail="Inventory item not found")

    update_document(COLLECTION, item_id, {
        "quantity": quantity,
        "threshold": threshold,
        "last_restocked": datetime.now(timezone.utc),
    })
    updated = get_document_by_id(COLLECTION, item_id)
    logger.info("stock_updated", item_id=item_id, quantity=quantity, threshold=threshold)

    if is_low_stock(updated):
        logger.warning("low_stock_detected", item_id=item_id, name=updated["name"], quantity=quantity)
        background_tasks.add_task(notifications.notify_low_stock, [updated])
    return updated


def delete_stock(item_id: str) -> None:
    if not delete_document(COLLECTION, item_id):
        raise HTTPException(status_code=404, detail="Inventory item not found")
    logger.info("stock_deleted", item_id=item_id)


def _resolve_pizza(line: dict) -> Optional[dict]:
    pizza = None
    if line.get("pizza_id"):
        pizza = get_document_by_id("pizza", line["pizza_id"])
    if pizza is None and line.get("name"):
        pizza = find_document("pizza", {"name": line["name"]})
    return pizza


def decrement_for_order(order: dict) -> int:
    """Consume ingredients for every line of ``order``; returns the number of updates applied.

    Lines whose pizza no longer exists are skipped. Meats are not tracked.
    """
    applied = 0
    for line in order.get("items", []):
        pizza = _resolve_pizza(line)
        if pizza is None:
            logger.info("decrement_skipped_missing_pizza", order_id=order.get("_id"), line=line.get("name"))
            continue
        qty = line.get("quantity", 0)
        ingredients = [("base", pizza["base"]), ("sauce", pizza["sauce"]), ("cheese", pizza["cheese"])]
        ingredients += [("veggie", v) for v in pizza.get("veggies", [])]
        for item_type, name in ingredients:
            if increment_field(COLLECTION, {"item_type": item_type, "name": name}, "quantity", -qty):
                applied += 1
    logger.info("stock_decremented", order_id=order.get("_id"), updates=applied)
    return applied


def find_low_stock() -> List[dict]:
    return [r for r in list_stock() if is_low_stock(r)]
