"""
Database Helper Functions

MongoDB helpers used by the API and the order/inventory workflow.
All collection access goes through these functions; documents are returned
with ``_id`` converted to a string.
"""

from pymongo import MongoClient, ASCENDING
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone
from typing import Union, Optional, Dict, Any, List
from pydantic import BaseModel
import structlog

import config

logger = structlog.get_logger(__name__)

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL)
    db = _client[config.DATABASE_NAME]


def _ensure_db():
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def _object_id(_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(_id)
    except (InvalidId, TypeError):
        return None


# CRUD helpers

def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    _ensure_db()
    payload = _to_dict(data)
    now = datetime.now(timezone.utc)
    payload['created_at'] = now
    payload['updated_at'] = now
    result = db[collection_name].insert_one(payload)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
    _ensure_db()
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    return [serialize_doc(doc) for doc in cursor]


def find_document(collection_name: str, filter_dict: dict, sort: Optional[list] = None) -> Optional[dict]:
    docs = get_documents(collection_name, filter_dict, limit=1, sort=sort)
    return docs[0] if docs else None


def get_document_by_id(collection_name: str, _id: str) -> Optional[dict]:
    _ensure_db()
    oid = _object_id(_id)
    if oid is None:
        return None
    doc = db[collection_name].find_one({"_id": oid})
    return serialize_doc(doc) if doc else None


def update_document(collection_name: str, _id: str, update_data: Dict[str, Any]) -> bool:
    _ensure_db()
    oid = _object_id(_id)
    if oid is None:
        return False
    update = {"$set": _to_dict(update_data)}
    update["$set"]["updated_at"] = datetime.now(timezone.utc)
    result = db[collection_name].update_one({"_id": oid}, update)
    return result.matched_count > 0


def delete_document(collection_name: str, _id: str) -> bool:
    _ensure_db()
    oid = _object_id(_id)
    if oid is None:
        return False
    result = db[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0


def increment_field(collection_name: str, filter_dict: dict, field: str, delta: Union[int, float]) -> bool:
    """Add ``delta`` to ``field`` on the first document matching ``filter_dict``."""
    _ensure_db()
    result = db[collection_name].update_one(
        filter_dict,
        {"$inc": {field: delta}, "$set": {"updated_at": datetime.now(timezone.utc)}},
    )
    return result.matched_count > 0


def count_documents(collection_name: str, filter_dict: Optional[dict] = None) -> int:
    _ensure_db()
    return db[collection_name].count_documents(filter_dict or {})


def ensure_indexes() -> None:
    _ensure_db()
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["user"].create_index(
        [("external_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"external_id": {"$type": "string"}},
    )
    db["pizza"].create_index([("name", ASCENDING)], unique=True)
    db["inventory"].create_index([("item_type", ASCENDING), ("name", ASCENDING)], unique=True)
    db["order"].create_index([("user_id", ASCENDING)])
    db["order"].create_index([("status", ASCENDING)])
    db["order"].create_index([("created_at", -1)])
    db["subscription"].create_index([("email", ASCENDING)], unique=True)
    logger.info("indexes_ensured", database=db.name)


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])  # convert ObjectId to string
    return d
