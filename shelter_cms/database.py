"""
MongoDB access helpers.

Collection names are the lowercase of the schema class name:
- Category -> "category"
- BlogPost -> "blogpost"
- AdminUser -> "adminuser"
"""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from . import settings
from .errors import ValidationError

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(settings.DATABASE_URL)
    return _client


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    return get_client()[settings.DATABASE_NAME]


def ensure_indexes(db: Database) -> None:
    db["category"].create_index([("name", ASCENDING), ("type", ASCENDING)], unique=True)
    db["adminuser"].create_index("email", unique=True)
    db["volunteer"].create_index("email", unique=True)
    db["video"].create_index("public_id", unique=True)
    for name in ("photo", "award"):
        db[name].create_index("category")
        db[name].create_index([("date", DESCENDING)])
        db[name].create_index("is_active")
    db["video"].create_index([("category", ASCENDING), ("date", DESCENDING)])
    db["blogpost"].create_index("category")
    db["testimonial"].create_index([("rate", DESCENDING)])


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document, stamping created/updated timestamps. Returns the stored document."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.utcnow()
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = db[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  sort: Optional[list] = None, skip: int = 0, limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: str, label: str = "record") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label} ID format")
    return ObjectId(value)


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly: ``_id`` becomes ``id`` and ObjectIds become strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            out["id" if k == "_id" else k] = serialize(v)
        return out
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    pages = math.ceil(total / limit) if limit else 0
    return {
        "current": page,
        "pages": pages,
        "total": total,
        "limit": limit,
        "has_next": page < pages,
        "has_prev": page > 1,
    }


def sort_spec(sort_by: str, sort_order: str, allowed: tuple, default: str) -> list:
    field = sort_by if sort_by in allowed else default
    return [(field, ASCENDING if sort_order == "asc" else DESCENDING)]
