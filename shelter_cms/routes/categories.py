import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..categories import ensure_category_unused
from ..database import get_db, serialize, to_object_id
from ..errors import NotFound, ValidationError
from ..limits import api_limit
from ..schemas import CATEGORY_TYPES, AdminIdentity, Category, CategoryType
from ..security import get_current_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType


class CategoryUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


def insert_category(db: Database, name: str, category_type: str) -> dict:
    name = name.strip()
    if not name:
        raise ValidationError("Category name is required")
    doc = Category(name=name, type=category_type).model_dump()
    doc["created_at"] = datetime.utcnow()
    try:
        doc["_id"] = db["category"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise ValidationError(f"Category '{name}' already exists for type '{category_type}'")
    return doc


def rename_category(db: Database, category_id, name: str, category_type: Optional[str] = None) -> dict:
    name = name.strip()
    if not name:
        raise ValidationError("Category name is required")
    query = {"_id": category_id}
    if category_type:
        query["type"] = category_type
    try:
        doc = db["category"].find_one_and_update(query, {"$set": {"name": name}}, return_document=ReturnDocument.AFTER)
    except DuplicateKeyError:
        raise ValidationError(f"Category '{name}' already exists")
    if not doc:
        raise NotFound("Category not found")
    return doc


def remove_category(db: Database, category_id, category_type: Optional[str] = None) -> dict:
    query = {"_id": category_id}
    if category_type:
        query["type"] = category_type
    category = db["category"].find_one(query)
    if not category:
        raise NotFound("Category not found")
    ensure_category_unused(db, category_id)
    db["category"].delete_one({"_id": category_id})
    return category


@router.get("/{category_type}")
@api_limit
def list_by_type(request: Request, category_type: str, db: Database = Depends(get_db)):
    if category_type not in CATEGORY_TYPES:
        raise ValidationError("Invalid category type")
    docs = db["category"].find({"type": category_type}).sort("name", 1)
    return {"success": True, "data": serialize(list(docs))}


@router.get("")
def list_all(db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    docs = db["category"].find().sort([("type", 1), ("name", 1)])
    return {"success": True, "data": serialize(list(docs))}


@router.post("", status_code=201)
def create(payload: CategoryCreate, db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    doc = insert_category(db, payload.name, payload.type)
    log.info("Category %s/%s created by %s", doc["type"], doc["name"], admin.email)
    return {"success": True, "message": "Category created successfully", "data": serialize(doc)}


@router.put("/{category_id}")
def update(category_id: str, payload: CategoryUpdate, db: Database = Depends(get_db),
           admin: AdminIdentity = Depends(get_current_admin)):
    doc = rename_category(db, to_object_id(category_id, "category"), payload.name)
    log.info("Category %s renamed to %s by %s", category_id, doc["name"], admin.email)
    return {"success": True, "message": "Category updated successfully", "data": serialize(doc)}


@router.delete("/{category_id}")
def delete(category_id: str, db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    category = remove_category(db, to_object_id(category_id, "category"))
    log.info("Category %s/%s deleted by %s", category["type"], category["name"], admin.email)
    return {"success": True, "message": "Category deleted successfully"}
