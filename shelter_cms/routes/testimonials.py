import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

from ..database import create_document, get_db, get_documents, pagination, serialize, sort_spec, to_object_id
from ..errors import NotFound, ValidationError
from ..limits import api_limit, form_limit
from ..schemas import AdminIdentity, Testimonial
from ..security import get_current_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/testimonials", tags=["testimonials"])

SORT_FIELDS = ("created_at", "updated_at", "rate", "name")


def _half_step(v):
    if v is not None and (v * 2) != int(v * 2):
        raise ValueError("Rating must be in increments of 0.5")
    return v


class TestimonialCreate(BaseModel):
    quote: str = Field(..., min_length=10, max_length=1000)
    name: str = Field(..., min_length=2, max_length=100)
    profession: str = Field(..., min_length=2, max_length=150)
    rate: float = Field(..., ge=1, le=5)

    @field_validator("rate")
    @classmethod
    def rate_half_step(cls, v):
        return _half_step(v)


class TestimonialUpdate(BaseModel):
    quote: Optional[str] = Field(None, min_length=10, max_length=1000)
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    profession: Optional[str] = Field(None, min_length=2, max_length=150)
    rate: Optional[float] = Field(None, ge=1, le=5)
    is_active: Optional[bool] = None

    @field_validator("rate")
    @classmethod
    def rate_half_step(cls, v):
        return _half_step(v)


def load(db: Database, testimonial_id: str) -> dict:
    doc = db["testimonial"].find_one({"_id": to_object_id(testimonial_id, "testimonial")})
    if not doc:
        raise NotFound("Testimonial not found")
    return doc


# ---------------------- Public ----------------------

@router.get("")
@api_limit
def list_testimonials(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    rate: Optional[float] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Database = Depends(get_db),
):
    flt = {"is_active": True}
    if rate is not None and 1 <= rate <= 5:
        flt["rate"] = rate
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        flt["$or"] = [{"quote": pattern}, {"name": pattern}, {"profession": pattern}]

    docs = get_documents(db, "testimonial", flt, sort=sort_spec(sort_by, sort_order, SORT_FIELDS, "created_at"),
                         skip=(page - 1) * limit, limit=limit)
    total = db["testimonial"].count_documents(flt)
    return {"success": True, "data": serialize(docs), "pagination": pagination(page, limit, total)}


@router.get("/active")
@api_limit
def list_active(request: Request, limit: Optional[int] = Query(None, ge=1, le=100), sort_by: str = "created_at",
                sort_order: str = "desc", db: Database = Depends(get_db)):
    docs = get_documents(db, "testimonial", {"is_active": True},
                         sort=sort_spec(sort_by, sort_order, SORT_FIELDS, "created_at"), limit=limit)
    return {"success": True, "data": serialize(docs)}


@router.get("/featured")
@api_limit
def list_featured(request: Request, limit: int = Query(6, ge=1, le=50), db: Database = Depends(get_db)):
    docs = get_documents(db, "testimonial", {"is_active": True}, sort=[("rate", -1), ("created_at", -1)], limit=limit)
    return {"success": True, "data": serialize(docs)}


@router.post("", status_code=201)
@form_limit
def create_testimonial(request: Request, item: TestimonialCreate, db: Database = Depends(get_db)):
    name = item.name.strip()
    quote = item.quote.strip()
    if db["testimonial"].find_one({"name": name, "quote": quote}):
        raise ValidationError("Testimonial with same name and quote already exists")
    testimonial = Testimonial(quote=quote, name=name, profession=item.profession.strip(), rate=item.rate)
    doc = create_document(db, "testimonial", testimonial)
    log.info("Testimonial submitted by %s", name)
    return {"success": True, "message": "Testimonial created successfully", "data": serialize(doc)}


# ---------------------- Admin ----------------------

@router.get("/admin/stats")
def testimonial_stats(db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    coll = db["testimonial"]
    total = coll.count_documents({})
    active = coll.count_documents({"is_active": True})
    recent = coll.count_documents({
        "is_active": True,
        "created_at": {"$gte": datetime.utcnow() - timedelta(days=30)},
    })
    rows = list(coll.aggregate([
        {"$match": {"is_active": True}},
        {"$group": {
            "_id": None,
            "average_rating": {"$avg": "$rate"},
            "max_rating": {"$max": "$rate"},
            "min_rating": {"$min": "$rate"},
        }},
    ]))
    ratings = {"average_rating": 0, "max_rating": 0, "min_rating": 0}
    if rows:
        ratings.update({k: v for k, v in rows[0].items() if k != "_id"})
    return {
        "success": True,
        "data": {
            "total": total,
            "active": active,
            "inactive": total - active,
            "recently_added": recent,
            "ratings": ratings,
        },
    }


@router.get("/{testimonial_id}")
@api_limit
def get_testimonial(request: Request, testimonial_id: str, db: Database = Depends(get_db)):
    doc = load(db, testimonial_id)
    if not doc.get("is_active", True):
        raise NotFound("Testimonial not found")
    return {"success": True, "data": serialize(doc)}


@router.put("/{testimonial_id}")
def update_testimonial(testimonial_id: str, item: TestimonialUpdate, db: Database = Depends(get_db),
                       admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, testimonial_id)
    changes = {k: v.strip() if isinstance(v, str) else v
               for k, v in item.model_dump(exclude_unset=True, exclude_none=True).items()}

    name = changes.get("name", doc["name"])
    quote = changes.get("quote", doc["quote"])
    if ("name" in changes or "quote" in changes) and db["testimonial"].find_one(
            {"_id": {"$ne": doc["_id"]}, "name": name, "quote": quote}):
        raise ValidationError("Testimonial with same name and quote already exists")

    changes["updated_at"] = datetime.utcnow()
    db["testimonial"].update_one({"_id": doc["_id"]}, {"$set": changes})
    log.info("Testimonial updated: %s by %s", testimonial_id, admin.email)
    return {"success": True, "message": "Testimonial updated successfully", "data": serialize(load(db, testimonial_id))}


@router.delete("/{testimonial_id}")
def delete_testimonial(testimonial_id: str, db: Database = Depends(get_db),
                       admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, testimonial_id)
    db["testimonial"].delete_one({"_id": doc["_id"]})
    log.info("Testimonial deleted: %s by %s", testimonial_id, admin.email)
    return {"success": True, "message": "Testimonial deleted successfully"}
