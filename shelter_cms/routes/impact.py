import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from pymongo.database import Database

from ..database import create_document, get_db, get_documents, pagination, serialize, to_object_id
from ..errors import NotFound, ValidationError
from ..limits import form_limit
from ..schemas import AdminIdentity, TotalImpact
from ..security import get_current_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/impact", tags=["impact"])


class ImpactCreate(BaseModel):
    dogs_rescued: int = 0
    dogs_adopted: int = 0
    volunteers: int = 0
    is_active: bool = True


class ImpactUpdate(BaseModel):
    dogs_rescued: Optional[int] = None
    dogs_adopted: Optional[int] = None
    volunteers: Optional[int] = None
    is_active: Optional[bool] = None


def check_counts(rescued: int, adopted: int, volunteers: int) -> None:
    if min(rescued, adopted, volunteers) < 0:
        raise ValidationError("All counts must be non-negative numbers")
    if adopted > rescued:
        raise ValidationError("Dogs adopted cannot exceed dogs rescued")


def impact_statistics(records: list) -> dict:
    """Totals over active records plus the mean per-record adoption rate (percent)."""
    if not records:
        return {
            "total_dogs_rescued": 0,
            "total_dogs_adopted": 0,
            "total_volunteers": 0,
            "avg_adoption_rate": 0,
            "record_count": 0,
        }
    rates = [
        (r.get("dogs_adopted", 0) / r["dogs_rescued"] * 100) if r.get("dogs_rescued") else 0
        for r in records
    ]
    return {
        "total_dogs_rescued": sum(r.get("dogs_rescued", 0) for r in records),
        "total_dogs_adopted": sum(r.get("dogs_adopted", 0) for r in records),
        "total_volunteers": sum(r.get("volunteers", 0) for r in records),
        "avg_adoption_rate": round(sum(rates) / len(rates), 2),
        "record_count": len(records),
    }


def load(db: Database, impact_id: str) -> dict:
    doc = db["totalimpact"].find_one({"_id": to_object_id(impact_id, "total impact record")})
    if not doc:
        raise NotFound("Total impact record not found")
    return doc


# ---------------------- Public ----------------------

@router.get("")
def list_impact(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                is_active: Optional[bool] = None, db: Database = Depends(get_db)):
    flt = {} if is_active is None else {"is_active": is_active}
    docs = get_documents(db, "totalimpact", flt, sort=[("created_at", -1)], skip=(page - 1) * limit, limit=limit)
    total = db["totalimpact"].count_documents(flt)
    return {"success": True, "data": serialize(docs), "pagination": pagination(page, limit, total)}


@router.get("/latest")
def latest_impact(db: Database = Depends(get_db)):
    docs = get_documents(db, "totalimpact", {"is_active": True}, sort=[("created_at", -1)], limit=1)
    if not docs:
        raise NotFound("No active total impact record found")
    return {"success": True, "data": serialize(docs[0])}


@router.get("/stats")
def impact_stats(db: Database = Depends(get_db)):
    records = get_documents(db, "totalimpact", {"is_active": True})
    return {"success": True, "data": impact_statistics(records)}


@router.get("/{impact_id}")
def get_impact(impact_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": serialize(load(db, impact_id))}


# ---------------------- Admin ----------------------

@router.post("", status_code=201)
@form_limit
def create_impact(request: Request, item: ImpactCreate, db: Database = Depends(get_db),
                  admin: AdminIdentity = Depends(get_current_admin)):
    check_counts(item.dogs_rescued, item.dogs_adopted, item.volunteers)
    doc = create_document(db, "totalimpact", TotalImpact(**item.model_dump()))
    log.info("Total impact record created: %s by %s", doc["_id"], admin.email)
    return {"success": True, "message": "Total impact record created successfully", "data": serialize(doc)}


@router.put("/{impact_id}")
def update_impact(impact_id: str, item: ImpactUpdate, db: Database = Depends(get_db),
                  admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, impact_id)
    changes = item.model_dump(exclude_unset=True, exclude_none=True)
    merged = dict(doc, **changes)
    check_counts(merged.get("dogs_rescued", 0), merged.get("dogs_adopted", 0), merged.get("volunteers", 0))

    changes["updated_at"] = datetime.utcnow()
    db["totalimpact"].update_one({"_id": doc["_id"]}, {"$set": changes})
    log.info("Total impact record updated: %s by %s", impact_id, admin.email)
    return {
        "success": True,
        "message": "Total impact record updated successfully",
        "data": serialize(load(db, impact_id)),
    }


@router.delete("/{impact_id}")
def delete_impact(impact_id: str, db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, impact_id)
    db["totalimpact"].delete_one({"_id": doc["_id"]})
    log.info("Total impact record deleted: %s by %s", impact_id, admin.email)
    return {"success": True, "message": "Total impact record deleted successfully", "data": serialize(doc)}
