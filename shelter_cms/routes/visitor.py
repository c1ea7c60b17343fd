import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pymongo.database import Database

from ..database import get_db
from ..errors import NotFound
from ..limits import api_limit
from ..schemas import AdminIdentity, DailyVisit, Visitor
from ..security import get_current_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/visitor", tags=["visitor"])

KEEP_DAYS = 30


def record_visit(visitor: Optional[dict], now: datetime) -> dict:
    """Return the visitor document after counting one visit at ``now``."""
    day = datetime(now.year, now.month, now.day)
    if not visitor:
        return Visitor(total_visitors=1, last_visit=now, daily_visits=[DailyVisit(date=day, count=1)]).model_dump()

    visits = [dict(v) for v in visitor.get("daily_visits", [])]
    for visit in visits:
        if visit["date"].date() == day.date():
            visit["count"] += 1
            break
    else:
        visits.append({"date": day, "count": 1})
        if len(visits) > KEEP_DAYS:
            visits = sorted(visits, key=lambda v: v["date"], reverse=True)[:KEEP_DAYS]

    return dict(
        visitor,
        total_visitors=visitor.get("total_visitors", 0) + 1,
        last_visit=now,
        daily_visits=visits,
    )


def visitor_stats(visitor: Optional[dict], now: datetime) -> dict:
    if not visitor:
        return {
            "total_visitors": 0,
            "today_visitors": 0,
            "last_visit": None,
            "daily_stats": [],
            "weekly_stats": {"this_week": 0, "last_week": 0, "growth": 0},
        }

    visits = visitor.get("daily_visits", [])
    today = now.date()
    week_ago = today - timedelta(days=7)
    two_weeks_ago = today - timedelta(days=14)

    today_visitors = sum(v["count"] for v in visits if v["date"].date() == today)
    this_week = [v for v in visits if v["date"].date() >= week_ago]
    this_week_total = sum(v["count"] for v in this_week)
    last_week_total = sum(v["count"] for v in visits if two_weeks_ago <= v["date"].date() < week_ago)
    growth = (this_week_total - last_week_total) / last_week_total * 100 if last_week_total else 0

    return {
        "total_visitors": visitor.get("total_visitors", 0),
        "today_visitors": today_visitors,
        "last_visit": visitor.get("last_visit"),
        "daily_stats": [
            {"date": v["date"].strftime("%Y-%m-%d"), "count": v["count"]}
            for v in sorted(this_week, key=lambda v: v["date"])
        ],
        "weekly_stats": {
            "this_week": this_week_total,
            "last_week": last_week_total,
            "growth": round(growth, 2),
        },
    }


@router.post("/increment-counter")
@api_limit
def increment_counter(request: Request, db: Database = Depends(get_db)):
    current = db["visitor"].find_one()
    updated = record_visit(current, datetime.utcnow())
    if current:
        db["visitor"].replace_one({"_id": current["_id"]}, updated)
    else:
        db["visitor"].insert_one(updated)
    client = request.client.host if request.client else "unknown"
    log.info("Visitor count incremented to %d from IP: %s", updated["total_visitors"], client)
    return {
        "success": True,
        "message": "Visitor count incremented successfully",
        "data": {"count": updated["total_visitors"]},
    }


@router.get("/visitor-count")
@api_limit
def visitor_count(request: Request, db: Database = Depends(get_db)):
    current = db["visitor"].find_one()
    return {"success": True, "data": {"count": current["total_visitors"] if current else 0}}


@router.get("/stats")
def stats(db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    return {"success": True, "data": visitor_stats(db["visitor"].find_one(), datetime.utcnow())}


@router.post("/reset")
def reset(db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    current = db["visitor"].find_one()
    if not current:
        raise NotFound("No visitor data found to reset")
    db["visitor"].update_one(
        {"_id": current["_id"]},
        {"$set": {"total_visitors": 0, "daily_visits": [], "last_visit": datetime.utcnow()}},
    )
    log.info("Visitor count reset by %s", admin.email)
    return {"success": True, "message": "Visitor count reset successfully", "data": {"count": 0}}
