"""
Category resolution shared by every categorized router.

Clients send either a category id (edit forms re-submitting stored data) or a
display name (creation forms). ``resolve_category`` accepts both; an id match
always takes priority over a name match.
"""
import logging
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from .errors import InvalidCategory, ValidationError

log = logging.getLogger(__name__)

# Collections holding a ``category`` reference
REFERENCING_COLLECTIONS = ("photo", "award", "video", "blogpost", "rescuepost")


def resolve_category(db: Database, value, category_type: str) -> dict:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError("Category is required and must be a string")
    value = value.strip()

    if ObjectId.is_valid(value):
        doc = db["category"].find_one({"_id": ObjectId(value), "type": category_type})
        if doc:
            return doc

    doc = db["category"].find_one({"name": value, "type": category_type})
    if doc:
        log.debug("Resolved %s category %r by name to %s", category_type, value, doc["_id"])
        return doc

    raise InvalidCategory(value, category_type)


def category_filter(db: Database, value: Optional[str], category_type: str) -> Optional[ObjectId]:
    """Category id for list filtering; ``None`` or ``"all"`` means no filter."""
    if not value or value == "all":
        return None
    return resolve_category(db, value, category_type)["_id"]


def ensure_category_unused(db: Database, category_id: ObjectId,
                           collections: Iterable[str] = REFERENCING_COLLECTIONS) -> None:
    # Not atomic with the delete that follows; a concurrent create can still slip in.
    for name in collections:
        if db[name].find_one({"category": category_id}, {"_id": 1}):
            raise ValidationError("Cannot delete category that is currently in use")


def _summary(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    return {"id": str(doc["_id"]), "name": doc["name"], "type": doc["type"]}


def populate_category(db: Database, doc: dict) -> dict:
    """Return a copy of ``doc`` with its category id replaced by ``{id, name, type}``."""
    out = dict(doc)
    if isinstance(out.get("category"), ObjectId):
        out["category"] = _summary(db["category"].find_one({"_id": out["category"]}))
    return out


def populate_categories(db: Database, docs: List[dict]) -> List[dict]:
    ids = {d["category"] for d in docs if isinstance(d.get("category"), ObjectId)}
    found = {c["_id"]: _summary(c) for c in db["category"].find({"_id": {"$in": list(ids)}})} if ids else {}
    out = []
    for d in docs:
        d = dict(d)
        if isinstance(d.get("category"), ObjectId):
            d["category"] = found.get(d["category"])
        out.append(d)
    return out
