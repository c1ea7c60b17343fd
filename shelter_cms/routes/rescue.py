import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel, Field
from pymongo.database import Database

from ..categories import populate_categories, populate_category, resolve_category
from ..database import create_document, get_db, get_documents, pagination, serialize, to_object_id
from ..errors import ApiError, NotFound, ValidationError
from ..schemas import AdminIdentity, ImageRef, RescuePost
from ..security import get_current_admin
from ..storage import IMAGE_TYPES, MAX_IMAGE_BYTES, BlobStorage, get_storage, read_upload

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rescue", tags=["rescue"])

SLOTS = ("before_image", "after_image")


class RescueCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    before_image: ImageRef
    after_image: ImageRef
    category: Optional[str] = None


def load(db: Database, rescue_id: str) -> dict:
    doc = db["rescuepost"].find_one({"_id": to_object_id(rescue_id, "rescue post")})
    if not doc:
        raise NotFound("Rescue post not found")
    return doc


def present(db: Database, doc: dict) -> dict:
    return serialize(populate_category(db, doc))


def check_text(value: str, field: str, max_length: Optional[int] = None) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} cannot be more than {max_length} characters")
    return value


def upload_pair(storage: BlobStorage, files: dict, alt: str) -> dict:
    """Upload before/after images; on failure, blobs already uploaded are destroyed."""
    uploaded = {}
    try:
        for slot, data in files.items():
            result = storage.upload_image(data)
            label = "Before" if slot == "before_image" else "After"
            uploaded[slot] = {"src": result.url, "alt": f"{label}: {alt}"[:200], "public_id": result.public_id}
    except ApiError:
        for image in uploaded.values():
            storage.destroy(image["public_id"])
        raise
    return uploaded


@router.get("")
def list_rescues(page: int = Query(1, ge=1), limit: int = Query(12, ge=1, le=100), db: Database = Depends(get_db)):
    docs = get_documents(db, "rescuepost", {}, sort=[("created_at", -1)], skip=(page - 1) * limit, limit=limit)
    total = db["rescuepost"].count_documents({})
    return {
        "success": True,
        "data": serialize(populate_categories(db, docs)),
        "pagination": pagination(page, limit, total),
    }


@router.get("/{rescue_id}")
def get_rescue(rescue_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": present(db, load(db, rescue_id))}


@router.post("", status_code=201)
def create_rescue(item: RescueCreate, db: Database = Depends(get_db),
                  admin: AdminIdentity = Depends(get_current_admin)):
    category = resolve_category(db, item.category, "rescue")["_id"] if item.category else None
    doc = create_document(db, "rescuepost", RescuePost(
        title=check_text(item.title, "Title", 200),
        description=check_text(item.description, "Description"),
        before_image=item.before_image,
        after_image=item.after_image,
        category=category,
    ))
    log.info("Rescue post created: %s by %s", doc["_id"], admin.email)
    return {"success": True, "message": "Rescue post created successfully", "data": present(db, doc)}


@router.post("/upload", status_code=201)
def upload_rescue(
    before_image: UploadFile = File(...),
    after_image: UploadFile = File(...),
    title: str = Form(...),
    description: str = Form(...),
    category: Optional[str] = Form(None),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    admin: AdminIdentity = Depends(get_current_admin),
):
    title = check_text(title, "Title", 200)
    description = check_text(description, "Description")
    files = {
        "before_image": read_upload(before_image, IMAGE_TYPES, MAX_IMAGE_BYTES, "before_image"),
        "after_image": read_upload(after_image, IMAGE_TYPES, MAX_IMAGE_BYTES, "after_image"),
    }
    category_id = resolve_category(db, category, "rescue")["_id"] if category else None

    images = upload_pair(storage, files, title)
    try:
        doc = create_document(db, "rescuepost", {
            "title": title,
            "description": description,
            "category": category_id,
            **images,
        })
    except Exception:
        for image in images.values():
            storage.destroy(image["public_id"])
        raise
    log.info("Rescue post uploaded: %s by %s", doc["_id"], admin.email)
    return {"success": True, "message": "Rescue post created successfully", "data": present(db, doc)}


@router.patch("/{rescue_id}")
def update_rescue(
    rescue_id: str,
    before_image: Optional[UploadFile] = File(None),
    after_image: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    admin: AdminIdentity = Depends(get_current_admin),
):
    doc = load(db, rescue_id)
    updates = {}
    if title is not None:
        updates["title"] = check_text(title, "Title", 200)
    if description is not None:
        updates["description"] = check_text(description, "Description")
    if category is not None:
        updates["category"] = resolve_category(db, category, "rescue")["_id"] if category.strip() else None

    files = {}
    if before_image is not None:
        files["before_image"] = read_upload(before_image, IMAGE_TYPES, MAX_IMAGE_BYTES, "before_image")
    if after_image is not None:
        files["after_image"] = read_upload(after_image, IMAGE_TYPES, MAX_IMAGE_BYTES, "after_image")

    images = upload_pair(storage, files, updates.get("title", doc["title"])) if files else {}
    updates.update(images)
    updates["updated_at"] = datetime.utcnow()
    try:
        db["rescuepost"].update_one({"_id": doc["_id"]}, {"$set": updates})
    except Exception:
        for image in images.values():
            storage.destroy(image["public_id"])
        raise

    for slot in images:
        old = doc.get(slot) or {}
        if old.get("public_id"):
            storage.destroy(old["public_id"])

    log.info("Rescue post updated: %s by %s", rescue_id, admin.email)
    return {"success": True, "message": "Rescue post updated successfully", "data": present(db, load(db, rescue_id))}


@router.delete("/{rescue_id}")
def delete_rescue(rescue_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage),
                  admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, rescue_id)
    db["rescuepost"].delete_one({"_id": doc["_id"]})
    for slot in SLOTS:
        image = doc.get(slot) or {}
        if image.get("public_id"):
            storage.destroy(image["public_id"])
    log.info("Rescue post deleted: %s by %s", rescue_id, admin.email)
    return {"success": True, "message": "Rescue post deleted successfully"}
