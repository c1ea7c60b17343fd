import logging
import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..categories import category_filter, populate_categories, populate_category, resolve_category
from ..database import create_document, get_db, get_documents, pagination, serialize, sort_spec, to_object_id
from ..errors import NotFound, ValidationError
from ..schemas import DURATION_RE, URL_PATTERN, AdminIdentity, Video
from ..security import get_current_admin
from ..storage import (
    MAX_IMAGE_BYTES,
    MAX_VIDEO_BYTES,
    THUMBNAIL_TYPES,
    VIDEO_TYPES,
    BlobStorage,
    get_storage,
    read_upload,
)
from .categories import CategoryUpdate, insert_category, remove_category, rename_category

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/videos", tags=["videos"])

SORT_FIELDS = ("date", "created_at", "updated_at", "title")


def check_duration(value: str) -> str:
    value = (value or "").strip()
    if not DURATION_RE.match(value):
        raise ValidationError("Duration must be in format MM:SS or HH:MM:SS")
    return value


class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    video_url: str = Field(..., pattern=URL_PATTERN)
    thumbnail: str = Field(..., pattern=URL_PATTERN)
    public_id: str = Field(..., min_length=1)
    thumbnail_public_id: Optional[str] = None
    category: str
    date: datetime
    duration: str

    @field_validator("duration")
    @classmethod
    def duration_format(cls, v):
        if not DURATION_RE.match(v.strip()):
            raise ValueError("Duration must be in format MM:SS or HH:MM:SS")
        return v.strip()


class CategoryName(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


def load(db: Database, video_id: str) -> dict:
    doc = db["video"].find_one({"_id": to_object_id(video_id, "video")})
    if not doc:
        raise NotFound("Video not found")
    return doc


def present(db: Database, doc: dict) -> dict:
    return serialize(populate_category(db, doc))


# ---------------------- Public ----------------------

@router.get("")
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    db: Database = Depends(get_db),
):
    flt = {"is_active": True}
    category_id = category_filter(db, category, "video")
    if category_id:
        flt["category"] = category_id
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        flt["$or"] = [{"title": pattern}, {"description": pattern}]

    docs = get_documents(db, "video", flt, sort=sort_spec(sort_by, sort_order, SORT_FIELDS, "date"),
                         skip=(page - 1) * limit, limit=limit)
    total = db["video"].count_documents(flt)
    return {
        "success": True,
        "data": serialize(populate_categories(db, docs)),
        "pagination": pagination(page, limit, total),
    }


@router.get("/categories")
def list_video_categories(db: Database = Depends(get_db)):
    docs = db["category"].find({"type": "video"}).sort("name", 1)
    return {"success": True, "data": serialize(list(docs))}


@router.get("/categories/counts")
def list_video_category_counts(db: Database = Depends(get_db)):
    counts = []
    for category in db["category"].find({"type": "video"}):
        counts.append({
            "id": str(category["_id"]),
            "name": category["name"],
            "count": db["video"].count_documents({"category": category["_id"], "is_active": True}),
        })
    counts.sort(key=lambda c: c["count"], reverse=True)
    return {"success": True, "data": counts}


@router.get("/{video_id}")
def get_video(video_id: str, db: Database = Depends(get_db)):
    doc = load(db, video_id)
    if not doc.get("is_active", True):
        raise NotFound("Video not available")
    return {"success": True, "data": present(db, doc)}


# ---------------------- Category management ----------------------

@router.post("/categories", status_code=201)
def create_video_category(payload: CategoryName, db: Database = Depends(get_db),
                          admin: AdminIdentity = Depends(get_current_admin)):
    doc = insert_category(db, payload.name, "video")
    log.info("Video category %s created by %s", doc["name"], admin.email)
    return {"success": True, "message": "Video category created successfully", "data": serialize(doc)}


@router.put("/categories/{category_id}")
def update_video_category(category_id: str, payload: CategoryUpdate, db: Database = Depends(get_db),
                          admin: AdminIdentity = Depends(get_current_admin)):
    doc = rename_category(db, to_object_id(category_id, "category"), payload.name, "video")
    log.info("Video category %s renamed to %s by %s", category_id, doc["name"], admin.email)
    return {"success": True, "message": "Video category updated successfully", "data": serialize(doc)}


@router.delete("/categories/{category_id}")
def delete_video_category(category_id: str, db: Database = Depends(get_db),
                          admin: AdminIdentity = Depends(get_current_admin)):
    category = remove_category(db, to_object_id(category_id, "category"), "video")
    log.info("Video category %s deleted by %s", category["name"], admin.email)
    return {"success": True, "message": "Video category deleted successfully"}


# ---------------------- Admin ----------------------

@router.post("/upload", status_code=201)
def upload_video(
    video: UploadFile = File(...),
    thumbnail: Optional[UploadFile] = File(None),
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    date: datetime = Form(...),
    duration: str = Form(...),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    admin: AdminIdentity = Depends(get_current_admin),
):
    video_data = read_upload(video, VIDEO_TYPES, MAX_VIDEO_BYTES, "video")
    thumb_data = read_upload(thumbnail, THUMBNAIL_TYPES, MAX_IMAGE_BYTES, "thumbnail") if thumbnail else None
    duration = check_duration(duration)
    category_doc = resolve_category(db, category, "video")

    video_result = storage.upload_video(video_data)
    thumb_result = None
    try:
        if thumb_data is not None:
            thumb_result = storage.upload_thumbnail(thumb_data)
        doc = create_document(db, "video", {
            "title": title.strip(),
            "description": description.strip(),
            "video_url": video_result.url,
            "thumbnail": thumb_result.url if thumb_result else storage.video_thumbnail_url(video_result.public_id),
            "public_id": video_result.public_id,
            "thumbnail_public_id": thumb_result.public_id if thumb_result else None,
            "category": category_doc["_id"],
            "date": date,
            "duration": duration,
            "is_active": True,
        })
    except Exception:
        storage.destroy(video_result.public_id, "video")
        if thumb_result:
            storage.destroy(thumb_result.public_id)
        raise

    log.info("Video uploaded: %s by %s", doc["_id"], admin.email)
    return {"success": True, "message": "Video uploaded successfully", "data": present(db, doc)}


@router.post("", status_code=201)
def create_video(payload: VideoCreate, db: Database = Depends(get_db),
                 admin: AdminIdentity = Depends(get_current_admin)):
    category_doc = resolve_category(db, payload.category, "video")
    video = Video(**dict(payload.model_dump(), category=category_doc["_id"]))
    try:
        doc = create_document(db, "video", video)
    except DuplicateKeyError:
        raise ValidationError("A video with this public_id already exists")
    log.info("Video created: %s by %s", doc["_id"], admin.email)
    return {"success": True, "message": "Video created successfully", "data": present(db, doc)}


@router.put("/{video_id}")
def update_video(
    video_id: str,
    video: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    date: Optional[datetime] = Form(None),
    duration: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    admin: AdminIdentity = Depends(get_current_admin),
):
    doc = load(db, video_id)
    video_data = read_upload(video, VIDEO_TYPES, MAX_VIDEO_BYTES, "video") if video else None
    thumb_data = read_upload(thumbnail, THUMBNAIL_TYPES, MAX_IMAGE_BYTES, "thumbnail") if thumbnail else None

    updates = {}
    if title is not None:
        if not title.strip():
            raise ValidationError("Title is required")
        updates["title"] = title.strip()
    if description is not None:
        if not description.strip():
            raise ValidationError("Description is required")
        updates["description"] = description.strip()
    if category is not None:
        updates["category"] = resolve_category(db, category, "video")["_id"]
    if date is not None:
        updates["date"] = date
    if duration is not None:
        updates["duration"] = check_duration(duration)
    if is_active is not None:
        updates["is_active"] = is_active

    uploaded = []
    replaced = []
    try:
        if video_data is not None:
            result = storage.upload_video(video_data)
            uploaded.append((result.public_id, "video"))
            updates.update(video_url=result.url, public_id=result.public_id)
            replaced.append((doc.get("public_id"), "video"))
            if thumb_data is None:
                updates.update(thumbnail=storage.video_thumbnail_url(result.public_id), thumbnail_public_id=None)
                replaced.append((doc.get("thumbnail_public_id"), "image"))
        if thumb_data is not None:
            result = storage.upload_thumbnail(thumb_data)
            uploaded.append((result.public_id, "image"))
            updates.update(thumbnail=result.url, thumbnail_public_id=result.public_id)
            replaced.append((doc.get("thumbnail_public_id"), "image"))

        updates["updated_at"] = datetime.utcnow()
        db["video"].update_one({"_id": doc["_id"]}, {"$set": updates})
    except Exception:
        for public_id, resource_type in uploaded:
            storage.destroy(public_id, resource_type)
        raise

    for public_id, resource_type in replaced:
        if public_id:
            storage.destroy(public_id, resource_type)

    log.info("Video updated: %s by %s", video_id, admin.email)
    return {"success": True, "message": "Video updated successfully", "data": present(db, load(db, video_id))}


@router.delete("/{video_id}")
def delete_video(video_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage),
                 admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, video_id)
    db["video"].delete_one({"_id": doc["_id"]})
    if doc.get("public_id"):
        storage.destroy(doc["public_id"], "video")
    if doc.get("thumbnail_public_id"):
        storage.destroy(doc["thumbnail_public_id"])
    log.info("Video deleted: %s by %s", video_id, admin.email)
    return {"success": True, "message": "Video deleted successfully"}
