"""
Router factory for categorized image galleries.

Photos and awards are structurally identical: a title, an ordered list of
1..N images, a category and some optional metadata. ``build_gallery_router``
wires the same list/get/create/update/delete surface for each of them.
"""
import json
import logging
import re
from datetime import datetime
from typing import List, Optional, Type

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel, Field
from pymongo.database import Database

from ..categories import category_filter, populate_categories, populate_category, resolve_category
from ..database import create_document, get_db, get_documents, pagination, serialize, sort_spec, to_object_id
from ..errors import ApiError, ConflictError, NotFound, ValidationError
from ..images import MAX_ALT_LENGTH, MAX_IMAGES, ImageCollection
from ..schemas import AdminIdentity, Gallery, ImageRef
from ..security import get_current_admin
from ..storage import IMAGE_TYPES, MAX_IMAGE_BYTES, BlobStorage, get_storage, read_upload

log = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "updated_at", "date", "title")
IMAGE_ACTIONS = ("add", "delete", "updateAlt")


class GalleryCreate(BaseModel):
    images: List[ImageRef] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    category: str
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class GalleryUpdate(BaseModel):
    images: Optional[List[ImageRef]] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


def _search_filter(search: str) -> dict:
    pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
    return {"$or": [
        {"title": pattern},
        {"description": pattern},
        {"location": pattern},
        {"images.alt": pattern},
    ]}


def _parse_alt_texts(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        return [raw]
    if isinstance(parsed, list):
        return [str(a) for a in parsed]
    return [str(parsed)]


def build_gallery_router(*, model: Type[Gallery], collection: str, category_type: str, label: str, prefix: str,
                         max_images: int = MAX_IMAGES, max_images_on_update: int = MAX_IMAGES,
                         title_max_length: int = 200) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[collection])
    noun = label.lower()

    def check_title(title: Optional[str]) -> Optional[str]:
        if title is None:
            return None
        title = title.strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > title_max_length:
            raise ValidationError(f"Title cannot exceed {title_max_length} characters")
        return title

    def load(db: Database, item_id: str) -> dict:
        doc = db[collection].find_one({"_id": to_object_id(item_id, noun)})
        if not doc:
            raise NotFound(f"{label} not found")
        return doc

    def present(db: Database, doc: dict) -> dict:
        return serialize(populate_category(db, doc))

    def destroy_all(storage: BlobStorage, images: list) -> None:
        for image in images:
            if image.get("public_id"):
                storage.destroy(image["public_id"])

    def insert(db: Database, images: list, title: str, category: str, date=None,
               location=None, description=None) -> dict:
        category_doc = resolve_category(db, category, category_type)
        return create_document(db, collection, model(
            title=check_title(title),
            description=description or None,
            images=images,
            category=category_doc["_id"],
            date=date or datetime.utcnow(),
            location=location or None,
        ))

    def upload_images(storage: BlobStorage, payloads: List[bytes], alts: List[str]) -> list:
        for alt in alts:
            if len(alt) > MAX_ALT_LENGTH:
                raise ValidationError(f"Alt text cannot exceed {MAX_ALT_LENGTH} characters")
        uploaded = []
        try:
            for data, alt in zip(payloads, alts):
                result = storage.upload_image(data)
                uploaded.append({"src": result.url, "alt": alt, "public_id": result.public_id})
        except ApiError:
            destroy_all(storage, uploaded)
            raise
        return uploaded

    # ---------------------- Public ----------------------

    @router.get("")
    def list_items(
        page: int = Query(1, ge=1),
        limit: int = Query(12, ge=1, le=100),
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        db: Database = Depends(get_db),
    ):
        flt = {"is_active": True}
        category_id = category_filter(db, category, category_type)
        if category_id:
            flt["category"] = category_id
        if search and search.strip():
            flt.update(_search_filter(search))

        docs = get_documents(db, collection, flt, sort=sort_spec(sort_by, sort_order, SORT_FIELDS, "created_at"),
                             skip=(page - 1) * limit, limit=limit)
        total = db[collection].count_documents(flt)
        return {
            "success": True,
            "data": serialize(populate_categories(db, docs)),
            "pagination": pagination(page, limit, total),
        }

    @router.get("/search")
    def search_items(search: str = "", limit: int = Query(12, ge=1, le=100), db: Database = Depends(get_db)):
        if not search.strip():
            raise ValidationError("Search query is required")
        flt = {"is_active": True, **_search_filter(search)}
        docs = get_documents(db, collection, flt, sort=[("created_at", -1)], limit=limit)
        total = db[collection].count_documents(flt)
        return {
            "success": True,
            "data": serialize(populate_categories(db, docs)),
            "pagination": pagination(1, limit, total),
        }

    @router.get("/category/{category}")
    def list_by_category(category: str, limit: int = Query(12, ge=1, le=100), db: Database = Depends(get_db)):
        flt = {"is_active": True, "category": resolve_category(db, category, category_type)["_id"]}
        docs = get_documents(db, collection, flt, sort=[("created_at", -1)], limit=limit)
        total = db[collection].count_documents(flt)
        return {
            "success": True,
            "data": serialize(populate_categories(db, docs)),
            "pagination": pagination(1, limit, total),
        }

    @router.get("/{item_id}")
    def get_item(item_id: str, db: Database = Depends(get_db)):
        doc = load(db, item_id)
        if not doc.get("is_active", True):
            raise NotFound(f"{label} not found")
        return {"success": True, "data": present(db, doc)}

    # ---------------------- Admin ----------------------

    @router.post("", status_code=201)
    def create_item(payload: GalleryCreate, db: Database = Depends(get_db),
                    admin: AdminIdentity = Depends(get_current_admin)):
        if len(payload.images) > max_images:
            raise ValidationError(f"Must have between 1 and {max_images} images")
        doc = insert(db, [i.model_dump() for i in payload.images], payload.title, payload.category,
                     payload.date, payload.location, payload.description)
        log.info("%s created: %s by %s", label, doc["_id"], admin.email)
        return {"success": True, "message": f"{label} created successfully", "data": present(db, doc)}

    @router.post("/upload", status_code=201)
    def upload_item(
        image: UploadFile = File(...),
        title: str = Form(...),
        category: str = Form(...),
        alt: Optional[str] = Form(None),
        date: Optional[datetime] = Form(None),
        location: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        db: Database = Depends(get_db),
        storage: BlobStorage = Depends(get_storage),
        admin: AdminIdentity = Depends(get_current_admin),
    ):
        data = read_upload(image, IMAGE_TYPES, MAX_IMAGE_BYTES, "image")
        check_title(title)
        resolve_category(db, category, category_type)
        images = upload_images(storage, [data], [(alt or title).strip()])
        try:
            doc = insert(db, images, title, category, date, location, description)
        except Exception:
            destroy_all(storage, images)
            raise
        log.info("%s uploaded: %s by %s", label, doc["_id"], admin.email)
        return {
            "success": True,
            "message": f"{label} uploaded successfully",
            "data": {noun: present(db, doc), "images_count": 1},
        }

    @router.post("/upload-multiple", status_code=201)
    def upload_multiple(
        images: List[UploadFile] = File(...),
        title: str = Form(...),
        category: str = Form(...),
        alt_texts: Optional[str] = Form(None),
        date: Optional[datetime] = Form(None),
        location: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        db: Database = Depends(get_db),
        storage: BlobStorage = Depends(get_storage),
        admin: AdminIdentity = Depends(get_current_admin),
    ):
        if len(images) > max_images:
            raise ValidationError(f"Too many files. Maximum {max_images} files allowed")
        payloads = [read_upload(f, IMAGE_TYPES, MAX_IMAGE_BYTES, "image") for f in images]
        check_title(title)
        resolve_category(db, category, category_type)

        alts = _parse_alt_texts(alt_texts)
        alts = [(alts[i] if i < len(alts) and alts[i].strip() else title).strip() for i in range(len(payloads))]
        uploaded = upload_images(storage, payloads, alts)
        try:
            doc = insert(db, uploaded, title, category, date, location, description)
        except Exception:
            destroy_all(storage, uploaded)
            raise
        log.info("%s uploaded with %d images: %s by %s", label, len(uploaded), doc["_id"], admin.email)
        return {
            "success": True,
            "message": f"{label} images uploaded successfully",
            "data": {noun: present(db, doc), "images_count": len(uploaded)},
        }

    @router.put("/{item_id}")
    def update_item(item_id: str, payload: GalleryUpdate, db: Database = Depends(get_db),
                    storage: BlobStorage = Depends(get_storage),
                    admin: AdminIdentity = Depends(get_current_admin)):
        doc = load(db, item_id)
        changes = payload.model_dump(exclude_unset=True)
        updates = {}
        update_op = {}

        if "category" in changes:
            updates["category"] = resolve_category(db, changes.pop("category"), category_type)["_id"]
        if "title" in changes:
            updates["title"] = check_title(changes.pop("title"))

        dropped = []
        if "images" in changes:
            images = changes.pop("images") or []
            if not 1 <= len(images) <= max_images:
                raise ValidationError(f"Must have between 1 and {max_images} images")
            kept = {i["public_id"] for i in images}
            dropped = [i for i in doc.get("images", []) if i.get("public_id") not in kept]
            updates["images"] = images
            update_op["$inc"] = {"version": 1}

        for field, value in changes.items():
            if field == "is_active":
                if value is not None:
                    updates[field] = value
            else:
                updates[field] = value or None

        updates["updated_at"] = datetime.utcnow()
        update_op["$set"] = updates
        query = {"_id": doc["_id"]}
        if "images" in updates:
            version = doc.get("version")
            query["version"] = version if version is not None else {"$exists": False}
        if db[collection].update_one(query, update_op).matched_count == 0:
            raise ConflictError()
        destroy_all(storage, dropped)

        log.info("%s updated: %s by %s", label, item_id, admin.email)
        return {"success": True, "message": f"{label} updated successfully", "data": present(db, load(db, item_id))}

    @router.patch("/{item_id}/upload")
    def update_item_with_file(
        item_id: str,
        image: Optional[UploadFile] = File(None),
        image_action: Optional[str] = Form(None),
        image_index: Optional[int] = Form(None),
        image_alt: Optional[str] = Form(None),
        alt: Optional[str] = Form(None),
        title: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        date: Optional[datetime] = Form(None),
        location: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        is_active: Optional[bool] = Form(None),
        db: Database = Depends(get_db),
        storage: BlobStorage = Depends(get_storage),
        admin: AdminIdentity = Depends(get_current_admin),
    ):
        doc = load(db, item_id)
        manager = ImageCollection(db, collection, max_size=max_images_on_update, storage=storage)

        if image_action is not None and image_action not in IMAGE_ACTIONS:
            raise ValidationError(f'Invalid image_action: "{image_action}". Use: add, delete, or updateAlt')
        if image_action is None and image is not None:
            image_action = "add"

        updates = {}
        if category is not None:
            updates["category"] = resolve_category(db, category, category_type)["_id"]
        if title is not None:
            updates["title"] = check_title(title)
        if date is not None:
            updates["date"] = date
        if location is not None:
            updates["location"] = location or None
        if description is not None:
            updates["description"] = description or None
        if is_active is not None:
            updates["is_active"] = is_active

        if image_action == "add":
            if image is None:
                raise ValidationError("No file uploaded for image addition")
            data = read_upload(image, IMAGE_TYPES, MAX_IMAGE_BYTES, "image")
            manager.ensure_capacity(doc)
            result = storage.upload_image(data)
            entry = {
                "src": result.url,
                "alt": (image_alt or alt or doc["title"]).strip(),
                "public_id": result.public_id,
            }
            try:
                doc = manager.add(doc, entry)
            except ApiError:
                storage.destroy(result.public_id)
                raise
        elif image_action == "delete":
            if image_index is None:
                raise ValidationError("image_index is required for delete action")
            doc = manager.remove(doc, image_index)
        elif image_action == "updateAlt":
            if image_index is None:
                raise ValidationError("image_index is required for updateAlt action")
            doc = manager.rename_alt(doc, image_index, image_alt)

        if updates:
            updates["updated_at"] = datetime.utcnow()
            db[collection].update_one({"_id": doc["_id"]}, {"$set": updates})

        log.info("%s updated: %s by %s", label, item_id, admin.email)
        return {"success": True, "message": f"{label} updated successfully", "data": present(db, load(db, item_id))}

    @router.delete("/{item_id}")
    def delete_item(item_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage),
                    admin: AdminIdentity = Depends(get_current_admin)):
        doc = load(db, item_id)
        db[collection].delete_one({"_id": doc["_id"]})
        destroy_all(storage, doc.get("images", []))
        log.info("%s deleted: %s by %s", label, item_id, admin.email)
        return {"success": True, "message": f"{label} deleted successfully"}

    return router
