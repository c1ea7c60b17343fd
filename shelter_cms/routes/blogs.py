import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from pymongo.database import Database

from .. import settings
from ..categories import category_filter, populate_categories, populate_category, resolve_category
from ..database import create_document, get_db, get_documents, pagination, serialize, to_object_id
from ..errors import NotFound, ValidationError
from ..schemas import URL_PATTERN, AdminIdentity, BlogPost
from ..security import get_current_admin
from ..storage import BlobStorage, get_storage, public_id_from_url

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blogs", tags=["blogs"])


class BlogCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: str = Field(..., min_length=1)
    image: str = Field(..., pattern=URL_PATTERN)
    category: str


class BlogUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: Optional[str] = Field(None, min_length=1)
    image: Optional[str] = Field(None, pattern=URL_PATTERN)
    category: Optional[str] = None


def load(db: Database, blog_id: str) -> dict:
    doc = db["blogpost"].find_one({"_id": to_object_id(blog_id, "blog")})
    if not doc:
        raise NotFound("Blog post not found")
    return doc


@router.get("")
def list_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    db: Database = Depends(get_db),
):
    flt = {}
    category_id = category_filter(db, category, "blogs")
    if category_id:
        flt["category"] = category_id
    docs = get_documents(db, "blogpost", flt, sort=[("created_at", -1)], skip=(page - 1) * limit, limit=limit)
    total = db["blogpost"].count_documents(flt)
    return {
        "success": True,
        "data": serialize(populate_categories(db, docs)),
        "pagination": pagination(page, limit, total),
    }


@router.get("/{blog_id}")
def get_blog(blog_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": serialize(populate_category(db, load(db, blog_id)))}


@router.post("", status_code=201)
def create_blog(item: BlogCreate, db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    category = resolve_category(db, item.category, "blogs")
    post = BlogPost(
        title=item.title.strip(),
        excerpt=item.excerpt,
        content=item.content,
        image=item.image,
        category=category["_id"],
        author=admin.name or settings.ORGANIZATION_NAME,
    )
    doc = create_document(db, "blogpost", post)
    log.info("New blog post created: %s by %s", doc["title"], admin.email)
    return {
        "success": True,
        "message": "Blog post created successfully",
        "data": serialize(populate_category(db, doc)),
    }


@router.put("/{blog_id}")
def update_blog(blog_id: str, item: BlogUpdate, db: Database = Depends(get_db),
                storage: BlobStorage = Depends(get_storage), admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, blog_id)
    changes = item.model_dump(exclude_unset=True, exclude_none=True)
    if "category" in changes:
        changes["category"] = resolve_category(db, changes["category"], "blogs")["_id"]
    if "title" in changes:
        changes["title"] = changes["title"].strip()
        if not changes["title"]:
            raise ValidationError("Title is required")

    changes["updated_at"] = datetime.utcnow()
    db["blogpost"].update_one({"_id": doc["_id"]}, {"$set": changes})

    if "image" in changes and changes["image"] != doc.get("image"):
        old_public_id = public_id_from_url(doc.get("image"))
        if old_public_id:
            storage.destroy(old_public_id)

    updated = load(db, blog_id)
    log.info("Blog post updated: %s by %s", updated["title"], admin.email)
    return {
        "success": True,
        "message": "Blog post updated successfully",
        "data": serialize(populate_category(db, updated)),
    }


@router.delete("/{blog_id}")
def delete_blog(blog_id: str, db: Database = Depends(get_db), storage: BlobStorage = Depends(get_storage),
                admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, blog_id)
    db["blogpost"].delete_one({"_id": doc["_id"]})
    public_id = public_id_from_url(doc.get("image"))
    if public_id:
        storage.destroy(public_id)
    log.info("Blog post deleted: %s by %s", doc["title"], admin.email)
    return {"success": True, "message": "Blog post deleted successfully"}
