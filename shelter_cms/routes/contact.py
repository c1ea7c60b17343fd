import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from ..database import create_document, get_db, get_documents, pagination, serialize, to_object_id
from ..errors import NotFound
from ..limits import form_limit
from ..schemas import AdminIdentity, Contact
from ..security import get_current_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["messages"])


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)


def load(db: Database, message_id: str) -> dict:
    doc = db["contact"].find_one({"_id": to_object_id(message_id, "message")})
    if not doc:
        raise NotFound("Message not found")
    return doc


@router.post("", status_code=201)
@form_limit
def create_message(request: Request, item: ContactCreate, db: Database = Depends(get_db)):
    contact = Contact(
        name=item.name.strip(),
        email=item.email.lower(),
        subject=item.subject.strip(),
        message=item.message.strip(),
    )
    doc = create_document(db, "contact", contact)
    log.info("New contact message received from: %s", doc["email"])
    return {"success": True, "message": "Message sent successfully", "data": {"id": str(doc["_id"])}}


@router.get("")
def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    read: Optional[bool] = None,
    db: Database = Depends(get_db),
    admin: AdminIdentity = Depends(get_current_admin),
):
    flt = {} if read is None else {"is_read": read}
    docs = get_documents(db, "contact", flt, sort=[("created_at", -1)], skip=(page - 1) * limit, limit=limit)
    total = db["contact"].count_documents(flt)
    return {
        "success": True,
        "data": serialize(docs),
        "pagination": pagination(page, limit, total),
        "unread_count": db["contact"].count_documents({"is_read": False}),
    }


@router.get("/{message_id}")
def get_message(message_id: str, db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, message_id)
    if not doc.get("is_read"):
        db["contact"].update_one({"_id": doc["_id"]}, {"$set": {"is_read": True, "updated_at": datetime.utcnow()}})
        doc["is_read"] = True
        log.info("Message marked as read: %s by %s", message_id, admin.email)
    return {"success": True, "data": serialize(doc)}


@router.patch("/{message_id}/read")
def mark_read(message_id: str, is_read: bool = Body(True, embed=True), db: Database = Depends(get_db),
              admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, message_id)
    db["contact"].update_one({"_id": doc["_id"]}, {"$set": {"is_read": is_read, "updated_at": datetime.utcnow()}})
    state = "marked as read" if is_read else "marked as unread"
    log.info("Message %s: %s by %s", state, message_id, admin.email)
    return {"success": True, "message": f"Message {state}", "data": serialize(load(db, message_id))}


@router.delete("/{message_id}")
def delete_message(message_id: str, db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    doc = load(db, message_id)
    db["contact"].delete_one({"_id": doc["_id"]})
    log.info("Contact message deleted: %s by %s", doc["email"], admin.email)
    return {"success": True, "message": "Message deleted successfully"}
