import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..captcha import RecaptchaVerifier, get_captcha_verifier
from ..database import create_document, get_db, get_documents, pagination, serialize, to_object_id
from ..errors import NotFound, ValidationError
from ..limits import form_limit
from ..schemas import INTERESTS, AdminIdentity, Availability, Volunteer
from ..security import get_current_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/volunteers", tags=["volunteers"])

PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
PINCODE_RE = re.compile(r"^\d{1,7}$")
CAPTCHA_ACTION = "volunteer_application"


class VolunteerCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str
    address: str = Field(..., min_length=1, max_length=200)
    district: str = Field(..., min_length=1, max_length=50)
    state: str = Field(..., min_length=1, max_length=50)
    pincode: str
    availability: Availability
    interests: List[str] = Field(..., min_length=1)
    experience: Optional[str] = Field(None, max_length=1000)
    reason: str = Field(..., min_length=1, max_length=1000)
    recaptcha_token: Optional[str] = None

    @field_validator("phone", "pincode", mode="before")
    @classmethod
    def digits_as_text(cls, v):
        return str(v).strip() if isinstance(v, (int, str)) else v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        if not PHONE_RE.match(v):
            raise ValueError("Please enter a valid phone number")
        return v

    @field_validator("pincode")
    @classmethod
    def pincode_format(cls, v):
        if not PINCODE_RE.match(v):
            raise ValueError("Pincode cannot exceed 7 digits")
        return v

    @field_validator("interests")
    @classmethod
    def known_interests(cls, v):
        unknown = [i for i in v if i not in INTERESTS]
        if unknown:
            raise ValueError(f"Unknown interests: {', '.join(unknown)}")
        return v


@router.post("", status_code=201)
@form_limit
def create_volunteer(request: Request, item: VolunteerCreate, db: Database = Depends(get_db),
                     verifier: RecaptchaVerifier = Depends(get_captcha_verifier)):
    if not item.recaptcha_token:
        raise ValidationError("reCAPTCHA token is required")
    verification = verifier.verify(item.recaptcha_token, CAPTCHA_ACTION)
    if not verification.success:
        log.warning("reCAPTCHA verification failed for email: %s, score: %s", item.email, verification.score)
        raise ValidationError(verification.message or "reCAPTCHA verification failed")

    email = item.email.lower()
    if db["volunteer"].find_one({"email": email}):
        raise ValidationError("A volunteer application with this email already exists")

    volunteer = Volunteer(**item.model_dump(exclude={"recaptcha_token", "email"}), email=email)
    try:
        doc = create_document(db, "volunteer", volunteer)
    except DuplicateKeyError:
        raise ValidationError("A volunteer application with this email already exists")

    log.info("New volunteer application submitted: %s, reCAPTCHA score: %s", email, verification.score)
    return {
        "success": True,
        "message": "Volunteer application submitted successfully",
        "data": {
            "id": str(doc["_id"]),
            "email": doc["email"],
            "first_name": doc["first_name"],
            "last_name": doc["last_name"],
            "submitted_at": doc["submitted_at"],
        },
    }


@router.get("")
def list_volunteers(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                    db: Database = Depends(get_db), admin: AdminIdentity = Depends(get_current_admin)):
    docs = get_documents(db, "volunteer", {}, sort=[("submitted_at", -1)], skip=(page - 1) * limit, limit=limit)
    total = db["volunteer"].count_documents({})
    return {"success": True, "data": serialize(docs), "pagination": pagination(page, limit, total)}


@router.get("/{volunteer_id}")
def get_volunteer(volunteer_id: str, db: Database = Depends(get_db),
                  admin: AdminIdentity = Depends(get_current_admin)):
    doc = db["volunteer"].find_one({"_id": to_object_id(volunteer_id, "volunteer")})
    if not doc:
        raise NotFound("Volunteer application not found")
    return {"success": True, "data": serialize(doc)}


@router.delete("/{volunteer_id}")
def delete_volunteer(volunteer_id: str, db: Database = Depends(get_db),
                     admin: AdminIdentity = Depends(get_current_admin)):
    doc = db["volunteer"].find_one({"_id": to_object_id(volunteer_id, "volunteer")})
    if not doc:
        raise NotFound("Volunteer application not found")
    db["volunteer"].delete_one({"_id": doc["_id"]})
    log.info("Volunteer application deleted: %s by %s", doc["email"], admin.email)
    return {"success": True, "message": "Volunteer application deleted successfully"}
