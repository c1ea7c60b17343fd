import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from .. import settings
from ..database import create_document, get_db
from ..errors import NotFound, Unauthorized
from ..limits import auth_limit
from ..schemas import AdminIdentity, AdminUser
from ..security import create_access_token, get_current_admin, get_password_hash, verify_password

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


def seed_admin(db: Database, name: str, email: str, password: str):
    """Create the admin account if it does not exist yet. Returns ``(admin, created)``."""
    email = email.strip().lower()
    existing = db["adminuser"].find_one({"email": email})
    if existing:
        return existing, False
    admin = create_document(db, "adminuser", AdminUser(name=name, email=email, password_hash=get_password_hash(password)))
    log.info("Admin account created: %s", email)
    return admin, True


@router.post("/login")
@auth_limit
def login(request: Request, payload: LoginRequest, db: Database = Depends(get_db)):
    email = payload.email.lower()
    admin = db["adminuser"].find_one({"email": email})
    if not admin or not verify_password(payload.password, admin.get("password_hash", "")):
        log.info("Failed login attempt for email: %s", email)
        raise Unauthorized("Invalid credentials")

    token = create_access_token({"sub": str(admin["_id"])})
    db["adminuser"].update_one({"_id": admin["_id"]}, {"$set": {"last_login": datetime.utcnow()}})
    log.info("Admin logged in: %s", email)
    return {
        "success": True,
        "message": "Login successful",
        "data": {"id": str(admin["_id"]), "name": admin.get("name"), "email": admin["email"], "token": token},
    }


@router.post("/logout")
def logout(admin: AdminIdentity = Depends(get_current_admin)):
    # Tokens are stateless; the client discards it.
    log.info("Admin logged out: %s", admin.email)
    return {"success": True, "message": "Logout successful"}


@router.post("/seed")
def seed(db: Database = Depends(get_db)):
    if settings.APP_ENV != "development":
        raise NotFound()
    admin, created = seed_admin(db, settings.ADMIN_NAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    return {
        "success": True,
        "message": "Admin user created successfully" if created else "Admin user already exists",
        "data": {"name": admin["name"], "email": admin["email"]},
    }
