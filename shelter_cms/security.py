import logging
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from . import settings
from .database import get_db
from .errors import Unauthorized
from .schemas import AdminIdentity

log = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/login", auto_error=False)


def verify_password(plain_password, hashed_password):
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def get_current_admin(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> AdminIdentity:
    """Resolve the bearer token to an existing admin or fail with 401."""
    if not token:
        raise Unauthorized("Not authorized, no token")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthorized("Not authorized, token expired")
    except JWTError:
        raise Unauthorized("Not authorized, token failed")

    admin_id = payload.get("sub")
    if not admin_id or not ObjectId.is_valid(admin_id):
        raise Unauthorized("Not authorized, token failed")

    admin = db["adminuser"].find_one({"_id": ObjectId(admin_id)}, {"password_hash": 0})
    if not admin:
        log.warning("Token presented for missing admin %s", admin_id)
        raise Unauthorized("User not found with this token")
    return AdminIdentity(id=str(admin["_id"]), name=admin.get("name", ""), email=admin["email"])
