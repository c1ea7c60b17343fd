"""
Database Schemas

Each Pydantic model corresponds to a MongoDB collection. The collection
name is the lowercase of the class name by convention.

Example: class BlogPost -> collection "blogpost"

Category references are stored as ObjectIds, so models that carry one
allow arbitrary types.
"""
import re
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

CategoryType = Literal["photo", "video", "blogs", "award", "rescue"]
CATEGORY_TYPES = ("photo", "video", "blogs", "award", "rescue")

URL_PATTERN = r"^https?://.+"
DURATION_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")

Availability = Literal["weekdays", "weekends", "evenings", "flexible"]
INTERESTS = (
    "Dog Walker",
    "Kennel Assistant",
    "Groomer",
    "Photographer",
    "Transport Volunteer",
    "Social Media Coordinator",
    "Event Volunteer",
    "Educational Outreach",
)


# Auth/User
class AdminUser(BaseModel):
    name: str = Field(..., max_length=50)
    email: str = Field(..., description="Admin email (unique)")
    password_hash: str = Field(..., description="BCrypt hash of password")
    last_login: Optional[datetime] = Field(None)


class AdminIdentity(BaseModel):
    """The resolved admin attached to a request by the auth gate."""
    id: str
    name: str
    email: str


# Categories
class Category(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType


# Images
class ImageRef(BaseModel):
    src: str = Field(..., pattern=URL_PATTERN, description="Absolute URL of the stored image")
    alt: str = Field(..., min_length=1, max_length=200)
    public_id: str = Field(..., min_length=1, description="Storage handle used to delete the blob")

    @field_validator("src", "alt", "public_id", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v


# Photo galleries and awards share one shape
class Gallery(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    description: Optional[str] = None
    images: List[ImageRef]
    category: ObjectId
    date: datetime = Field(default_factory=datetime.utcnow)
    location: Optional[str] = None
    is_active: bool = True
    version: int = 0


class Photo(Gallery):
    pass


class Award(Gallery):
    pass


class Video(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=1000)
    thumbnail: str = Field(..., pattern=URL_PATTERN)
    video_url: str = Field(..., pattern=URL_PATTERN)
    date: datetime
    category: ObjectId
    duration: str = Field(..., description="MM:SS or HH:MM:SS")
    public_id: str
    thumbnail_public_id: Optional[str] = None
    is_active: bool = True


# Blog
class BlogPost(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., max_length=200)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: str
    image: str = Field(..., pattern=URL_PATTERN, description="URL to hero image")
    category: ObjectId
    author: str


# Rescue stories
class RescuePost(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., max_length=200)
    description: str
    before_image: ImageRef
    after_image: ImageRef
    category: Optional[ObjectId] = None


class Testimonial(BaseModel):
    quote: str = Field(..., min_length=10, max_length=1000)
    name: str = Field(..., min_length=2, max_length=100)
    profession: str = Field(..., min_length=2, max_length=150)
    rate: float = Field(..., ge=1, le=5)
    is_active: bool = True


class Contact(BaseModel):
    name: str = Field(..., max_length=100)
    email: EmailStr
    subject: str = Field(..., max_length=200)
    message: str = Field(..., max_length=2000)
    is_read: bool = False


class Volunteer(BaseModel):
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    email: EmailStr
    phone: str
    address: str = Field(..., max_length=200)
    district: str = Field(..., max_length=50)
    state: str = Field(..., max_length=50)
    pincode: str = Field(..., max_length=7)
    availability: Availability
    interests: List[str]
    experience: Optional[str] = Field(None, max_length=1000)
    reason: str = Field(..., max_length=1000)
    submitted_at: datetime = Field(default_factory=datetime.utcnow)


# Visitor analytics (single document)
class DailyVisit(BaseModel):
    date: datetime
    count: int = Field(0, ge=0)


class Visitor(BaseModel):
    total_visitors: int = Field(0, ge=0)
    last_visit: datetime = Field(default_factory=datetime.utcnow)
    daily_visits: List[DailyVisit] = Field(default_factory=list)


class TotalImpact(BaseModel):
    dogs_rescued: int = Field(0, ge=0)
    dogs_adopted: int = Field(0, ge=0)
    volunteers: int = Field(0, ge=0)
    is_active: bool = True
