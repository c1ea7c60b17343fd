"""
Blob storage on Cloudinary.

Uploads return an ``UploadResult`` or raise ``UpstreamFailure``. Deletes never
raise: they return a ``CleanupOutcome`` which is logged, because the document
store is authoritative and blob cleanup is advisory.
"""
import io
import logging
import re
import time
from dataclasses import asdict, dataclass
from typing import Optional

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from fastapi import UploadFile

from . import settings
from .errors import UpstreamFailure, ValidationError

log = logging.getLogger(__name__)

IMAGE_FOLDER = "prapti-foundation-images"
VIDEO_FOLDER = "prapti-foundation-videos"
THUMBNAIL_FOLDER = "prapti-foundation-thumbnails"

MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_VIDEO_BYTES = 500 * 1024 * 1024

IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
    "image/svg+xml",
)
THUMBNAIL_TYPES = tuple(t for t in IMAGE_TYPES if t != "image/svg+xml")
VIDEO_TYPES = (
    "video/mp4",
    "video/mov",
    "video/avi",
    "video/wmv",
    "video/flv",
    "video/webm",
    "video/mkv",
)

IMAGE_TRANSFORMATION = [
    {"width": 1200, "height": 800, "crop": "limit"},
    {"quality": "auto"},
    {"fetch_format": "auto"},
]
THUMBNAIL_TRANSFORMATION = [{"width": 1280, "height": 720, "crop": "fill"}]


@dataclass
class UploadResult:
    url: str
    public_id: str
    resource_type: str = "image"


@dataclass
class CleanupOutcome:
    public_id: str
    resource_type: str
    ok: bool
    result: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self):
        return asdict(self)


def read_upload(upload: UploadFile, allowed_types: tuple, max_bytes: int, field: str = "file") -> bytes:
    """Enforce the type allow-list and size limit of an incoming multipart file."""
    content_type = (upload.content_type or "").lower()
    if content_type not in allowed_types:
        raise ValidationError(f"Invalid file type for {field}: {content_type or 'unknown'} is not supported")
    data = upload.file.read()
    if not data:
        raise ValidationError(f"Uploaded {field} is empty")
    if len(data) > max_bytes:
        raise ValidationError(
            f"File size too large. Maximum file size allowed is {max_bytes // (1024 * 1024)}MB"
        )
    return data


def public_id_from_url(url: str) -> Optional[str]:
    """Recover the public id from a Cloudinary delivery URL (``.../upload/v123/<id>.<ext>``)."""
    if not url or "cloudinary.com" not in url:
        return None
    parts = url.split("/")
    if "upload" not in parts:
        return None
    rest = parts[parts.index("upload") + 1:]
    if rest and re.match(r"^v\d+$", rest[0]):
        rest = rest[1:]
    if not rest:
        return None
    return re.sub(r"\.[^/.]+$", "", "/".join(rest))


class BlobStorage:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    def _upload(self, data: bytes, **options) -> UploadResult:
        resource_type = options.get("resource_type", "image")
        try:
            result = cloudinary.uploader.upload(io.BytesIO(data), **options)
        except Exception as exc:
            log.error("Cloudinary %s upload failed: %s", resource_type, exc)
            raise UpstreamFailure(f"Failed to upload {resource_type}: {exc}")
        return UploadResult(url=result["secure_url"], public_id=result["public_id"], resource_type=resource_type)

    def upload_image(self, data: bytes, folder: str = IMAGE_FOLDER) -> UploadResult:
        return self._upload(data, folder=folder, resource_type="image", transformation=IMAGE_TRANSFORMATION)

    def upload_thumbnail(self, data: bytes) -> UploadResult:
        return self._upload(
            data, folder=THUMBNAIL_FOLDER, resource_type="image",
            format="jpg", transformation=THUMBNAIL_TRANSFORMATION,
        )

    def upload_video(self, data: bytes) -> UploadResult:
        return self._upload(data, folder=VIDEO_FOLDER, resource_type="video", format="mp4")

    def video_thumbnail_url(self, public_id: str) -> str:
        url, _ = cloudinary.utils.cloudinary_url(
            public_id, resource_type="video", format="jpg",
            transformation=THUMBNAIL_TRANSFORMATION, secure=True,
        )
        return url

    def destroy(self, public_id: str, resource_type: str = "image") -> CleanupOutcome:
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type=resource_type)
        except Exception as exc:
            outcome = CleanupOutcome(public_id, resource_type, ok=False, error=str(exc))
        else:
            status = result.get("result")
            outcome = CleanupOutcome(public_id, resource_type, ok=status == "ok", result=status)
        log_cleanup(outcome)
        return outcome

    def sign_upload(self, folder: str = IMAGE_FOLDER) -> dict:
        timestamp = int(time.time())
        signature = cloudinary.utils.api_sign_request({"timestamp": timestamp, "folder": folder}, self.api_secret)
        return {
            "timestamp": timestamp,
            "signature": signature,
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "folder": folder,
        }


def log_cleanup(outcome: CleanupOutcome) -> None:
    if outcome.ok:
        log.info("Blob deleted: %s", outcome.public_id, extra={"cleanup": outcome.as_dict()})
    else:
        log.warning(
            "Blob cleanup failed for %s (%s): %s",
            outcome.public_id, outcome.resource_type, outcome.error or outcome.result,
            extra={"cleanup": outcome.as_dict()},
        )


_storage: Optional[BlobStorage] = None


def get_storage() -> BlobStorage:
    """FastAPI dependency returning the configured blob storage."""
    global _storage
    if _storage is None:
        _storage = BlobStorage(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
        )
    return _storage
