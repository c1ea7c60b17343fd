"""
Ordered image collections embedded in a parent document.

Photos and awards keep their pictures in an ``images`` list of
``{src, alt, public_id}`` entries. The list is bounded above by the entity's
maximum and never drops below one entry. Indices follow insertion order and
shift after a removal, so callers must reload the parent before issuing
another index-based operation.

Every mutation is committed with a conditional update on the parent's
``version`` counter; a stale parent raises ``ConflictError`` instead of
overwriting a concurrent change.
"""
import logging
from datetime import datetime
from typing import Optional

from pymongo.database import Database

from .errors import (
    CollectionFull,
    ConflictError,
    IndexOutOfRange,
    InvalidAltText,
    LastImageProtected,
    ValidationError,
)

log = logging.getLogger(__name__)

MAX_IMAGES = 10
MAX_IMAGES_WITH_FILE = 20
MAX_ALT_LENGTH = 200


class ImageCollection:
    def __init__(self, db: Database, collection_name: str, max_size: int = MAX_IMAGES, storage=None):
        self.db = db
        self.collection_name = collection_name
        self.max_size = max_size
        self.storage = storage

    def ensure_capacity(self, parent: dict) -> None:
        if len(parent.get("images", [])) >= self.max_size:
            raise CollectionFull(self.max_size)

    def add(self, parent: dict, image: dict) -> dict:
        self.ensure_capacity(parent)
        images = list(parent.get("images", []))
        images.append(image)
        updated = self._commit(parent, images)
        log.info("Image added to %s %s: %s", self.collection_name, parent["_id"], image.get("public_id"))
        return updated

    def remove(self, parent: dict, index: int) -> dict:
        images = list(parent.get("images", []))
        self._check_index(images, index)
        if len(images) == 1:
            raise LastImageProtected()

        removed = images.pop(index)
        updated = self._commit(parent, images)
        log.info("Image at index %d removed from %s %s", index, self.collection_name, parent["_id"])

        if self.storage is not None and removed.get("public_id"):
            self.storage.destroy(removed["public_id"])
        return updated

    def rename_alt(self, parent: dict, index: int, alt: Optional[str]) -> dict:
        images = list(parent.get("images", []))
        self._check_index(images, index)
        alt = alt.strip() if isinstance(alt, str) else ""
        if not alt:
            raise InvalidAltText()
        if len(alt) > MAX_ALT_LENGTH:
            raise ValidationError(f"Alt text cannot exceed {MAX_ALT_LENGTH} characters")

        images[index] = dict(images[index], alt=alt)
        return self._commit(parent, images)

    @staticmethod
    def _check_index(images: list, index) -> None:
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(images):
            raise IndexOutOfRange(index, len(images))

    def _commit(self, parent: dict, images: list) -> dict:
        version = parent.get("version")
        query = {"_id": parent["_id"]}
        query["version"] = version if version is not None else {"$exists": False}
        now = datetime.utcnow()

        result = self.db[self.collection_name].update_one(
            query,
            {"$set": {"images": images, "updated_at": now}, "$inc": {"version": 1}},
        )
        if result.matched_count == 0:
            raise ConflictError()
        return dict(parent, images=images, updated_at=now, version=(version or 0) + 1)
