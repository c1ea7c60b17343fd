import os

os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import mongomock
import pytest
from fastapi.testclient import TestClient

from shelter_cms.captcha import CaptchaResult, get_captcha_verifier
from shelter_cms.database import ensure_indexes, get_db
from shelter_cms.errors import UpstreamFailure
from shelter_cms.limits import limiter
from shelter_cms.main import app
from shelter_cms.routes.auth import seed_admin
from shelter_cms.routes.categories import insert_category
from shelter_cms.security import create_access_token
from shelter_cms.storage import CleanupOutcome, UploadResult, get_storage

ADMIN_EMAIL = "admin@test.com"
ADMIN_PASSWORD = "TestPass123!"


class FakeStorage:
    """In-memory stand-in for the Cloudinary client."""

    def __init__(self):
        self.uploaded = []
        self.destroyed = []
        self.fail_upload = False
        self.fail_destroy = False

    def _upload(self, resource_type):
        if self.fail_upload:
            raise UpstreamFailure(f"Failed to upload {resource_type}: provider unavailable")
        public_id = f"test-{resource_type}-{len(self.uploaded) + 1}"
        self.uploaded.append(public_id)
        ext = "mp4" if resource_type == "video" else "jpg"
        return UploadResult(
            url=f"https://res.cloudinary.com/demo/{resource_type}/upload/v1/{public_id}.{ext}",
            public_id=public_id,
            resource_type=resource_type,
        )

    def upload_image(self, data, folder=None):
        return self._upload("image")

    def upload_thumbnail(self, data):
        return self._upload("image")

    def upload_video(self, data):
        return self._upload("video")

    def video_thumbnail_url(self, public_id):
        return f"https://res.cloudinary.com/demo/video/upload/{public_id}.jpg"

    def destroy(self, public_id, resource_type="image"):
        self.destroyed.append(public_id)
        if self.fail_destroy:
            return CleanupOutcome(public_id, resource_type, ok=False, error="provider unavailable")
        return CleanupOutcome(public_id, resource_type, ok=True, result="ok")

    def sign_upload(self, folder="prapti-foundation-images"):
        return {"timestamp": 1, "signature": "sig", "cloud_name": "demo", "api_key": "key", "folder": folder}


class FakeCaptcha:
    def __init__(self):
        self.calls = []

    def verify(self, token, expected_action):
        self.calls.append((token, expected_action))
        if token == "good-token":
            return CaptchaResult(success=True, score=0.9)
        return CaptchaResult(success=False, score=0.1, message="Bot-like activity detected")


@pytest.fixture
def db():
    database = mongomock.MongoClient()["shelter_cms_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def captcha():
    return FakeCaptcha()


@pytest.fixture
def client(db, storage, captcha):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_captcha_verifier] = lambda: captcha
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    doc, _ = seed_admin(db, "Test Admin", ADMIN_EMAIL, ADMIN_PASSWORD)
    return doc


@pytest.fixture
def token(admin):
    return create_access_token({"sub": str(admin["_id"])})


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_category(db):
    def _make(name, category_type="photo"):
        return insert_category(db, name, category_type)
    return _make


@pytest.fixture
def make_image():
    def _make(n, alt=None):
        return {
            "src": f"https://res.cloudinary.com/demo/image/upload/v1/img-{n}.jpg",
            "alt": alt or f"Image {n}",
            "public_id": f"img-{n}",
        }
    return _make
