"""
Cloudinary wrapper and reCAPTCHA verifier, with the provider calls stubbed out.
"""

import io
import logging

import cloudinary.uploader
import pytest
import requests
from starlette.datastructures import Headers, UploadFile

from shelter_cms import captcha as captcha_module
from shelter_cms.captcha import RecaptchaVerifier
from shelter_cms.errors import UpstreamFailure, ValidationError
from shelter_cms.storage import IMAGE_TYPES, BlobStorage, read_upload


def upload(data, content_type):
    return UploadFile(file=io.BytesIO(data), filename="f", headers=Headers({"content-type": content_type}))


@pytest.fixture
def blob_storage():
    return BlobStorage("demo", "key", "secret")


# ==================== BLOB STORAGE ====================

class TestBlobStorage:

    def test_destroy_ok(self, blob_storage, monkeypatch):
        monkeypatch.setattr(cloudinary.uploader, "destroy", lambda public_id, **kw: {"result": "ok"})
        outcome = blob_storage.destroy("img-1")
        assert outcome.ok
        assert outcome.result == "ok"

    def test_destroy_not_found_is_reported(self, blob_storage, monkeypatch, caplog):
        monkeypatch.setattr(cloudinary.uploader, "destroy", lambda public_id, **kw: {"result": "not found"})
        with caplog.at_level(logging.WARNING):
            outcome = blob_storage.destroy("img-404")
        assert not outcome.ok
        assert "img-404" in caplog.text

    def test_destroy_swallows_provider_errors(self, blob_storage, monkeypatch):
        def explode(public_id, **kw):
            raise ConnectionError("network down")

        monkeypatch.setattr(cloudinary.uploader, "destroy", explode)

        outcome = blob_storage.destroy("img-1", "video")

        assert not outcome.ok
        assert outcome.resource_type == "video"
        assert "network down" in outcome.error
        assert outcome.as_dict()["public_id"] == "img-1"

    def test_upload_failure_raises(self, blob_storage, monkeypatch):
        def explode(file, **kw):
            raise ConnectionError("network down")

        monkeypatch.setattr(cloudinary.uploader, "upload", explode)

        with pytest.raises(UpstreamFailure):
            blob_storage.upload_image(b"data")

    def test_upload_result(self, blob_storage, monkeypatch):
        seen = {}

        def fake_upload(file, **kw):
            seen.update(kw)
            return {"secure_url": "https://res.cloudinary.com/demo/v1/x.mp4", "public_id": "videos/x"}

        monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

        result = blob_storage.upload_video(b"data")

        assert result.public_id == "videos/x"
        assert result.resource_type == "video"
        assert seen["resource_type"] == "video"

    def test_sign_upload(self, blob_storage):
        signed = blob_storage.sign_upload("some-folder")
        assert signed["folder"] == "some-folder"
        assert signed["cloud_name"] == "demo"
        assert signed["signature"]


# ==================== UPLOAD CHECKS ====================

class TestReadUpload:

    def test_accepts_allowed_type(self):
        assert read_upload(upload(b"abc", "image/png"), IMAGE_TYPES, 10) == b"abc"

    def test_rejects_type(self):
        with pytest.raises(ValidationError):
            read_upload(upload(b"abc", "text/plain"), IMAGE_TYPES, 10)

    def test_rejects_size(self):
        with pytest.raises(ValidationError, match="File size too large"):
            read_upload(upload(b"x" * 11, "image/png"), IMAGE_TYPES, 10)

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            read_upload(upload(b"", "image/png"), IMAGE_TYPES, 10)


# ==================== RECAPTCHA ====================

class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class TestRecaptcha:

    @pytest.fixture
    def verifier(self, monkeypatch):
        monkeypatch.setattr(captcha_module.settings, "APP_ENV", "production")
        monkeypatch.setattr(captcha_module.settings, "ALLOW_DEV_BYPASS", False)
        return RecaptchaVerifier("secret", min_score=0.5)

    def respond(self, monkeypatch, payload):
        monkeypatch.setattr(captcha_module.requests, "post", lambda *a, **kw: FakeResponse(payload))

    def test_success(self, verifier, monkeypatch):
        self.respond(monkeypatch, {"success": True, "score": 0.9, "action": "volunteer_application"})
        assert verifier.verify("token", "volunteer_application").success

    def test_low_score(self, verifier, monkeypatch):
        self.respond(monkeypatch, {"success": True, "score": 0.2, "action": "volunteer_application"})
        result = verifier.verify("token", "volunteer_application")
        assert not result.success
        assert result.message == "Bot-like activity detected"

    def test_action_mismatch(self, verifier, monkeypatch):
        self.respond(monkeypatch, {"success": True, "score": 0.9, "action": "login"})
        assert verifier.verify("token", "volunteer_application").message == "Invalid reCAPTCHA action"

    def test_provider_rejects(self, verifier, monkeypatch):
        self.respond(monkeypatch, {"success": False, "error-codes": ["invalid-input-response"]})
        assert not verifier.verify("token", "volunteer_application").success

    def test_network_error(self, verifier, monkeypatch):
        def explode(*a, **kw):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(captcha_module.requests, "post", explode)
        with pytest.raises(UpstreamFailure):
            verifier.verify("token", "volunteer_application")

    def test_dev_bypass_token(self, verifier, monkeypatch):
        monkeypatch.setattr(captcha_module.settings, "ALLOW_DEV_BYPASS", True)
        monkeypatch.setattr(captcha_module.requests, "post", lambda *a, **kw: pytest.fail("provider called"))
        assert verifier.verify("dev-bypass", "volunteer_application").success


# ==================== CLOUDINARY API ====================

class TestCloudinaryApi:

    def test_signature_requires_auth(self, client):
        assert client.post("/api/cloudinary/signature").status_code == 401

    def test_signature(self, client, auth_headers):
        response = client.post("/api/cloudinary/signature", json={"folder": "custom"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["folder"] == "custom"

    def test_signature_default_folder(self, client, auth_headers):
        response = client.post("/api/cloudinary/signature", headers=auth_headers)
        assert response.json()["data"]["folder"] == "prapti-foundation-images"

    def test_delete_nested_public_id(self, client, auth_headers, storage):
        response = client.delete("/api/cloudinary/prapti-foundation-images/abc", headers=auth_headers)
        assert response.status_code == 200
        assert storage.destroyed == ["prapti-foundation-images/abc"]

    def test_delete_failure(self, client, auth_headers, storage):
        storage.fail_destroy = True
        response = client.delete("/api/cloudinary/abc", headers=auth_headers)
        assert response.status_code == 500
        assert response.json()["message"] == "Failed to delete image: provider unavailable"
