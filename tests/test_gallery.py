"""
Photo and award galleries.
"""

import json

import pytest
from bson import ObjectId

JPEG = ("dog.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")


@pytest.fixture
def photo_category(make_category):
    return make_category("Shelter Life", "photo")


@pytest.fixture
def create_photo(client, auth_headers, photo_category, make_image):
    def _create(count=1, **fields):
        payload = {
            "title": "Morning walk",
            "category": "Shelter Life",
            "images": [make_image(i) for i in range(count)],
        }
        payload.update(fields)
        response = client.post("/api/photos", json=payload, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _create


# ==================== CREATE & READ ====================

class TestCreateAndRead:

    def test_create_by_category_name_end_to_end(self, client, db, create_photo, photo_category):
        created = create_photo(2, location="Pune")

        fetched = client.get(f"/api/photos/{created['id']}")

        assert fetched.status_code == 200
        data = fetched.json()["data"]
        assert data["category"] == {"id": str(photo_category["_id"]), "name": "Shelter Life", "type": "photo"}
        direct = db["category"].find_one({"name": "Shelter Life", "type": "photo"})
        assert data["category"]["id"] == str(direct["_id"])
        assert [i["public_id"] for i in data["images"]] == ["img-0", "img-1"]
        assert data["location"] == "Pune"

    def test_create_by_category_id(self, create_photo, photo_category):
        created = create_photo(category=str(photo_category["_id"]))
        assert created["category"]["name"] == "Shelter Life"

    def test_create_with_wrong_category_type(self, client, auth_headers, make_category, make_image, db):
        make_category("Trophies", "award")
        response = client.post("/api/photos", json={
            "title": "Mismatch",
            "category": "Trophies",
            "images": [make_image(1)],
        }, headers=auth_headers)

        assert response.status_code == 400
        assert "Invalid photo category: Trophies" in response.json()["message"]
        assert db["photo"].count_documents({}) == 0

    def test_create_requires_images(self, client, auth_headers, photo_category):
        response = client.post("/api/photos", json={
            "title": "Empty",
            "category": "Shelter Life",
            "images": [],
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_create_too_many_images(self, client, auth_headers, photo_category, make_image):
        response = client.post("/api/photos", json={
            "title": "Too many",
            "category": "Shelter Life",
            "images": [make_image(i) for i in range(11)],
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_photo_title_limit(self, client, auth_headers, photo_category, make_image):
        response = client.post("/api/photos", json={
            "title": "x" * 101,
            "category": "Shelter Life",
            "images": [make_image(1)],
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Title cannot exceed 100 characters"

    def test_image_src_must_be_url(self, client, auth_headers, photo_category):
        response = client.post("/api/photos", json={
            "title": "Bad src",
            "category": "Shelter Life",
            "images": [{"src": "not-a-url", "alt": "x", "public_id": "p"}],
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_get_unknown_and_invalid(self, client):
        assert client.get(f"/api/photos/{ObjectId()}").status_code == 404
        assert client.get("/api/photos/nope").status_code == 400

    def test_inactive_hidden(self, client, db, create_photo):
        created = create_photo()
        db["photo"].update_one({"_id": ObjectId(created["id"])}, {"$set": {"is_active": False}})

        assert client.get(f"/api/photos/{created['id']}").status_code == 404
        assert client.get("/api/photos").json()["pagination"]["total"] == 0


# ==================== LISTING ====================

class TestListing:

    def test_pagination(self, client, create_photo):
        for n in range(5):
            create_photo(title=f"Photo {n}")

        response = client.get("/api/photos", params={"page": 2, "limit": 2})

        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {
            "current": 2, "pages": 3, "total": 5, "limit": 2, "has_next": True, "has_prev": True,
        }

    def test_filter_by_category(self, client, create_photo, make_category):
        make_category("Adoptions", "photo")
        create_photo(title="One")
        create_photo(title="Two", category="Adoptions")

        response = client.get("/api/photos", params={"category": "Adoptions"})

        assert [p["title"] for p in response.json()["data"]] == ["Two"]
        assert client.get("/api/photos", params={"category": "all"}).json()["pagination"]["total"] == 2

    def test_search(self, client, create_photo):
        create_photo(title="Vaccination drive")
        create_photo(title="Feeding time", description="Evening meal (vaccination day)")
        create_photo(title="Unrelated")

        response = client.get("/api/photos/search", params={"search": "VACCINATION"})

        assert response.json()["pagination"]["total"] == 2

    def test_search_requires_query(self, client):
        assert client.get("/api/photos/search").status_code == 400

    def test_by_category_route(self, client, create_photo):
        create_photo()
        response = client.get("/api/photos/category/Shelter Life")
        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    def test_sort_by_title(self, client, create_photo):
        for title in ("B", "C", "A"):
            create_photo(title=title)
        response = client.get("/api/photos", params={"sort_by": "title", "sort_order": "asc"})
        assert [p["title"] for p in response.json()["data"]] == ["A", "B", "C"]


# ==================== UPLOADS ====================

class TestUploads:

    def test_single_upload(self, client, auth_headers, photo_category, storage):
        response = client.post("/api/photos/upload", data={
            "title": "Uploaded", "category": "Shelter Life",
        }, files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 201
        photo = response.json()["data"]["photo"]
        assert photo["images"][0]["public_id"] == storage.uploaded[0]
        assert photo["images"][0]["alt"] == "Uploaded"

    def test_upload_rejects_type(self, client, auth_headers, photo_category, storage):
        response = client.post("/api/photos/upload", data={
            "title": "PDF", "category": "Shelter Life",
        }, files={"image": ("doc.pdf", b"%PDF", "application/pdf")}, headers=auth_headers)

        assert response.status_code == 400
        assert storage.uploaded == []

    def test_upload_with_invalid_category_uploads_nothing(self, client, auth_headers, storage):
        response = client.post("/api/photos/upload", data={
            "title": "Orphan", "category": "Missing",
        }, files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 400
        assert storage.uploaded == []

    def test_upload_multiple_with_alt_texts(self, client, auth_headers, photo_category):
        response = client.post("/api/photos/upload-multiple", data={
            "title": "Batch",
            "category": "Shelter Life",
            "alt_texts": json.dumps(["First", ""]),
        }, files=[("images", JPEG), ("images", JPEG)], headers=auth_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["images_count"] == 2
        assert [i["alt"] for i in data["photo"]["images"]] == ["First", "Batch"]

    def test_upload_failure_reported(self, client, auth_headers, photo_category, storage, db):
        storage.fail_upload = True
        response = client.post("/api/photos/upload", data={
            "title": "Down", "category": "Shelter Life",
        }, files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert db["photo"].count_documents({}) == 0


# ==================== IMAGE ACTIONS ====================

class TestImageActions:

    def test_add_image(self, client, auth_headers, create_photo, storage):
        created = create_photo(1)
        response = client.patch(f"/api/photos/{created['id']}/upload", data={
            "image_action": "add", "image_alt": "New angle",
        }, files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 200
        images = response.json()["data"]["images"]
        assert len(images) == 2
        assert images[1] == {
            "src": images[1]["src"], "alt": "New angle", "public_id": storage.uploaded[0],
        }

    def test_file_without_action_is_add(self, client, auth_headers, create_photo):
        created = create_photo(1)
        response = client.patch(f"/api/photos/{created['id']}/upload", files={"image": JPEG}, headers=auth_headers)
        assert len(response.json()["data"]["images"]) == 2

    def test_add_beyond_capacity(self, client, auth_headers, create_photo, db, storage):
        created = create_photo(10)
        db["photo"].update_one(
            {"_id": ObjectId(created["id"])},
            {"$push": {"images": {"$each": [
                {"src": f"https://x.test/{n}.jpg", "alt": "a", "public_id": f"extra-{n}"} for n in range(10)
            ]}}},
        )

        response = client.patch(f"/api/photos/{created['id']}/upload", data={"image_action": "add"},
                                files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 400
        assert storage.uploaded == []

    def test_award_capacity_is_ten(self, client, auth_headers, make_category, make_image):
        make_category("Honours", "award")
        created = client.post("/api/awards", json={
            "title": "Best Shelter", "category": "Honours", "images": [make_image(i) for i in range(10)],
        }, headers=auth_headers).json()["data"]

        response = client.patch(f"/api/awards/{created['id']}/upload", data={"image_action": "add"},
                                files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Maximum 10 images allowed per record"

    def test_delete_image(self, client, auth_headers, create_photo, storage):
        created = create_photo(3)
        response = client.patch(f"/api/photos/{created['id']}/upload",
                                data={"image_action": "delete", "image_index": "0"}, headers=auth_headers)

        assert response.status_code == 200
        assert [i["public_id"] for i in response.json()["data"]["images"]] == ["img-1", "img-2"]
        assert storage.destroyed == ["img-0"]

    def test_delete_last_image(self, client, auth_headers, create_photo, storage):
        created = create_photo(1)
        response = client.patch(f"/api/photos/{created['id']}/upload",
                                data={"image_action": "delete", "image_index": "0"}, headers=auth_headers)

        assert response.status_code == 400
        assert "last image" in response.json()["message"]
        assert storage.destroyed == []

    def test_delete_bad_index(self, client, auth_headers, create_photo):
        created = create_photo(2)
        response = client.patch(f"/api/photos/{created['id']}/upload",
                                data={"image_action": "delete", "image_index": "5"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid image index: 5. Valid range: 0-1"

    def test_update_alt(self, client, auth_headers, create_photo):
        created = create_photo(2)
        response = client.patch(f"/api/photos/{created['id']}/upload", data={
            "image_action": "updateAlt", "image_index": "1", "image_alt": "Renamed",
        }, headers=auth_headers)
        assert response.json()["data"]["images"][1]["alt"] == "Renamed"

    def test_update_alt_blank(self, client, auth_headers, create_photo):
        created = create_photo(1)
        response = client.patch(f"/api/photos/{created['id']}/upload", data={
            "image_action": "updateAlt", "image_index": "0", "image_alt": "   ",
        }, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Alt text is required and cannot be blank"

    def test_unknown_action(self, client, auth_headers, create_photo):
        created = create_photo(1)
        response = client.patch(f"/api/photos/{created['id']}/upload",
                                data={"image_action": "rotate"}, headers=auth_headers)
        assert response.status_code == 400

    def test_field_update_with_action(self, client, auth_headers, create_photo):
        created = create_photo(2)
        response = client.patch(f"/api/photos/{created['id']}/upload", data={
            "image_action": "delete", "image_index": "1", "title": "Retitled",
        }, headers=auth_headers)
        data = response.json()["data"]
        assert data["title"] == "Retitled"
        assert len(data["images"]) == 1

    def test_bad_category_leaves_images_untouched(self, client, auth_headers, create_photo, storage, db):
        created = create_photo(2)
        response = client.patch(f"/api/photos/{created['id']}/upload", data={
            "image_action": "delete", "image_index": "0", "category": "NoSuchCategory",
        }, headers=auth_headers)

        assert response.status_code == 400
        stored = db["photo"].find_one({"_id": ObjectId(created["id"])})
        assert [i["public_id"] for i in stored["images"]] == ["img-0", "img-1"]
        assert storage.destroyed == []

    def test_blank_title_blocks_image_add(self, client, auth_headers, create_photo, storage, db):
        created = create_photo(1)
        response = client.patch(f"/api/photos/{created['id']}/upload", data={
            "image_action": "add", "title": "   ",
        }, files={"image": JPEG}, headers=auth_headers)

        assert response.status_code == 400
        assert len(db["photo"].find_one({"_id": ObjectId(created["id"])})["images"]) == 1
        assert storage.uploaded == []


# ==================== UPDATE & DELETE ====================

class TestUpdateAndDelete:

    def test_put_replaces_images_and_cleans_up(self, client, auth_headers, create_photo, storage, make_image):
        created = create_photo(2)
        response = client.put(f"/api/photos/{created['id']}", json={
            "images": [make_image(1), make_image(5)],
        }, headers=auth_headers)

        assert response.status_code == 200
        assert [i["public_id"] for i in response.json()["data"]["images"]] == ["img-1", "img-5"]
        assert storage.destroyed == ["img-0"]

    def test_put_images_on_stale_version(self, client, auth_headers, create_photo, storage, make_image, db):
        created = create_photo(2)
        db["photo"].update_one({"_id": ObjectId(created["id"])}, {"$inc": {"version": 1}})

        response = client.put(f"/api/photos/{created['id']}", json={
            "images": [make_image(1)],
        }, headers=auth_headers)

        assert response.status_code == 409
        stored = db["photo"].find_one({"_id": ObjectId(created["id"])})
        assert len(stored["images"]) == 2
        assert storage.destroyed == []

    def test_put_fields_ignore_version(self, client, auth_headers, create_photo, db):
        created = create_photo(1)
        db["photo"].update_one({"_id": ObjectId(created["id"])}, {"$inc": {"version": 1}})
        response = client.put(f"/api/photos/{created['id']}", json={"title": "Evening walk"}, headers=auth_headers)
        assert response.json()["data"]["title"] == "Evening walk"

    def test_put_changes_category(self, client, auth_headers, create_photo, make_category):
        make_category("Adoptions", "photo")
        created = create_photo()
        response = client.put(f"/api/photos/{created['id']}", json={"category": "Adoptions"}, headers=auth_headers)
        assert response.json()["data"]["category"]["name"] == "Adoptions"

    def test_put_invalid_category(self, client, auth_headers, create_photo):
        created = create_photo()
        response = client.put(f"/api/photos/{created['id']}", json={"category": "Nope"}, headers=auth_headers)
        assert response.status_code == 400

    def test_delete_removes_blobs(self, client, auth_headers, create_photo, storage, db):
        created = create_photo(2)
        response = client.delete(f"/api/photos/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert db["photo"].count_documents({}) == 0
        assert sorted(storage.destroyed) == ["img-0", "img-1"]

    def test_delete_survives_cleanup_failure(self, client, auth_headers, create_photo, storage, db):
        storage.fail_destroy = True
        created = create_photo(1)
        response = client.delete(f"/api/photos/{created['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert db["photo"].count_documents({}) == 0

    def test_delete_keeps_category(self, client, auth_headers, create_photo, db, photo_category):
        created = create_photo()
        client.delete(f"/api/photos/{created['id']}", headers=auth_headers)
        assert db["category"].find_one({"_id": photo_category["_id"]}) is not None
