"""Tests for FastAPI server endpoints."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from photosync.server.app import create_app
from photosync.server.database import Database
from photosync.server.storage import LocalFSStorage

API_KEY = "test-key"


@pytest.fixture
def client(db: Database, storage: LocalFSStorage) -> TestClient:
    """Create a test client with an API key configured."""
    app = create_app(db, storage, api_key=API_KEY)
    return TestClient(app, headers={"X-API-Key": API_KEY})


def initialize(client: TestClient, device_id: str = "dev-1", user_name: str = "alice") -> str:
    """Open a session and return its id."""
    response = client.post("/api/sync/initialize", json={"deviceId": device_id, "userName": user_name})
    assert response.status_code == 200
    sync_id: str = response.json()["syncId"]
    return sync_id


def push_photos(client: TestClient, sync_id: str, photos: list[Any], incremental: bool = False) -> dict[str, Any]:
    """Post a metadata batch and return the body."""
    response = client.post(
        "/api/sync/database",
        json={"syncId": sync_id, "photos": photos, "isIncremental": incremental},
    )
    assert response.status_code == 200
    body: dict[str, Any] = response.json()
    return body


def upload(client: TestClient, sync_id: str, path: str, data: bytes) -> Any:
    """Upload one binary."""
    return client.post(
        "/api/sync/file",
        data={"syncId": sync_id, "filePath": path},
        files={"file": (path.rsplit("/", 1)[-1], data, "application/octet-stream")},
    )


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Health endpoint should return OK without a key."""
        response = client.get("/health", headers={"X-API-Key": ""})
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAuthentication:
    """Tests for the shared API key."""

    def test_missing_key(self, db: Database, storage: LocalFSStorage) -> None:
        """Requests without a key should be rejected."""
        client = TestClient(create_app(db, storage, api_key=API_KEY))

        response = client.post("/api/sync/initialize", json={"deviceId": "dev-1", "userName": "alice"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized. Invalid API key."}

    def test_wrong_key(self, client: TestClient) -> None:
        """A wrong key should be rejected."""
        response = client.get("/api/sync/status", params={"deviceId": "dev-1"}, headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_no_key_configured_rejects_everything(self, db: Database, storage: LocalFSStorage) -> None:
        """Without a configured key the protected routes are closed."""
        client = TestClient(create_app(db, storage), headers={"X-API-Key": API_KEY})

        assert client.post("/api/sync/initialize", json={}).status_code == 401
        assert client.get("/api/photos").status_code == 401

    def test_rejected_request_writes_nothing(self, db: Database, storage: LocalFSStorage) -> None:
        """A rejected open should not create a session."""
        client = TestClient(create_app(db, storage, api_key=API_KEY), headers={"X-API-Key": "bad"})

        client.post("/api/sync/initialize", json={"deviceId": "dev-1", "userName": "alice"})

        assert db.get_latest_session("dev-1") is None


class TestInitializeEndpoint:
    """Tests for POST /api/sync/initialize."""

    def test_initialize(self, client: TestClient) -> None:
        """Should open a session and return its id and start time."""
        response = client.post("/api/sync/initialize", json={"deviceId": "dev-1", "userName": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["syncId"]
        assert data["timestamp"]
        assert data["message"] == "Sync initialization successful"

    def test_missing_fields(self, client: TestClient) -> None:
        """Missing deviceId or userName should answer 400."""
        response = client.post("/api/sync/initialize", json={"deviceId": "dev-1"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Missing required fields: deviceId and userName",
        }

    def test_reopen_cancels_previous(self, client: TestClient) -> None:
        """A second open for the same device invalidates the first session."""
        first = initialize(client)
        second = initialize(client)

        response = client.post("/api/sync/database", json={"syncId": first, "photos": [{"id": "p1"}]})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid sync session"

        status = client.get("/api/sync/status", params={"syncId": first}).json()["status"]
        assert status["session"]["status"] == "cancelled"
        assert push_photos(client, second, [{"id": "p1"}])["added"] == 1


class TestDatabaseEndpoint:
    """Tests for POST /api/sync/database."""

    def test_adds_records(self, client: TestClient) -> None:
        """New records should be counted as added."""
        sync_id = initialize(client)

        data = push_photos(client, sync_id, [{"id": "p1", "path": "p1.jpg"}, {"id": "p2"}])

        assert data["success"] is True
        assert (data["processed"], data["added"], data["updated"]) == (2, 2, 0)
        assert data["errors"] == []

    def test_reports_item_errors(self, client: TestClient) -> None:
        """A bad record should show up in errors without failing the batch."""
        sync_id = initialize(client)

        data = push_photos(client, sync_id, [{"id": "p1"}, {"title": "no id"}])

        assert (data["processed"], data["added"]) == (2, 1)
        assert len(data["errors"]) == 1
        assert data["errors"][0]["id"] is None

    def test_incremental_updates(self, client: TestClient) -> None:
        """isIncremental should overwrite existing records."""
        sync_id = initialize(client)
        push_photos(client, sync_id, [{"id": "p1", "title": "Beach"}])

        data = push_photos(client, sync_id, [{"id": "p1", "title": "Sunset"}], incremental=True)

        assert (data["added"], data["updated"]) == (0, 1)
        assert client.get("/api/photos/p1").json()["title"] == "Sunset"

    def test_unknown_session(self, client: TestClient) -> None:
        """An unknown syncId should answer 400."""
        response = client.post("/api/sync/database", json={"syncId": "nope", "photos": []})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid sync session"}

    def test_missing_photos(self, client: TestClient) -> None:
        """A body without photos should answer 400."""
        sync_id = initialize(client)

        response = client.post("/api/sync/database", json={"syncId": sync_id})

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestFileEndpoint:
    """Tests for POST /api/sync/file and GET /api/files."""

    def test_upload_and_download(self, client: TestClient, storage: LocalFSStorage) -> None:
        """An uploaded binary should be retrievable with its content type."""
        sync_id = initialize(client)

        response = upload(client, sync_id, "photos/p1.jpg", b"jpeg bytes")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "filePath": "photos/p1.jpg",
            "message": "File uploaded successfully",
        }
        assert storage.get("photos/p1.jpg") == b"jpeg bytes"

        download = client.get("/api/files/photos/p1.jpg")
        assert download.status_code == 200
        assert download.content == b"jpeg bytes"
        assert download.headers["content-type"] == "image/jpeg"

    def test_unknown_session(self, client: TestClient, storage: LocalFSStorage) -> None:
        """An unknown syncId should answer 400 and store nothing."""
        response = upload(client, "nope", "p1.jpg", b"data")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid sync session"
        assert not storage.exists("p1.jpg")

    def test_missing_fields(self, client: TestClient) -> None:
        """Missing filePath should answer 400."""
        sync_id = initialize(client)

        response = client.post(
            "/api/sync/file",
            data={"syncId": sync_id},
            files={"file": ("p1.jpg", b"data", "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_bad_path_is_reported(self, client: TestClient) -> None:
        """A path escaping the store should come back as a failed upload."""
        sync_id = initialize(client)

        response = upload(client, sync_id, "../escape.jpg", b"data")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"]

    def test_download_missing(self, client: TestClient) -> None:
        """Unknown objects should answer 404."""
        response = client.get("/api/files/missing.jpg")

        assert response.status_code == 404
        assert response.json()["success"] is False


class TestStatusEndpoint:
    """Tests for GET /api/sync/status."""

    def test_status_by_sync_id(self, client: TestClient) -> None:
        """Should return the session and its ordered operations."""
        sync_id = initialize(client)
        push_photos(client, sync_id, [{"id": "p1"}])

        response = client.get("/api/sync/status", params={"syncId": sync_id})

        assert response.status_code == 200
        status = response.json()["status"]
        assert status["session"]["id"] == sync_id
        assert status["session"]["deviceId"] == "dev-1"
        assert status["session"]["status"] == "in_progress"
        assert status["session"]["endTimestamp"] is None
        assert [op["operation"] for op in status["operations"]] == ["initialize", "database"]
        assert status["operations"][0]["details"]["userName"] == "alice"
        assert status["operations"][1]["details"]["added"] == 1

    def test_status_by_device(self, client: TestClient) -> None:
        """The device variant should return the latest session."""
        initialize(client)
        latest = initialize(client)

        response = client.get("/api/sync/status", params={"deviceId": "dev-1"})

        assert response.json()["status"]["session"]["id"] == latest

    def test_status_requires_selector(self, client: TestClient) -> None:
        """No selector should answer 400."""
        response = client.get("/api/sync/status")
        assert response.status_code == 400

    def test_status_not_found(self, client: TestClient) -> None:
        """An unknown session should answer 404."""
        response = client.get("/api/sync/status", params={"syncId": "nope"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "No sync status found"}


class TestVerifyEndpoint:
    """Tests for POST /api/sync/verify."""

    def test_verify(self, client: TestClient) -> None:
        """Should report records and binaries per id with a summary."""
        sync_id = initialize(client)
        push_photos(client, sync_id, [{"id": "p1", "path": "p1.jpg"}, {"id": "p2", "path": "p2.jpg"}])
        upload(client, sync_id, "p1.jpg", b"data")

        response = client.post("/api/sync/verify", json={"syncId": sync_id, "photoIds": ["p1", "p2", "p3"]})

        assert response.status_code == 200
        data = response.json()
        assert data["results"] == [
            {"id": "p1", "exists": True, "fileExists": True},
            {"id": "p2", "exists": True, "fileExists": False},
            {"id": "p3", "exists": False, "fileExists": False},
        ]
        assert data["summary"] == {"total": 3, "found": 2, "missing": 1}

    def test_verify_unknown_session(self, client: TestClient) -> None:
        """An unknown syncId should answer 400."""
        response = client.post("/api/sync/verify", json={"syncId": "nope", "photoIds": ["p1"]})
        assert response.status_code == 400

    def test_verify_after_complete_rejected(self, client: TestClient) -> None:
        """Verification requires a session still in progress."""
        sync_id = initialize(client)
        client.post("/api/sync/complete", json={"syncId": sync_id})

        response = client.post("/api/sync/verify", json={"syncId": sync_id, "photoIds": ["p1"]})

        assert response.status_code == 400


class TestCompleteEndpoint:
    """Tests for POST /api/sync/complete."""

    def test_complete(self, client: TestClient) -> None:
        """Should finish the session."""
        sync_id = initialize(client)

        response = client.post("/api/sync/complete", json={"syncId": sync_id})

        assert response.status_code == 200
        session = response.json()["session"]
        assert session["status"] == "completed"
        assert session["endTimestamp"] is not None

    def test_complete_failed(self, client: TestClient) -> None:
        """success=false should mark the session failed."""
        sync_id = initialize(client)

        response = client.post("/api/sync/complete", json={"syncId": sync_id, "success": False})

        assert response.json()["session"]["status"] == "failed"

    def test_complete_twice(self, client: TestClient) -> None:
        """A finished session cannot be completed again."""
        sync_id = initialize(client)
        client.post("/api/sync/complete", json={"syncId": sync_id})

        response = client.post("/api/sync/complete", json={"syncId": sync_id})

        assert response.status_code == 400


class TestIncrementalEndpoint:
    """Tests for POST /api/sync/incremental."""

    def test_returns_changes(self, client: TestClient) -> None:
        """Records changed after lastSyncTime should be returned in camelCase."""
        sync_id = initialize(client)
        push_photos(client, sync_id, [{"id": "p1", "Title": "Beach", "starRating": 5}])

        response = client.post(
            "/api/sync/incremental",
            json={"deviceId": "dev-2", "lastSyncTime": "2000-01-01T00:00:00Z"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["syncId"]
        assert [c["id"] for c in data["changes"]] == ["p1"]
        assert data["changes"][0]["title"] == "Beach"
        assert data["changes"][0]["starRating"] == 5
        assert "modifiedTimestamp" in data["changes"][0]

    def test_future_watermark(self, client: TestClient) -> None:
        """A watermark after every change returns nothing."""
        sync_id = initialize(client)
        push_photos(client, sync_id, [{"id": "p1"}])

        response = client.post(
            "/api/sync/incremental",
            json={"deviceId": "dev-1", "lastSyncTime": "2999-01-01T00:00:00Z"},
        )

        assert response.json()["changes"] == []

    def test_does_not_cancel_full_session(self, client: TestClient) -> None:
        """A pull should leave the device's full session usable."""
        sync_id = initialize(client)

        client.post("/api/sync/incremental", json={"deviceId": "dev-1", "lastSyncTime": "2000-01-01T00:00:00Z"})

        assert push_photos(client, sync_id, [{"id": "p1"}])["added"] == 1

    def test_bad_watermark(self, client: TestClient) -> None:
        """An unparsable lastSyncTime should answer 400."""
        response = client.post("/api/sync/incremental", json={"deviceId": "dev-1", "lastSyncTime": "soon"})
        assert response.status_code == 400


class TestPhotoEndpoints:
    """Tests for the read-only catalog routes."""

    def test_list_count_get(self, client: TestClient) -> None:
        """Should list, count and fetch records."""
        sync_id = initialize(client)
        push_photos(client, sync_id, [{"id": "p1"}, {"id": "p2"}])

        listing = client.get("/api/photos", params={"limit": 10}).json()
        assert {p["id"] for p in listing["photos"]} == {"p1", "p2"}
        assert listing["limit"] == 10
        assert client.get("/api/photos/count").json() == {"count": 2}
        assert client.get("/api/photos/p1").json()["id"] == "p1"

    def test_get_missing(self, client: TestClient) -> None:
        """Unknown ids should answer 404."""
        response = client.get("/api/photos/nope")
        assert response.status_code == 404


class TestEndToEnd:
    """A full sync as a device would run it."""

    def test_full_sync(self, client: TestClient) -> None:
        """initialize, database, file, verify, complete, then status."""
        sync_id = initialize(client, "dev-1", "alice")

        data = push_photos(client, sync_id, [{"Id": "p1", "Title": "x", "Path": "p1.jpg"}])
        assert data["errors"] == []
        assert (data["processed"], data["added"], data["updated"]) == (1, 1, 0)

        assert upload(client, sync_id, "p1.jpg", b"\xff\xd8\xff").json()["success"] is True

        verify = client.post("/api/sync/verify", json={"syncId": sync_id, "photoIds": ["p1"]}).json()
        assert verify["results"] == [{"id": "p1", "exists": True, "fileExists": True}]
        assert verify["summary"] == {"total": 1, "found": 1, "missing": 0}

        complete = client.post("/api/sync/complete", json={"syncId": sync_id}).json()
        assert complete["session"]["status"] == "completed"

        status = client.get("/api/sync/status", params={"deviceId": "dev-1"}).json()["status"]
        assert status["session"]["id"] == sync_id
        assert [op["operation"] for op in status["operations"]] == [
            "initialize",
            "database",
            "file",
            "verify",
            "complete",
        ]

    def test_record_without_path_has_no_binary(self, client: TestClient) -> None:
        """A record with no Path verifies as present with fileExists false, even after an upload."""
        sync_id = initialize(client, "dev-1", "alice")

        data = push_photos(client, sync_id, [{"Id": "p1", "Title": "x"}])
        assert (data["processed"], data["added"], data["errors"]) == (1, 1, [])
        assert upload(client, sync_id, "p1.jpg", b"\xff\xd8\xff").json()["success"] is True

        verify = client.post("/api/sync/verify", json={"syncId": sync_id, "photoIds": ["p1"]}).json()
        assert verify["results"] == [{"id": "p1", "exists": True, "fileExists": False}]
        assert verify["summary"] == {"total": 1, "found": 1, "missing": 0}
