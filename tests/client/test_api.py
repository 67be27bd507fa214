"""Tests for the PhotoSync HTTP client."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

import pytest

from photosync.client.api import (
    APIError,
    AuthenticationError,
    InvalidSessionError,
    NotFoundError,
    ReconcileSummary,
    SessionInfo,
    SyncClient,
    VerifyOutcome,
)
from photosync.core.config import ServerConfig


def make_config(server_url: str = "http://test", api_key: str = "key123") -> ServerConfig:
    """Create a ServerConfig for testing."""
    return ServerConfig(server_url=server_url, api_key=api_key)


class TestResultTypes:
    """Tests for the response dataclasses."""

    def test_session_info_from_dict(self) -> None:
        """Should parse syncId and timestamp."""
        info = SessionInfo.from_dict({"syncId": "s1", "timestamp": "2024-06-01T12:00:00+00:00"})

        assert info.sync_id == "s1"
        assert info.timestamp == datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def test_reconcile_summary_from_dict(self) -> None:
        """Should carry counts and errors."""
        summary = ReconcileSummary.from_dict(
            {"processed": 2, "added": 1, "updated": 0, "errors": [{"id": None, "error": "bad"}]}
        )

        assert (summary.processed, summary.added, summary.updated) == (2, 1, 0)
        assert summary.errors == [{"id": None, "error": "bad"}]

    def test_verify_outcome_from_dict(self) -> None:
        """Should parse results and summary."""
        outcome = VerifyOutcome.from_dict(
            {
                "results": [{"id": "p1", "exists": True, "fileExists": False}],
                "summary": {"total": 1, "found": 1, "missing": 0},
            }
        )

        assert outcome.results[0].id == "p1"
        assert outcome.results[0].file_exists is False
        assert (outcome.total, outcome.found, outcome.missing) == (1, 1, 0)


class TestSyncClient:
    """Tests for SyncClient."""

    def test_health_check_success(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return True when server is healthy."""
        httpx_mock.add_response(url="http://test/health", json={"status": "ok"})

        with SyncClient(make_config()) as client:
            assert client.health_check() is True

    def test_health_check_failure(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return False when server is down."""
        httpx_mock.add_response(url="http://test/health", status_code=500)

        with SyncClient(make_config()) as client:
            assert client.health_check() is False

    def test_warns_on_plain_http(self, caplog: pytest.LogCaptureFixture) -> None:
        """A non-HTTPS server URL should log a warning about the API key."""
        with caplog.at_level(logging.WARNING, logger="photosync.client.api"):
            SyncClient(make_config()).close()
            SyncClient(make_config(server_url="https://photos.example.com")).close()

        warnings = [r.getMessage() for r in caplog.records if r.name == "photosync.client.api"]
        assert warnings == ["API key will be sent without TLS to http://test"]

    def test_sends_api_key(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Every request should carry the X-API-Key header."""
        httpx_mock.add_response(
            url="http://test/api/sync/initialize",
            method="POST",
            json={"success": True, "syncId": "s1", "timestamp": "2024-06-01T12:00:00+00:00"},
        )

        with SyncClient(make_config()) as client:
            client.initialize("dev-1", "alice")

        request = httpx_mock.get_request()
        assert request.headers["X-API-Key"] == "key123"
        assert json.loads(request.content) == {"deviceId": "dev-1", "userName": "alice"}

    def test_initialize(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the new session."""
        httpx_mock.add_response(
            url="http://test/api/sync/initialize",
            method="POST",
            json={"success": True, "syncId": "s1", "timestamp": "2024-06-01T12:00:00+00:00"},
        )

        with SyncClient(make_config()) as client:
            session = client.initialize("dev-1", "alice")

        assert session.sync_id == "s1"

    def test_incremental(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the session and the changed records."""
        httpx_mock.add_response(
            url="http://test/api/sync/incremental",
            method="POST",
            json={
                "success": True,
                "syncId": "s2",
                "timestamp": "2024-06-01T12:00:00+00:00",
                "changes": [{"id": "p1"}],
            },
        )

        with SyncClient(make_config()) as client:
            result = client.incremental("dev-1", datetime(2024, 1, 1, tzinfo=UTC))

        assert result.session.sync_id == "s2"
        assert result.changes == [{"id": "p1"}]
        sent = json.loads(httpx_mock.get_request().content)
        assert sent["lastSyncTime"] == "2024-01-01T00:00:00+00:00"

    def test_sync_database(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should post a batch and parse the counts."""
        httpx_mock.add_response(
            url="http://test/api/sync/database",
            method="POST",
            json={"success": True, "processed": 1, "added": 1, "updated": 0, "errors": []},
        )

        with SyncClient(make_config()) as client:
            summary = client.sync_database("s1", [{"id": "p1"}], is_incremental=True)

        assert summary.added == 1
        sent = json.loads(httpx_mock.get_request().content)
        assert sent == {"syncId": "s1", "photos": [{"id": "p1"}], "isIncremental": True}

    def test_upload_file(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should send a multipart upload."""
        httpx_mock.add_response(
            url="http://test/api/sync/file",
            method="POST",
            json={"success": True, "filePath": "photos/p1.jpg", "message": "File uploaded successfully"},
        )

        with SyncClient(make_config()) as client:
            outcome = client.upload_file("s1", "photos/p1.jpg", b"jpeg")

        assert outcome.success is True
        assert outcome.file_path == "photos/p1.jpg"
        request = httpx_mock.get_request()
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="filePath"' in request.content
        assert b"jpeg" in request.content

    def test_verify(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should parse verification results."""
        httpx_mock.add_response(
            url="http://test/api/sync/verify",
            method="POST",
            json={
                "success": True,
                "results": [{"id": "p1", "exists": True, "fileExists": True}],
                "summary": {"total": 1, "found": 1, "missing": 0},
            },
        )

        with SyncClient(make_config()) as client:
            outcome = client.verify("s1", ["p1"])

        assert outcome.found == 1

    def test_get_status(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should query by sync id."""
        httpx_mock.add_response(
            url="http://test/api/sync/status?syncId=s1",
            json={"success": True, "status": {"session": {"id": "s1"}, "operations": []}},
        )

        with SyncClient(make_config()) as client:
            status = client.get_status(sync_id="s1")

        assert status["session"]["id"] == "s1"

    def test_complete(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Should return the finished session."""
        httpx_mock.add_response(
            url="http://test/api/sync/complete",
            method="POST",
            json={"success": True, "session": {"id": "s1", "status": "completed"}},
        )

        with SyncClient(make_config()) as client:
            session = client.complete("s1")

        assert session["status"] == "completed"


class TestErrorHandling:
    """Tests for error mapping."""

    def test_authentication_error(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """401 should raise AuthenticationError."""
        httpx_mock.add_response(
            url="http://test/api/sync/initialize",
            method="POST",
            status_code=401,
            json={"success": False, "error": "Unauthorized. Invalid API key."},
        )

        with SyncClient(make_config()) as client, pytest.raises(AuthenticationError):
            client.initialize("dev-1", "alice")

    def test_invalid_session(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """400 'Invalid sync session' should raise InvalidSessionError."""
        httpx_mock.add_response(
            url="http://test/api/sync/database",
            method="POST",
            status_code=400,
            json={"success": False, "error": "Invalid sync session"},
        )

        with SyncClient(make_config()) as client, pytest.raises(InvalidSessionError):
            client.sync_database("gone", [])

    def test_not_found(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """404 should raise NotFoundError."""
        httpx_mock.add_response(
            url="http://test/api/sync/status?deviceId=dev-9",
            status_code=404,
            json={"success": False, "error": "No sync status found"},
        )

        with SyncClient(make_config()) as client, pytest.raises(NotFoundError, match="No sync status"):
            client.get_status(device_id="dev-9")

    def test_other_errors(self, httpx_mock) -> None:  # type: ignore[no-untyped-def]
        """Other failures should raise APIError with the status code."""
        httpx_mock.add_response(
            url="http://test/api/sync/initialize",
            method="POST",
            status_code=500,
            text="boom",
        )

        with SyncClient(make_config()) as client, pytest.raises(APIError) as exc_info:
            client.initialize("dev-1", "alice")
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "boom"
