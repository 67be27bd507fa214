"""FastAPI application for the PhotoSync server.

This module creates and configures the FastAPI application with:
- Sync protocol API (sessions, metadata, binaries, status, verification)
- Read-only catalog and file routes
- Error mapping from the protocol core to HTTP responses

Usage:
    uvicorn photosync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from photosync.server.api.router import router as api_router
from photosync.server.changes import ChangeSetResolver
from photosync.server.database import Database
from photosync.server.errors import (
    InvalidSessionError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from photosync.server.reconciler import MetadataReconciler
from photosync.server.scheduler import SessionExpiryScheduler
from photosync.server.sessions import SessionManager
from photosync.server.storage import ObjectStorage, create_storage
from photosync.server.transfers import FileTransferCoordinator
from photosync.server.verifier import Verifier

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("PHOTOSYNC_DB_PATH", "photosync.db"))
LOG_PATH = Path(os.environ.get("PHOTOSYNC_LOG_PATH", "photosync-server.log"))
API_KEY = os.environ.get("PHOTOSYNC_API_KEY")
WORKERS = int(os.environ.get("PHOTOSYNC_WORKERS", "1"))
SESSION_MAX_AGE_HOURS = float(os.environ.get("PHOTOSYNC_SESSION_MAX_AGE_HOURS", "24"))

logger = logging.getLogger(__name__)


def build_storage_config() -> dict[str, str | None]:
    """Build storage configuration from environment variables."""
    # S3 storage if bucket is configured
    s3_bucket = os.environ.get("PHOTOSYNC_S3_BUCKET")
    if s3_bucket:
        return {
            "type": "s3",
            "bucket": s3_bucket,
            "endpoint_url": os.environ.get("PHOTOSYNC_S3_ENDPOINT"),
            "access_key": os.environ.get("PHOTOSYNC_S3_ACCESS_KEY"),
            "secret_key": os.environ.get("PHOTOSYNC_S3_SECRET_KEY"),
            "region": os.environ.get("PHOTOSYNC_S3_REGION", "us-east-1"),
            "prefix": os.environ.get("PHOTOSYNC_S3_PREFIX", ""),
        }

    # Local storage (default)
    return {
        "type": "local",
        "local_path": os.environ.get("PHOTOSYNC_STORAGE_PATH", "storage"),
    }


def setup_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file.
        level: Level for the photosync logger.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger("photosync")
    root_logger.setLevel(level)
    if root_logger.handlers:
        return  # Already configured

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # Also capture uvicorn logs to file
        for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(uvicorn_name).addHandler(file_handler)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def register_error_handlers(application: FastAPI) -> None:
    """Map protocol errors to JSON error responses."""

    @application.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @application.exception_handler(InvalidSessionError)
    async def invalid_session_handler(request: Request, exc: InvalidSessionError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid sync session")

    @application.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @application.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage failure")

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) for err in exc.errors())
        return _error(
            status.HTTP_400_BAD_REQUEST,
            f"Missing required fields or invalid data format: {fields}",
        )

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @application.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unexpected error: %s", exc, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(
    db: Database,
    storage: ObjectStorage,
    api_key: str | None = None,
    workers: int = 1,
    session_max_age: timedelta | None = None,
) -> FastAPI:
    """Create FastAPI application with the given catalog and object stores.

    Args:
        db: Database instance.
        storage: ObjectStorage instance.
        api_key: Shared API key; when unset every protected route answers 401.
        workers: Threads used per batch by the reconciler and verifier.
        session_max_age: If set, run the stale session expiry scheduler.

    Returns:
        Configured FastAPI application.
    """
    changes = ChangeSetResolver(db)
    sessions = SessionManager(db, changes)
    scheduler = (
        SessionExpiryScheduler(sessions, max_age=session_max_age)
        if session_max_age is not None
        else None
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("PhotoSync Server Starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.location)
        logger.info("  Storage:  %s", storage.location)
        logger.info("  Workers:  %d", workers)
        logger.info("=" * 60)
        if not api_key:
            logger.warning("No API key configured: all sync requests will be rejected")
        if scheduler is not None:
            scheduler.start()

        yield

        if scheduler is not None:
            scheduler.stop()
        logger.info("PhotoSync Server shutting down")

    application = FastAPI(
        title="PhotoSync Server",
        description="Photo catalog and binary synchronization server",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.storage = storage
    application.state.api_key = api_key
    application.state.sessions = sessions
    application.state.reconciler = MetadataReconciler(db, sessions, workers=workers)
    application.state.transfers = FileTransferCoordinator(storage, sessions)
    application.state.verifier = Verifier(db, storage, sessions, workers=workers)

    register_error_handlers(application)
    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode, configured from the environment."""
    setup_logging(LOG_PATH)
    return create_app(
        db=Database(DB_PATH),
        storage=create_storage(build_storage_config()),
        api_key=API_KEY,
        workers=WORKERS,
        session_max_age=(
            timedelta(hours=SESSION_MAX_AGE_HOURS) if SESSION_MAX_AGE_HOURS > 0 else None
        ),
    )
