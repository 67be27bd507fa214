"""FastAPI dependencies for API routes."""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from photosync.server.database import Database
from photosync.server.reconciler import MetadataReconciler
from photosync.server.sessions import SessionManager
from photosync.server.storage import ObjectStorage
from photosync.server.transfers import FileTransferCoordinator
from photosync.server.verifier import Verifier

# Security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_db(request: Request) -> Database:
    """Get database from app state."""
    db: Database = request.app.state.db
    return db


def get_storage(request: Request) -> ObjectStorage:
    """Get object storage from app state."""
    storage: ObjectStorage = request.app.state.storage
    return storage


def get_sessions(request: Request) -> SessionManager:
    """Get the session manager from app state."""
    sessions: SessionManager = request.app.state.sessions
    return sessions


def get_reconciler(request: Request) -> MetadataReconciler:
    """Get the metadata reconciler from app state."""
    reconciler: MetadataReconciler = request.app.state.reconciler
    return reconciler


def get_transfers(request: Request) -> FileTransferCoordinator:
    """Get the file transfer coordinator from app state."""
    transfers: FileTransferCoordinator = request.app.state.transfers
    return transfers


def get_verifier(request: Request) -> Verifier:
    """Get the verifier from app state."""
    verifier: Verifier = request.app.state.verifier
    return verifier


def require_api_key(
    request: Request,
    api_key: str | None = Depends(api_key_header),
) -> str:
    """Validate the shared API key presented in the X-API-Key header."""
    expected: str | None = request.app.state.api_key
    if not api_key or not expected or not secrets.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized. Invalid API key.",
        )
    return api_key
