"""Sync protocol API routes.

Every route here requires the shared API key. Errors raised by the protocol
core (ValidationError, InvalidSessionError, StoreError) are mapped to
responses by the handlers registered in ``photosync.server.app``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from photosync.core.clock import format_timestamp
from photosync.server.api.deps import (
    get_reconciler,
    get_sessions,
    get_transfers,
    get_verifier,
    require_api_key,
)
from photosync.server.errors import ValidationError
from photosync.server.reconciler import MetadataReconciler
from photosync.server.schemas import (
    CompleteRequest,
    CompleteResponse,
    DatabaseSyncRequest,
    DatabaseSyncResponse,
    FileUploadResponse,
    IncrementalRequest,
    IncrementalResponse,
    InitializeRequest,
    InitializeResponse,
    ItemErrorResponse,
    StatusResponse,
    SyncStatus,
    VerifyRequest,
    VerifyResponse,
    VerifyResultResponse,
    VerifySummary,
    operation_to_response,
    photo_to_response,
    session_to_response,
)
from photosync.server.sessions import SessionManager
from photosync.server.transfers import FileTransferCoordinator
from photosync.server.verifier import Verifier

router = APIRouter(
    prefix="/api/sync",
    tags=["sync"],
    dependencies=[Depends(require_api_key)],
)


@router.post("/initialize", response_model=InitializeResponse)
def initialize_sync(
    request: InitializeRequest,
    sessions: SessionManager = Depends(get_sessions),
) -> InitializeResponse:
    """Open a full sync session, cancelling the device's live sessions."""
    sync_session = sessions.open_session(request.device_id, request.user_name)
    return InitializeResponse(
        sync_id=sync_session.id,
        timestamp=format_timestamp(sync_session.start_timestamp) or "",
    )


@router.post("/incremental", response_model=IncrementalResponse)
def incremental_sync(
    request: IncrementalRequest,
    sessions: SessionManager = Depends(get_sessions),
) -> IncrementalResponse:
    """Open an incremental session and return changes since lastSyncTime."""
    sync_session, changes = sessions.open_incremental_session(
        request.device_id,
        request.last_sync_time,
        user_name=request.user_name,
    )
    return IncrementalResponse(
        sync_id=sync_session.id,
        timestamp=format_timestamp(sync_session.start_timestamp) or "",
        changes=[photo_to_response(p) for p in changes],
    )


@router.post("/database", response_model=DatabaseSyncResponse)
def database_sync(
    request: DatabaseSyncRequest,
    reconciler: MetadataReconciler = Depends(get_reconciler),
) -> DatabaseSyncResponse:
    """Reconcile a batch of photo records against the catalog."""
    result = reconciler.reconcile(request.sync_id, request.photos, request.is_incremental)
    return DatabaseSyncResponse(
        processed=result.processed,
        added=result.added,
        updated=result.updated,
        errors=[ItemErrorResponse(id=e.id, error=e.error) for e in result.errors],
    )


@router.post("/file", response_model=FileUploadResponse, response_model_exclude_none=True)
async def upload_file(
    sync_id: str | None = Form(default=None, alias="syncId"),
    file_path: str | None = Form(default=None, alias="filePath"),
    file: UploadFile | None = File(default=None),
    transfers: FileTransferCoordinator = Depends(get_transfers),
) -> FileUploadResponse:
    """Upload one binary payload under an active session."""
    if not sync_id or not file_path or file is None:
        raise ValidationError("Missing required fields: syncId, filePath and file")

    payload = await file.read()
    result = await run_in_threadpool(transfers.upload, sync_id, file_path, payload)
    return FileUploadResponse(
        success=result.success,
        file_path=result.path,
        message="File uploaded successfully" if result.success else "File upload failed",
        error=result.error,
    )


@router.get("/status", response_model=StatusResponse)
def sync_status(
    sync_id: str | None = Query(default=None, alias="syncId"),
    device_id: str | None = Query(default=None, alias="deviceId"),
    sessions: SessionManager = Depends(get_sessions),
) -> StatusResponse:
    """Get a session (by id, or the device's latest) and its operations."""
    history = sessions.get_status(sync_id=sync_id, device_id=device_id)
    return StatusResponse(
        status=SyncStatus(
            session=session_to_response(history.session),
            operations=[operation_to_response(op) for op in history.operations],
        )
    )


@router.post("/verify", response_model=VerifyResponse, response_model_exclude_none=True)
def verify_sync(
    request: VerifyRequest,
    verifier: Verifier = Depends(get_verifier),
) -> VerifyResponse:
    """Check that catalog records and their binaries exist."""
    report = verifier.verify(request.sync_id, request.photo_ids)
    return VerifyResponse(
        results=[
            VerifyResultResponse(
                id=r.id,
                exists=r.exists,
                file_exists=r.file_exists,
                error=r.error,
            )
            for r in report.results
        ],
        summary=VerifySummary(
            total=report.total,
            found=report.found,
            missing=report.missing,
        ),
    )


@router.post("/complete", response_model=CompleteResponse)
def complete_sync(
    request: CompleteRequest,
    sessions: SessionManager = Depends(get_sessions),
) -> CompleteResponse:
    """Mark an active session completed (or failed)."""
    sync_session = sessions.complete_session(
        request.sync_id,
        success=request.success,
        message=request.message,
    )
    return CompleteResponse(session=session_to_response(sync_session))
