"""Object download route."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from photosync.server.api.deps import get_storage, require_api_key
from photosync.server.errors import NotFoundError
from photosync.server.storage import ObjectNotFoundError, ObjectStorage
from photosync.server.transfers import content_type_for

router = APIRouter(prefix="/api/files", tags=["files"], dependencies=[Depends(require_api_key)])


@router.get("/{path:path}")
def download_file(path: str, storage: ObjectStorage = Depends(get_storage)) -> Response:
    """Download a stored binary by its object path."""
    try:
        data = storage.get(path)
    except (ObjectNotFoundError, ValueError) as e:
        raise NotFoundError(f"File not found: {path}") from e
    return Response(content=data, media_type=content_type_for(path))
