"""Read-only catalog browsing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from photosync.server.api.deps import get_db, require_api_key
from photosync.server.database import Database
from photosync.server.errors import NotFoundError
from photosync.server.schemas import (
    PhotoCountResponse,
    PhotoListResponse,
    PhotoResponse,
    photo_to_response,
)

router = APIRouter(
    prefix="/api/photos",
    tags=["photos"],
    dependencies=[Depends(require_api_key)],
)


@router.get("", response_model=PhotoListResponse)
def list_photos(
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Database = Depends(get_db),
) -> PhotoListResponse:
    """List catalog photos, most recently added first."""
    photos = db.list_photos(limit=limit, offset=offset)
    return PhotoListResponse(
        photos=[photo_to_response(p) for p in photos],
        limit=limit,
        offset=offset,
    )


# Note: count must be registered before the {photo_id} route
@router.get("/count", response_model=PhotoCountResponse)
def count_photos(db: Database = Depends(get_db)) -> PhotoCountResponse:
    """Count catalog photos."""
    return PhotoCountResponse(count=db.count_photos())


@router.get("/{photo_id}", response_model=PhotoResponse)
def get_photo(photo_id: str, db: Database = Depends(get_db)) -> PhotoResponse:
    """Get one photo record by id."""
    photo = db.get_photo(photo_id)
    if photo is None:
        raise NotFoundError(f"Photo not found: {photo_id}")
    return photo_to_response(photo)
