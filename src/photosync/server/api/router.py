"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from photosync.server.api import files, health, photos, sync

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(sync.router)
router.include_router(photos.router)
router.include_router(files.router)
