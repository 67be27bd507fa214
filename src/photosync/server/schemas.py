"""Pydantic schemas for API request/response models and operation details."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from photosync.core.clock import format_timestamp
from photosync.server.models import Photo, SyncOperation, SyncSession


class CamelModel(BaseModel):
    """Base model using camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _fold(key: str) -> str:
    """Fold a key for case- and underscore-insensitive matching."""
    return key.replace("_", "").lower()


# === Photo schemas ===


class PhotoRecord(CamelModel):
    """A client-submitted photo record.

    Keys are matched case-insensitively against the known fields, so ``Id``,
    ``id`` and ``ID`` are the same field. Unknown keys are collected into
    ``extra``. ``modifiedTimestamp`` is server-owned and dropped on input.
    """

    id: str = Field(min_length=1)
    title: str | None = None
    path: str | None = None
    thumbnail_path_100: str | None = None
    thumbnail_path_350: str | None = None
    star_rating: int | None = None
    country: str | None = None
    area: str | None = None
    locality: str | None = None
    date_time_original: str | None = None
    lens_model: str | None = None
    model: str | None = None
    exposure_time: float | None = None
    f_number: float | None = None
    focal_len_in_35mm_film: float | None = None
    focal_length: float | None = None
    iso_speed_ratings: int | None = None
    altitude: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    object_name: str | None = None
    caption: str | None = None
    add_timestamp: datetime | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _canonicalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        known = {_fold(name): name for name in cls.model_fields}
        known.update({_fold(to_camel(name)): name for name in cls.model_fields})

        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            folded = _fold(str(key))
            if folded == "modifiedtimestamp":
                continue
            name = known.get(folded)
            if name == "extra" and isinstance(value, dict):
                extra.update(value)
            elif name is not None:
                values[name] = value
            else:
                extra[str(key)] = value

        if isinstance(values.get("id"), int):
            values["id"] = str(values["id"])
        if extra:
            values["extra"] = extra
        return values

    def to_columns(self) -> dict[str, Any]:
        """Return the submitted fields keyed by Photo column name."""
        return self.model_dump(include=self.model_fields_set)


class PhotoResponse(CamelModel):
    """Photo record in responses."""

    id: str
    title: str | None
    path: str | None
    thumbnail_path_100: str | None
    thumbnail_path_350: str | None
    star_rating: int | None
    country: str | None
    area: str | None
    locality: str | None
    date_time_original: str | None
    lens_model: str | None
    model: str | None
    exposure_time: float | None
    f_number: float | None
    focal_len_in_35mm_film: float | None
    focal_length: float | None
    iso_speed_ratings: int | None
    altitude: float | None
    latitude: float | None
    longitude: float | None
    object_name: str | None
    caption: str | None
    extra: dict[str, Any]
    add_timestamp: str
    modified_timestamp: str


def photo_to_response(photo: Photo) -> PhotoResponse:
    """Convert Photo to response model."""
    return PhotoResponse(
        id=photo.id,
        title=photo.title,
        path=photo.path,
        thumbnail_path_100=photo.thumbnail_path_100,
        thumbnail_path_350=photo.thumbnail_path_350,
        star_rating=photo.star_rating,
        country=photo.country,
        area=photo.area,
        locality=photo.locality,
        date_time_original=photo.date_time_original,
        lens_model=photo.lens_model,
        model=photo.model,
        exposure_time=photo.exposure_time,
        f_number=photo.f_number,
        focal_len_in_35mm_film=photo.focal_len_in_35mm_film,
        focal_length=photo.focal_length,
        iso_speed_ratings=photo.iso_speed_ratings,
        altitude=photo.altitude,
        latitude=photo.latitude,
        longitude=photo.longitude,
        object_name=photo.object_name,
        caption=photo.caption,
        extra=photo.extra or {},
        add_timestamp=format_timestamp(photo.add_timestamp) or "",
        modified_timestamp=format_timestamp(photo.modified_timestamp) or "",
    )


class PhotoListResponse(CamelModel):
    """Response for GET /api/photos."""

    photos: list[PhotoResponse]
    limit: int
    offset: int


class PhotoCountResponse(CamelModel):
    """Response for GET /api/photos/count."""

    count: int


# === Operation details ===


class InitializeDetails(CamelModel):
    """Details of a full session open."""

    kind: Literal["initialize"] = "initialize"
    device_id: str
    user_name: str
    cancelled_sessions: int = 0


class IncrementalDetails(CamelModel):
    """Details of an incremental session open."""

    kind: Literal["incremental"] = "incremental"
    device_id: str
    last_sync_time: str
    items_changed: int


class DatabaseDetails(CamelModel):
    """Details of a metadata reconciliation."""

    kind: Literal["database"] = "database"
    is_incremental: bool
    processed: int
    added: int
    updated: int
    errors: int


class FileDetails(CamelModel):
    """Details of one binary upload attempt."""

    kind: Literal["file"] = "file"
    file_path: str
    size: int
    content_type: str
    error: str | None = None


class VerifyDetails(CamelModel):
    """Details of a verification pass."""

    kind: Literal["verify"] = "verify"
    total: int
    found: int
    missing: int
    files_found: int


class CompleteDetails(CamelModel):
    """Details of a session completion."""

    kind: Literal["complete"] = "complete"
    success: bool
    message: str | None = None


OperationDetails = Annotated[
    InitializeDetails
    | IncrementalDetails
    | DatabaseDetails
    | FileDetails
    | VerifyDetails
    | CompleteDetails,
    Field(discriminator="kind"),
]

_details_adapter: TypeAdapter[Any] = TypeAdapter(OperationDetails)


def dump_details(details: BaseModel) -> dict[str, Any]:
    """Serialize operation details for storage."""
    return details.model_dump(mode="json", by_alias=True)


def load_details(data: dict[str, Any]) -> Any:
    """Parse stored operation details back into their typed model."""
    return _details_adapter.validate_python(data)


# === Session schemas ===


class SessionResponse(CamelModel):
    """Sync session in responses."""

    id: str
    device_id: str
    user_name: str | None
    kind: str
    status: str
    start_timestamp: str
    end_timestamp: str | None


class OperationResponse(CamelModel):
    """Operation log entry in responses."""

    id: int
    sync_id: str
    operation: str
    status: str
    details: OperationDetails
    timestamp: str


def session_to_response(session: SyncSession) -> SessionResponse:
    """Convert SyncSession to response model."""
    return SessionResponse(
        id=session.id,
        device_id=session.device_id,
        user_name=session.user_name,
        kind=session.kind,
        status=session.status,
        start_timestamp=format_timestamp(session.start_timestamp) or "",
        end_timestamp=format_timestamp(session.end_timestamp),
    )


def operation_to_response(operation: SyncOperation) -> OperationResponse:
    """Convert SyncOperation to response model."""
    return OperationResponse(
        id=operation.id,
        sync_id=operation.sync_id,
        operation=operation.operation,
        status=operation.status,
        details=load_details(operation.details),
        timestamp=format_timestamp(operation.timestamp) or "",
    )


# === Sync protocol requests ===


class InitializeRequest(CamelModel):
    """Request body for POST /api/sync/initialize."""

    device_id: str | None = None
    user_name: str | None = None


class IncrementalRequest(CamelModel):
    """Request body for POST /api/sync/incremental."""

    device_id: str | None = None
    last_sync_time: str | None = None
    user_name: str | None = None


class DatabaseSyncRequest(CamelModel):
    """Request body for POST /api/sync/database."""

    sync_id: str | None = None
    photos: list[Any]
    is_incremental: bool = False


class VerifyRequest(CamelModel):
    """Request body for POST /api/sync/verify."""

    sync_id: str | None = None
    photo_ids: list[str]

    @field_validator("photo_ids", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v) if isinstance(v, int) else v for v in value]
        return value


class CompleteRequest(CamelModel):
    """Request body for POST /api/sync/complete."""

    sync_id: str | None = None
    success: bool = True
    message: str | None = None


# === Sync protocol responses ===


class InitializeResponse(CamelModel):
    """Response for a full session open."""

    success: bool = True
    sync_id: str
    timestamp: str
    message: str = "Sync initialization successful"


class IncrementalResponse(CamelModel):
    """Response for an incremental session open."""

    success: bool = True
    sync_id: str
    timestamp: str
    changes: list[PhotoResponse]
    message: str = "Incremental sync successful"


class ItemErrorResponse(CamelModel):
    """Per-item failure inside a batch."""

    id: str | None
    error: str


class DatabaseSyncResponse(CamelModel):
    """Response for a metadata reconciliation."""

    success: bool = True
    processed: int
    added: int
    updated: int
    errors: list[ItemErrorResponse]
    message: str = "Database sync successful"


class FileUploadResponse(CamelModel):
    """Response for a binary upload."""

    success: bool
    file_path: str
    message: str
    error: str | None = None


class SyncStatus(CamelModel):
    """Session plus its operation history."""

    session: SessionResponse
    operations: list[OperationResponse]


class StatusResponse(CamelModel):
    """Response for GET /api/sync/status."""

    success: bool = True
    status: SyncStatus


class VerifyResultResponse(CamelModel):
    """Verification outcome for one id."""

    id: str
    exists: bool
    file_exists: bool
    error: str | None = None


class VerifySummary(CamelModel):
    """Aggregate verification counts."""

    total: int
    found: int
    missing: int


class VerifyResponse(CamelModel):
    """Response for POST /api/sync/verify."""

    success: bool = True
    results: list[VerifyResultResponse]
    summary: VerifySummary


class CompleteResponse(CamelModel):
    """Response for POST /api/sync/complete."""

    success: bool = True
    session: SessionResponse


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
