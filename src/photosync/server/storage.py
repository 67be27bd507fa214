"""Object storage abstraction for photo binaries.

This module provides:
- Abstract interface for path-keyed object storage
- LocalFSStorage for development/testing
- S3Storage for production (R2, AWS, MinIO)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from photosync.server.errors import StoreError

if TYPE_CHECKING:
    from typing import Any


class ObjectNotFoundError(Exception):
    """Raised when an object is not found in storage."""


def normalize_key(path: str) -> str:
    """Normalize an object path into a storage key.

    Leading slashes are dropped; empty paths and ``..`` segments are rejected.

    Raises:
        ValueError: If the path is empty or escapes the storage root.
    """
    key = path.strip().replace("\\", "/").lstrip("/")
    if not key:
        raise ValueError("Object path must not be empty")
    if ".." in PurePosixPath(key).parts:
        raise ValueError(f"Object path must not contain '..': {path}")
    return key


class ObjectStorage(ABC):
    """Abstract interface for binary object storage keyed by path."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of where objects are stored."""

    @abstractmethod
    def put(self, path: str, data: bytes, content_type: str) -> None:
        """Store an object, replacing any existing object at the same path.

        Args:
            path: Object path (e.g. "photos/abc.jpg").
            data: Raw bytes.
            content_type: MIME type recorded with the object.

        Raises:
            StoreError: If the backend write fails.
        """

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Retrieve an object.

        Args:
            path: Object path.

        Returns:
            Object bytes.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
        """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if an object exists (no content verification).

        Args:
            path: Object path.

        Returns:
            True if the object exists, False otherwise.
        """

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Delete an object.

        Args:
            path: Object path.

        Returns:
            True if the object was deleted, False if it didn't exist.
        """


class LocalFSStorage(ObjectStorage):
    """Local filesystem storage for development and testing.

    Objects are stored under the base directory at their own path.
    """

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for object storage.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def _object_path(self, path: str) -> Path:
        """Get the filesystem path for an object key."""
        return self._base_path / normalize_key(path)

    def put(self, path: str, data: bytes, content_type: str) -> None:
        """Store an object."""
        target = self._object_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StoreError(f"Failed to write object {path}: {e}") from e

    def get(self, path: str) -> bytes:
        """Retrieve an object."""
        target = self._object_path(path)
        if not target.is_file():
            raise ObjectNotFoundError(f"Object not found: {path}")
        return target.read_bytes()

    def exists(self, path: str) -> bool:
        """Check if an object exists."""
        return self._object_path(path).is_file()

    def delete(self, path: str) -> bool:
        """Delete an object."""
        target = self._object_path(path)
        if target.is_file():
            target.unlink()
            return True
        return False


class S3Storage(ObjectStorage):
    """S3-compatible storage for production (Cloudflare R2, AWS, MinIO, etc.)."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
        prefix: str = "",
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: S3 bucket name.
            endpoint_url: Custom endpoint URL (for R2, MinIO, etc.).
            access_key: AWS access key ID.
            secret_key: AWS secret access key.
            region: AWS region (default: us-east-1).
            prefix: Optional key prefix inside the bucket.
        """
        import boto3

        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._prefix = prefix.strip("/")
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    @property
    def location(self) -> str:
        """Return the S3 bucket location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}/{self._bucket}"
        return f"S3: s3://{self._bucket}"

    def _key(self, path: str) -> str:
        """Get the S3 key for an object path."""
        key = normalize_key(path)
        if self._prefix:
            return f"{self._prefix}/{key}"
        return key

    def put(self, path: str, data: bytes, content_type: str) -> None:
        """Store an object."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=self._key(path),
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to write object {path}: {e}") from e

    def get(self, path: str) -> bytes:
        """Retrieve an object."""
        from botocore.exceptions import ClientError

        try:
            response = self._client.get_object(
                Bucket=self._bucket,
                Key=self._key(path),
            )
            body: bytes = response["Body"].read()
            return body
        except ClientError as e:
            if e.response["Error"]["Code"] in ("NoSuchKey", "404"):
                raise ObjectNotFoundError(f"Object not found: {path}") from e
            raise StoreError(f"Failed to read object {path}: {e}") from e

    def exists(self, path: str) -> bool:
        """Check if an object exists."""
        from botocore.exceptions import ClientError

        try:
            self._client.head_object(
                Bucket=self._bucket,
                Key=self._key(path),
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StoreError(f"Failed to check object {path}: {e}") from e

    def delete(self, path: str) -> bool:
        """Delete an object."""
        if not self.exists(path):
            return False
        self._client.delete_object(
            Bucket=self._bucket,
            Key=self._key(path),
        )
        return True


def create_storage(config: dict[str, str | None]) -> ObjectStorage:
    """Factory function to create storage from configuration.

    Args:
        config: Storage configuration dict with keys:
            - type: "local" or "s3"
            - For local: local_path
            - For S3: bucket, endpoint_url, access_key, secret_key, region, prefix

    Returns:
        Configured ObjectStorage instance.

    Raises:
        ValueError: If storage type is unknown.
    """
    storage_type = config.get("type", "local")

    if storage_type == "local":
        local_path = config.get("local_path") or "./storage"
        return LocalFSStorage(local_path)

    if storage_type == "s3":
        bucket = config.get("bucket")
        if not bucket:
            raise ValueError("S3 storage requires 'bucket' configuration")
        return S3Storage(
            bucket=bucket,
            endpoint_url=config.get("endpoint_url"),
            access_key=config.get("access_key"),
            secret_key=config.get("secret_key"),
            region=config.get("region") or "us-east-1",
            prefix=config.get("prefix") or "",
        )

    raise ValueError(f"Unknown storage type: {storage_type}")
