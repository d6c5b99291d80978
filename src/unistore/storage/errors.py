"""Storage error types.

Every backend failure is raised as a subclass of ObjectStorageError. The
operations layer maps the hierarchy to HTTP-style status codes with
status_for_error() and never lets these errors escape to the caller.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for storage operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket/container associated with the operation (if applicable).
        key: Native object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when the backend reports that a key does not exist."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class ContainerNotFoundError(ObjectStorageError):
    """Raised when a bucket/container does not exist on the backend.

    Local backends treat this as "create on demand"; for every other backend
    it is terminal.
    """

    def __init__(
        self,
        message: str = "Container not found",
        *,
        bucket: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket)


class BackendUnavailableError(ObjectStorageError):
    """Raised when a backend cannot be dialed (bad config, auth, network)."""

    def __init__(
        self,
        message: str = "Storage backend unavailable",
        *,
        bucket: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket)
        self.cause = cause


class StorageBackendError(ObjectStorageError):
    """Raised when the storage backend cannot complete an operation.

    This error indicates the backend itself failed (I/O error, permission
    denied, unexpected response) rather than a logical error like
    object not found.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause


class ReadOnlyBackendError(StorageBackendError):
    """Raised when a write is attempted on a read-only backend (http)."""

    def __init__(
        self,
        message: str = "Storage backend is read-only",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class PathTraversalError(StorageBackendError):
    """Raised when a key would escape the container root on a local backend."""

    def __init__(
        self,
        message: str = "Invalid key: path traversal detected",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


def status_for_error(error: Exception) -> int:
    """Map a storage error to the status code reported to the caller."""
    if isinstance(error, ObjectNotFoundError):
        return 404
    if isinstance(error, BackendUnavailableError):
        return 503
    return 500
