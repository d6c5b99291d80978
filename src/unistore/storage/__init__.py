"""Unified object storage.

Exposes one set of object operations (get, head, set, delete, list) over
several backends, selected per logical bucket by a StorageConfig:

- local: Directory on the local filesystem (metadata in xattrs)
- local-meta: Local filesystem with JSON sidecar metadata files
- http: Read-only HTTP origin
- s3: AWS S3 and compatible services (boto3)
- b2: Backblaze B2 (b2sdk)

Environment Variables:
    UNISTORE_CONFIG_PATH: YAML bucket configuration file
    UNISTORE_HTTP_TIMEOUT_SECONDS: Timeout for the http backend (default: 30)
"""

from unistore.storage.errors import (
    BackendUnavailableError,
    ContainerNotFoundError,
    ObjectNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    ReadOnlyBackendError,
    StorageBackendError,
)
from unistore.storage.models import FileObjectRef, StorageConfig, StorageItem, StorageKind
from unistore.storage.operations import ObjectStorage
from unistore.storage.registry import ClientRegistry
from unistore.storage.response import StorageResponse

__all__ = [
    "ObjectStorage",
    "ClientRegistry",
    "StorageResponse",
    "StorageConfig",
    "StorageKind",
    "FileObjectRef",
    "StorageItem",
    "ObjectStorageError",
    "ObjectNotFoundError",
    "ContainerNotFoundError",
    "BackendUnavailableError",
    "StorageBackendError",
    "ReadOnlyBackendError",
    "PathTraversalError",
]
