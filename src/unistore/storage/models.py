"""Storage data models.

Provides the storage configuration, the logical object reference consumed by
every operation, and the item type returned by backend containers.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

MetadataValue = str | bool | int | float
Metadata = dict[str, MetadataValue]


class StorageKind(str, Enum):
    """Supported storage backends."""

    LOCAL = "local"
    LOCAL_META = "local-meta"
    HTTP = "http"
    S3 = "s3"
    B2 = "b2"

    @property
    def is_local(self) -> bool:
        """Local kinds create missing containers on demand."""
        return self in (StorageKind.LOCAL, StorageKind.LOCAL_META)


class StorageConfig(BaseModel):
    """Storage configuration for one logical backend.

    Only the fields relevant to ``kind`` are read by the backend driver; the
    rest stay at their defaults. The ``hash`` property identifies the
    configuration in the client registry.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: StorageKind
    root_path: str = ""
    bucket: str = ""
    path_prefix: str = ""
    url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    access_key: str = ""
    secret_access_key: str = ""
    region: str = ""
    endpoint: str = ""
    account_id: str = ""
    application_key: str = ""

    @property
    def hash(self) -> str:
        """Stable SHA256 over the canonical JSON form of every field."""
        canonical = json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def log_fields(self) -> dict[str, str]:
        """Identifying fields safe to log (no credentials)."""
        fields = {"storage_kind": self.kind.value}
        if self.bucket:
            fields["storage_bucket"] = self.bucket
        if self.path_prefix:
            fields["path_prefix"] = self.path_prefix
        return fields


@dataclass(frozen=True)
class FileObjectRef:
    """Logical reference to one object, immutable for the duration of a request.

    Attributes:
        bucket: Logical bucket name.
        key: Logical key inside the bucket.
        storage: Storage configuration serving the bucket.
        uri: Request URI; its path drives extension-based content-type fallback.
    """

    bucket: str
    key: str
    storage: StorageConfig
    uri: str = ""

    @property
    def uri_path(self) -> str:
        if self.uri:
            return urlsplit(self.uri).path
        return self.key

    def log_data(self, **extra: Any) -> dict[str, Any]:
        """Contextual fields for log records (passed via ``extra=``)."""
        data: dict[str, Any] = {
            "bucket": self.bucket,
            "object_key": self.key,
            "storage_kind": self.storage.kind.value,
        }
        data.update(extra)
        return data


def _no_metadata() -> Metadata:
    return {}


def _no_content() -> BinaryIO:
    raise NotImplementedError("item has no readable content")


@dataclass(frozen=True)
class StorageItem:
    """One stored object as seen through a backend container.

    Metadata and content are fetched through callables so backends can defer
    the extra round trip until a caller actually needs them.

    Attributes:
        id: Full native key of the item.
        name: Last path component of the key.
        size: Content length in bytes.
        etag: Entity tag reported by the backend (may be empty).
        last_modified: Timezone-aware modification timestamp.
    """

    id: str
    name: str
    size: int
    etag: str
    last_modified: datetime
    metadata_loader: Callable[[], Metadata] = field(default=_no_metadata, repr=False)
    opener: Callable[[], BinaryIO] = field(default=_no_content, repr=False)

    def metadata(self) -> Metadata:
        """Return the flat metadata map; may raise ObjectStorageError."""
        return self.metadata_loader()

    def open(self) -> BinaryIO:
        """Open the content stream. The caller owns and closes it."""
        return self.opener()
