"""In-memory storage backend for tests.

Behaves like a flat object store (S3 or B2): keys are opaque strings, there
are no directories, and listing is lexicographic with a marker. Thread-safe
for concurrent test usage.
"""

from __future__ import annotations

import hashlib
import io
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import BinaryIO

from unistore.storage.container import Container, Location
from unistore.storage.errors import (
    ContainerNotFoundError,
    ObjectNotFoundError,
    StorageBackendError,
)
from unistore.storage.models import Metadata, StorageItem, StorageKind
from unistore.storage.params import BackendParameters


@dataclass(frozen=True)
class _StoredBlob:
    data: bytes
    metadata: Metadata
    etag: str
    last_modified: datetime


class MemoryContainer(Container):
    """Flat key/value container held in a dict."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._objects: dict[str, _StoredBlob] = {}
        self._lock = threading.Lock()
        self.fail_with: Exception | None = None

    @property
    def name(self) -> str:
        return self._name

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _make_item(self, key: str, blob: _StoredBlob) -> StorageItem:
        return StorageItem(
            id=key,
            name=key.rstrip("/").rsplit("/", 1)[-1],
            size=len(blob.data),
            etag=blob.etag,
            last_modified=blob.last_modified,
            metadata_loader=lambda: dict(blob.metadata),
            opener=lambda: io.BytesIO(blob.data),
        )

    def item(self, key: str) -> StorageItem:
        self._check()
        with self._lock:
            blob = self._objects.get(key)
        if blob is None:
            raise ObjectNotFoundError(bucket=self._name, key=key)
        return self._make_item(key, blob)

    def items(self, prefix: str, marker: str, limit: int) -> tuple[list[StorageItem], str]:
        self._check()
        with self._lock:
            matched = sorted(
                (key, blob)
                for key, blob in self._objects.items()
                if key.startswith(prefix) and key > marker
            )
        page = matched[:limit] if limit > 0 else matched
        next_marker = page[-1][0] if page and len(matched) > len(page) else ""
        return [self._make_item(key, blob) for key, blob in page], next_marker

    def put(self, key: str, stream: BinaryIO, length: int, metadata: Metadata) -> None:
        self._check()
        data = stream.read()
        if length >= 0 and len(data) != length:
            raise StorageBackendError(
                message=f"Short write: expected {length} bytes, got {len(data)}",
                bucket=self._name,
                key=key,
            )
        blob = _StoredBlob(
            data=data,
            metadata=dict(metadata),
            etag=f'"{hashlib.md5(data, usedforsecurity=False).hexdigest()}"',
            last_modified=datetime.now(UTC),
        )
        with self._lock:
            self._objects[key] = blob

    def remove_item(self, key: str) -> None:
        self._check()
        with self._lock:
            if self._objects.pop(key, None) is None:
                raise ObjectNotFoundError(bucket=self._name, key=key)


class MemoryLocation(Location):
    """Named set of MemoryContainers."""

    def __init__(self, *, auto_create: bool = False) -> None:
        self._containers: dict[str, MemoryContainer] = {}
        self._auto_create = auto_create
        self._lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        return "memory"

    def container(self, name: str) -> Container:
        with self._lock:
            found = self._containers.get(name)
            if found is None and self._auto_create:
                found = self._containers[name] = MemoryContainer(name)
        if found is None:
            raise ContainerNotFoundError(bucket=name)
        return found

    def create_container(self, name: str) -> Container:
        with self._lock:
            return self._containers.setdefault(name, MemoryContainer(name))


def memory_dialer(
    location: MemoryLocation,
    fallback: Callable[[StorageKind, BackendParameters], Location] | None = None,
    kinds: tuple[StorageKind, ...] = (StorageKind.S3, StorageKind.B2),
) -> Callable[[StorageKind, BackendParameters], Location]:
    """Dialer serving ``kinds`` from ``location`` and everything else from ``fallback``.

    Example:
        location = MemoryLocation()
        location.create_container("media")
        registry = ClientRegistry(dialer=memory_dialer(location, fallback=dial))
    """

    def _dial(kind: StorageKind, params: BackendParameters) -> Location:
        if kind in kinds:
            return location
        if fallback is None:
            raise StorageBackendError(message=f"No test backend for {kind.value}")
        return fallback(kind, params)

    return _dial
