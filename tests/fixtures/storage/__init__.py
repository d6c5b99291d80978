"""Shared helpers for storage tests."""

from __future__ import annotations

import io

from unistore.storage.models import FileObjectRef, StorageConfig
from unistore.storage.operations import ObjectStorage

TEST_BUCKET = "media"


def make_ref(config: StorageConfig, key: str, bucket: str = TEST_BUCKET) -> FileObjectRef:
    return FileObjectRef(bucket=bucket, key=key, storage=config)


def put_object(
    storage: ObjectStorage,
    config: StorageConfig,
    key: str,
    data: bytes,
    headers: dict[str, str] | None = None,
) -> int:
    """Store an object and return the status code."""
    response = storage.set(make_ref(config, key), headers or {}, len(data), io.BytesIO(data))
    return response.status_code
