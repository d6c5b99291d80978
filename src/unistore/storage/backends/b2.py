"""Backblaze B2 storage backend.

Uses the native B2 API through b2sdk. File info entries are exposed as item
metadata, with the B2 content type merged in as ``content-type``. B2 rejects
keys with a leading separator; the key resolver strips it before requests
reach this module.
"""

from __future__ import annotations

import functools
import io
import logging
from datetime import UTC, datetime
from typing import Any, BinaryIO

from b2sdk.v2 import B2Api, InMemoryAccountInfo
from b2sdk.v2.exception import B2Error, FileNotPresent, NonExistentBucket

from unistore.storage.container import Container, Location
from unistore.storage.errors import (
    BackendUnavailableError,
    ContainerNotFoundError,
    ObjectNotFoundError,
    StorageBackendError,
)
from unistore.storage.models import Metadata, StorageItem

logger = logging.getLogger(__name__)

_AUTO_CONTENT_TYPE = "b2/x-auto"


def _from_millis(timestamp: int | None) -> datetime:
    if not timestamp:
        return datetime.now(UTC)
    return datetime.fromtimestamp(timestamp / 1000, tz=UTC)


def _etag(version: Any) -> str:
    sha1 = getattr(version, "content_sha1", None)
    if sha1 and sha1 != "none":
        return f'"{sha1}"'
    return f'"{version.id_}"'


class B2Container(Container):
    """Bucket on Backblaze B2."""

    def __init__(self, bucket: Any) -> None:
        self._bucket = bucket

    @property
    def name(self) -> str:
        return str(self._bucket.name)

    def _backend_error(self, action: str, key: str, e: Exception) -> StorageBackendError:
        return StorageBackendError(
            message=f"B2 {action} failed: {e}",
            bucket=self.name,
            key=key,
            cause=e,
        )

    def _make_item(self, version: Any) -> StorageItem:
        metadata: Metadata = {
            str(k).lower(): str(v) for k, v in (version.file_info or {}).items()
        }
        if version.content_type:
            metadata["content-type"] = version.content_type

        return StorageItem(
            id=version.file_name,
            name=version.file_name.rstrip("/").rsplit("/", 1)[-1],
            size=int(version.size or 0),
            etag=_etag(version),
            last_modified=_from_millis(version.upload_timestamp),
            metadata_loader=lambda: dict(metadata),
            opener=functools.partial(self._open, version.file_name),
        )

    def _version(self, key: str) -> Any:
        try:
            return self._bucket.get_file_info_by_name(key)
        except FileNotPresent as e:
            raise ObjectNotFoundError(bucket=self.name, key=key) from e
        except B2Error as e:
            raise self._backend_error("get_file_info_by_name", key, e) from e

    def _open(self, key: str) -> BinaryIO:
        buffer = io.BytesIO()
        try:
            self._bucket.download_file_by_name(key).save(buffer)
        except FileNotPresent as e:
            raise ObjectNotFoundError(bucket=self.name, key=key) from e
        except B2Error as e:
            raise self._backend_error("download_file_by_name", key, e) from e
        buffer.seek(0)
        return buffer

    def item(self, key: str) -> StorageItem:
        return self._make_item(self._version(key))

    def items(self, prefix: str, marker: str, limit: int) -> tuple[list[StorageItem], str]:
        folder = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        matched: list[StorageItem] = []
        has_more = False
        try:
            for version, _ in self._bucket.ls(folder, latest_only=True, recursive=True):
                name = version.file_name
                if not name.startswith(prefix) or name <= marker:
                    continue
                if len(matched) >= limit:
                    has_more = True
                    break
                matched.append(self._make_item(version))
        except B2Error as e:
            raise self._backend_error("ls", prefix, e) from e

        next_marker = matched[-1].id if matched and has_more else ""
        return matched, next_marker

    def put(self, key: str, stream: BinaryIO, length: int, metadata: Metadata) -> None:
        content_type = str(metadata.get("content-type") or _AUTO_CONTENT_TYPE)
        file_info = {str(k): str(v) for k, v in metadata.items() if k != "content-type"}
        try:
            self._bucket.upload_bytes(
                stream.read(),
                key,
                content_type=content_type,
                file_info=file_info,
            )
        except B2Error as e:
            raise self._backend_error("upload_bytes", key, e) from e

    def remove_item(self, key: str) -> None:
        version = self._version(key)
        try:
            self._bucket.delete_file_version(version.id_, key)
        except B2Error as e:
            raise self._backend_error("delete_file_version", key, e) from e


class B2Location(Location):
    """Authorized B2 account."""

    def __init__(self, account_id: str, application_key: str, *, api: Any | None = None) -> None:
        if api is not None:
            self._api = api
            return
        if not account_id or not application_key:
            raise BackendUnavailableError("account_id and application_key are required for b2")
        self._api = B2Api(InMemoryAccountInfo())
        try:
            self._api.authorize_account("production", account_id, application_key)
        except B2Error as e:
            raise BackendUnavailableError(f"B2 authorization failed: {e}", cause=e) from e

    @property
    def backend_name(self) -> str:
        return "b2"

    def container(self, name: str) -> Container:
        try:
            bucket = self._api.get_bucket_by_name(name)
        except NonExistentBucket as e:
            raise ContainerNotFoundError(bucket=name) from e
        except B2Error as e:
            raise StorageBackendError(
                message=f"B2 get_bucket_by_name failed: {e}", bucket=name, cause=e
            ) from e
        return B2Container(bucket)

    def create_container(self, name: str) -> Container:
        try:
            bucket = self._api.create_bucket(name, "allPrivate")
        except B2Error as e:
            raise StorageBackendError(
                message=f"B2 create_bucket failed: {e}", bucket=name, cause=e
            ) from e
        logger.info("Created B2 bucket %s", name)
        return B2Container(bucket)
