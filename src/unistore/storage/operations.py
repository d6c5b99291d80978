"""Object operations: get, head, set, delete and list.

ObjectStorage owns a ClientRegistry and turns every call into a
StorageResponse. Backend errors are logged with the object's context and
converted to status codes here; none escape to the caller:

    not found            -> 404
    backend unavailable  -> 503 (any failure resolving the container)
    other backend error  -> 500
"""

from __future__ import annotations

import json
import logging
from datetime import UTC
from email.utils import format_datetime
from typing import BinaryIO

from unistore.storage.container import Container
from unistore.storage.errors import ObjectNotFoundError, ObjectStorageError, status_for_error
from unistore.storage.keys import join_path, resolve_key
from unistore.storage.listing import build_listing
from unistore.storage.metadata import (
    HeaderInput,
    apply_metadata,
    is_dir,
    prepare_metadata,
    resolve_content_type,
)
from unistore.storage.models import FileObjectRef, StorageItem, StorageKind
from unistore.storage.registry import ClientRegistry
from unistore.storage.response import StorageResponse
from unistore.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

NOT_FOUND_BODY = json.dumps({"error": "item not found"}, separators=(",", ":"))
XML_CONTENT_TYPE = "application/xml"
DEFAULT_MAX_KEYS = 1000


def _content_type_header(headers: HeaderInput) -> str:
    for name, value in headers.items():
        if name.lower() == "content-type":
            return value if isinstance(value, str) else (value[0] if value else "")
    return ""


class ObjectStorage:
    """Uniform object operations over every configured backend.

    Example:
        storage = ObjectStorage()
        obj = FileObjectRef(bucket="media", key="img/cat.jpg", storage=config)
        response = storage.get(obj)
        if response.status_code == 200:
            data = response.read()
    """

    def __init__(self, registry: ClientRegistry | None = None) -> None:
        self._registry = registry if registry is not None else ClientRegistry()

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    def _container(self, obj: FileObjectRef) -> Container:
        return self._registry.resolve(obj.storage, obj.bucket)

    @traced_storage_operation("get")
    def get(self, obj: FileObjectRef) -> StorageResponse:
        """Fetch an object with its content stream."""
        key = resolve_key(obj.storage, obj.key)
        try:
            container = self._container(obj)
        except ObjectStorageError as e:
            logger.info("Storage get: client unavailable", extra=obj.log_data(error=str(e)))
            return StorageResponse.from_error(503, e)

        try:
            item = container.item(key)
        except ObjectNotFoundError:
            logger.info(
                "Storage get: item not found",
                extra=obj.log_data(native_key=key, status_code=404),
            )
            return StorageResponse.from_string(404, NOT_FOUND_BODY)
        except ObjectStorageError as e:
            logger.info("Storage get: item error", extra=obj.log_data(error=str(e)))
            return StorageResponse.from_error(status_for_error(e), e)

        if is_dir(item):
            response = StorageResponse.no_content(404)
            response.set_content_type(XML_CONTENT_TYPE)
            return response

        try:
            stream = item.open()
        except ObjectStorageError as e:
            logger.warning(
                "Storage get: cannot open item",
                extra=obj.log_data(status_code=500, error=str(e)),
            )
            return StorageResponse.from_error(500, e)

        response = self._prepare_response(obj, stream, item)
        if stream is not None and response.stream is None:
            stream.close()
        return response

    @traced_storage_operation("head")
    def head(self, obj: FileObjectRef) -> StorageResponse:
        """Fetch an object's headers without opening its content."""
        key = resolve_key(obj.storage, obj.key)
        try:
            container = self._container(obj)
        except ObjectStorageError as e:
            logger.info("Storage head: client unavailable", extra=obj.log_data(error=str(e)))
            return StorageResponse.from_error(503, e)

        try:
            item = container.item(key)
        except ObjectNotFoundError:
            logger.info("Storage head: item not found", extra=obj.log_data(status_code=404))
            return StorageResponse.from_string(404, NOT_FOUND_BODY)
        except ObjectStorageError as e:
            logger.info("Storage head: item error", extra=obj.log_data(error=str(e)))
            return StorageResponse.from_error(status_for_error(e), e)

        return self._prepare_response(obj, None, item)

    @traced_storage_operation("set")
    def set(
        self,
        obj: FileObjectRef,
        headers: HeaderInput,
        content_length: int,
        body: BinaryIO,
    ) -> StorageResponse:
        """Store an object with metadata taken from request headers."""
        try:
            container = self._container(obj)
        except ObjectStorageError as e:
            logger.warning(
                "Storage set: client unavailable",
                extra=obj.log_data(status_code=503, error=str(e)),
            )
            return StorageResponse.from_error(503, e)

        key = resolve_key(obj.storage, obj.key)
        # S3 has no directories: an empty write to "dir/" is a no-op success
        if obj.storage.kind == StorageKind.S3 and content_length == 0 and key.endswith("/"):
            return StorageResponse.no_content(200)

        metadata = prepare_metadata(obj.storage.kind, headers)
        try:
            container.put(key, body, content_length, metadata)
        except ObjectStorageError as e:
            logger.warning(
                "Storage set: cannot store item",
                extra=obj.log_data(status_code=500, error=str(e)),
            )
            return StorageResponse.from_error(500, e)

        response = StorageResponse.no_content(200)
        response.set_content_type(_content_type_header(headers))
        return response

    @traced_storage_operation("delete")
    def delete(self, obj: FileObjectRef) -> StorageResponse:
        """Delete an object. Deleting a missing object succeeds."""
        try:
            container = self._container(obj)
        except ObjectStorageError as e:
            logger.warning(
                "Storage delete: client unavailable",
                extra=obj.log_data(status_code=503, error=str(e)),
            )
            return StorageResponse.from_error(503, e)

        head = self.head(obj)
        if head.status_code == 404:
            return StorageResponse.no_content(200)
        if head.status_code != 200:
            return head

        try:
            container.remove_item(resolve_key(obj.storage, obj.key))
        except ObjectNotFoundError:
            return StorageResponse.no_content(200)
        except ObjectStorageError as e:
            logger.warning(
                "Storage delete: cannot delete item",
                extra=obj.log_data(status_code=500, error=str(e)),
            )
            return StorageResponse.from_error(500, e)

        return StorageResponse.no_content(200)

    @traced_storage_operation("list")
    def list(
        self,
        obj: FileObjectRef,
        max_keys: int = DEFAULT_MAX_KEYS,
        prefix: str = "",
        marker: str = "",
    ) -> StorageResponse:
        """List a bucket as an S3 ``ListBucketResult`` XML document."""
        try:
            container = self._container(obj)
        except ObjectStorageError as e:
            logger.warning(
                "Storage list: client unavailable",
                extra=obj.log_data(status_code=503, error=str(e)),
            )
            return StorageResponse.from_error(503, e)

        effective_prefix = join_path(obj.storage.path_prefix, prefix)

        if obj.storage.kind == StorageKind.LOCAL_META and effective_prefix.strip("/"):
            try:
                container.item(effective_prefix)
            except ObjectNotFoundError:
                logger.info("Storage list: prefix not found", extra=obj.log_data(status_code=404))
                return StorageResponse.from_string(404, obj.key)
            except ObjectStorageError as e:
                logger.warning(
                    "Storage list: prefix lookup failed",
                    extra=obj.log_data(status_code=500, error=str(e)),
                )
                return StorageResponse.from_error(500, e)

        try:
            items, next_marker = container.items(effective_prefix, marker, max_keys)
        except ObjectStorageError as e:
            logger.warning(
                "Storage list: cannot list items",
                extra=obj.log_data(status_code=500, error=str(e)),
            )
            return StorageResponse.from_error(500, e)

        result = build_listing(
            bucket=obj.bucket,
            prefix=effective_prefix,
            marker=next_marker,
            max_keys=max_keys,
            items=items,
        )
        response = StorageResponse.from_bytes(200, result.to_xml())
        response.set_content_type(XML_CONTENT_TYPE)
        return response

    def _prepare_response(
        self,
        obj: FileObjectRef,
        stream: BinaryIO | None,
        item: StorageItem,
    ) -> StorageResponse:
        """Assemble headers for a found item; 500 if its attributes are unreadable."""
        response = StorageResponse.new(200, stream)
        try:
            metadata = item.metadata()
        except ObjectStorageError as e:
            logger.warning(
                "Storage: cannot read item metadata",
                extra=obj.log_data(status_code=500, error=str(e)),
            )
            return StorageResponse.from_error(500, e)

        apply_metadata(obj.storage.kind, metadata, response.headers)

        response.content_length = item.size
        if item.etag:
            response.set("ETag", item.etag)
        last_modified = item.last_modified.astimezone(UTC)
        response.set("Last-Modified", format_datetime(last_modified, usegmt=True))

        content_type = resolve_content_type(metadata, obj.uri_path, item)
        if content_type:
            response.set_content_type(content_type)

        return response
