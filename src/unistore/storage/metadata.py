"""Metadata translation between request/response headers and backend metadata.

Inbound (writes): request headers are filtered down to the content type,
custom ``x-amz-meta-*`` entries and (except on S3) the ETag. S3 stores custom
metadata without the prefix because its wire protocol adds it back.

Outbound (reads): ``x-*`` keys and ``cache-control`` pass through verbatim.
S3 metadata is re-prefixed so stored ``color`` comes back as
``x-amz-meta-color``.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
from collections.abc import Mapping, Sequence

import httpx

from unistore.storage.errors import ObjectStorageError
from unistore.storage.models import Metadata, MetadataValue, StorageItem, StorageKind

logger = logging.getLogger(__name__)

CUSTOM_METADATA_PREFIX = "x-amz-meta-"
DIRECTORY_CONTENT_TYPE = "application/directory"

HeaderInput = httpx.Headers | Mapping[str, str | Sequence[str]]


def _first_values(headers: HeaderInput) -> list[tuple[str, str]]:
    """Flatten headers to (name, first value) pairs."""
    if isinstance(headers, httpx.Headers):
        seen: dict[str, str] = {}
        for name, value in headers.multi_items():
            seen.setdefault(name.lower(), value)
        return list(seen.items())

    pairs: list[tuple[str, str]] = []
    for name, value in headers.items():
        if isinstance(value, str):
            pairs.append((name, value))
        elif value:
            pairs.append((name, value[0]))
    return pairs


def prepare_metadata(kind: StorageKind, headers: HeaderInput) -> Metadata:
    """Translate request headers into the backend metadata map."""
    metadata: Metadata = {}
    for name, value in _first_values(headers):
        key = name.lower()
        if kind == StorageKind.S3:
            if key.startswith(CUSTOM_METADATA_PREFIX):
                metadata.setdefault(key[len(CUSTOM_METADATA_PREFIX) :], value)
            elif key == "content-type":
                metadata.setdefault(key, value)
        elif key.startswith(CUSTOM_METADATA_PREFIX) or key in ("content-type", "etag"):
            metadata.setdefault(key, value)
    return metadata


def _header_value(value: MetadataValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def apply_metadata(kind: StorageKind, metadata: Metadata, headers: httpx.Headers) -> None:
    """Copy backend metadata onto response headers."""
    for name, value in metadata.items():
        key = name.lower()
        if key == "cache-control" or key.startswith("x-"):
            headers[key] = _header_value(value)

    if kind == StorageKind.S3:
        for name, value in metadata.items():
            if name in ("cache-control", "content-type"):
                headers[name] = _header_value(value)
            else:
                headers[f"{CUSTOM_METADATA_PREFIX}{name}"] = _header_value(value)


def _as_bool(value: MetadataValue) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def is_dir(item: StorageItem) -> bool:
    """Decide whether an item represents a directory.

    First match wins: an explicit ``is_dir`` flag, a directory content type,
    then a zero size. Items whose metadata cannot be read are regular files.
    """
    try:
        metadata = item.metadata()
    except ObjectStorageError as e:
        logger.debug("Metadata unreadable for %s, treating as file: %s", item.id, e)
        return False

    if "is_dir" in metadata:
        return _as_bool(metadata["is_dir"])

    content_type = metadata.get("content-type", metadata.get("Content-Type"))
    if content_type is not None:
        return str(content_type) == DIRECTORY_CONTENT_TYPE

    return item.size == 0


def resolve_content_type(metadata: Metadata, uri_path: str, item: StorageItem) -> str | None:
    """Pick the response content type.

    Order: stored ``content-type``, stored ``Content-Type``, the extension of
    the request path, then the directory content type for directories.
    """
    for key in ("content-type", "Content-Type"):
        if key in metadata:
            return str(metadata[key])

    guessed, _ = mimetypes.guess_type(posixpath.basename(uri_path))
    if guessed:
        return guessed

    if is_dir(item):
        return DIRECTORY_CONTENT_TYPE
    return None
