"""Read-only HTTP storage backend.

Items are fetched from a remote origin with httpx. The configured URL is
either a base URL (the native key is appended) or a template containing
``{bucket}`` and ``{key}`` placeholders. Listing and every write operation
are unsupported.

Environment Variables:
    UNISTORE_HTTP_TIMEOUT_SECONDS: Request timeout in seconds (default: 30)
"""

from __future__ import annotations

import functools
import io
import json
import logging
import os
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import BinaryIO
from urllib.parse import quote

import httpx

from unistore.storage.container import Container, Location
from unistore.storage.errors import (
    BackendUnavailableError,
    ObjectNotFoundError,
    ReadOnlyBackendError,
    StorageBackendError,
)
from unistore.storage.models import Metadata, StorageItem

logger = logging.getLogger(__name__)

UNISTORE_HTTP_TIMEOUT_ENV = "UNISTORE_HTTP_TIMEOUT_SECONDS"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0


def _timeout_from_env() -> float:
    raw = os.environ.get(UNISTORE_HTTP_TIMEOUT_ENV, "").strip()
    if not raw:
        return DEFAULT_HTTP_TIMEOUT_SECONDS
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", UNISTORE_HTTP_TIMEOUT_ENV, raw)
        return DEFAULT_HTTP_TIMEOUT_SECONDS


def _parse_last_modified(value: str | None) -> datetime:
    if value:
        try:
            return parsedate_to_datetime(value).astimezone(UTC)
        except (TypeError, ValueError):
            logger.debug("Unparseable Last-Modified header: %r", value)
    return datetime.now(UTC)


class HttpContainer(Container):
    """Container view over a remote HTTP origin."""

    def __init__(self, client: httpx.Client, url: str, name: str) -> None:
        self._client = client
        self._url = url
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def _item_url(self, key: str) -> str:
        quoted = quote(key.lstrip("/"))
        if "{key}" in self._url or "{bucket}" in self._url:
            return self._url.replace("{bucket}", quote(self._name)).replace("{key}", quoted)
        return f"{self._url.rstrip('/')}/{quoted}"

    def _request(self, method: str, key: str) -> httpx.Response:
        url = self._item_url(key)
        try:
            response = self._client.request(method, url)
        except httpx.HTTPError as e:
            raise StorageBackendError(
                message=f"HTTP {method} failed: {e}",
                bucket=self._name,
                key=key,
                cause=e,
            ) from e

        if response.status_code == 404:
            raise ObjectNotFoundError(bucket=self._name, key=key)
        if response.status_code >= 400:
            raise StorageBackendError(
                message=f"HTTP {method} returned {response.status_code}",
                bucket=self._name,
                key=key,
            )
        return response

    def _open(self, key: str) -> BinaryIO:
        return io.BytesIO(self._request("GET", key).content)

    def item(self, key: str) -> StorageItem:
        response = self._request("HEAD", key)
        metadata: Metadata = {k.lower(): v for k, v in response.headers.items()}
        try:
            size = int(response.headers.get("content-length", "0"))
        except ValueError:
            size = 0

        return StorageItem(
            id=key,
            name=key.rstrip("/").rsplit("/", 1)[-1],
            size=size,
            etag=response.headers.get("etag", ""),
            last_modified=_parse_last_modified(response.headers.get("last-modified")),
            metadata_loader=lambda: dict(metadata),
            opener=functools.partial(self._open, key),
        )

    def items(self, prefix: str, marker: str, limit: int) -> tuple[list[StorageItem], str]:
        raise StorageBackendError(
            message="Listing is not supported by the http backend",
            bucket=self._name,
            key=prefix,
        )

    def put(self, key: str, stream: BinaryIO, length: int, metadata: Metadata) -> None:
        raise ReadOnlyBackendError(bucket=self._name, key=key)

    def remove_item(self, key: str) -> None:
        raise ReadOnlyBackendError(bucket=self._name, key=key)


class HttpLocation(Location):
    """Connection to a remote HTTP origin."""

    def __init__(
        self,
        url: str,
        headers: str = "{}",
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the HTTP location.

        Args:
            url: Base URL or ``{bucket}``/``{key}`` template.
            headers: JSON-serialized headers sent with every request.
            http_client: Optional httpx.Client for dependency injection (testing).
        """
        if not url:
            raise BackendUnavailableError("url is required for http storage")
        try:
            parsed_headers = json.loads(headers or "{}")
        except json.JSONDecodeError as e:
            raise BackendUnavailableError("Invalid http storage headers", cause=e) from e

        self._url = url
        self._client = http_client or httpx.Client(
            timeout=_timeout_from_env(),
            headers=parsed_headers,
            follow_redirects=True,
        )
        if http_client is not None:
            self._client.headers.update(parsed_headers)

    @property
    def backend_name(self) -> str:
        return "http"

    def container(self, name: str) -> Container:
        return HttpContainer(self._client, self._url, name)

    def create_container(self, name: str) -> Container:
        raise ReadOnlyBackendError(bucket=name)
