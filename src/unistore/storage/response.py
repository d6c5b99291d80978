"""Outbound response representation.

Every storage operation returns a StorageResponse: an HTTP-style status
code, a case-insensitive header set, and either a content stream or an
in-memory body. Ownership passes to the caller, who must close() it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import BinaryIO

import httpx

JSON_CONTENT_TYPE = "application/json"


@dataclass
class StorageResponse:
    """Response built by a storage operation.

    Attributes:
        status_code: HTTP-style status code.
        headers: Response headers (case-insensitive).
        content_length: Content length in bytes, or -1 when unknown.
        stream: Content stream for item reads (None for buffered bodies).
        body: Buffered body for errors, listings and empty responses.
    """

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content_length: int = -1
    stream: BinaryIO | None = None
    body: bytes = b""

    @classmethod
    def new(cls, status_code: int, stream: BinaryIO | None) -> StorageResponse:
        """Response carrying a content stream."""
        return cls(status_code=status_code, stream=stream)

    @classmethod
    def from_bytes(cls, status_code: int, body: bytes) -> StorageResponse:
        return cls(status_code=status_code, body=body, content_length=len(body))

    @classmethod
    def from_string(cls, status_code: int, body: str) -> StorageResponse:
        return cls.from_bytes(status_code, body.encode("utf-8"))

    @classmethod
    def from_error(cls, status_code: int, error: Exception) -> StorageResponse:
        """JSON error response; the message never includes credentials."""
        response = cls.from_string(status_code, json.dumps({"message": str(error)}))
        response.set_content_type(JSON_CONTENT_TYPE)
        return response

    @classmethod
    def no_content(cls, status_code: int) -> StorageResponse:
        return cls(status_code=status_code, content_length=0)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    def set(self, name: str, value: str) -> None:
        self.headers[name] = value

    def set_content_type(self, content_type: str) -> None:
        if content_type:
            self.headers["content-type"] = content_type

    def read(self) -> bytes:
        """Return the full body, draining and closing the stream if present."""
        if self.stream is None:
            return self.body
        try:
            self.body = self.stream.read()
        finally:
            self.close()
        return self.body

    def close(self) -> None:
        if self.stream is not None:
            self.stream.close()
            self.stream = None
