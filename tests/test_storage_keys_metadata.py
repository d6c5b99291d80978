"""Tests for native key resolution and metadata translation."""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from unistore.storage.errors import StorageBackendError
from unistore.storage.keys import join_path, resolve_key
from unistore.storage.metadata import (
    DIRECTORY_CONTENT_TYPE,
    apply_metadata,
    is_dir,
    prepare_metadata,
    resolve_content_type,
)
from unistore.storage.models import Metadata, StorageConfig, StorageItem, StorageKind


def _item(size: int = 10, metadata: Metadata | None = None, key: str = "a/b.txt") -> StorageItem:
    meta = dict(metadata or {})
    return StorageItem(
        id=key,
        name=key.rsplit("/", 1)[-1],
        size=size,
        etag='"e"',
        last_modified=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC),
        metadata_loader=lambda: dict(meta),
    )


def _failing_item(size: int = 0) -> StorageItem:
    def _raise() -> Metadata:
        raise StorageBackendError("metadata unavailable")

    return StorageItem(
        id="x",
        name="x",
        size=size,
        etag="",
        last_modified=datetime(2024, 1, 1, tzinfo=UTC),
        metadata_loader=_raise,
    )


class TestJoinPath:
    """Tests for join_path."""

    @pytest.mark.parametrize(
        "parts,expected",
        [
            (("a", "b"), "a/b"),
            (("a/", "/b"), "a/b"),
            (("", "b"), "b"),
            (("a", ""), "a"),
            (("/a", "/b"), "/a/b"),
            (("a//b", "c"), "a/b/c"),
            (("a", "b/"), "a/b/"),
            (("", ""), ""),
        ],
    )
    def test_join(self, parts: tuple[str, ...], expected: str) -> None:
        assert join_path(*parts) == expected


class TestResolveKey:
    """Tests for backend-native key resolution."""

    def test_b2_strips_leading_separator(self) -> None:
        """B2 keys never start with a separator."""
        config = StorageConfig(kind=StorageKind.B2, path_prefix="/a")

        assert resolve_key(config, "/b") == "a/b"

    def test_s3_keeps_leading_separator(self) -> None:
        config = StorageConfig(kind=StorageKind.S3, path_prefix="/a")

        assert resolve_key(config, "/b") == "/a/b"

    def test_no_prefix(self) -> None:
        config = StorageConfig(kind=StorageKind.LOCAL, root_path="/srv")

        assert resolve_key(config, "img/cat.jpg") == "img/cat.jpg"

    def test_prefix_applied(self) -> None:
        config = StorageConfig(kind=StorageKind.S3, path_prefix="tenant-1/")

        assert resolve_key(config, "img/cat.jpg") == "tenant-1/img/cat.jpg"

    def test_directory_marker_preserved(self) -> None:
        config = StorageConfig(kind=StorageKind.S3, path_prefix="p")

        assert resolve_key(config, "dir/") == "p/dir/"


class TestPrepareMetadata:
    """Tests for inbound (request header to backend) metadata translation."""

    def test_s3_strips_custom_prefix(self) -> None:
        headers = {
            "Content-Type": "image/png",
            "X-Amz-Meta-Color": "blue",
            "Authorization": "secret",
            "ETag": '"abc"',
        }

        metadata = prepare_metadata(StorageKind.S3, headers)

        assert metadata == {"content-type": "image/png", "color": "blue"}

    def test_other_kinds_keep_custom_prefix_and_etag(self) -> None:
        headers = {"content-type": "text/plain", "x-amz-meta-color": "blue", "etag": '"abc"'}

        metadata = prepare_metadata(StorageKind.LOCAL_META, headers)

        assert metadata == {
            "content-type": "text/plain",
            "x-amz-meta-color": "blue",
            "etag": '"abc"',
        }

    def test_unrelated_headers_dropped(self) -> None:
        headers = {"Host": "example.com", "Content-Length": "12", "Accept": "*/*"}

        assert prepare_metadata(StorageKind.B2, headers) == {}

    def test_first_value_of_multi_valued_header(self) -> None:
        headers = {"x-amz-meta-tag": ["one", "two"]}

        assert prepare_metadata(StorageKind.LOCAL, headers) == {"x-amz-meta-tag": "one"}

    def test_httpx_headers_accepted(self) -> None:
        headers = httpx.Headers([("X-Amz-Meta-Tag", "one"), ("X-Amz-Meta-Tag", "two")])

        assert prepare_metadata(StorageKind.S3, headers) == {"tag": "one"}


class TestApplyMetadata:
    """Tests for outbound (backend to response header) metadata translation."""

    def test_passthrough_for_custom_and_cache_control(self) -> None:
        headers = httpx.Headers()
        metadata: Metadata = {
            "x-amz-meta-color": "blue",
            "cache-control": "max-age=60",
            "content-type": "text/plain",
            "internal": "hidden",
        }

        apply_metadata(StorageKind.LOCAL_META, metadata, headers)

        assert headers["x-amz-meta-color"] == "blue"
        assert headers["cache-control"] == "max-age=60"
        assert "internal" not in headers
        assert "content-type" not in headers

    def test_s3_reprefixes_custom_metadata(self) -> None:
        headers = httpx.Headers()
        metadata: Metadata = {"color": "blue", "content-type": "image/png"}

        apply_metadata(StorageKind.S3, metadata, headers)

        assert headers["x-amz-meta-color"] == "blue"
        assert headers["content-type"] == "image/png"

    def test_non_string_values(self) -> None:
        headers = httpx.Headers()

        apply_metadata(StorageKind.S3, {"flag": True, "count": 3}, headers)

        assert headers["x-amz-meta-flag"] == "true"
        assert headers["x-amz-meta-count"] == "3"

    def test_s3_round_trip(self) -> None:
        """Custom metadata written through S3 comes back with its prefix."""
        stored = prepare_metadata(StorageKind.S3, {"x-amz-meta-color": "blue"})
        headers = httpx.Headers()

        apply_metadata(StorageKind.S3, stored, headers)

        assert headers["x-amz-meta-color"] == "blue"


class TestIsDir:
    """Tests for directory detection precedence."""

    def test_explicit_flag_wins_over_size(self) -> None:
        assert is_dir(_item(size=100, metadata={"is_dir": True})) is True
        assert is_dir(_item(size=0, metadata={"is_dir": False})) is False

    def test_string_flag(self) -> None:
        assert is_dir(_item(size=100, metadata={"is_dir": "true"})) is True
        assert is_dir(_item(size=0, metadata={"is_dir": "false"})) is False

    def test_content_type_wins_over_size(self) -> None:
        assert is_dir(_item(size=0, metadata={"content-type": "text/plain"})) is False
        assert is_dir(_item(size=5, metadata={"Content-Type": DIRECTORY_CONTENT_TYPE})) is True

    def test_zero_size_fallback(self) -> None:
        assert is_dir(_item(size=0)) is True
        assert is_dir(_item(size=1)) is False

    def test_metadata_error_means_file(self) -> None:
        assert is_dir(_failing_item(size=0)) is False


class TestResolveContentType:
    """Tests for response content type resolution."""

    def test_stored_lowercase_first(self) -> None:
        metadata: Metadata = {"content-type": "image/png", "Content-Type": "text/plain"}

        assert resolve_content_type(metadata, "/x.txt", _item()) == "image/png"

    def test_stored_capitalized(self) -> None:
        assert resolve_content_type({"Content-Type": "image/gif"}, "/x", _item()) == "image/gif"

    def test_extension_fallback(self) -> None:
        assert resolve_content_type({}, "/media/cat.png", _item()) == "image/png"

    def test_directory_fallback(self) -> None:
        assert resolve_content_type({}, "/media/dir", _item(size=0)) == DIRECTORY_CONTENT_TYPE

    def test_none_when_unknown(self) -> None:
        assert resolve_content_type({}, "/media/blob", _item(size=10)) is None
