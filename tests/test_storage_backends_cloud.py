"""Tests for the S3 and B2 backend adapters with mocked SDK clients."""

from __future__ import annotations

import io
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from unistore.storage.backends.b2 import B2Container, B2Location
from unistore.storage.backends.s3 import S3Container, S3Location
from unistore.storage.errors import (
    ContainerNotFoundError,
    ObjectNotFoundError,
    StorageBackendError,
)


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3_client() -> MagicMock:
    client = MagicMock()
    client.head_object.return_value = {
        "ContentLength": 11,
        "ContentType": "image/png",
        "CacheControl": "max-age=60",
        "ETag": '"abc"',
        "LastModified": datetime(2024, 2, 3, 4, 5, 6, tzinfo=UTC),
        "Metadata": {"Color": "blue"},
    }
    client.get_object.return_value = {"Body": io.BytesIO(b"hello world")}
    return client


class TestS3Container:
    """Tests for S3Container against a mocked boto3 client."""

    def test_item(self, s3_client: MagicMock) -> None:
        item = S3Container(s3_client, "media").item("img/cat.png")

        assert item.id == "img/cat.png"
        assert item.name == "cat.png"
        assert item.size == 11
        assert item.etag == '"abc"'
        assert item.metadata() == {
            "color": "blue",
            "content-type": "image/png",
            "cache-control": "max-age=60",
        }
        s3_client.head_object.assert_called_once_with(Bucket="media", Key="img/cat.png")

    def test_open(self, s3_client: MagicMock) -> None:
        item = S3Container(s3_client, "media").item("img/cat.png")

        assert item.open().read() == b"hello world"

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    def test_not_found_codes(self, s3_client: MagicMock, code: str) -> None:
        s3_client.head_object.side_effect = _client_error(code)

        with pytest.raises(ObjectNotFoundError):
            S3Container(s3_client, "media").item("missing")

    def test_other_errors(self, s3_client: MagicMock) -> None:
        s3_client.head_object.side_effect = _client_error("AccessDenied")

        with pytest.raises(StorageBackendError):
            S3Container(s3_client, "media").item("secret")

    def test_items(self, s3_client: MagicMock) -> None:
        s3_client.list_objects_v2.return_value = {
            "Contents": [
                {"Key": "a/1", "Size": 1, "ETag": '"e1"'},
                {"Key": "a/2", "Size": 2, "ETag": '"e2"'},
            ],
            "IsTruncated": True,
        }

        items, marker = S3Container(s3_client, "media").items("a/", "a/0", 2)

        assert [i.id for i in items] == ["a/1", "a/2"]
        assert marker == "a/2"
        s3_client.list_objects_v2.assert_called_once_with(
            Bucket="media", Prefix="a/", MaxKeys=2, StartAfter="a/0"
        )

    def test_items_last_page(self, s3_client: MagicMock) -> None:
        s3_client.list_objects_v2.return_value = {"Contents": [{"Key": "z"}], "IsTruncated": False}

        _, marker = S3Container(s3_client, "media").items("", "", 10)

        assert marker == ""
        assert "StartAfter" not in s3_client.list_objects_v2.call_args.kwargs

    def test_put_splits_standard_headers(self, s3_client: MagicMock) -> None:
        body = io.BytesIO(b"data")

        S3Container(s3_client, "media").put(
            "k",
            body,
            4,
            {"content-type": "text/plain", "cache-control": "no-cache", "color": "blue"},
        )

        s3_client.put_object.assert_called_once_with(
            Bucket="media",
            Key="k",
            Body=body,
            ContentLength=4,
            Metadata={"color": "blue"},
            ContentType="text/plain",
            CacheControl="no-cache",
        )

    def test_remove(self, s3_client: MagicMock) -> None:
        S3Container(s3_client, "media").remove_item("k")

        s3_client.delete_object.assert_called_once_with(Bucket="media", Key="k")


class TestS3Location:
    """Tests for bucket lookup and creation."""

    def test_container_exists(self, s3_client: MagicMock) -> None:
        container = S3Location("", "", client=s3_client).container("media")

        assert container.name == "media"

    def test_container_missing(self, s3_client: MagicMock) -> None:
        s3_client.head_bucket.side_effect = _client_error("404", "HeadBucket")

        with pytest.raises(ContainerNotFoundError):
            S3Location("", "", client=s3_client).container("media")

    def test_create_with_region_constraint(self, s3_client: MagicMock) -> None:
        S3Location("", "", "eu-west-1", client=s3_client).create_container("media")

        s3_client.create_bucket.assert_called_once_with(
            Bucket="media",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    def test_create_us_east_1(self, s3_client: MagicMock) -> None:
        S3Location("", "", "us-east-1", client=s3_client).create_container("media")

        s3_client.create_bucket.assert_called_once_with(Bucket="media")

    def test_create_already_owned(self, s3_client: MagicMock) -> None:
        s3_client.create_bucket.side_effect = _client_error(
            "BucketAlreadyOwnedByYou", "CreateBucket"
        )

        assert S3Location("", "", client=s3_client).create_container("media").name == "media"


def _version(name: str, **overrides: Any) -> SimpleNamespace:
    fields: dict[str, Any] = {
        "id_": f"id-{name}",
        "file_name": name,
        "size": 4,
        "content_sha1": "sha1abc",
        "content_type": "text/plain",
        "upload_timestamp": 1_700_000_000_000,
        "file_info": {"X-Amz-Meta-Color": "blue"},
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def b2_bucket() -> MagicMock:
    bucket = MagicMock()
    bucket.name = "media"
    bucket.get_file_info_by_name.return_value = _version("a/b.txt")
    return bucket


class TestB2Container:
    """Tests for B2Container against a mocked b2sdk bucket."""

    def test_item(self, b2_bucket: MagicMock) -> None:
        item = B2Container(b2_bucket).item("a/b.txt")

        assert item.id == "a/b.txt"
        assert item.size == 4
        assert item.etag == '"sha1abc"'
        assert item.last_modified == datetime.fromtimestamp(1_700_000_000, tz=UTC)
        assert item.metadata() == {"x-amz-meta-color": "blue", "content-type": "text/plain"}

    def test_etag_falls_back_to_file_id(self, b2_bucket: MagicMock) -> None:
        b2_bucket.get_file_info_by_name.return_value = _version("big", content_sha1="none")

        assert B2Container(b2_bucket).item("big").etag == '"id-big"'

    def test_items_filters_and_paginates(self, b2_bucket: MagicMock) -> None:
        b2_bucket.ls.return_value = iter(
            [
                (_version("a/1"), None),
                (_version("a/2"), None),
                (_version("a/3"), None),
                (_version("ab"), None),
            ]
        )

        items, marker = B2Container(b2_bucket).items("a/", "a/1", 1)

        assert [i.id for i in items] == ["a/2"]
        assert marker == "a/2"
        b2_bucket.ls.assert_called_once_with("a", latest_only=True, recursive=True)

    def test_put(self, b2_bucket: MagicMock) -> None:
        B2Container(b2_bucket).put(
            "k", io.BytesIO(b"data"), 4, {"content-type": "text/plain", "x-amz-meta-a": "1"}
        )

        b2_bucket.upload_bytes.assert_called_once_with(
            b"data", "k", content_type="text/plain", file_info={"x-amz-meta-a": "1"}
        )

    def test_put_auto_content_type(self, b2_bucket: MagicMock) -> None:
        B2Container(b2_bucket).put("k", io.BytesIO(b"data"), 4, {})

        assert b2_bucket.upload_bytes.call_args.kwargs["content_type"] == "b2/x-auto"

    def test_remove_deletes_latest_version(self, b2_bucket: MagicMock) -> None:
        B2Container(b2_bucket).remove_item("a/b.txt")

        b2_bucket.delete_file_version.assert_called_once_with("id-a/b.txt", "a/b.txt")


class TestB2Location:
    def test_injected_api(self, b2_bucket: MagicMock) -> None:
        api = MagicMock()
        api.get_bucket_by_name.return_value = b2_bucket

        location = B2Location("", "", api=api)

        assert location.backend_name == "b2"
        assert location.container("media").name == "media"

    def test_create_container(self, b2_bucket: MagicMock) -> None:
        api = MagicMock()
        api.create_bucket.return_value = b2_bucket

        B2Location("", "", api=api).create_container("media")

        api.create_bucket.assert_called_once_with("media", "allPrivate")
