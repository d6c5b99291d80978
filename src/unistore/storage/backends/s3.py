"""S3-compatible storage backend.

Uses boto3 with an explicit endpoint so any S3-compatible store (AWS, MinIO,
Ceph, ...) can be targeted. Object metadata is read back lowercased with
``content-type`` and ``cache-control`` merged in from the standard headers.
"""

from __future__ import annotations

import functools
import logging
from datetime import UTC, datetime
from typing import Any, BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from unistore.storage.container import Container, Location
from unistore.storage.errors import (
    BackendUnavailableError,
    ContainerNotFoundError,
    ObjectNotFoundError,
    StorageBackendError,
)
from unistore.storage.models import Metadata, StorageItem

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code", "")) in _NOT_FOUND_CODES


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class S3Container(Container):
    """Bucket on an S3-compatible store."""

    def __init__(self, client: Any, bucket: str) -> None:
        self._s3 = client
        self._bucket = bucket

    @property
    def name(self) -> str:
        return self._bucket

    def _backend_error(self, action: str, key: str, e: Exception) -> StorageBackendError:
        return StorageBackendError(
            message=f"S3 {action} failed: {e}",
            bucket=self._bucket,
            key=key,
            cause=e,
        )

    def _head(self, key: str) -> dict[str, Any]:
        try:
            return self._s3.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=self._bucket, key=key) from e
            raise self._backend_error("head_object", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("head_object", key, e) from e

    def _open(self, key: str) -> BinaryIO:
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=self._bucket, key=key) from e
            raise self._backend_error("get_object", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("get_object", key, e) from e
        return resp["Body"]

    def item(self, key: str) -> StorageItem:
        resp = self._head(key)
        metadata: Metadata = {
            str(k).lower(): str(v) for k, v in (resp.get("Metadata") or {}).items()
        }
        if resp.get("ContentType"):
            metadata["content-type"] = resp["ContentType"]
        if resp.get("CacheControl"):
            metadata["cache-control"] = resp["CacheControl"]

        return StorageItem(
            id=key,
            name=key.rstrip("/").rsplit("/", 1)[-1],
            size=int(resp.get("ContentLength") or 0),
            etag=resp.get("ETag") or "",
            last_modified=_as_utc(resp.get("LastModified")),
            metadata_loader=lambda: dict(metadata),
            opener=functools.partial(self._open, key),
        )

    def items(self, prefix: str, marker: str, limit: int) -> tuple[list[StorageItem], str]:
        kwargs: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix, "MaxKeys": limit}
        if marker:
            kwargs["StartAfter"] = marker
        try:
            resp = self._s3.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("list_objects_v2", prefix, e) from e

        items = [
            StorageItem(
                id=entry["Key"],
                name=entry["Key"].rstrip("/").rsplit("/", 1)[-1],
                size=int(entry.get("Size") or 0),
                etag=entry.get("ETag") or "",
                last_modified=_as_utc(entry.get("LastModified")),
                opener=functools.partial(self._open, entry["Key"]),
            )
            for entry in resp.get("Contents") or []
        ]
        next_marker = items[-1].id if items and resp.get("IsTruncated") else ""
        return items, next_marker

    def put(self, key: str, stream: BinaryIO, length: int, metadata: Metadata) -> None:
        user_metadata = {
            str(k): str(v)
            for k, v in metadata.items()
            if k not in ("content-type", "cache-control")
        }
        kwargs: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": stream,
            "ContentLength": length,
            "Metadata": user_metadata,
        }
        if metadata.get("content-type"):
            kwargs["ContentType"] = str(metadata["content-type"])
        if metadata.get("cache-control"):
            kwargs["CacheControl"] = str(metadata["cache-control"])
        try:
            self._s3.put_object(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("put_object", key, e) from e

    def remove_item(self, key: str) -> None:
        try:
            self._s3.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=self._bucket, key=key) from e
            raise self._backend_error("delete_object", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("delete_object", key, e) from e


class S3Location(Location):
    """Connection to an S3-compatible endpoint."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        region: str = "",
        endpoint: str = "",
        *,
        client: Any | None = None,
    ) -> None:
        self._region = region or None
        if client is not None:
            self._s3 = client
            return

        cfg = Config(
            retries={"max_attempts": 8, "mode": "standard"},
            region_name=self._region,
        )
        try:
            self._s3 = boto3.client(
                "s3",
                aws_access_key_id=access_key or None,
                aws_secret_access_key=secret_key or None,
                endpoint_url=endpoint or None,
                config=cfg,
            )
        except (BotoCoreError, ValueError) as e:
            raise BackendUnavailableError(f"S3 client init failed: {e}", cause=e) from e

    @property
    def backend_name(self) -> str:
        return "s3"

    def container(self, name: str) -> Container:
        try:
            self._s3.head_bucket(Bucket=name)
        except ClientError as e:
            if _is_not_found(e):
                raise ContainerNotFoundError(bucket=name) from e
            raise StorageBackendError(
                message=f"S3 head_bucket failed: {e}", bucket=name, cause=e
            ) from e
        except BotoCoreError as e:
            raise StorageBackendError(
                message=f"S3 head_bucket failed: {e}", bucket=name, cause=e
            ) from e
        return S3Container(self._s3, name)

    def create_container(self, name: str) -> Container:
        kwargs: dict[str, Any] = {"Bucket": name}
        if self._region and self._region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            self._s3.create_bucket(**kwargs)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise StorageBackendError(
                    message=f"S3 create_bucket failed: {e}", bucket=name, cause=e
                ) from e
        except BotoCoreError as e:
            raise StorageBackendError(
                message=f"S3 create_bucket failed: {e}", bucket=name, cause=e
            ) from e
        logger.info("Created S3 bucket %s", name)
        return S3Container(self._s3, name)
