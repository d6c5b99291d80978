"""Local filesystem storage backend.

Each container is a directory under the configured root path:
    {root_path}/{bucket}/{key}

Item metadata is kept in extended attributes (``user.unistore.<name>``) when
the filesystem supports them. Writes go through a temporary file that is
atomically renamed into place.
"""

from __future__ import annotations

import errno
import functools
import json
import logging
import os
import shutil
import stat
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO

from unistore.storage.container import Container, Location
from unistore.storage.errors import (
    BackendUnavailableError,
    ContainerNotFoundError,
    ObjectNotFoundError,
    PathTraversalError,
    StorageBackendError,
)
from unistore.storage.models import Metadata, MetadataValue, StorageItem

logger = logging.getLogger(__name__)

_XATTR_PREFIX = "user.unistore."
_XATTR_UNSUPPORTED = {errno.ENOTSUP, errno.EOPNOTSUPP, errno.EPERM}
_TMP_SUFFIX = ".tmp"


def _is_path_traversal(key: str) -> bool:
    """Check if a key could escape the container directory.

    Detects null bytes, backslashes and ".." segments. Leading separators are
    allowed: native keys are always interpreted relative to the container.
    """
    if "\x00" in key or "\\" in key:
        return True
    return any(segment == ".." for segment in key.split("/"))


def _encode_value(value: MetadataValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _etag(st: os.stat_result) -> str:
    return f'"{st.st_mtime_ns:x}-{st.st_size:x}"'


class LocalContainer(Container):
    """Directory-backed container."""

    def __init__(self, base_dir: Path, *, allow_metadata: bool = True) -> None:
        self._base_dir = base_dir
        self._allow_metadata = allow_metadata

    @property
    def name(self) -> str:
        return self._base_dir.name

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _path(self, key: str) -> Path:
        if _is_path_traversal(key):
            raise PathTraversalError(bucket=self.name, key=key)
        clean = key.strip("/")
        return self._base_dir / clean if clean else self._base_dir

    def _is_internal(self, filename: str) -> bool:
        """Files managed by the container itself, hidden from listings."""
        return filename.startswith(".") and filename.endswith(_TMP_SUFFIX)

    def _make_item(self, path: Path, st: os.stat_result) -> StorageItem:
        is_dir = stat.S_ISDIR(st.st_mode)
        item_id = path.relative_to(self._base_dir).as_posix()
        return StorageItem(
            id=item_id,
            name=path.name,
            size=0 if is_dir else st.st_size,
            etag=_etag(st),
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=UTC),
            metadata_loader=functools.partial(self._item_metadata, path, is_dir),
            opener=functools.partial(self._open, path, item_id),
        )

    def _item_metadata(self, path: Path, is_dir: bool) -> Metadata:
        metadata = self._read_metadata(path)
        if is_dir:
            metadata["is_dir"] = True
        return metadata

    def _open(self, path: Path, key: str) -> BinaryIO:
        try:
            return path.open("rb")
        except FileNotFoundError:
            raise ObjectNotFoundError(bucket=self.name, key=key) from None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open item: {e}",
                bucket=self.name,
                key=key,
                cause=e,
            ) from e

    def _read_metadata(self, path: Path) -> Metadata:
        if not self._allow_metadata or not hasattr(os, "listxattr"):
            return {}
        try:
            return {
                name[len(_XATTR_PREFIX) :]: os.getxattr(path, name).decode("utf-8")
                for name in os.listxattr(path)
                if name.startswith(_XATTR_PREFIX)
            }
        except OSError as e:
            if e.errno in _XATTR_UNSUPPORTED:
                return {}
            raise StorageBackendError(
                message=f"Failed to read metadata: {e}",
                bucket=self.name,
                cause=e,
            ) from e

    def _write_metadata(self, path: Path, metadata: Metadata) -> None:
        if not self._allow_metadata or not metadata or not hasattr(os, "setxattr"):
            return
        try:
            for name, value in metadata.items():
                os.setxattr(path, f"{_XATTR_PREFIX}{name}", _encode_value(value).encode("utf-8"))
        except OSError as e:
            if e.errno in _XATTR_UNSUPPORTED:
                logger.warning("Extended attributes unsupported under %s, metadata dropped", path)
                return
            raise StorageBackendError(
                message=f"Failed to write metadata: {e}",
                bucket=self.name,
                cause=e,
            ) from e

    def _remove_metadata(self, path: Path) -> None:
        """Extended attributes go away with the file."""

    def item(self, key: str) -> StorageItem:
        path = self._path(key)
        try:
            st = path.stat()
        except FileNotFoundError:
            raise ObjectNotFoundError(bucket=self.name, key=key) from None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to stat item: {e}",
                bucket=self.name,
                key=key,
                cause=e,
            ) from e

        if key.endswith("/") and not stat.S_ISDIR(st.st_mode):
            raise ObjectNotFoundError(bucket=self.name, key=key)
        if self._is_internal(path.name):
            raise ObjectNotFoundError(bucket=self.name, key=key)

        return self._make_item(path, st)

    def _walk(self, start: Path) -> list[tuple[str, Path]]:
        entries: list[tuple[str, Path]] = []
        for root, dirs, files in os.walk(start):
            root_path = Path(root)
            for name in dirs + files:
                if self._is_internal(name):
                    continue
                path = root_path / name
                entries.append((path.relative_to(self._base_dir).as_posix(), path))
        return entries

    def items(self, prefix: str, marker: str, limit: int) -> tuple[list[StorageItem], str]:
        prefix = prefix.lstrip("/")
        start = self._path(prefix.rsplit("/", 1)[0]) if "/" in prefix else self._base_dir
        if not start.is_dir():
            return [], ""

        try:
            entries = sorted(
                (item_id, path)
                for item_id, path in self._walk(start)
                if item_id.startswith(prefix) and item_id > marker
            )
            page = entries[: max(limit, 0)]
            items = [self._make_item(path, path.stat()) for _, path in page]
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list items: {e}",
                bucket=self.name,
                key=prefix,
                cause=e,
            ) from e

        next_marker = page[-1][0] if page and len(entries) > len(page) else ""
        return items, next_marker

    def put(self, key: str, stream: BinaryIO, length: int, metadata: Metadata) -> None:
        path = self._path(key)
        try:
            if key.endswith("/"):
                path.mkdir(parents=True, exist_ok=True)
                self._write_metadata(path, metadata)
                return
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create directory: {e}",
                bucket=self.name,
                key=key,
                cause=e,
            ) from e

        tmp_file = path.with_name(f".{path.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}")
        try:
            with tmp_file.open("wb") as f:
                shutil.copyfileobj(stream, f)
            tmp_file.replace(path)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write item: {e}",
                bucket=self.name,
                key=key,
                cause=e,
            ) from e

        self._write_metadata(path, metadata)
        logger.debug("Stored item: bucket=%s key=%s length=%d", self.name, key, length)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if not path.exists() or path == self._base_dir:
            raise ObjectNotFoundError(bucket=self.name, key=key)
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete item: {e}",
                bucket=self.name,
                key=key,
                cause=e,
            ) from e
        self._remove_metadata(path)
        logger.debug("Deleted item: bucket=%s key=%s", self.name, key)


class LocalLocation(Location):
    """Filesystem root holding one directory per container."""

    container_class: type[LocalContainer] = LocalContainer

    def __init__(self, root_path: str, *, allow_metadata: bool = True) -> None:
        if not root_path:
            raise BackendUnavailableError("root_path is required for local storage")
        self._root = Path(root_path).resolve()
        self._allow_metadata = allow_metadata

    @property
    def backend_name(self) -> str:
        return "local"

    @property
    def root(self) -> Path:
        return self._root

    def _container_dir(self, name: str) -> Path:
        if not name or "/" in name or _is_path_traversal(name):
            raise PathTraversalError(message="Invalid container name", bucket=name)
        return self._root / name

    def _bind(self, base_dir: Path) -> LocalContainer:
        return self.container_class(base_dir, allow_metadata=self._allow_metadata)

    def container(self, name: str) -> Container:
        base_dir = self._container_dir(name)
        if not base_dir.is_dir():
            raise ContainerNotFoundError(bucket=name)
        return self._bind(base_dir)

    def create_container(self, name: str) -> Container:
        base_dir = self._container_dir(name)
        try:
            base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create container: {e}",
                bucket=name,
                cause=e,
            ) from e
        logger.debug("Created local container %s", name)
        return self._bind(base_dir)
