"""Local filesystem backend with JSON metadata sidecars.

Layout:
    {root_path}/{bucket}/{key}              # content (or directory)
    {root_path}/{bucket}/{key}.meta.json    # metadata sidecar

Sidecars are written atomically and never show up as items.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from unistore.storage.backends.local import LocalContainer, LocalLocation
from unistore.storage.errors import StorageBackendError
from unistore.storage.models import Metadata

logger = logging.getLogger(__name__)

_METADATA_SUFFIX = ".meta.json"


def _sidecar(path: Path) -> Path:
    return path.with_name(f"{path.name}{_METADATA_SUFFIX}")


class LocalMetaContainer(LocalContainer):
    """Directory-backed container keeping metadata in sidecar files."""

    def _is_internal(self, filename: str) -> bool:
        return filename.endswith(_METADATA_SUFFIX) or super()._is_internal(filename)

    def _read_metadata(self, path: Path) -> Metadata:
        meta_file = _sidecar(path)
        if not meta_file.exists():
            return {}
        try:
            data = json.loads(meta_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageBackendError(
                message=f"Failed to read metadata: {e}",
                bucket=self.name,
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise StorageBackendError(message="Metadata sidecar is not an object", bucket=self.name)
        return {
            str(k): v for k, v in data.items() if isinstance(v, str | bool | int | float)
        }

    def _write_metadata(self, path: Path, metadata: Metadata) -> None:
        if not metadata:
            self._remove_metadata(path)
            return
        meta_file = _sidecar(path)
        tmp_file = path.with_name(f".{path.name}.meta.{uuid.uuid4().hex}.tmp")
        try:
            tmp_file.write_text(json.dumps(metadata, indent=2, sort_keys=True), encoding="utf-8")
            tmp_file.replace(meta_file)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write metadata: {e}",
                bucket=self.name,
                cause=e,
            ) from e

    def _remove_metadata(self, path: Path) -> None:
        try:
            _sidecar(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove metadata sidecar for %s: %s", path.name, e)


class LocalMetaLocation(LocalLocation):
    """Filesystem root whose containers keep metadata in sidecar files."""

    container_class = LocalMetaContainer

    def __init__(self, root_path: str) -> None:
        super().__init__(root_path, allow_metadata=True)

    @property
    def backend_name(self) -> str:
        return "local-meta"
