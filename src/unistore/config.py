"""Bucket configuration loader.

Maps logical bucket names to StorageConfig values from a YAML file:

    buckets:
      media:
        kind: s3
        bucket: media-prod
        region: eu-west-1
        access_key: AKIA...
        secret_access_key: ...
      assets:
        kind: local-meta
        root_path: /srv/assets

Fails closed: a missing file, invalid YAML or an unknown field raises
StorageConfigError.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from unistore.storage.models import FileObjectRef, StorageConfig

CONFIG_PATH_ENV_VAR = "UNISTORE_CONFIG_PATH"


class StorageConfigError(Exception):
    """Raised when bucket configuration cannot be loaded or resolved."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)


class StorageSettings(BaseModel):
    """Logical bucket name to storage configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    buckets: dict[str, StorageConfig] = Field(default_factory=dict)

    def config_for(self, bucket: str) -> StorageConfig:
        try:
            return self.buckets[bucket]
        except KeyError:
            raise StorageConfigError(f"No storage configured for bucket: {bucket}") from None

    def object_ref(self, bucket: str, key: str, uri: str | None = None) -> FileObjectRef:
        """Build the object reference for a logical (bucket, key) pair.

        Raises:
            StorageConfigError: If the bucket is not configured.
        """
        return FileObjectRef(
            bucket=bucket,
            key=key,
            storage=self.config_for(bucket),
            uri=uri or "",
        )


def _resolve_config_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if env_path and env_path.strip():
        return Path(env_path.strip())
    raise StorageConfigError(
        f"No storage configuration path given. Set {CONFIG_PATH_ENV_VAR} to a YAML file."
    )


def load_storage_settings(path: str | Path | None = None) -> StorageSettings:
    """Load bucket configuration from YAML.

    Args:
        path: Configuration file. Defaults to UNISTORE_CONFIG_PATH.

    Returns:
        Parsed settings.

    Raises:
        StorageConfigError: If the file is missing, unreadable, or invalid.
    """
    config_path = _resolve_config_path(path)
    path_str = str(config_path)

    if not config_path.is_file():
        raise StorageConfigError(f"Storage configuration not found: {path_str}", path=path_str)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise StorageConfigError(f"Failed to read storage configuration: {e}", path=path_str) from e

    try:
        raw: Any = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise StorageConfigError(
            f"Invalid YAML in storage configuration: {e}", path=path_str
        ) from e

    if raw is None:
        return StorageSettings()
    if not isinstance(raw, dict):
        raise StorageConfigError(
            f"Storage configuration must be a mapping, got {type(raw).__name__}", path=path_str
        )

    try:
        return StorageSettings.model_validate(raw)
    except ValidationError as e:
        raise StorageConfigError(f"Invalid storage configuration: {e}", path=path_str) from e
