"""Backend parameter translation.

Maps a logical StorageConfig onto the parameter set its backend driver
expects. Each kind has its own constructor and populates only the fields
that backend reads. Missing values are not validated here; they surface
when the backend is dialed.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass

from unistore.storage.models import StorageConfig, StorageKind


@dataclass(frozen=True)
class LocalParameters:
    root_path: str
    allow_metadata: bool = True


@dataclass(frozen=True)
class LocalMetaParameters:
    root_path: str


@dataclass(frozen=True)
class HttpParameters:
    """Parameters for the read-only HTTP backend.

    Attributes:
        url: Base URL (may contain ``{bucket}`` and ``{key}`` placeholders).
        headers: JSON-serialized request headers forwarded on every call.
    """

    url: str
    headers: str = "{}"


@dataclass(frozen=True)
class S3Parameters:
    access_key: str
    secret_key: str
    region: str
    endpoint: str


@dataclass(frozen=True)
class B2Parameters:
    account_id: str
    application_key: str


BackendParameters = (
    LocalParameters | LocalMetaParameters | HttpParameters | S3Parameters | B2Parameters
)


def _local(config: StorageConfig) -> LocalParameters:
    return LocalParameters(root_path=config.root_path, allow_metadata=True)


def _local_meta(config: StorageConfig) -> LocalMetaParameters:
    return LocalMetaParameters(root_path=config.root_path)


def _http(config: StorageConfig) -> HttpParameters:
    return HttpParameters(url=config.url, headers=json.dumps(config.headers, sort_keys=True))


def _s3(config: StorageConfig) -> S3Parameters:
    return S3Parameters(
        access_key=config.access_key,
        secret_key=config.secret_access_key,
        region=config.region,
        endpoint=config.endpoint,
    )


def _b2(config: StorageConfig) -> B2Parameters:
    return B2Parameters(account_id=config.account_id, application_key=config.application_key)


_TRANSLATORS: dict[StorageKind, Callable[[StorageConfig], BackendParameters]] = {
    StorageKind.LOCAL: _local,
    StorageKind.LOCAL_META: _local_meta,
    StorageKind.HTTP: _http,
    StorageKind.S3: _s3,
    StorageKind.B2: _b2,
}


def build_parameters(config: StorageConfig) -> BackendParameters:
    """Translate a storage configuration into backend parameters."""
    return _TRANSLATORS[config.kind](config)
