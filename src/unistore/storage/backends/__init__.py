"""Backend drivers and the dial entry point.

dial() picks the driver for a storage kind and connects it with the
parameters produced by unistore.storage.params.build_parameters().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from unistore.storage.backends.b2 import B2Location
from unistore.storage.backends.http import HttpLocation
from unistore.storage.backends.local import LocalLocation
from unistore.storage.backends.local_meta import LocalMetaLocation
from unistore.storage.backends.s3 import S3Location
from unistore.storage.container import Location
from unistore.storage.errors import BackendUnavailableError, ObjectStorageError
from unistore.storage.models import StorageKind
from unistore.storage.params import (
    B2Parameters,
    BackendParameters,
    HttpParameters,
    LocalMetaParameters,
    LocalParameters,
    S3Parameters,
)

logger = logging.getLogger(__name__)

Dialer = Callable[[StorageKind, BackendParameters], Location]


def _dial_local(params: LocalParameters) -> Location:
    return LocalLocation(params.root_path, allow_metadata=params.allow_metadata)


def _dial_local_meta(params: LocalMetaParameters) -> Location:
    return LocalMetaLocation(params.root_path)


def _dial_http(params: HttpParameters) -> Location:
    return HttpLocation(params.url, params.headers)


def _dial_s3(params: S3Parameters) -> Location:
    return S3Location(params.access_key, params.secret_key, params.region, params.endpoint)


def _dial_b2(params: B2Parameters) -> Location:
    return B2Location(params.account_id, params.application_key)


_DIALERS: dict[StorageKind, Callable[[Any], Location]] = {
    StorageKind.LOCAL: _dial_local,
    StorageKind.LOCAL_META: _dial_local_meta,
    StorageKind.HTTP: _dial_http,
    StorageKind.S3: _dial_s3,
    StorageKind.B2: _dial_b2,
}


def dial(kind: StorageKind, params: BackendParameters) -> Location:
    """Connect to a backend.

    Args:
        kind: Storage kind selecting the driver.
        params: Parameters built for that kind.

    Returns:
        A connected Location.

    Raises:
        BackendUnavailableError: If the driver cannot be initialized.
    """
    driver = _DIALERS.get(kind)
    if driver is None:
        raise BackendUnavailableError(f"No driver for storage kind {kind!r}")
    try:
        location = driver(params)
    except BackendUnavailableError:
        raise
    except ObjectStorageError as e:
        raise BackendUnavailableError(str(e), cause=e) from e
    logger.debug("Dialed %s backend", location.backend_name)
    return location


__all__ = [
    "B2Location",
    "Dialer",
    "HttpLocation",
    "LocalLocation",
    "LocalMetaLocation",
    "S3Location",
    "dial",
]
