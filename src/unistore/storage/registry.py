"""Client registry: one cached backend container per storage configuration.

Lookups share a read lock; the exclusive lock is held only for the map
write, never while dialing. Two concurrent misses for the same configuration
may both dial; the map converges on a single entry.

Entries are keyed by the configuration hash together with the bound bucket
name, and are never evicted or refreshed for the lifetime of the registry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from unistore.storage.backends import Dialer, dial
from unistore.storage.container import Container
from unistore.storage.errors import (
    BackendUnavailableError,
    ContainerNotFoundError,
    ObjectStorageError,
    StorageBackendError,
)
from unistore.storage.models import StorageConfig
from unistore.storage.params import build_parameters

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer.

    No writer preference: a steady stream of readers can delay a waiting
    writer.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ClientRegistry:
    """Caches live backend containers per (StorageConfig.hash, bucket).

    Example:
        registry = ClientRegistry()
        container = registry.resolve(config, "images")
        item = container.item("photos/cat.jpg")
    """

    def __init__(self, dialer: Dialer = dial) -> None:
        """Initialize the registry.

        Args:
            dialer: Function connecting a storage kind with its parameters.
                Defaults to the built-in backend drivers.
        """
        self._dialer = dialer
        self._cache: dict[tuple[str, str], Container] = {}
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._cache)

    def __contains__(self, config: object) -> bool:
        if not isinstance(config, StorageConfig):
            return False
        wanted = config.hash
        with self._lock.read():
            return any(config_hash == wanted for config_hash, _ in self._cache)

    def resolve(self, config: StorageConfig, bucket: str = "") -> Container:
        """Return the container for a configuration, dialing on first use.

        Args:
            config: Storage configuration.
            bucket: Logical bucket, used when the configuration names none.
                The configuration hash and the resulting bucket name form
                the cache key.

        Returns:
            The cached (or newly created) container.

        Raises:
            BackendUnavailableError: If the backend cannot be dialed.
            StorageBackendError: If the container cannot be resolved.
        """
        bucket_name = config.bucket or bucket
        cache_key = (config.hash, bucket_name)
        with self._lock.read():
            cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        container = self._connect(config, bucket_name)

        with self._lock.write():
            self._cache[cache_key] = container
        return container

    def _connect(self, config: StorageConfig, bucket_name: str) -> Container:
        log_fields = config.log_fields()
        try:
            location = self._dialer(config.kind, build_parameters(config))
        except BackendUnavailableError:
            logger.warning("Storage dial failed", extra=log_fields)
            raise
        except ObjectStorageError as e:
            logger.warning("Storage dial failed", extra={**log_fields, "error": str(e)})
            raise BackendUnavailableError(str(e), bucket=bucket_name, cause=e) from e

        try:
            return location.container(bucket_name)
        except ContainerNotFoundError:
            if not config.kind.is_local:
                logger.info(
                    "Storage container not found",
                    extra={**log_fields, "bucket": bucket_name},
                )
                raise
            logger.info("Creating local container", extra={**log_fields, "bucket": bucket_name})
            return location.create_container(bucket_name)
        except StorageBackendError:
            raise
        except ObjectStorageError as e:
            raise StorageBackendError(
                message=f"Container resolution failed: {e}",
                bucket=bucket_name,
                cause=e,
            ) from e
