"""Backend capability interface.

A Location is a dialed connection to one backend; a Container is a handle
bound to one bucket on that backend. Containers are owned by the client
registry: operations borrow them and never close them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO

from unistore.storage.models import Metadata, StorageItem


class Container(ABC):
    """Bucket-bound handle through which items are read, written and listed."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the bucket/container name."""
        ...

    @abstractmethod
    def item(self, key: str) -> StorageItem:
        """Fetch a single item.

        Args:
            key: Native key of the item.

        Returns:
            The item. Content is not read until StorageItem.open() is called.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageBackendError: If the backend cannot complete the lookup.
        """
        ...

    @abstractmethod
    def items(self, prefix: str, marker: str, limit: int) -> tuple[list[StorageItem], str]:
        """Enumerate items whose key starts with ``prefix``.

        Args:
            prefix: Native key prefix to filter by ("" lists everything).
            marker: Continue after this key ("" starts from the beginning).
            limit: Maximum number of items to return.

        Returns:
            Tuple of (items ordered by key, next marker). The next marker is
            empty when the listing is complete.

        Raises:
            StorageBackendError: If the backend cannot complete the listing.
        """
        ...

    @abstractmethod
    def put(self, key: str, stream: BinaryIO, length: int, metadata: Metadata) -> None:
        """Write an item.

        Args:
            key: Native key of the item.
            stream: Content stream to read ``length`` bytes from.
            length: Declared content length.
            metadata: Flat metadata map produced by the metadata translator.

        Raises:
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete an item.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...


class Location(ABC):
    """A dialed backend connection."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @abstractmethod
    def container(self, name: str) -> Container:
        """Bind to an existing container.

        Raises:
            ContainerNotFoundError: If the container does not exist.
            StorageBackendError: If the lookup fails for another reason.
        """
        ...

    @abstractmethod
    def create_container(self, name: str) -> Container:
        """Create a container, returning the existing one if already present.

        Raises:
            StorageBackendError: If the container cannot be created.
        """
        ...
