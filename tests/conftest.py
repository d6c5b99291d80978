"""Pytest configuration and fixtures for unistore tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.fixtures.storage import TEST_BUCKET
from unistore.storage.backends import dial
from unistore.storage.models import StorageConfig, StorageKind
from unistore.storage.operations import ObjectStorage
from unistore.storage.registry import ClientRegistry
from unistore.testing import MemoryLocation, memory_dialer


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Root directory for local backends."""
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def local_meta_config(storage_root: Path) -> StorageConfig:
    return StorageConfig(kind=StorageKind.LOCAL_META, root_path=str(storage_root))


@pytest.fixture
def local_config(storage_root: Path) -> StorageConfig:
    return StorageConfig(kind=StorageKind.LOCAL, root_path=str(storage_root))


@pytest.fixture
def s3_config() -> StorageConfig:
    return StorageConfig(
        kind=StorageKind.S3,
        bucket=TEST_BUCKET,
        access_key="AKIATEST",
        secret_access_key="secret-test-key",
        region="eu-west-1",
    )


@pytest.fixture
def b2_config() -> StorageConfig:
    return StorageConfig(
        kind=StorageKind.B2,
        bucket=TEST_BUCKET,
        account_id="b2-account",
        application_key="b2-app-key",
    )


@pytest.fixture
def memory_location() -> MemoryLocation:
    """In-memory location with the test bucket already created."""
    location = MemoryLocation()
    location.create_container(TEST_BUCKET)
    return location


@pytest.fixture
def registry(memory_location: MemoryLocation) -> ClientRegistry:
    """Registry serving s3/b2 from memory and local kinds from disk."""
    return ClientRegistry(dialer=memory_dialer(memory_location, fallback=dial))


@pytest.fixture
def storage(registry: ClientRegistry) -> ObjectStorage:
    return ObjectStorage(registry)

