from __future__ import annotations

import pytest

from storjstore.app.services.storage_service import StorageService
from storjstore.common.config import MEBIBYTE, Settings, get_settings

from tests.services.mock_storage import InMemoryStorageBackend


@pytest.fixture(autouse=True)
def reset_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        STORJ_BUCKET="test-bucket",
        STORJ_UPLOAD_CHUNK_SIZE=MEBIBYTE,
        STORJ_DOWNLOAD_CHUNK_SIZE=MEBIBYTE,
        S3_ACCESS_KEY_ID="test-access-key",
        S3_SECRET_ACCESS_KEY="test-secret",
    )


@pytest.fixture
def backend() -> InMemoryStorageBackend:
    return InMemoryStorageBackend()


@pytest.fixture
def service(backend, settings) -> StorageService:
    return StorageService(backend=backend, settings=settings)
