from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from storjstore.common.config import Settings
from storjstore.infra.storage.client import ObjectKeyNotFoundError, StorageBackend


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class IntegrityError(ServiceError):
    """Raised when uploaded bytes do not match the declared checksum."""


class ObjectNotFoundError(ServiceError):
    """Raised when the requested object does not exist."""


class BaseService:
    """Holds the backend and settings shared by storage operations."""

    def __init__(self, backend: StorageBackend, settings: Settings):
        self._backend = backend
        self._settings = settings

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def bucket(self) -> str:
        return self._settings.STORJ_BUCKET

    @contextmanager
    def _object_lookup(self, key: str) -> Generator[None, None, None]:
        """Translate the backend's missing-key signal for ``key``."""
        try:
            yield
        except ObjectKeyNotFoundError as exc:
            raise ObjectNotFoundError(f"Object not found: {key}") from exc
