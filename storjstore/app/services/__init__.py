from .base import BaseService, IntegrityError, ObjectNotFoundError, ServiceError
from .storage_service import StorageBackendNotConfiguredError, StorageService

__all__ = [
    "BaseService",
    "IntegrityError",
    "ObjectNotFoundError",
    "ServiceError",
    "StorageBackendNotConfiguredError",
    "StorageService",
]
