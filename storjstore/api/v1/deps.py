from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Header, HTTPException

from storjstore.app.services.storage_service import (
    StorageBackendNotConfiguredError,
    StorageService,
)
from storjstore.common.config import get_settings

logger = logging.getLogger("http")


@lru_cache(maxsize=1)
def _storage_service() -> StorageService:
    return StorageService(settings=get_settings())


def get_storage_service() -> StorageService:
    try:
        return _storage_service()
    except StorageBackendNotConfiguredError as exc:
        logger.error("storage_backend_not_configured detail=%s", exc)
        raise HTTPException(
            status_code=503,
            detail={
                "message": str(exc),
                "error_code": "storage_not_configured",
            },
        ) from exc


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if not settings.API_KEY_ENABLED:
        return
    if not settings.API_KEY:
        logger.error("api_key_not_configured detail=API_KEY is empty")
        raise HTTPException(
            status_code=503,
            detail={
                "message": "API_KEY_ENABLED is set but API_KEY is empty",
                "error_code": "api_key_not_configured",
            },
        )
    if x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
