from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

MEBIBYTE = 1024 * 1024
# Storj (like S3) rejects multipart parts smaller than 5 MiB, except the last one.
MULTIPART_UPLOAD_THRESHOLD = 5 * MEBIBYTE

DEFAULT_S3_ENDPOINT_URL = "https://gateway.storjshare.io"
DEFAULT_LINK_SHARING_ADDRESS = "https://link.storjshare.io"


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _as_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass(frozen=True)
class Settings:
    STORJ_BUCKET: str = ""
    STORJ_UPLOAD_CHUNK_SIZE: int = MULTIPART_UPLOAD_THRESHOLD
    STORJ_DOWNLOAD_CHUNK_SIZE: int = MULTIPART_UPLOAD_THRESHOLD
    STORJ_MULTIPART_UPLOAD_THRESHOLD: int = MULTIPART_UPLOAD_THRESHOLD
    STORJ_LINK_SHARING_ADDRESS: str = DEFAULT_LINK_SHARING_ADDRESS
    STORJ_PUBLIC: bool = False
    STORAGE_PRESIGN_EXPIRES_SECONDS: int = 300
    S3_ENDPOINT_URL: str = DEFAULT_S3_ENDPOINT_URL
    S3_REGION: str = "us-1"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_ADDRESSING_STYLE: str = "path"
    S3_USE_SSL: bool = True
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = None
    CORS_ENABLED: bool = False
    CORS_ORIGINS: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.STORJ_MULTIPART_UPLOAD_THRESHOLD <= 0:
            raise ValueError("STORJ_MULTIPART_UPLOAD_THRESHOLD must be positive.")
        if self.STORAGE_PRESIGN_EXPIRES_SECONDS <= 0:
            raise ValueError("STORAGE_PRESIGN_EXPIRES_SECONDS must be positive.")

    @property
    def multipart_upload_threshold(self) -> int:
        """Configured part size, never below the network's minimum part size."""
        return max(self.STORJ_MULTIPART_UPLOAD_THRESHOLD, MULTIPART_UPLOAD_THRESHOLD)

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            STORJ_BUCKET=os.environ.get("STORJ_BUCKET", cls.STORJ_BUCKET),
            STORJ_UPLOAD_CHUNK_SIZE=_as_int(
                os.environ.get("STORJ_UPLOAD_CHUNK_SIZE"), cls.STORJ_UPLOAD_CHUNK_SIZE
            ),
            STORJ_DOWNLOAD_CHUNK_SIZE=_as_int(
                os.environ.get("STORJ_DOWNLOAD_CHUNK_SIZE"),
                cls.STORJ_DOWNLOAD_CHUNK_SIZE,
            ),
            STORJ_MULTIPART_UPLOAD_THRESHOLD=_as_int(
                os.environ.get("STORJ_MULTIPART_UPLOAD_THRESHOLD"),
                cls.STORJ_MULTIPART_UPLOAD_THRESHOLD,
            ),
            STORJ_LINK_SHARING_ADDRESS=os.environ.get(
                "STORJ_LINK_SHARING_ADDRESS", cls.STORJ_LINK_SHARING_ADDRESS
            ).rstrip("/"),
            STORJ_PUBLIC=_as_bool(os.environ.get("STORJ_PUBLIC"), cls.STORJ_PUBLIC),
            STORAGE_PRESIGN_EXPIRES_SECONDS=_as_int(
                os.environ.get("STORAGE_PRESIGN_EXPIRES_SECONDS"),
                cls.STORAGE_PRESIGN_EXPIRES_SECONDS,
            ),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL", cls.S3_ENDPOINT_URL),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
