"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends.
The bundled implementation talks to Storj through its S3-compatible gateway.
"""

from .client import (
    ByteRange,
    DownloadSession,
    MultipartUpload,
    ObjectInfo,
    ObjectKeyNotFoundError,
    ObjectUploadSession,
    PartUploadSession,
    StorageBackend,
    StorageError,
)

__all__ = [
    "ByteRange",
    "DownloadSession",
    "MultipartUpload",
    "ObjectInfo",
    "ObjectKeyNotFoundError",
    "ObjectUploadSession",
    "PartUploadSession",
    "StorageBackend",
    "StorageError",
]
