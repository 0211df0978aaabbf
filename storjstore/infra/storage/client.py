"""Storage backend protocol and data types.

This module defines the narrow capability interface the transfer engine
needs from an object storage backend: upload sessions (single-part and
multipart), download sessions, and basic object management.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Protocol


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ObjectKeyNotFoundError(StorageError):
    """Raised when the requested object key does not exist in the bucket."""


class InvalidRangeError(ValueError):
    """Raised when a byte range runs past the end of the object."""


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ByteRange:
    """A contiguous byte range of an object, ``length`` bytes from ``start``."""

    start: int
    length: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("range start must not be negative")
        if self.length < 0:
            raise ValueError("range length must not be negative")

    @property
    def end(self) -> int:
        """Exclusive end offset."""
        return self.start + self.length

    @classmethod
    def from_range(cls, value: range) -> "ByteRange":
        if value.step != 1:
            raise ValueError("byte ranges must have a step of 1")
        return cls(start=value.start, length=len(value))

    def to_http_header(self) -> str:
        return f"bytes={self.start}-{self.end - 1}"


@dataclass(frozen=True, slots=True)
class ObjectInfo:
    """Metadata of a stored object."""

    key: str
    size_bytes: int
    custom_metadata: dict[str, str] = field(default_factory=dict)
    etag: str | None = None


class PartUploadSession(Protocol):
    """A writable stream for one part of a multipart upload."""

    def write(self, data: bytes, length: int) -> int:
        """Write up to ``length`` bytes of ``data``.

        Returns:
            The number of bytes actually accepted, which may be fewer than
            requested.
        """
        ...

    def commit(self) -> None:
        ...

    def close(self) -> None:
        """Release the session. Uncommitted data is discarded."""
        ...


class ObjectUploadSession(PartUploadSession, Protocol):
    """A writable stream for a single-part object upload."""

    def set_custom_metadata(self, metadata: Mapping[str, str]) -> None:
        ...


class DownloadSession(Protocol):
    """A readable stream over an object or a byte range of it."""

    @property
    def total_length(self) -> int:
        """Number of bytes this session is expected to deliver."""
        ...

    def read(self, max_length: int) -> tuple[bytes, bool]:
        """Read up to ``max_length`` bytes.

        Returns:
            Tuple of (bytes read, end-of-stream flag).
        """
        ...

    def close(self) -> None:
        ...


class StorageBackend(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here and raise
    ObjectKeyNotFoundError for missing keys and StorageError for any
    other failure.
    """

    def open_upload(self, *, bucket: str, object_key: str) -> ObjectUploadSession:
        """Open a single-part upload session for ``object_key``."""
        ...

    def begin_multipart_upload(
        self, *, bucket: str, object_key: str
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.
        """
        ...

    def open_part_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
    ) -> PartUploadSession:
        """Open a session for writing part ``part_number`` (1-based)."""
        ...

    def commit_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        metadata: Mapping[str, str],
    ) -> None:
        """Combine all committed parts into the final object."""
        ...

    def open_download(
        self,
        *,
        bucket: str,
        object_key: str,
        byte_range: ByteRange | None = None,
    ) -> DownloadSession:
        """Open a download session for the whole object or a byte range.

        Raises:
            ObjectKeyNotFoundError: If the object doesn't exist.
            InvalidRangeError: If the range runs past the end of the object.
            StorageError: If the request fails.
        """
        ...

    def stat_object(self, *, bucket: str, object_key: str) -> ObjectInfo:
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        ...

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[ObjectInfo]:
        """Lazily iterate over objects whose key starts with ``prefix``."""
        ...

    def update_object_metadata(
        self,
        *,
        bucket: str,
        object_key: str,
        metadata: Mapping[str, str],
    ) -> None:
        """Replace the metadata stored with an object."""
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        content_disposition: str | None = None,
        content_type: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        ...

    def presign_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        content_type: str | None,
        content_length: int,
        checksum: str,
        metadata: Mapping[str, str] | None = None,
    ) -> str:
        """Generate a presigned URL for uploading an object with a PUT request."""
        ...
