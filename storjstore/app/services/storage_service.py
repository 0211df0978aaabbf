"""Storage service: the adapter operations applications call.

This module provides the application service layer over a Storj bucket:
chunked uploads and downloads, metadata updates, composition, deletion,
existence checks, and signed URL generation.
"""

from __future__ import annotations

from typing import IO, Callable, Iterator, Mapping, Sequence
from urllib.parse import quote

from storjstore.app.services.base import (
    BaseService,
    IntegrityError,
    ObjectNotFoundError,
    ServiceError,
)
from storjstore.app.transfer.checksum import checksum_matches
from storjstore.app.transfer.compose import compose_objects
from storjstore.app.transfer.download import ObjectDownloader
from storjstore.app.transfer.metadata import (
    custom_metadata_headers,
    merge_metadata,
    resolve_content_disposition,
)
from storjstore.app.transfer.upload import ObjectUploader
from storjstore.common.config import Settings, get_settings
from storjstore.infra.observability.instrumentation import instrument
from storjstore.infra.storage.client import (
    ByteRange,
    ObjectInfo,
    ObjectKeyNotFoundError,
    StorageBackend,
)
from storjstore.infra.storage.s3_client import S3StorageBackend


class StorageBackendNotConfiguredError(ServiceError):
    """Raised when the storage backend is not properly configured."""


def _read_payload(payload: bytes | IO[bytes]) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    return payload.read()


def _as_byte_range(value: range | ByteRange) -> ByteRange:
    if isinstance(value, ByteRange):
        return value
    return ByteRange.from_range(value)


class StorageService(BaseService):
    """Application service for objects stored in one Storj bucket.

    The backend is created once and held for the lifetime of the service;
    settings are read once at construction.
    """

    def __init__(
        self,
        *,
        backend: StorageBackend | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        super().__init__(backend or self._build_backend(settings), settings)
        if not self.bucket:
            raise StorageBackendNotConfiguredError("STORJ_BUCKET is required")

        self._uploader = ObjectUploader(
            self._backend,
            part_size=settings.multipart_upload_threshold,
            chunk_size=settings.STORJ_UPLOAD_CHUNK_SIZE,
        )
        self._downloader = ObjectDownloader(
            self._backend, chunk_size=settings.STORJ_DOWNLOAD_CHUNK_SIZE
        )

    @staticmethod
    def _build_backend(settings: Settings) -> StorageBackend:
        """Build the gateway backend from configuration."""
        if not settings.S3_ACCESS_KEY_ID or not settings.S3_SECRET_ACCESS_KEY:
            raise StorageBackendNotConfiguredError(
                "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required"
            )
        return S3StorageBackend(settings=settings)

    def upload(
        self,
        key: str,
        payload: bytes | IO[bytes],
        *,
        checksum: str | None = None,
        content_type: str | None = None,
        disposition: str | None = None,
        filename: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Upload ``payload`` under ``key``.

        Args:
            key: Object key in the bucket.
            payload: Bytes, or a binary file object read to its end.
            checksum: Optional base64 MD5 digest the payload must match.
            content_type: MIME type stored with the object.
            disposition: ``attachment`` or ``inline``; used with ``filename``.
            filename: Download filename for the Content-Disposition.
            custom_metadata: Extra key/value pairs stored with the object.

        Raises:
            IntegrityError: If ``checksum`` does not match; nothing is written.
            StorageError: If the transfer fails.
        """
        with instrument("upload", key=key, checksum=checksum):
            contents = _read_payload(payload)
            if checksum and not checksum_matches(contents, checksum):
                raise IntegrityError(f"Checksum mismatch for {key}")

            metadata = merge_metadata(
                custom_metadata,
                content_type=content_type,
                content_disposition=resolve_content_disposition(disposition, filename),
            )
            self._uploader.upload(
                bucket=self.bucket, object_key=key, payload=contents, metadata=metadata
            )

    def update_metadata(
        self,
        key: str,
        *,
        content_type: str | None,
        disposition: str | None = None,
        filename: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Replace the stored metadata of ``key``."""
        with instrument(
            "update_metadata", key=key, content_type=content_type, disposition=disposition
        ):
            metadata = merge_metadata(
                custom_metadata,
                content_type=content_type,
                content_disposition=resolve_content_disposition(disposition, filename),
            )
            with self._object_lookup(key):
                self._backend.update_object_metadata(
                    bucket=self.bucket, object_key=key, metadata=metadata
                )

    def download(
        self,
        key: str,
        on_chunk: Callable[[bytes], None] | None = None,
    ) -> bytes | None:
        """Download ``key``.

        Without ``on_chunk`` the whole object is returned. With it, each
        chunk is passed to ``on_chunk`` as it arrives and ``None`` is
        returned; an empty object produces no calls.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
        """
        if on_chunk is not None:
            with instrument("streaming_download", key=key), self._object_lookup(key):
                self._downloader.stream(
                    bucket=self.bucket, object_key=key, on_chunk=on_chunk
                )
            return None

        with instrument("download", key=key), self._object_lookup(key):
            return self._downloader.read(bucket=self.bucket, object_key=key)

    def iter_download(self, key: str) -> Iterator[bytes]:
        """Generator form of the streaming download."""
        with instrument("streaming_download", key=key), self._object_lookup(key):
            yield from self._downloader.iter_chunks(bucket=self.bucket, object_key=key)

    def download_chunk(self, key: str, byte_range: range | ByteRange) -> bytes:
        """Download part of ``key``, e.g. ``download_chunk(key, range(0, 1024))``."""
        byte_range = _as_byte_range(byte_range)
        with instrument(
            "download_chunk", key=key, range=(byte_range.start, byte_range.end)
        ), self._object_lookup(key):
            return self._downloader.read(
                bucket=self.bucket, object_key=key, byte_range=byte_range
            )

    def compose(
        self,
        source_keys: Sequence[str],
        destination_key: str,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        disposition: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Concatenate ``source_keys`` in order into ``destination_key``."""
        with instrument("compose", key=destination_key, source_keys=list(source_keys)):
            metadata = merge_metadata(
                custom_metadata,
                content_type=content_type,
                content_disposition=resolve_content_disposition(disposition, filename),
            )
            try:
                compose_objects(
                    self._downloader,
                    self._uploader,
                    bucket=self.bucket,
                    source_keys=source_keys,
                    destination_key=destination_key,
                    metadata=metadata,
                )
            except ObjectKeyNotFoundError as exc:
                raise ObjectNotFoundError(str(exc)) from exc

    def delete(self, key: str) -> None:
        """Delete ``key``; deleting a missing object is a no-op."""
        with instrument("delete", key=key):
            try:
                self._backend.delete_object(bucket=self.bucket, object_key=key)
            except ObjectKeyNotFoundError:
                # Already deleted
                pass

    def delete_prefixed(self, prefix: str) -> int:
        """Delete every object whose key starts with ``prefix``.

        Returns:
            Number of objects deleted.
        """
        deleted = 0
        with instrument("delete_prefixed", prefix=prefix) as payload:
            for item in self._backend.list_objects(bucket=self.bucket, prefix=prefix):
                self._backend.delete_object(bucket=self.bucket, object_key=item.key)
                deleted += 1
            payload["deleted"] = deleted
        return deleted

    def exist(self, key: str) -> bool:
        with instrument("exist", key=key) as payload:
            try:
                info = self._backend.stat_object(bucket=self.bucket, object_key=key)
            except ObjectKeyNotFoundError:
                answer = False
            else:
                answer = info.key == key
            payload["exist"] = answer
            return answer

    def stat(self, key: str) -> ObjectInfo:
        """Size and stored metadata of ``key``.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
        """
        with self._object_lookup(key):
            return self._backend.stat_object(bucket=self.bucket, object_key=key)

    def url(
        self,
        key: str,
        *,
        expires_in: int | None = None,
        filename: str | None = None,
        disposition: str | None = None,
        content_type: str | None = None,
    ) -> str:
        """URL to download ``key``.

        Public services return a permanent linksharing URL; private ones a
        presigned URL valid for ``expires_in`` seconds.
        """
        with instrument("url", key=key) as payload:
            if self._settings.STORJ_PUBLIC:
                generated_url = self._public_url(key)
            else:
                generated_url = self._private_url(
                    key,
                    expires_in=expires_in or self._settings.STORAGE_PRESIGN_EXPIRES_SECONDS,
                    filename=filename,
                    disposition=disposition,
                    content_type=content_type,
                )
            payload["url"] = generated_url
            return generated_url

    def _private_url(
        self,
        key: str,
        *,
        expires_in: int,
        filename: str | None,
        disposition: str | None,
        content_type: str | None,
    ) -> str:
        return self._backend.presign_download(
            bucket=self.bucket,
            object_key=key,
            expires_in=expires_in,
            content_disposition=resolve_content_disposition(
                disposition or "inline", filename
            ),
            content_type=content_type,
        )

    def _public_url(self, key: str) -> str:
        access_key = self._settings.S3_ACCESS_KEY_ID
        if not access_key:
            raise StorageBackendNotConfiguredError(
                "S3_ACCESS_KEY_ID is required for public URLs"
            )
        return "/".join(
            [
                self._settings.STORJ_LINK_SHARING_ADDRESS,
                "raw",
                quote(access_key, safe=""),
                quote(self.bucket, safe=""),
                quote(key),
            ]
        )

    def url_for_direct_upload(
        self,
        key: str,
        *,
        content_type: str | None,
        content_length: int,
        checksum: str,
        expires_in: int | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> str:
        """Presigned PUT URL for uploading ``key`` without going through the service."""
        with instrument("url_for_direct_upload", key=key, checksum=checksum) as payload:
            generated_url = self._backend.presign_upload(
                bucket=self.bucket,
                object_key=key,
                expires_in=expires_in or self._settings.STORAGE_PRESIGN_EXPIRES_SECONDS,
                content_type=content_type,
                content_length=content_length,
                checksum=checksum,
                metadata=custom_metadata,
            )
            payload["url"] = generated_url
            return generated_url

    def headers_for_direct_upload(
        self,
        key: str,
        *,
        content_type: str | None,
        checksum: str,
        filename: str | None = None,
        disposition: str | None = None,
        custom_metadata: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Headers a client must send with the direct upload PUT request."""
        headers: dict[str, str] = {}
        if content_type:
            headers["Content-Type"] = content_type
        headers["Content-MD5"] = checksum
        content_disposition = resolve_content_disposition(disposition, filename)
        if content_disposition:
            headers["Content-Disposition"] = content_disposition
        headers.update(custom_metadata_headers(custom_metadata or {}))
        return headers
