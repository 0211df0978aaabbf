"""Chunked downloads: buffered, ranged and streaming."""

from __future__ import annotations

from contextlib import closing
from typing import Callable, Iterator

from storjstore.app.transfer.planner import chunk_length
from storjstore.infra.storage.client import ByteRange, StorageBackend, StorageError


class ObjectDownloader:
    """Reads objects from the backend ``chunk_size`` bytes at a time."""

    def __init__(self, backend: StorageBackend, *, chunk_size: int) -> None:
        self._backend = backend
        self._chunk_size = chunk_size

    def iter_chunks(
        self,
        *,
        bucket: str,
        object_key: str,
        byte_range: ByteRange | None = None,
    ) -> Iterator[bytes]:
        """Yield the object (or ``byte_range`` of it) chunk by chunk.

        Empty reads are never yielded, so a 0-byte object yields nothing.
        The download session is closed when the generator finishes, fails
        or is closed early by the consumer.

        Raises:
            ObjectKeyNotFoundError: If the object doesn't exist.
            StorageError: If the stream ends before the announced length
                or stalls.
        """
        with closing(
            self._backend.open_download(
                bucket=bucket, object_key=object_key, byte_range=byte_range
            )
        ) as download:
            total_length = download.total_length
            downloaded_total = 0

            while True:
                remaining = total_length - downloaded_total
                if remaining <= 0:
                    break

                data, is_eof = download.read(chunk_length(remaining, self._chunk_size))
                downloaded_total += len(data)
                if data:
                    yield data
                if is_eof:
                    break
                if not data:
                    raise StorageError(
                        f"Download of {object_key} stalled at {downloaded_total} of {total_length} bytes"
                    )

            if downloaded_total < total_length:
                raise StorageError(
                    f"Download of {object_key} truncated at {downloaded_total} of {total_length} bytes"
                )

    def read(
        self,
        *,
        bucket: str,
        object_key: str,
        byte_range: ByteRange | None = None,
    ) -> bytes:
        """Download the object (or ``byte_range`` of it) into memory."""
        return b"".join(
            self.iter_chunks(bucket=bucket, object_key=object_key, byte_range=byte_range)
        )

    def stream(
        self,
        *,
        bucket: str,
        object_key: str,
        on_chunk: Callable[[bytes], None],
    ) -> None:
        """Pass each downloaded chunk to ``on_chunk`` without buffering."""
        for chunk in self.iter_chunks(bucket=bucket, object_key=object_key):
            on_chunk(chunk)
