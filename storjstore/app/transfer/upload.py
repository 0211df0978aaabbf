"""Chunked uploads: single-part and strictly sequential multipart."""

from __future__ import annotations

from contextlib import closing
from typing import Mapping

from storjstore.app.transfer.planner import chunk_length, part_ranges, plan_transfer
from storjstore.infra.storage.client import (
    PartUploadSession,
    StorageBackend,
    StorageError,
)


def write_range(
    sink: PartUploadSession,
    payload: bytes,
    start: int,
    end: int,
    chunk_size: int,
) -> int:
    """Write ``payload[start:end]`` to ``sink`` in chunks of ``chunk_size``.

    The sink may accept fewer bytes than offered; the loop advances by what
    it reports and offers the rest again on the next call.

    Returns:
        Number of bytes written.

    Raises:
        StorageError: If the sink accepts nothing or claims more than offered.
    """
    uploaded_total = start
    while True:
        remaining = end - uploaded_total
        if remaining <= 0:
            break

        length = chunk_length(remaining, chunk_size)
        bytes_written = sink.write(payload[uploaded_total : uploaded_total + length], length)
        if bytes_written <= 0 or bytes_written > length:
            raise StorageError(
                f"Upload sink reported {bytes_written} bytes written for a {length} byte chunk"
            )
        uploaded_total += bytes_written

    return uploaded_total - start


class ObjectUploader:
    """Uploads payloads, switching to multipart above ``part_size`` bytes."""

    def __init__(
        self,
        backend: StorageBackend,
        *,
        part_size: int,
        chunk_size: int,
    ) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self._backend = backend
        self._part_size = part_size
        self._chunk_size = chunk_size

    @property
    def part_size(self) -> int:
        return self._part_size

    def upload(
        self,
        *,
        bucket: str,
        object_key: str,
        payload: bytes,
        metadata: Mapping[str, str],
    ) -> str:
        """Upload ``payload`` under ``object_key`` and return the key."""
        plan = plan_transfer(len(payload), self._part_size)
        if plan.multipart:
            self._upload_with_multipart(bucket, object_key, payload, metadata)
        else:
            self._upload_with_single_part(bucket, object_key, payload, metadata)
        return object_key

    def _upload_with_single_part(
        self,
        bucket: str,
        object_key: str,
        payload: bytes,
        metadata: Mapping[str, str],
    ) -> None:
        with closing(
            self._backend.open_upload(bucket=bucket, object_key=object_key)
        ) as upload:
            if payload:
                write_range(upload, payload, 0, len(payload), self._chunk_size)
            else:
                upload.write(b"", 0)
            upload.set_custom_metadata(metadata)
            upload.commit()

    def _upload_with_multipart(
        self,
        bucket: str,
        object_key: str,
        payload: bytes,
        metadata: Mapping[str, str],
    ) -> None:
        # On failure the upload is left uncommitted for the backend to expire.
        upload = self._backend.begin_multipart_upload(
            bucket=bucket, object_key=object_key
        )

        for part_number, start, end in part_ranges(len(payload), self._part_size):
            with closing(
                self._backend.open_part_upload(
                    bucket=bucket,
                    object_key=object_key,
                    upload_id=upload.upload_id,
                    part_number=part_number,
                )
            ) as part_upload:
                write_range(part_upload, payload, start, end, self._chunk_size)
                part_upload.commit()

        self._backend.commit_multipart_upload(
            bucket=bucket,
            object_key=object_key,
            upload_id=upload.upload_id,
            metadata=metadata,
        )
