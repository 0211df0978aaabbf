from __future__ import annotations

from typing import Mapping, Sequence

from storjstore.app.transfer.download import ObjectDownloader
from storjstore.app.transfer.upload import ObjectUploader


def compose_objects(
    downloader: ObjectDownloader,
    uploader: ObjectUploader,
    *,
    bucket: str,
    source_keys: Sequence[str],
    destination_key: str,
    metadata: Mapping[str, str],
) -> str:
    """Concatenate ``source_keys`` in order into ``destination_key``.

    Sources are downloaded completely before anything is uploaded, so a
    failing source leaves the destination untouched.
    """
    contents = bytearray()
    for source_key in source_keys:
        contents += downloader.read(bucket=bucket, object_key=source_key)

    return uploader.upload(
        bucket=bucket,
        object_key=destination_key,
        payload=bytes(contents),
        metadata=metadata,
    )
