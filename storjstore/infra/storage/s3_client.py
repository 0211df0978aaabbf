"""Storj storage backend over the S3-compatible gateway.

This module implements the StorageBackend protocol against Storj's hosted
S3-compatible gateway (or a self-hosted one). Upload sessions buffer the
chunks written to them and send them on commit; download sessions read
from the streaming body of a GET request.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Mapping

from storjstore.app.transfer.metadata import split_metadata
from storjstore.infra.storage.client import (
    ByteRange,
    InvalidRangeError,
    MultipartUpload,
    ObjectInfo,
    ObjectKeyNotFoundError,
    StorageError,
)

if TYPE_CHECKING:
    from storjstore.common.config import Settings

NOT_FOUND_ERROR_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
INVALID_RANGE_ERROR_CODES = frozenset({"416", "InvalidRange"})


def _error_code(exc: Exception) -> str | None:
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    code = response.get("Error", {}).get("Code")
    return str(code) if code is not None else None


def _translate_error(
    exc: Exception, message: str, object_key: str
) -> StorageError | InvalidRangeError:
    code = _error_code(exc)
    if code in NOT_FOUND_ERROR_CODES:
        return ObjectKeyNotFoundError(f"Object not found: {object_key}")
    if code in INVALID_RANGE_ERROR_CODES:
        return InvalidRangeError(f"Requested range is not satisfiable for {object_key}")
    return StorageError(f"{message}: {exc}")


def _metadata_params(metadata: Mapping[str, str]) -> dict[str, Any]:
    content_type, content_disposition, custom = split_metadata(metadata)
    params: dict[str, Any] = {"Metadata": custom}
    if content_type:
        params["ContentType"] = content_type
    if content_disposition:
        params["ContentDisposition"] = content_disposition
    return params


class _BufferedUpload:
    """Collects written chunks in memory until commit."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._closed = False

    def write(self, data: bytes, length: int) -> int:
        if self._closed:
            raise StorageError("Upload session is closed")
        chunk = data[:length]
        self._buffer += chunk
        return len(chunk)

    def close(self) -> None:
        self._closed = True
        self._buffer = bytearray()


class S3ObjectUpload(_BufferedUpload):
    """Single-part upload, sent with one PUT on commit."""

    def __init__(self, client: Any, *, bucket: str, object_key: str) -> None:
        super().__init__()
        self._client = client
        self._bucket = bucket
        self._object_key = object_key
        self._metadata: dict[str, str] = {}

    def set_custom_metadata(self, metadata: Mapping[str, str]) -> None:
        self._metadata = dict(metadata)

    def commit(self) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=self._object_key,
                Body=bytes(self._buffer),
                **_metadata_params(self._metadata),
            )
        except Exception as exc:
            raise StorageError(f"Failed to upload object: {exc}") from exc


class S3PartUpload(_BufferedUpload):
    """One part of a multipart upload, sent with UploadPart on commit."""

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
    ) -> None:
        super().__init__()
        self._client = client
        self._bucket = bucket
        self._object_key = object_key
        self._upload_id = upload_id
        self._part_number = part_number

    def commit(self) -> None:
        try:
            self._client.upload_part(
                Bucket=self._bucket,
                Key=self._object_key,
                UploadId=self._upload_id,
                PartNumber=int(self._part_number),
                Body=bytes(self._buffer),
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to upload part {self._part_number}: {exc}"
            ) from exc


class S3Download:
    """Reads a GET response body; end-of-stream once ``total_length`` is consumed."""

    def __init__(self, body: Any, *, total_length: int) -> None:
        self._body = body
        self._total_length = total_length
        self._consumed = 0

    @property
    def total_length(self) -> int:
        return self._total_length

    def read(self, max_length: int) -> tuple[bytes, bool]:
        if self._body is None or max_length <= 0:
            return b"", self._consumed >= self._total_length
        try:
            data = self._body.read(max_length)
        except Exception as exc:
            raise StorageError(f"Failed to read object data: {exc}") from exc
        self._consumed += len(data)
        return data, not data or self._consumed >= self._total_length

    def close(self) -> None:
        if self._body is not None:
            self._body.close()
            self._body = None


class S3StorageBackend:
    """Storj backend speaking the S3 protocol to a Storj gateway.

    Uses boto3 for all storage operations.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing gateway configuration.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for the Storj gateway backend. "
                "Install with: pip install boto3"
            ) from exc

        addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
        config = Config(s3={"addressing_style": addressing_style})

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def open_upload(self, *, bucket: str, object_key: str) -> S3ObjectUpload:
        return S3ObjectUpload(self._client, bucket=bucket, object_key=object_key)

    def begin_multipart_upload(
        self, *, bucket: str, object_key: str
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        try:
            response = self._client.create_multipart_upload(
                Bucket=bucket, Key=object_key
            )
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def open_part_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
    ) -> S3PartUpload:
        return S3PartUpload(
            self._client,
            bucket=bucket,
            object_key=object_key,
            upload_id=upload_id,
            part_number=part_number,
        )

    def _list_parts(
        self, *, bucket: str, object_key: str, upload_id: str
    ) -> list[dict[str, Any]]:
        paginator = self._client.get_paginator("list_parts")
        parts: list[dict[str, Any]] = []
        for page in paginator.paginate(
            Bucket=bucket, Key=object_key, UploadId=upload_id
        ):
            for part in page.get("Parts", []):
                parts.append(
                    {"ETag": part["ETag"], "PartNumber": int(part["PartNumber"])}
                )
        return sorted(parts, key=lambda p: p["PartNumber"])

    def commit_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        metadata: Mapping[str, str],
    ) -> None:
        """Complete a multipart upload, then attach the final metadata.

        S3 only accepts metadata when a multipart upload is created, so the
        metadata is applied afterwards with a self-copy.
        """
        try:
            parts = self._list_parts(
                bucket=bucket, object_key=object_key, upload_id=upload_id
            )
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except Exception as exc:
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

        if metadata:
            self.update_object_metadata(
                bucket=bucket, object_key=object_key, metadata=metadata
            )

    def open_download(
        self,
        *,
        bucket: str,
        object_key: str,
        byte_range: ByteRange | None = None,
    ) -> S3Download:
        if byte_range is not None and byte_range.length == 0:
            # An empty range has no HTTP Range form; still surface missing keys.
            self.stat_object(bucket=bucket, object_key=object_key)
            return S3Download(None, total_length=0)

        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if byte_range is not None:
            params["Range"] = byte_range.to_http_header()

        try:
            response = self._client.get_object(**params)
        except Exception as exc:
            raise _translate_error(exc, "Failed to download object", object_key) from exc

        body = response["Body"]
        total_length = int(response.get("ContentLength") or 0)
        if byte_range is not None and total_length != byte_range.length:
            body.close()
            raise InvalidRangeError(
                f"Requested range {byte_range.start}-{byte_range.end - 1} "
                f"exceeds the size of {object_key}"
            )
        return S3Download(body, total_length=total_length)

    def stat_object(self, *, bucket: str, object_key: str) -> ObjectInfo:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _translate_error(exc, "Failed to get object metadata", object_key) from exc

        custom_metadata = dict(response.get("Metadata") or {})
        if response.get("ContentType"):
            custom_metadata["content-type"] = response["ContentType"]
        if response.get("ContentDisposition"):
            custom_metadata["content-disposition"] = response["ContentDisposition"]

        size = response.get("ContentLength")
        return ObjectInfo(
            key=object_key,
            size_bytes=int(size) if size is not None else 0,
            custom_metadata=custom_metadata,
            etag=response.get("ETag"),
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _translate_error(exc, "Failed to delete object", object_key) from exc

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[ObjectInfo]:
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    yield ObjectInfo(
                        key=item["Key"],
                        size_bytes=int(item.get("Size") or 0),
                        etag=item.get("ETag"),
                    )
        except Exception as exc:
            raise StorageError(f"Failed to list objects: {exc}") from exc

    def update_object_metadata(
        self,
        *,
        bucket: str,
        object_key: str,
        metadata: Mapping[str, str],
    ) -> None:
        """Replace object metadata with a self-copy."""
        try:
            self._client.copy_object(
                Bucket=bucket,
                Key=object_key,
                CopySource={"Bucket": bucket, "Key": object_key},
                MetadataDirective="REPLACE",
                **_metadata_params(metadata),
            )
        except Exception as exc:
            raise _translate_error(exc, "Failed to update object metadata", object_key) from exc

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
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_disposition:
            params["ResponseContentDisposition"] = content_disposition
        if content_type:
            params["ResponseContentType"] = content_type

        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate download URL: {exc}") from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)

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
        """Generate a presigned URL for a direct PUT upload."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "ContentLength": int(content_length),
            "ContentMD5": checksum,
        }
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = dict(metadata)

        try:
            url = self._client.generate_presigned_url(
                "put_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate upload URL: {exc}") from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)
