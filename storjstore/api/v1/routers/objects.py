"""Object API router.

REST endpoints over the storage service: raw uploads and streaming
downloads, metadata, composition, deletion and URL generation.
"""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import Response, StreamingResponse
from starlette.concurrency import run_in_threadpool

from storjstore.api.v1.deps import get_storage_service
from storjstore.api.v1.schemas.objects import (
    ComposeOut,
    ComposeRequest,
    DeletePrefixedOut,
    DirectUploadOut,
    DirectUploadRequest,
    Disposition,
    ObjectInfoOut,
    ObjectMetadataUpdate,
    ObjectUploadOut,
    ObjectUrlOut,
)
from storjstore.app.services.base import IntegrityError, ObjectNotFoundError
from storjstore.app.services.storage_service import StorageService
from storjstore.app.transfer.checksum import compute_checksum
from storjstore.app.transfer.metadata import CONTENT_DISPOSITION_KEY, CONTENT_TYPE_KEY
from storjstore.infra.storage.client import InvalidRangeError

router = APIRouter()

CUSTOM_METADATA_HEADER_PREFIX = "x-meta-"
_RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


def _custom_metadata_from_headers(request: Request) -> dict[str, str]:
    return {
        name[len(CUSTOM_METADATA_HEADER_PREFIX) :]: value
        for name, value in request.headers.items()
        if name.startswith(CUSTOM_METADATA_HEADER_PREFIX)
        and len(name) > len(CUSTOM_METADATA_HEADER_PREFIX)
    }


def _parse_range(header: str, size: int) -> range:
    """Parse a single ``bytes=`` range against an object of ``size`` bytes."""
    match = _RANGE_PATTERN.match(header.strip())
    if not match or match.groups() == ("", ""):
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail="Unsupported Range header",
        )
    first, last = match.groups()
    if first == "":
        start = max(size - int(last), 0)
        stop = size
    else:
        start = int(first)
        stop = min(int(last) + 1, size) if last else size
    if start >= size or stop <= start:
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail=f"Range not satisfiable for object of {size} bytes",
        )
    return range(start, stop)


@router.put(
    "/objects/{key:path}",
    response_model=ObjectUploadOut,
    status_code=status.HTTP_201_CREATED,
    summary="Upload object",
    description="Upload the raw request body under the given key.",
)
async def upload_object(
    key: str,
    request: Request,
    content_type: str | None = Header(default=None),
    content_md5: str | None = Header(default=None),
    x_disposition: Disposition | None = Header(default=None),
    x_filename: str | None = Header(default=None),
    service: StorageService = Depends(get_storage_service),
) -> ObjectUploadOut:
    body = await request.body()
    try:
        await run_in_threadpool(
            service.upload,
            key,
            body,
            checksum=content_md5,
            content_type=content_type,
            disposition=x_disposition,
            filename=x_filename,
            custom_metadata=_custom_metadata_from_headers(request),
        )
    except IntegrityError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "error_code": "checksum_mismatch"},
        ) from exc

    return ObjectUploadOut(key=key, size_bytes=len(body), checksum=compute_checksum(body))


@router.get(
    "/objects/{key:path}",
    summary="Download object",
    description="Stream the object; a single `Range: bytes=` header yields 206.",
    response_class=StreamingResponse,
)
def download_object(
    key: str,
    range_header: str | None = Header(default=None, alias="Range"),
    service: StorageService = Depends(get_storage_service),
) -> Response:
    try:
        info = service.stat(key)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    headers = {"Accept-Ranges": "bytes"}
    content_disposition = info.custom_metadata.get(CONTENT_DISPOSITION_KEY)
    if content_disposition:
        headers["Content-Disposition"] = content_disposition
    media_type = info.custom_metadata.get(CONTENT_TYPE_KEY) or "application/octet-stream"

    if range_header:
        byte_range = _parse_range(range_header, info.size_bytes)
        try:
            data = service.download_chunk(key, byte_range)
        except ObjectNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except InvalidRangeError as exc:
            raise HTTPException(
                status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
                detail=str(exc),
            ) from exc
        headers["Content-Range"] = (
            f"bytes {byte_range.start}-{byte_range.stop - 1}/{info.size_bytes}"
        )
        return Response(
            content=data,
            status_code=status.HTTP_206_PARTIAL_CONTENT,
            media_type=media_type,
            headers=headers,
        )

    headers["Content-Length"] = str(info.size_bytes)
    return StreamingResponse(
        service.iter_download(key), media_type=media_type, headers=headers
    )


@router.head(
    "/objects/{key:path}",
    summary="Check object existence",
    description="200 if the object exists, 404 otherwise.",
)
def object_exists(
    key: str,
    service: StorageService = Depends(get_storage_service),
) -> Response:
    if service.exist(key):
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_404_NOT_FOUND)


@router.delete(
    "/objects/{key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete object",
    description="Delete an object. Deleting a missing object succeeds.",
)
def delete_object(
    key: str,
    service: StorageService = Depends(get_storage_service),
) -> Response:
    service.delete(key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/objects",
    response_model=DeletePrefixedOut,
    summary="Delete objects by prefix",
    description="Delete every object whose key starts with the prefix.",
)
def delete_prefixed(
    prefix: str = Query(min_length=1),
    service: StorageService = Depends(get_storage_service),
) -> DeletePrefixedOut:
    return DeletePrefixedOut(deleted=service.delete_prefixed(prefix))


@router.get(
    "/metadata/{key:path}",
    response_model=ObjectInfoOut,
    summary="Get object metadata",
)
def get_object_metadata(
    key: str,
    service: StorageService = Depends(get_storage_service),
) -> ObjectInfoOut:
    try:
        info = service.stat(key)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return ObjectInfoOut(
        key=info.key,
        size_bytes=info.size_bytes,
        etag=info.etag,
        custom_metadata=info.custom_metadata,
    )


@router.patch(
    "/metadata/{key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Update object metadata",
    description="Replace content type, disposition and custom metadata.",
)
def update_object_metadata(
    key: str,
    payload: ObjectMetadataUpdate,
    service: StorageService = Depends(get_storage_service),
) -> Response:
    try:
        service.update_metadata(
            key,
            content_type=payload.content_type,
            disposition=payload.disposition,
            filename=payload.filename,
            custom_metadata=payload.custom_metadata,
        )
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/compose",
    response_model=ComposeOut,
    status_code=status.HTTP_201_CREATED,
    summary="Compose object",
    description="Concatenate source objects, in order, into a new object.",
)
def compose_object(
    payload: ComposeRequest,
    service: StorageService = Depends(get_storage_service),
) -> ComposeOut:
    try:
        service.compose(
            payload.source_keys,
            payload.destination_key,
            filename=payload.filename,
            content_type=payload.content_type,
            disposition=payload.disposition,
            custom_metadata=payload.custom_metadata,
        )
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ComposeOut(key=payload.destination_key)


@router.get(
    "/urls/{key:path}",
    response_model=ObjectUrlOut,
    summary="Get download URL",
    description="Presigned URL for private buckets, linksharing URL for public ones.",
)
def get_object_url(
    key: str,
    expires_in: int | None = Query(default=None, ge=1),
    filename: str | None = Query(default=None, min_length=1, max_length=255),
    disposition: Disposition | None = Query(default=None),
    content_type: str | None = Query(default=None),
    service: StorageService = Depends(get_storage_service),
) -> ObjectUrlOut:
    url = service.url(
        key,
        expires_in=expires_in,
        filename=filename,
        disposition=disposition,
        content_type=content_type,
    )
    if service.settings.STORJ_PUBLIC:
        return ObjectUrlOut(url=url)
    return ObjectUrlOut(
        url=url,
        expires_in=expires_in or service.settings.STORAGE_PRESIGN_EXPIRES_SECONDS,
    )


@router.post(
    "/direct-uploads",
    response_model=DirectUploadOut,
    status_code=status.HTTP_201_CREATED,
    summary="Prepare direct upload",
    description="Presigned PUT URL plus the headers the upload must send.",
)
def create_direct_upload(
    payload: DirectUploadRequest,
    service: StorageService = Depends(get_storage_service),
) -> DirectUploadOut:
    expires_in = service.settings.STORAGE_PRESIGN_EXPIRES_SECONDS
    url = service.url_for_direct_upload(
        payload.key,
        content_type=payload.content_type,
        content_length=payload.content_length,
        checksum=payload.checksum,
        expires_in=expires_in,
        custom_metadata=payload.custom_metadata,
    )
    headers = service.headers_for_direct_upload(
        payload.key,
        content_type=payload.content_type,
        checksum=payload.checksum,
        filename=payload.filename,
        disposition=payload.disposition,
        custom_metadata=payload.custom_metadata,
    )
    return DirectUploadOut(url=url, headers=headers, expires_in=expires_in)
