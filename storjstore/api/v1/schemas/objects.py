"""Pydantic schemas for object API endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Disposition = Literal["attachment", "inline"]


class ObjectUploadOut(BaseModel):
    """Response model for a completed upload."""

    key: str
    size_bytes: int
    checksum: str


class ObjectInfoOut(BaseModel):
    """Size and stored metadata of an object."""

    key: str
    size_bytes: int
    etag: str | None = None
    custom_metadata: dict[str, str] = Field(default_factory=dict)


class ObjectMetadataUpdate(BaseModel):
    """Request body for replacing an object's metadata."""

    content_type: str | None = None
    disposition: Disposition | None = None
    filename: str | None = Field(default=None, min_length=1, max_length=255)
    custom_metadata: dict[str, str] = Field(default_factory=dict)


class ComposeRequest(BaseModel):
    """Request body for composing an object from existing ones."""

    source_keys: list[str] = Field(min_length=1)
    destination_key: str = Field(min_length=1)
    content_type: str | None = None
    disposition: Disposition | None = None
    filename: str | None = Field(default=None, min_length=1, max_length=255)
    custom_metadata: dict[str, str] = Field(default_factory=dict)


class ComposeOut(BaseModel):
    key: str


class ObjectUrlOut(BaseModel):
    """Download URL; ``expires_in`` is None for permanent public URLs."""

    url: str
    expires_in: int | None = None


class DirectUploadRequest(BaseModel):
    """Request body for preparing a direct (presigned) upload."""

    key: str = Field(min_length=1)
    content_type: str | None = None
    content_length: int = Field(ge=0)
    checksum: str = Field(min_length=1)
    disposition: Disposition | None = None
    filename: str | None = Field(default=None, min_length=1, max_length=255)
    custom_metadata: dict[str, str] = Field(default_factory=dict)


class DirectUploadOut(BaseModel):
    """Presigned upload URL and the headers the PUT request must carry."""

    url: str
    headers: dict[str, str]
    expires_in: int


class DeletePrefixedOut(BaseModel):
    deleted: int
