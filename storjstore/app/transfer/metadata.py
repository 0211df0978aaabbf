"""Object metadata: merging custom metadata with the standard fields.

Storj keeps the content type and disposition as ordinary entries of an
object's custom metadata, under the reserved keys below. Values set by the
adapter always win over caller-supplied entries with the same key.
"""

from __future__ import annotations

import unicodedata
from typing import Mapping
from urllib.parse import quote

CONTENT_TYPE_KEY = "content-type"
CONTENT_DISPOSITION_KEY = "content-disposition"
RESERVED_METADATA_KEYS = frozenset({CONTENT_TYPE_KEY, CONTENT_DISPOSITION_KEY})

DISPOSITION_TYPES = ("attachment", "inline")
AMZ_META_PREFIX = "x-amz-meta-"

# Characters left unescaped besides ASCII letters, digits and "_.-~".
_TRADITIONAL_SAFE = " !#$+^`|"
_RFC_5987_SAFE = "!#$&+^`|"
_UNSAFE_FILENAME_CHARS = str.maketrans(dict.fromkeys("\u202e%$|:;/\t\r\n\\", "-"))


def merge_metadata(
    custom_metadata: Mapping[str, str] | None,
    *,
    content_type: str | None = None,
    content_disposition: str | None = None,
) -> dict[str, str]:
    """Build the metadata map handed to the backend.

    Caller keys that collide with a reserved key (case-insensitively) are
    dropped; reserved fields that are ``None`` are omitted.
    """
    merged = {
        key: value
        for key, value in (custom_metadata or {}).items()
        if key.lower() not in RESERVED_METADATA_KEYS
    }
    if content_type is not None:
        merged[CONTENT_TYPE_KEY] = content_type
    if content_disposition is not None:
        merged[CONTENT_DISPOSITION_KEY] = content_disposition
    return merged


def split_metadata(
    metadata: Mapping[str, str],
) -> tuple[str | None, str | None, dict[str, str]]:
    """Split merged metadata into (content type, content disposition, custom)."""
    custom = {
        key: value
        for key, value in metadata.items()
        if key.lower() not in RESERVED_METADATA_KEYS
    }
    return (
        metadata.get(CONTENT_TYPE_KEY),
        metadata.get(CONTENT_DISPOSITION_KEY),
        custom,
    )


def sanitize_filename(filename: str) -> str:
    return filename.strip().translate(_UNSAFE_FILENAME_CHARS)


def _transliterate(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(
        char if char.isascii() else "?"
        for char in decomposed
        if not unicodedata.combining(char)
    )


def content_disposition_with(*, type: str = "inline", filename: str) -> str:
    """Format a Content-Disposition value with an RFC 5987 UTF-8 filename.

    Example::

        >>> content_disposition_with(type="attachment", filename="résumé.pdf")
        'attachment; filename="resume.pdf"; filename*=UTF-8\\'\\'r%C3%A9sum%C3%A9.pdf'
    """
    disposition = type if type in DISPOSITION_TYPES else "inline"
    filename = sanitize_filename(filename)

    ascii_filename = quote(_transliterate(filename), safe=_TRADITIONAL_SAFE)
    utf8_filename = quote(filename, safe=_RFC_5987_SAFE)
    return f"{disposition}; filename=\"{ascii_filename}\"; filename*=UTF-8''{utf8_filename}"


def resolve_content_disposition(
    disposition: str | None, filename: str | None
) -> str | None:
    """Content-Disposition for the pair, or ``None`` unless both are given."""
    if disposition and filename:
        return content_disposition_with(type=disposition, filename=filename)
    return None


def custom_metadata_headers(metadata: Mapping[str, str]) -> dict[str, str]:
    return {f"{AMZ_META_PREFIX}{key}": value for key, value in metadata.items()}
