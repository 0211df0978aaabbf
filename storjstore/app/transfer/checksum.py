from __future__ import annotations

import base64
import hashlib


def compute_checksum(payload: bytes) -> str:
    """Base64-encoded MD5 digest, the format of the Content-MD5 header."""
    return base64.b64encode(hashlib.md5(payload).digest()).decode("ascii")


def checksum_matches(payload: bytes, checksum: str) -> bool:
    return compute_checksum(payload) == checksum
