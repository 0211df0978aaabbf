"""Chunked transfer engine.

Plans single-part vs multipart uploads, moves payloads through backend
sessions in bounded chunks, and composes objects from other objects.
"""

from .compose import compose_objects
from .download import ObjectDownloader
from .planner import TransferPlan, chunk_length, part_ranges, plan_transfer
from .upload import ObjectUploader, write_range

__all__ = [
    "ObjectDownloader",
    "ObjectUploader",
    "TransferPlan",
    "chunk_length",
    "compose_objects",
    "part_ranges",
    "plan_transfer",
    "write_range",
]
