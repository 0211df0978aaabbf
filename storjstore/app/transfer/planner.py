"""Transfer planning: single-part vs multipart and chunk sizing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True, slots=True)
class TransferPlan:
    """How a payload of known size is sent to the backend."""

    multipart: bool
    part_count: int = 1


def plan_transfer(payload_size: int, part_size: int) -> TransferPlan:
    """Decide whether ``payload_size`` bytes go up in one part or several.

    Payloads larger than ``part_size`` are split into
    ``ceil(payload_size / part_size)`` parts, the last one holding the
    remainder. Everything else, including empty payloads, is single-part.
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    if payload_size < 0:
        raise ValueError("payload_size must not be negative")

    if payload_size <= part_size:
        return TransferPlan(multipart=False)
    return TransferPlan(multipart=True, part_count=-(-payload_size // part_size))


def chunk_length(remaining: int, chunk_size: int) -> int:
    """Size of the next chunk; a non-positive ``chunk_size`` means "all of it"."""
    if chunk_size <= 0:
        return remaining
    return min(chunk_size, remaining)


def part_ranges(payload_size: int, part_size: int) -> Iterator[tuple[int, int, int]]:
    """Yield ``(part_number, start, end)`` for each part, numbered from 1."""
    plan = plan_transfer(payload_size, part_size)
    for index in range(plan.part_count):
        start = min(index * part_size, payload_size)
        end = min((index + 1) * part_size, payload_size)
        yield index + 1, start, end
