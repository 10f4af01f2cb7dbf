"""Helper utilities for Mongo Extract."""

from __future__ import annotations

import re
import uuid
from typing import Generator, Iterable, TypeVar

T = TypeVar("T")


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier."""
    uid = str(uuid.uuid4())[:8]
    if prefix:
        return f"{prefix}_{uid}"
    return uid


def chunk_iterable(
    iterable: Iterable[T],
    chunk_size: int,
) -> Generator[list[T], None, None]:
    """
    Split an iterable into chunks of a specified size.

    The final chunk may be shorter; an empty iterable yields nothing.

    Examples:
        list(chunk_iterable([1,2,3,4,5], 2)) -> [[1,2], [3,4], [5]]
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    chunk: list[T] = []
    for item in iterable:
        chunk.append(item)
        if len(chunk) >= chunk_size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def safe_filename(name: str, max_length: int = 200) -> str:
    """
    Turn an arbitrary string into a filesystem-safe file name.

    Examples:
        safe_filename("2024-01-01T00:00:00.000Z") -> "2024-01-01T00-00-00.000Z"
    """
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-.")
    return cleaned[:max_length] or generate_id("unit")
