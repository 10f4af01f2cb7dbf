"""Query description shared by every stage of a run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mongo_extract.extraction.windows import TimeWindow


@dataclass(frozen=True)
class QuerySpec:
    """Normalized filter/projection/sort/limit/batch-size description."""

    filter: dict[str, Any] | None = None
    projection: dict[str, Any] | None = None
    sort: dict[str, Any] | None = None
    limit: int | None = None
    batch_size: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")
        if self.batch_size is not None and self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")


def build_filter(
    base_filter: dict[str, Any] | None,
    range_field: str,
    window: TimeWindow,
) -> dict[str, Any]:
    """
    Build the filter for one window.

    Returns a new document: the base filter plus a half-open range predicate
    on ``range_field``. A key of the same name already in the base filter is
    overwritten, never merged. The base filter is left untouched.

    Examples:
        build_filter({"status": "A"}, "created_at", window)
            -> {"status": "A", "created_at": {"$gte": start, "$lt": end}}
    """
    query = dict(base_filter or {})
    query[range_field] = {"$gte": window.start, "$lt": window.end}
    return query
