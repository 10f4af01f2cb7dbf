"""Record batching policies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator

import structlog

from mongo_extract.utils.helpers import chunk_iterable

logger = structlog.get_logger()


class BatchMode(str, Enum):
    """How records of one cursor are grouped into units."""

    UNBOUNDED = "unbounded"
    WHOLE_WINDOW = "whole_window"
    FIXED = "fixed"


@dataclass(frozen=True)
class BatchPolicy:
    """Batching policy applied to a record stream."""

    mode: BatchMode
    size: int | None = None

    def __post_init__(self) -> None:
        if self.mode is BatchMode.FIXED and (self.size is None or self.size < 1):
            raise ValueError(f"Fixed batches need a positive size, got {self.size}")
        if self.mode is not BatchMode.FIXED and self.size is not None:
            raise ValueError(f"{self.mode.value} batches do not take a size")

    @classmethod
    def unbounded(cls) -> "BatchPolicy":
        """One unit per record, emitted as soon as it is read."""
        return cls(BatchMode.UNBOUNDED)

    @classmethod
    def whole_window(cls) -> "BatchPolicy":
        """One unit per cursor, emitted once the cursor is exhausted."""
        return cls(BatchMode.WHOLE_WINDOW)

    @classmethod
    def fixed(cls, size: int) -> "BatchPolicy":
        """Units of ``size`` records, with a possibly short final unit."""
        return cls(BatchMode.FIXED, size)

    @classmethod
    def from_config(
        cls,
        results_per_unit: int | None,
        whole_window: bool = False,
    ) -> "BatchPolicy":
        """
        Map output settings to a policy.

        ``whole_window`` wins over ``results_per_unit``; a numeric value is
        always a chunk size, however large.
        """
        if whole_window:
            return cls.whole_window()
        if results_per_unit is None:
            return cls.unbounded()
        return cls.fixed(results_per_unit)

    @property
    def ceiling(self) -> int | None:
        """Maximum records per batch, None when unlimited."""
        if self.mode is BatchMode.UNBOUNDED:
            return 1
        return self.size


@dataclass
class RecordBatch:
    """Ordered records that become one output unit."""

    records: list[dict[str, Any]] = field(default_factory=list)
    ceiling: int | None = None
    index: int = 0
    single: bool = False

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_full(self) -> bool:
        """Whether the batch reached its ceiling."""
        return self.ceiling is not None and len(self.records) == self.ceiling

    @property
    def is_empty(self) -> bool:
        return not self.records


class RecordBatcher:
    """
    Group a record stream into batches.

    Features:
    - Per-record units (no batching)
    - Whole-window units (one batch per cursor)
    - Fixed-size chunks with remainder flush
    """

    def __init__(self, policy: BatchPolicy) -> None:
        self.policy = policy
        self.logger = logger.bind(component="record_batcher", mode=policy.mode.value)

    def batches(self, records: Iterable[dict[str, Any]]) -> Iterator[RecordBatch]:
        """
        Lazily yield batches in cursor order.

        Args:
            records: Record stream, consumed once

        Yields:
            RecordBatch units
        """
        mode = self.policy.mode

        if mode is BatchMode.UNBOUNDED:
            for index, record in enumerate(records):
                yield RecordBatch(records=[record], ceiling=1, index=index, single=True)

        elif mode is BatchMode.WHOLE_WINDOW:
            batch = RecordBatch(records=list(records), ceiling=None, index=0)
            self.logger.debug("Buffered whole window", rows=len(batch))
            yield batch

        else:
            for index, chunk in enumerate(chunk_iterable(records, self.policy.size)):
                self.logger.debug("Writing batch", batch=index, rows=len(chunk))
                yield RecordBatch(records=chunk, ceiling=self.policy.size, index=index)
