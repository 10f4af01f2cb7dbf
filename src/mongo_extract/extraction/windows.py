"""Time window planning for incremental extraction."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterator

import structlog

from mongo_extract.core.utils import ensure_utc, format_millis, parse_iso, utc_now

logger = structlog.get_logger()


@dataclass(frozen=True)
class TimeWindow:
    """Half-open date range ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.start >= self.end:
            raise ValueError(
                f"Window start must precede end: {self.start} >= {self.end}"
            )

    def contains(self, moment: datetime) -> bool:
        """Check whether ``moment`` falls inside the window."""
        moment = ensure_utc(moment)
        return self.start <= moment < self.end

    def __str__(self) -> str:
        return f"[{format_millis(self.start)}, {format_millis(self.end)})"


def parse_bound(
    value: str | datetime | None,
    default: Callable[[], datetime],
) -> datetime:
    """
    Parse a window bound, falling back to ``default`` when unparsable.

    Args:
        value: ISO 8601 string, datetime or None
        default: Factory for the fallback value

    Returns:
        Timezone-aware UTC datetime
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if value:
        try:
            return parse_iso(value)
        except ValueError:
            logger.warning("Unparsable window bound, using default", value=value)
    return default()


def plan_windows(
    start: datetime,
    end: datetime,
    range_days: int = 1,
) -> Iterator[TimeWindow]:
    """
    Lazily yield contiguous windows covering ``[start, end]``.

    Each window starts where the previous one ended. The last window may
    extend past ``end``. ``start > end`` yields nothing.

    Examples:
        plan_windows(2024-01-01, 2024-01-03, 1)
            -> [01-01, 01-02), [01-02, 01-03), [01-03, 01-04)
    """
    if range_days < 1:
        raise ValueError(f"range_days must be at least 1, got {range_days}")

    step = timedelta(days=range_days)
    cursor = ensure_utc(start)
    finish = ensure_utc(end)

    while cursor <= finish:
        window = TimeWindow(start=cursor, end=cursor + step)
        yield window
        cursor = window.end


class WindowPlanner:
    """
    Plan the windows of an incremental run.

    Unparsable or missing bounds default to "yesterday" for the start and
    "now" for the end.
    """

    def __init__(
        self,
        range_days: int = 1,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if range_days < 1:
            raise ValueError(f"range_days must be at least 1, got {range_days}")
        self.range_days = range_days
        self.clock = clock

    def resolve(
        self,
        from_date: str | datetime | None,
        to_date: str | datetime | None,
    ) -> tuple[datetime, datetime]:
        """Resolve the run bounds, applying the defaults."""
        now = self.clock()
        start = parse_bound(from_date, lambda: now - timedelta(days=1))
        finish = parse_bound(to_date, lambda: now)
        return start, finish

    def plan(
        self,
        from_date: str | datetime | None,
        to_date: str | datetime | None,
    ) -> Iterator[TimeWindow]:
        """Yield the windows between the resolved bounds."""
        start, finish = self.resolve(from_date, to_date)
        logger.debug(
            "Planning windows",
            start=format_millis(start),
            finish=format_millis(finish),
            range_days=self.range_days,
        )
        return plan_windows(start, finish, self.range_days)
