"""Query execution against the document store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Iterator

import structlog

from mongo_extract.connectors.base import DocumentStore
from mongo_extract.core.resources import closing_resource
from mongo_extract.extraction.query import QuerySpec, build_filter
from mongo_extract.extraction.windows import TimeWindow

logger = structlog.get_logger()


class QueryExecutor:
    """
    Open cursors for a query, optionally restricted to one time window.

    The cursor is owned by the ``execute`` block and closed on every exit
    path, including early exits and exceptions raised by the caller.
    """

    def __init__(self, store: DocumentStore, range_field: str | None = None) -> None:
        self.store = store
        self.range_field = range_field
        self.logger = logger.bind(component="query_executor")

    def filter_for(
        self,
        spec: QuerySpec,
        window: TimeWindow | None = None,
    ) -> dict[str, Any]:
        """Filter document used for ``window`` (or the whole query)."""
        if window is None:
            return dict(spec.filter or {})
        if not self.range_field:
            raise ValueError("A range field is required to query by window")
        return build_filter(spec.filter, self.range_field, window)

    @contextmanager
    def execute(
        self,
        spec: QuerySpec,
        window: TimeWindow | None = None,
    ) -> Generator[Iterator[dict[str, Any]], None, None]:
        """
        Open a cursor and yield an iterator over its records.

        Args:
            spec: Query description
            window: Optional window to restrict the range field to

        Yields:
            Iterator of records in cursor order
        """
        query = self.filter_for(spec, window)
        self.logger.debug(
            "Opening cursor",
            window=str(window) if window else None,
            filter=str(query)[:200],
        )

        cursor = self.store.find(
            filter=query,
            projection=spec.projection,
            sort=spec.sort,
            limit=spec.limit,
            batch_size=spec.batch_size,
        )
        with closing_resource(cursor, resource_name="cursor"):
            yield iter(cursor)
