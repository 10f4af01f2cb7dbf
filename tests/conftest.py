"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from mongo_extract.connectors.base import ConnectorConfig, DocumentStore
from mongo_extract.core.config import Settings
from mongo_extract.sinks import InMemorySink


def utc(*args: int) -> datetime:
    """Build a UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


class FakeCursor:
    """Cursor over a fixed list of documents that records close calls."""

    def __init__(self, documents: list[dict[str, Any]], fail_after: int | None = None) -> None:
        self.documents = list(documents)
        self.fail_after = fail_after
        self.close_calls = 0

    def __iter__(self):
        for position, document in enumerate(self.documents):
            if self.fail_after is not None and position == self.fail_after:
                raise RuntimeError("cursor failure")
            yield document

    def close(self) -> None:
        self.close_calls += 1

    @property
    def closed(self) -> bool:
        return self.close_calls > 0


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict) and ("$gte" in condition or "$lt" in condition):
            if value is None:
                return False
            if "$gte" in condition and value < condition["$gte"]:
                return False
            if "$lt" in condition and value >= condition["$lt"]:
                return False
        elif value != condition:
            return False
    return True


class FakeStore(DocumentStore):
    """
    In-memory document store.

    ``failures`` maps a window start to the cursor position at which the
    cursor of that window raises.
    """

    connector_type = "fake"

    def __init__(
        self,
        documents: list[dict[str, Any]] | None = None,
        range_field: str = "created_at",
        connect_error: Exception | None = None,
        failures: dict[datetime, int] | None = None,
    ) -> None:
        super().__init__(ConnectorConfig(name="fake://localhost/shop.orders"))
        self.documents = list(documents or [])
        self.range_field = range_field
        self.connect_error = connect_error
        self.failures = failures or {}
        self.queries: list[dict[str, Any]] = []
        self.cursors: list[FakeCursor] = []
        self.connect_calls = 0
        self.disconnect_calls = 0

    def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self._connected = True

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def test_connection(self) -> bool:
        return self._connected

    def find(
        self,
        filter: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        limit: int | None = None,
        batch_size: int | None = None,
    ) -> FakeCursor:
        self._validate_connection()
        query = dict(filter or {})
        self.queries.append(query)

        documents = [dict(d) for d in self.documents if _matches(d, query)]
        if limit:
            documents = documents[:limit]

        fail_after = None
        bounds = query.get(self.range_field)
        if isinstance(bounds, dict):
            fail_after = self.failures.get(bounds.get("$gte"))

        cursor = FakeCursor(documents, fail_after=fail_after)
        self.cursors.append(cursor)
        return cursor


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture
def orders() -> list[dict[str, Any]]:
    """Orders spread over the first three days of 2024."""
    return [
        {"_id": 1, "sku": "A-1", "address": "1 Trang Tien, Ha Noi", "created_at": utc(2024, 1, 1, 8)},
        {"_id": 2, "sku": "A-2", "address": "2 Le Loi, Hue", "created_at": utc(2024, 1, 1, 17, 30)},
        {"_id": 3, "sku": "B-1", "address": "3 Dong Khoi, Sai Gon", "created_at": utc(2024, 1, 3, 9)},
    ]


@pytest.fixture
def store(orders) -> FakeStore:
    return FakeStore(orders)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Build settings from nested section mappings."""

    def factory(**sections: dict[str, Any]) -> Settings:
        data: dict[str, Any] = {
            "mongodb": {"database": "shop", "collection": "orders"},
        }
        for name, values in sections.items():
            data[name] = {**data.get(name, {}), **values}
        return Settings.from_mapping(data)

    return factory


@pytest.fixture
def incremental_settings(settings_factory) -> Settings:
    """Daily windows over 2024-01-01 .. 2024-01-03."""
    return settings_factory(
        incremental={
            "enabled": True,
            "range_field": "created_at",
            "range_days": 1,
            "from_date": "2024-01-01T00:00:00.000Z",
            "to_date": "2024-01-03T00:00:00.000Z",
        },
        output={"json_format": "standard"},
    )
