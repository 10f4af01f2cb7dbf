"""Base document store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, Protocol

import structlog

from mongo_extract.core.exceptions import ConnectionError

logger = structlog.get_logger()


class RecordCursor(Protocol):
    """Closable iterator over the records matched by one query."""

    def __iter__(self) -> Iterator[dict[str, Any]]: ...

    def close(self) -> None: ...


@dataclass
class ConnectorConfig:
    """Base configuration for connectors."""

    name: str
    timeout: int = 30


class DocumentStore(ABC):
    """Abstract base class for queryable document stores."""

    connector_type: str = "document_store"

    def __init__(self, config: ConnectorConfig) -> None:
        self.config = config
        self.logger = logger.bind(
            connector=config.name,
            connector_type=self.connector_type,
        )
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test if the connection is valid."""
        pass

    @abstractmethod
    def find(
        self,
        filter: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        limit: int | None = None,
        batch_size: int | None = None,
    ) -> RecordCursor:
        """Open a cursor over the documents matching ``filter``."""
        pass

    @property
    def source_uri(self) -> str:
        """URI reported as the provenance source of emitted units."""
        return self.config.name

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    def __enter__(self) -> "DocumentStore":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.disconnect()

    def _validate_connection(self) -> None:
        """Ensure connector is connected."""
        if not self._connected:
            raise ConnectionError(
                "Connector is not connected",
                connector_type=self.connector_type,
            )
