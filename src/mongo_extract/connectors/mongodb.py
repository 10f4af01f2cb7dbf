"""MongoDB document store connector."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.cursor import Cursor

from mongo_extract.connectors.base import ConnectorConfig, DocumentStore
from mongo_extract.core.exceptions import ConnectionError, ExtractionError

_CREDENTIALS = re.compile(r"//[^@/]+@")


@dataclass
class MongoDBConfig(ConnectorConfig):
    """MongoDB connection configuration."""

    uri: str = "mongodb://localhost:27017"
    database: str = ""
    collection: str = ""
    auth_source: str = "admin"
    max_pool_size: int = 10

    @classmethod
    def from_settings(cls, settings: Any) -> "MongoDBConfig":
        """Build a connector config from a ``MongoDBSettings`` section."""
        return cls(
            name="mongodb",
            uri=settings.uri,
            database=settings.database,
            collection=settings.collection,
            auth_source=settings.auth_source,
            max_pool_size=settings.max_pool_size,
            timeout=settings.timeout,
        )


class MongoDBConnector(DocumentStore):
    """MongoDB connector over a single collection."""

    connector_type = "mongodb"

    def __init__(self, config: MongoDBConfig) -> None:
        super().__init__(config)
        self.mongo_config = config
        self._client: MongoClient | None = None
        self._collection: Collection | None = None

    def connect(self) -> None:
        """Establish connection to MongoDB."""
        if not self.mongo_config.database or not self.mongo_config.collection:
            raise ConnectionError(
                "Database and collection must be configured",
                connector_type="mongodb",
                details={
                    "database": self.mongo_config.database,
                    "collection": self.mongo_config.collection,
                },
            )
        try:
            self._client = MongoClient(
                self.mongo_config.uri,
                maxPoolSize=self.mongo_config.max_pool_size,
                serverSelectionTimeoutMS=self.config.timeout * 1000,
                authSource=self.mongo_config.auth_source,
            )
            database = self._client[self.mongo_config.database]
            self._collection = database[self.mongo_config.collection]
            # Test connection
            self._client.server_info()
            self._connected = True
            self.logger.info(
                "Connected to MongoDB",
                database=self.mongo_config.database,
                collection=self.mongo_config.collection,
            )
        except Exception as e:
            if self._client is not None:
                self._client.close()
                self._client = None
            self._collection = None
            raise ConnectionError(
                f"Failed to connect to MongoDB: {str(e)}",
                connector_type="mongodb",
                details={"database": self.mongo_config.database},
            ) from e

    def disconnect(self) -> None:
        """Close the connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._collection = None
        self._connected = False
        self.logger.info("Disconnected from MongoDB")

    def test_connection(self) -> bool:
        """Test if the connection is valid."""
        if self._client is None:
            return False
        try:
            self._client.server_info()
            return True
        except Exception:
            return False

    def find(
        self,
        filter: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
        sort: dict[str, Any] | None = None,
        limit: int | None = None,
        batch_size: int | None = None,
    ) -> Cursor:
        """Open a cursor over the collection."""
        self._validate_connection()

        try:
            cursor = self._collection.find(filter or {}, projection)

            if sort:
                cursor = cursor.sort(list(sort.items()))

            if limit:
                cursor = cursor.limit(limit)

            if batch_size:
                cursor = cursor.batch_size(batch_size)

            return cursor
        except Exception as e:
            raise ExtractionError(
                f"Failed to open cursor: {str(e)}",
                source="mongodb",
                details={
                    "collection": self.mongo_config.collection,
                    "filter": str(filter)[:200],
                },
            ) from e

    @property
    def source_uri(self) -> str:
        """Connection URI without credentials, plus database and collection."""
        base = _CREDENTIALS.sub("//", self.mongo_config.uri.split("?", 1)[0]).rstrip("/")
        if base.count("/") > 2:
            base = base.rsplit("/", 1)[0]
        return (
            f"{base}/{self.mongo_config.database}"
            f".{self.mongo_config.collection}"
        )
