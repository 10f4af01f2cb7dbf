"""Document store connectors."""

from mongo_extract.connectors.base import ConnectorConfig, DocumentStore, RecordCursor
from mongo_extract.connectors.mongodb import MongoDBConfig, MongoDBConnector

__all__ = [
    "ConnectorConfig",
    "DocumentStore",
    "RecordCursor",
    "MongoDBConfig",
    "MongoDBConnector",
]
