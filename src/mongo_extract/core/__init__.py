"""Core module for Mongo Extract."""

from mongo_extract.core.config import Settings, get_settings
from mongo_extract.core.exceptions import (
    MongoExtractError,
    ConfigurationError,
    ConnectionError,
    ExtractionError,
    WindowError,
    SerializationError,
    FatalRunError,
    RunStateError,
    SinkError,
    EnrichmentError,
    RetryExhaustedError,
)

__all__ = [
    "Settings",
    "get_settings",
    "MongoExtractError",
    "ConfigurationError",
    "ConnectionError",
    "ExtractionError",
    "WindowError",
    "SerializationError",
    "FatalRunError",
    "RunStateError",
    "SinkError",
    "EnrichmentError",
    "RetryExhaustedError",
]
