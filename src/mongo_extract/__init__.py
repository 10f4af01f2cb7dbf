"""
Mongo Extract - windowed batch extraction from MongoDB collections

Splits a time range into fixed-length windows, queries each window, groups
the matching documents into batches and emits every batch as a JSON or CSV
unit to a transactional sink.
"""

__version__ = "0.1.0"

from mongo_extract.core.config import Settings, get_settings
from mongo_extract.core.exceptions import (
    MongoExtractError,
    ConfigurationError,
    FatalRunError,
    SerializationError,
    WindowError,
)
from mongo_extract.extraction import RunController, RunResult, RunStatus

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "MongoExtractError",
    "ConfigurationError",
    "FatalRunError",
    "SerializationError",
    "WindowError",
    "RunController",
    "RunResult",
    "RunStatus",
]
