"""Utility modules for Mongo Extract."""

from mongo_extract.utils.logging import setup_logging, log_execution_time
from mongo_extract.utils.helpers import chunk_iterable, generate_id, safe_filename

__all__ = [
    "setup_logging",
    "log_execution_time",
    "chunk_iterable",
    "generate_id",
    "safe_filename",
]
