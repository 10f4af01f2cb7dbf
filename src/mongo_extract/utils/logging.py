"""Structured logging for extraction runs.

Events are rendered as JSON lines (or coloured console output) and carry the
``run_id`` and ``window`` of the run that produced them. Connection strings
and secret-looking fields are redacted before rendering.
"""

from __future__ import annotations

import logging
import re
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Mapping, TextIO, TypeVar

import structlog

from mongo_extract.utils.helpers import generate_id

F = TypeVar("F", bound=Callable[..., Any])

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "password", "secret", "token", "api_key", "apikey",
    "authorization", "credential", "private_key",
})

_URI_CREDENTIALS = re.compile(r"(mongodb(?:\+srv)?://)[^@/\s]+@")

# File opened by the last setup_logging call, closed when logging is reconfigured
_log_stream: TextIO | None = None


def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return _URI_CREDENTIALS.sub(rf"\1{REDACTED}@", value)
    if isinstance(value, Mapping):
        return _redact_mapping(value)
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def _redact_mapping(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: REDACTED if _is_sensitive(key) else _redact(value)
        for key, value in mapping.items()
    }


def redact_credentials(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor that hides secrets and MongoDB URI credentials."""
    return _redact_mapping(event_dict)


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    log_file: str | None = None,
    service_name: str = "mongo-extract",
    sanitize_logs: bool = True,
) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: ``json`` or ``console``
        log_file: Append events to this file instead of stderr
        service_name: Value of the ``service`` field of the first event
        sanitize_logs: Whether to redact credentials
    """
    global _log_stream

    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if sanitize_logs:
        processors.append(redact_credentials)

    if format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=log_file is None,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    close_log_file()
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _log_stream = path.open("a")
        logger_factory = structlog.WriteLoggerFactory(file=_log_stream)
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )

    # pymongo and httpx log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)

    structlog.get_logger("mongo_extract").info(
        "Logging initialized",
        service=service_name,
        level=level,
        format=format,
    )


def close_log_file() -> None:
    """Close the log file opened by ``setup_logging``, if any."""
    global _log_stream

    if _log_stream is not None:
        _log_stream.close()
        _log_stream = None


def bind_run(run_id: str | None = None) -> str:
    """Tag every event of the current context with a run id and return it."""
    run_id = run_id or generate_id("run")
    structlog.contextvars.bind_contextvars(run_id=run_id)
    return run_id


def bind_window(window: str) -> None:
    structlog.contextvars.bind_contextvars(window=window)


def unbind_run() -> None:
    structlog.contextvars.unbind_contextvars("run_id", "window")


def log_execution_time(
    message: str = "Operation completed",
    level: str = "info",
) -> Callable[[F], F]:
    """Log the duration of each call of the decorated function."""

    def decorator(func: F) -> F:
        log = structlog.get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(
                    f"{message} with error",
                    function=func.__qualname__,
                    duration_seconds=round(time.perf_counter() - started, 4),
                    error=str(e),
                )
                raise
            getattr(log, level)(
                message,
                function=func.__qualname__,
                duration_seconds=round(time.perf_counter() - started, 4),
            )
            return result

        return wrapper  # type: ignore

    return decorator


__all__ = [
    "setup_logging",
    "close_log_file",
    "redact_credentials",
    "bind_run",
    "bind_window",
    "unbind_run",
    "log_execution_time",
]
