"""Scoped ownership of cursors and other closable handles."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

import structlog

logger = structlog.get_logger()


@contextmanager
def closing_resource(
    resource: Any,
    resource_name: str = "resource",
    close_method: str = "close",
) -> Generator[Any, None, None]:
    """
    Own ``resource`` for the duration of the block.

    ``close_method`` is called exactly once when the block ends, whether it
    finishes, returns early or raises. A failing close is logged and never
    replaces the error raised by the block.

    Raises:
        TypeError: If the resource has no callable ``close_method``
    """
    close = getattr(resource, close_method, None)
    if not callable(close):
        raise TypeError(f"{resource_name} has no {close_method}() method")

    log = logger.bind(resource=resource_name)
    try:
        yield resource
    except Exception as e:
        log.error("Releasing after failure", error=str(e))
        raise
    finally:
        try:
            close()
        except Exception as e:
            log.warning("Close failed", error=str(e))
        else:
            log.debug("Released")
