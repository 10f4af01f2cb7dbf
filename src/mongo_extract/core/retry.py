"""Exponential backoff for retrying rolled back runs."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, TypeVar

import structlog

from mongo_extract.core.exceptions import RetryExhaustedError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    How often, and how patiently, to retry an operation.

    The pause before attempt ``n + 1`` is ``initial_delay * backoff_factor**(n-1)``
    capped at ``max_delay``; with ``jitter`` each pause is stretched by up to
    100%, then capped again.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0
    jitter: bool = True
    exception_types: tuple[type[Exception], ...] = (Exception,)

    @classmethod
    def from_settings(cls, config: Any) -> "RetryPolicy":
        """Build a policy from a ``RetrySettings`` section."""
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
            backoff_factor=config.backoff_factor,
            max_delay=config.max_delay,
        )

    def delays(self) -> Iterator[float]:
        """Pauses between consecutive attempts."""
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            pause = delay * (1 + random.random()) if self.jitter else delay
            yield min(pause, self.max_delay)
            delay = min(delay * self.backoff_factor, self.max_delay)

    def execute(
        self,
        func: Callable[[], T],
        sleep: Callable[[float], None] = time.sleep,
    ) -> T:
        """
        Call ``func`` until it returns.

        Raises:
            RetryExhaustedError: If every attempt raised one of
                ``exception_types``; other exceptions propagate at once
        """
        pauses = self.delays()
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return func()
            except self.exception_types as e:
                last_error = e
                logger.warning(
                    "Attempt failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )

            pause = next(pauses, None)
            if pause is None:
                break
            logger.info("Backing off", delay_seconds=round(pause, 3), next_attempt=attempt + 1)
            sleep(pause)

        raise RetryExhaustedError(
            f"Gave up after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            last_error=last_error,
        )


def retry_with_backoff(
    func: Callable[[], T],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    exception_types: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` with a one-off ``RetryPolicy``."""
    policy = RetryPolicy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        backoff_factor=backoff_factor,
        max_delay=max_delay,
        jitter=jitter,
        exception_types=exception_types,
    )
    return policy.execute(func, sleep=sleep)
