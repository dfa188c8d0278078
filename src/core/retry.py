# src/core/retry.py — v1
"""Bounded retry for idempotent async operations.

Only reads are retried (artifact downloads). Run submission and status polls
are never wrapped: a duplicate submission creates a duplicate run, and a
failed poll is reported to the caller as-is.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class RetryExhausted(Exception):
    """All attempts of an operation failed."""

    def __init__(self, label: str, attempts: int, last_error: Exception):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"'{label}' failed after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class RetryConfig:
    """How many times to try and how long to wait in between."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 1.0
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay after a given failed attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "operation",
    config: RetryConfig | None = None,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying on the given exception types.

    Exceptions outside `retry_on` propagate immediately.

    Raises:
        RetryExhausted: If every attempt failed.
    """
    config = config or RetryConfig()
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except retry_on as e:
            attempts += 1
            if attempts >= config.max_attempts:
                raise RetryExhausted(label, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.debug(
                "%s failed (attempt %d/%d): %s, retrying in %.1fs",
                label, attempts, config.max_attempts, e, delay,
            )
            await sleep(delay)
