# src/core/concurrency.py — v1
"""Bounded fan-out helpers and caller-driven cancellation."""

from __future__ import annotations

import asyncio
import os
from typing import Awaitable, Callable, Iterable, TypeVar

from marathon_cloud.core.errors import RunCancelled

T = TypeVar("T")
R = TypeVar("R")


def default_worker_limit() -> int:
    """Number of available CPUs, at least 1."""
    return os.cpu_count() or 1


async def gather_bounded(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """Run fn over items with at most `limit` calls in flight.

    Results keep the order of `items`. The first failure cancels every
    sibling still pending or running, then propagates unchanged.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    semaphore = asyncio.Semaphore(limit)

    async def _bounded(item: T) -> R:
        async with semaphore:
            return await fn(item)

    tasks = [asyncio.ensure_future(_bounded(item)) for item in items]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class CancellationToken:
    """Cooperative cancellation flag passed down from the caller.

    Long waits go through sleep() so that cancel() wakes them immediately.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Operation cancelled by user")

    async def sleep(self, delay: float) -> None:
        """Sleep for `delay` seconds unless cancelled first.

        Raises:
            RunCancelled: If cancel() is called before or during the sleep.
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise RunCancelled("Operation cancelled by user")
