# src/run/poller.py — v1
"""Wait for a run to reach a terminal state.

Fixed-interval polling without backoff. A failed poll is not retried: the
error ends the wait. Cancellation is checked between polls and interrupts
the sleep.
"""

from __future__ import annotations

import logging
import time

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.core.concurrency import CancellationToken
from marathon_cloud.core.errors import PollTimeout
from marathon_cloud.core.models import RunStatus
from marathon_cloud.orchestrator.observer import RunObserver

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 5.0


class RunPoller:
    """Poll GET /v1/run/{id} until `completed` is set.

    Args:
        service: Remote service.
        interval_s: Delay between two polls.
        max_wait_s: Give up after this many seconds (None waits forever).
        token: Cancellation token checked between polls.
        observer: Notified after each poll.
    """

    def __init__(
        self,
        service: BaseTestService,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        max_wait_s: float | None = None,
        token: CancellationToken | None = None,
        observer: RunObserver | None = None,
    ) -> None:
        self._service = service
        self._interval_s = interval_s
        self._max_wait_s = max_wait_s
        self._token = token or CancellationToken()
        self._observer = observer or RunObserver()

    async def await_terminal(self, run_id: str) -> RunStatus:
        """Return the first status whose `completed_at` is present.

        Raises:
            ApiError: If any poll fails.
            PollTimeout: If max_wait_s elapses first.
            RunCancelled: If the token is cancelled.
        """
        started = time.monotonic()
        polls = 0
        while True:
            self._token.raise_if_cancelled()
            status = await self._service.get_run(run_id)
            polls += 1
            self._observer.on_poll(status)

            if status.is_terminal:
                logger.info("Run %s finished as %s after %d poll(s)", run_id, status.state, polls)
                return status

            logger.debug("Run %s is %s (poll %d)", run_id, status.state, polls)
            elapsed = time.monotonic() - started
            if self._max_wait_s is not None and elapsed + self._interval_s > self._max_wait_s:
                raise PollTimeout(run_id, elapsed)
            await self._token.sleep(self._interval_s)
