# src/artifacts/crawler.py — v1
"""Artifact tree discovery.

Breadth-first expansion by frontier rounds: every directory of the current
round is listed concurrently, files are collected, sub-directories form the
next round. The crawl is all-or-nothing: one failed listing discards the
whole result.
"""

from __future__ import annotations

import logging

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.core.concurrency import (
    CancellationToken,
    default_worker_limit,
    gather_bounded,
)
from marathon_cloud.core.errors import ArtifactListError, RunCancelled
from marathon_cloud.core.models import ArtifactNode

logger = logging.getLogger(__name__)


class ArtifactTreeCrawler:
    """Collect every file artifact below a run's artifact root."""

    def __init__(
        self,
        service: BaseTestService,
        worker_limit: int | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self._service = service
        self._worker_limit = worker_limit or default_worker_limit()
        self._token = token or CancellationToken()

    async def crawl(self, run_id: str) -> list[ArtifactNode]:
        """Return the file artifacts of `run_id`, directories excluded.

        Raises:
            ArtifactListError: If any listing call fails.
            RunCancelled: If the token is cancelled between rounds.
        """
        files: dict[str, ArtifactNode] = {}
        seen_dirs: set[str] = {run_id}
        frontier = [run_id]
        rounds = 0

        while frontier:
            self._token.raise_if_cancelled()
            rounds += 1
            listings = await gather_bounded(frontier, self._list, self._worker_limit)

            next_frontier: list[str] = []
            for children in listings:
                for node in children:
                    if node.is_file:
                        files.setdefault(node.id, node)
                    elif node.id not in seen_dirs:
                        seen_dirs.add(node.id)
                        next_frontier.append(node.id)
            logger.debug(
                "Crawl round %d: %d dir(s) listed, %d file(s) so far",
                rounds, len(frontier), len(files),
            )
            frontier = next_frontier

        logger.info("Found %d artifact file(s) for run %s", len(files), run_id)
        return list(files.values())

    async def _list(self, path_id: str) -> list[ArtifactNode]:
        try:
            return await self._service.list_artifacts(path_id)
        except RunCancelled:
            raise
        except Exception as exc:
            raise ArtifactListError(path_id) from exc
