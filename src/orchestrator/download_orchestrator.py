# src/orchestrator/download_orchestrator.py — v1
"""Artifact retrieval for an existing run (the `download` command).

Stages: check the run state (optionally waiting for completion), list the
artifact tree, download the files matching an optional glob, patch Allure
attachment paths.
"""

from __future__ import annotations

import logging
from pathlib import Path

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.artifacts.allure import patch_allure_paths
from marathon_cloud.artifacts.crawler import ArtifactTreeCrawler
from marathon_cloud.artifacts.downloader import ArtifactDownloader, build_download_tasks
from marathon_cloud.config.settings import Settings
from marathon_cloud.core.concurrency import CancellationToken
from marathon_cloud.core.models import DownloadReport
from marathon_cloud.core.retry import RetryConfig
from marathon_cloud.logging.context import set_run_context, set_stage_context
from marathon_cloud.orchestrator.observer import RunObserver
from marathon_cloud.orchestrator.run_orchestrator import STAGE_DOWNLOAD, STAGE_FETCH, STAGE_PATCH
from marathon_cloud.run.poller import RunPoller

logger = logging.getLogger(__name__)

STAGE_CHECK = "Checking test run state..."
STAGE_TOTAL = 4


class DownloadOrchestrator:
    """Fetch the artifacts of a run that was started earlier."""

    def __init__(
        self,
        service: BaseTestService,
        settings: Settings | None = None,
        observer: RunObserver | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self._service = service
        self._settings = settings or Settings()
        self._observer = observer or RunObserver()
        self._token = token or CancellationToken()

    async def execute(
        self,
        run_id: str,
        output: Path,
        wait: bool = True,
        glob: str | None = None,
    ) -> DownloadReport:
        """Download the artifacts of `run_id` into `output`.

        When `wait` is false and the run is still in progress, whatever is
        already available is downloaded.

        Raises:
            ApiError: If the status check fails.
            ArtifactListError: If the artifact tree cannot be enumerated.
        """
        settings = self._settings
        set_run_context(run_id)

        self._stage(STAGE_CHECK, 1)
        status = await self._service.get_run(run_id)
        self._observer.on_poll(status)
        if not status.is_terminal:
            if wait:
                status = await RunPoller(
                    self._service,
                    interval_s=settings.poll_interval_s,
                    max_wait_s=settings.max_wait_s,
                    token=self._token,
                    observer=self._observer,
                ).await_terminal(run_id)
            else:
                logger.warning("Run %s is still %s; artifacts may be incomplete", run_id, status.state)
        logger.debug("Run %s state: %s", run_id, status.state)

        self._stage(STAGE_FETCH, 2)
        await self._service.authenticate()
        artifacts = await ArtifactTreeCrawler(
            self._service, settings.effective_worker_limit, token=self._token,
        ).crawl(run_id)
        tasks = build_download_tasks(artifacts, run_id, output, glob=glob)
        if glob is not None:
            logger.info("%d of %d artifact(s) match %r", len(tasks), len(artifacts), glob)

        self._stage(STAGE_DOWNLOAD, 3)
        report = await ArtifactDownloader(
            self._service,
            worker_limit=settings.effective_worker_limit,
            retry=RetryConfig(
                max_attempts=settings.download_max_attempts,
                base_delay_s=settings.download_retry_delay_s,
            ),
            observer=self._observer,
            token=self._token,
        ).download_all(tasks, output)
        self._observer.on_downloads_done(report)

        self._stage(STAGE_PATCH, 4)
        patch_allure_paths(output)
        return report

    def _stage(self, name: str, index: int) -> None:
        set_stage_context(name.rstrip("."))
        self._observer.on_stage(name, index, STAGE_TOTAL)
