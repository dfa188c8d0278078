# src/orchestrator/run_orchestrator.py — v1
"""Run lifecycle: upload, submit, poll, fetch artifacts, report.

State machine:
    CREATED -> UPLOADING -> SUBMITTED -> REPORTED                  (no wait)
    CREATED -> UPLOADING -> SUBMITTED -> POLLING -> TERMINAL
            -> [ARTIFACTS_PENDING -> ARTIFACTS_DONE] -> REPORTED   (wait)

Upload, submission and polling errors end the run immediately. Artifact
download failures are collected and only affect the success flag.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.artifacts.allure import patch_allure_paths
from marathon_cloud.artifacts.crawler import ArtifactTreeCrawler
from marathon_cloud.artifacts.downloader import ArtifactDownloader, build_download_tasks
from marathon_cloud.config.settings import Settings
from marathon_cloud.core.concurrency import CancellationToken
from marathon_cloud.core.models import (
    DownloadReport,
    RunFinished,
    RunOptions,
    RunOutcome,
    RunRequest,
    RunStarted,
    RunState,
)
from marathon_cloud.core.retry import RetryConfig
from marathon_cloud.logging.context import set_run_context, set_stage_context
from marathon_cloud.orchestrator.observer import RunObserver
from marathon_cloud.run.poller import RunPoller
from marathon_cloud.run.submitter import RunSubmitter
from marathon_cloud.upload.bundle_uploader import BundleUploader

logger = logging.getLogger(__name__)

STAGE_SUBMIT = "Submitting new run..."
STAGE_WAIT = "Waiting for test run to finish..."
STAGE_FETCH = "Fetching file list..."
STAGE_DOWNLOAD = "Downloading files..."
STAGE_PATCH = "Patching local relative paths..."


class OrchestratorState(str, Enum):
    CREATED = "created"
    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    POLLING = "polling"
    TERMINAL = "terminal"
    ARTIFACTS_PENDING = "artifacts_pending"
    ARTIFACTS_DONE = "artifacts_done"
    REPORTED = "reported"


def stage_count(options: RunOptions) -> int:
    """1 without wait, 2 when waiting, 5 when also fetching artifacts."""
    if not options.wait:
        return 1
    return 5 if options.output is not None else 2


def report_url(base_url: str, run_id: str) -> str:
    """Web report link: <scheme>://<host[:port]>/report/<id>."""
    parts = urlsplit(base_url)
    return f"{parts.scheme}://{parts.netloc}/report/{run_id}"


def compute_success(
    state: str,
    ignore_test_failures: bool,
    download_report: DownloadReport | None = None,
) -> bool:
    """Outcome of a finished run.

    A failed run is a failure unless test failures are ignored; any artifact
    that could not be downloaded is a failure too. Every other state,
    including "error", is a success.
    """
    if state == RunState.FAILURE.value and not ignore_test_failures:
        return False
    if download_report is not None and not download_report.ok:
        return False
    return True


class RunOrchestrator:
    """Drive one run from local files to a reported outcome.

    Args:
        service: Remote service adapter.
        settings: Tunables (poll interval, worker limit, retry, chunk size).
        observer: Receives stages, progress and events.
        token: Cancellation token shared by every stage.
    """

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
        self._state = OrchestratorState.CREATED
        self._stage_index = 0
        self._stage_total = 0

    @property
    def state(self) -> OrchestratorState:
        return self._state

    async def execute(self, request: RunRequest, options: RunOptions) -> RunOutcome:
        """Run the whole lifecycle and return the outcome.

        Raises:
            InputError: If a local file cannot be read.
            ApiError: If upload, submission or polling fails.
            ArtifactListError: If the artifact tree cannot be enumerated.
            PollTimeout / RunCancelled: On timeout or caller cancellation.
        """
        settings = self._settings
        self._stage_index = 0
        self._stage_total = stage_count(options)

        await self._service.authenticate()

        self._stage(STAGE_SUBMIT)
        self._transition(OrchestratorState.UPLOADING)
        uploader = BundleUploader(
            self._service,
            observer=self._observer,
            worker_limit=settings.effective_worker_limit,
            chunk_size=settings.upload_chunk_size,
        )
        uploaded = await uploader.upload_request(request)
        self._token.raise_if_cancelled()

        run_id = await RunSubmitter(self._service).submit(request, uploaded)
        set_run_context(run_id)
        self._transition(OrchestratorState.SUBMITTED)

        if not options.wait:
            event = RunStarted(id=run_id)
            self._observer.on_event(event)
            self._transition(OrchestratorState.REPORTED)
            return RunOutcome(success=True, event=event)

        self._stage(STAGE_WAIT)
        self._transition(OrchestratorState.POLLING)
        status = await RunPoller(
            self._service,
            interval_s=settings.poll_interval_s,
            max_wait_s=settings.max_wait_s,
            token=self._token,
            observer=self._observer,
        ).await_terminal(run_id)
        self._transition(OrchestratorState.TERMINAL)

        event = RunFinished.from_status(status, report_url(self._service.base_url, run_id))
        self._observer.on_event(event)

        download_report = None
        if options.output is not None:
            download_report = await self._fetch_artifacts(run_id, options.output)

        success = compute_success(status.state, options.ignore_test_failures, download_report)
        self._transition(OrchestratorState.REPORTED)
        logger.info("Run %s finished: state=%s success=%s", run_id, status.state, success)
        return RunOutcome(
            success=success, event=event, status=status, download_report=download_report,
        )

    async def _fetch_artifacts(self, run_id: str, output: Path) -> DownloadReport:
        settings = self._settings
        self._transition(OrchestratorState.ARTIFACTS_PENDING)

        self._stage(STAGE_FETCH)
        crawler = ArtifactTreeCrawler(
            self._service, settings.effective_worker_limit, token=self._token,
        )
        artifacts = await crawler.crawl(run_id)

        self._stage(STAGE_DOWNLOAD)
        tasks = build_download_tasks(artifacts, run_id, output)
        downloader = ArtifactDownloader(
            self._service,
            worker_limit=settings.effective_worker_limit,
            retry=RetryConfig(
                max_attempts=settings.download_max_attempts,
                base_delay_s=settings.download_retry_delay_s,
            ),
            observer=self._observer,
            token=self._token,
        )
        download_report = await downloader.download_all(tasks, output)
        self._observer.on_downloads_done(download_report)

        self._stage(STAGE_PATCH)
        patch_allure_paths(output)
        self._transition(OrchestratorState.ARTIFACTS_DONE)
        return download_report

    def _stage(self, name: str) -> None:
        self._stage_index += 1
        set_stage_context(name.rstrip("."))
        self._observer.on_stage(name, self._stage_index, self._stage_total)

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug("Orchestrator %s -> %s", self._state.value, state.value)
        self._state = state
