# src/artifacts/downloader.py — v1
"""Concurrent artifact download with per-file retry.

Each artifact is streamed to "<dest>.part" and renamed onto its destination
once complete, so an interrupted or failed transfer never leaves a truncated
file under the expected name. Failures are collected in a DownloadReport
instead of aborting the batch.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.core.concurrency import (
    CancellationToken,
    default_worker_limit,
    gather_bounded,
)
from marathon_cloud.core.errors import (
    ArtifactPathEscape,
    DeserializationFailure,
    RequestFailed,
    RequestFailedWithCode,
)
from marathon_cloud.core.models import (
    ArtifactNode,
    DownloadFailure,
    DownloadReport,
    DownloadTask,
    relative_artifact_path,
)
from marathon_cloud.core.parsing import compile_glob
from marathon_cloud.core.retry import RetryConfig, RetryExhausted, with_retry
from marathon_cloud.orchestrator.observer import RunObserver

logger = logging.getLogger(__name__)

PROGRESS_TASK_ID = "artifacts"
PART_SUFFIX = ".part"

# InvalidAuthenticationToken is absent: a rejected token fails the whole batch.
_RETRYABLE = (RequestFailed, RequestFailedWithCode, DeserializationFailure, OSError)


def build_download_tasks(
    artifacts: Iterable[ArtifactNode],
    run_id: str,
    output_dir: Path,
    glob: str | None = None,
) -> list[DownloadTask]:
    """Map file artifacts to download tasks, optionally filtered by glob.

    The pattern is matched against the path relative to the run root,
    e.g. "tests/**/*.xml" or "logs/*". See compile_glob for the syntax.

    Raises:
        InvalidGlobPattern: If `glob` does not compile.
    """
    matcher = compile_glob(glob) if glob is not None else None
    tasks = []
    for node in artifacts:
        if matcher is not None and not matcher.fullmatch(relative_artifact_path(node.id, run_id)):
            continue
        tasks.append(DownloadTask.for_artifact(node.id, run_id, output_dir))
    return tasks


class ArtifactDownloader:
    """Download a batch of artifacts into an output directory.

    Args:
        service: Remote service streaming the artifact bytes.
        worker_limit: Maximum number of downloads in flight.
        retry: Attempts per artifact and delay between them.
        observer: Receives one progress tick per downloaded artifact.
        token: Cancellation token; also interrupts retry delays.
    """

    def __init__(
        self,
        service: BaseTestService,
        worker_limit: int | None = None,
        retry: RetryConfig | None = None,
        observer: RunObserver | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self._service = service
        self._worker_limit = worker_limit or default_worker_limit()
        self._retry = retry or RetryConfig()
        self._observer = observer or RunObserver()
        self._token = token or CancellationToken()

    async def download_all(self, tasks: list[DownloadTask], output_dir: Path) -> DownloadReport:
        """Download every task; never raises for a single failed artifact.

        Raises:
            InvalidAuthenticationToken: If the service rejects the token.
            RunCancelled: If the token is cancelled during the batch.
        """
        output_root = Path(output_dir).resolve()
        output_root.mkdir(parents=True, exist_ok=True)
        total = len(tasks)
        logger.info("Downloading %d artifact(s) to %s", total, output_root)

        async def _one(task: DownloadTask) -> DownloadFailure | None:
            failure = await self._download(task, output_root)
            if failure is None:
                self._observer.on_progress(PROGRESS_TASK_ID, 1, total)
            return failure

        results = await gather_bounded(tasks, _one, self._worker_limit)
        failures = [r for r in results if r is not None]
        report = DownloadReport(total=total, succeeded=total - len(failures), failures=failures)
        if failures:
            logger.warning("%d of %d artifact download(s) failed", len(failures), total)
        return report

    async def _download(self, task: DownloadTask, output_root: Path) -> DownloadFailure | None:
        self._token.raise_if_cancelled()
        target = task.local_path.resolve()
        if target == output_root or not target.is_relative_to(output_root):
            error = ArtifactPathEscape(task.remote_id, output_root)
            logger.warning("%s", error)
            return DownloadFailure(
                artifact_id=task.remote_id, local_path=task.local_path,
                attempts=0, last_error=str(error),
            )

        try:
            await with_retry(
                self._fetch, task.remote_id, target,
                label=f"download {task.remote_id}",
                config=self._retry,
                retry_on=_RETRYABLE,
                sleep=self._token.sleep,
            )
        except RetryExhausted as exc:
            logger.warning("Giving up on %s: %s", task.remote_id, exc.last_error)
            return DownloadFailure(
                artifact_id=task.remote_id, local_path=task.local_path,
                attempts=exc.attempts, last_error=str(exc.last_error),
            )
        logger.debug("Downloaded %s", task.remote_id)
        return None

    async def _fetch(self, artifact_id: str, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        part = target.with_name(target.name + PART_SUFFIX)
        try:
            with part.open("wb") as fh:
                async for chunk in self._service.iter_artifact(artifact_id):
                    self._token.raise_if_cancelled()
                    fh.write(chunk)
            os.replace(part, target)
        except BaseException:
            part.unlink(missing_ok=True)
            raise
