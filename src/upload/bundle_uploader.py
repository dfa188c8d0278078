# src/upload/bundle_uploader.py — v1
"""Stream local application / test packages to the service.

Each file is read in chunks; byte progress is scheduled on the event loop
(never awaited) so a slow observer cannot stall the transfer. The files of
one run are uploaded concurrently, bounded by the worker limit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.core.concurrency import default_worker_limit, gather_bounded
from marathon_cloud.core.errors import InvalidFileName, OpenFileFailure
from marathon_cloud.core.models import RunRequest
from marathon_cloud.orchestrator.observer import RunObserver

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class RemoteBundle:
    """Uploaded handles of one bundle; library bundles have no app."""

    test_app_path: str
    app_path: str | None = None


@dataclass
class UploadedFiles:
    """Remote handles for everything a RunRequest references."""

    app_path: str | None = None
    test_app_path: str | None = None
    bundles: list[RemoteBundle] = field(default_factory=list)


class BundleUploader:
    """Upload the files referenced by a run request.

    Args:
        service: Remote service used for the transfer.
        observer: Receives byte progress per file (task id = file path).
        worker_limit: Maximum number of concurrent file uploads.
        chunk_size: Read size for streaming.
    """

    def __init__(
        self,
        service: BaseTestService,
        observer: RunObserver | None = None,
        worker_limit: int | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._service = service
        self._observer = observer or RunObserver()
        self._worker_limit = worker_limit or default_worker_limit()
        self._chunk_size = chunk_size

    async def upload(self, local_path: Path) -> str:
        """Upload one file and return its remote handle.

        Raises:
            InvalidFileName: If the path has no file name.
            OpenFileFailure: If the file cannot be opened or sized.
            ApiError: If the service rejects the upload.
        """
        path = Path(local_path)
        if not path.name:
            raise InvalidFileName(path)
        try:
            handle = path.open("rb")
        except OSError as exc:
            raise OpenFileFailure(path) from exc

        with handle:
            try:
                size = path.stat().st_size
            except OSError as exc:
                raise OpenFileFailure(path) from exc
            logger.info("Uploading %s (%d bytes)", path, size)
            remote = await self._service.upload_file(
                path.name, self._stream(handle, str(path), size), size,
            )
        logger.debug("Uploaded %s as %s", path, remote)
        return remote

    async def upload_request(self, request: RunRequest) -> UploadedFiles:
        """Upload every file of `request`; order on the server is irrelevant."""
        jobs: list[Path] = []
        if request.application is not None:
            jobs.append(request.application)
        if request.test_application is not None:
            jobs.append(request.test_application)
        for bundle in request.application_bundles:
            jobs.extend([bundle.app_path, bundle.test_app_path])
        jobs.extend(request.library_bundles)

        handles = iter(await gather_bounded(jobs, self.upload, self._worker_limit))

        uploaded = UploadedFiles()
        if request.application is not None:
            uploaded.app_path = next(handles)
        if request.test_application is not None:
            uploaded.test_app_path = next(handles)
        for _ in request.application_bundles:
            app_path = next(handles)
            uploaded.bundles.append(RemoteBundle(app_path=app_path, test_app_path=next(handles)))
        for _ in request.library_bundles:
            uploaded.bundles.append(RemoteBundle(test_app_path=next(handles)))
        return uploaded

    async def _stream(self, handle: BinaryIO, task_id: str, size: int) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        while True:
            chunk = handle.read(self._chunk_size)
            if not chunk:
                break
            loop.call_soon(self._observer.on_progress, task_id, len(chunk), size)
            yield chunk
