# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides an in-memory test service, a recording observer and status
builders. No network access: the HTTP adapter is tested through
httpx.MockTransport in its own module.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Any, AsyncIterable, AsyncIterator, Callable

import pytest

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.config.settings import Settings
from marathon_cloud.core.models import (
    ArtifactNode,
    Device,
    DownloadReport,
    RunFinished,
    RunStarted,
    RunStatus,
)
from marathon_cloud.orchestrator.observer import RunObserver

BASE_URL = "https://cloud.example.test/api"


# === FAKES ===


class FakeTestService(BaseTestService):
    """In-memory service: artifact tree, file contents, scripted statuses.

    Failure injection:
        list_failures: path_id -> exception raised by list_artifacts.
        download_failures: artifact_id -> exceptions raised on successive attempts.
    """

    def __init__(self) -> None:
        self.run_id = "R1"
        self.tree: dict[str, list[ArtifactNode]] = {}
        self.files: dict[str, bytes] = {}
        self.statuses: list[RunStatus] = []
        self.devices: list[Device] = []
        self.list_failures: dict[str, Exception] = {}
        self.download_failures: dict[str, list[Exception]] = {}
        self.delay = 0.0

        self.uploads: list[tuple[str, bytes, int]] = []
        self.payloads: list[dict[str, Any]] = []
        self.listed: list[str] = []
        self.download_attempts: Counter[str] = Counter()
        self.auth_calls = 0
        self.get_run_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def base_url(self) -> str:
        return BASE_URL

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)

    def _leave(self) -> None:
        self.in_flight -= 1

    async def authenticate(self) -> str:
        self.auth_calls += 1
        return "token"

    async def upload_file(
        self, filename: str, content: AsyncIterable[bytes], size: int,
    ) -> str:
        data = b"".join([chunk async for chunk in content])
        self.uploads.append((filename, data, size))
        return f"uploads/{filename}"

    async def create_run(self, payload: dict[str, Any]) -> str:
        self.payloads.append(payload)
        return self.run_id

    async def get_run(self, run_id: str) -> RunStatus:
        self.get_run_calls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    async def list_artifacts(self, path_id: str) -> list[ArtifactNode]:
        self.listed.append(path_id)
        await self._enter()
        try:
            if path_id in self.list_failures:
                raise self.list_failures[path_id]
            return list(self.tree.get(path_id, []))
        finally:
            self._leave()

    async def iter_artifact(self, artifact_id: str) -> AsyncIterator[bytes]:
        self.download_attempts[artifact_id] += 1
        await self._enter()
        try:
            pending = self.download_failures.get(artifact_id)
            if pending:
                raise pending.pop(0)
            data = self.files.get(artifact_id, b"")
            half = len(data) // 2
            yield data[:half]
            yield data[half:]
        finally:
            self._leave()

    async def list_devices(self, platform: str) -> list[Device]:
        return list(self.devices)


class RecordingObserver(RunObserver):
    """Keeps every notification for assertions."""

    def __init__(self) -> None:
        self.stages: list[tuple[str, int, int]] = []
        self.progress: list[tuple[str, int, int]] = []
        self.polls: list[RunStatus] = []
        self.events: list[RunStarted | RunFinished] = []
        self.download_reports: list[DownloadReport] = []

    def on_stage(self, name: str, index: int, total: int) -> None:
        self.stages.append((name, index, total))

    def on_progress(self, task_id: str, delta: int, total: int) -> None:
        self.progress.append((task_id, delta, total))

    def on_poll(self, status: RunStatus) -> None:
        self.polls.append(status)

    def on_event(self, event: RunStarted | RunFinished) -> None:
        self.events.append(event)

    def on_downloads_done(self, report: DownloadReport) -> None:
        self.download_reports.append(report)


def build_tree(run_id: str, paths: list[str]) -> dict[str, list[ArtifactNode]]:
    """Directory listings for a set of relative file paths under run_id."""
    tree: dict[str, list[ArtifactNode]] = {run_id: []}
    for path in paths:
        parent = run_id
        parts = path.split("/")
        for index, part in enumerate(parts):
            node_id = f"{parent}/{part}"
            is_file = index == len(parts) - 1
            siblings = tree.setdefault(parent, [])
            if all(node.id != node_id for node in siblings):
                siblings.append(ArtifactNode(id=node_id, name=part, is_file=is_file))
            if not is_file:
                tree.setdefault(node_id, [])
            parent = node_id
    return tree


def make_status(
    state: str,
    run_id: str = "R1",
    completed: bool = False,
    **counts: Any,
) -> RunStatus:
    """RunStatus snapshot; `completed` sets the completion timestamp."""
    return RunStatus(
        id=run_id,
        state=state,
        completed_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) if completed else None,
        **counts,
    )


# === FIXTURES ===


@pytest.fixture
def fake_service() -> FakeTestService:
    return FakeTestService()


@pytest.fixture
def recording_observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def tree_builder() -> Callable[[str, list[str]], dict[str, list[ArtifactNode]]]:
    return build_tree


@pytest.fixture
def status_factory() -> Callable[..., RunStatus]:
    return make_status


@pytest.fixture
def fast_settings() -> Settings:
    """Settings without waits between polls or retries."""
    return Settings(
        _env_file=None,
        api_key="test-key",
        base_url=BASE_URL,
        poll_interval_s=0,
        download_retry_delay_s=0,
        worker_limit=4,
    )
