# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Wire-only request/response shapes live in api/models.py; everything the
orchestration core passes around is defined here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# === RUN REQUEST ===


class ApplicationBundle(BaseModel):
    """An application package submitted together with its test package."""

    app_path: Path
    test_app_path: Path


class PullFileItem(BaseModel):
    """One device path to pull after the run (Android only)."""

    model_config = ConfigDict(populate_by_name=True)

    relative_path: str = Field(alias="relativePath")
    aggregation_mode: str = Field(default="TEST_RUN", alias="aggregationMode")
    path_root: Literal["EXTERNAL_STORAGE", "APP_DATA"] = Field(alias="pathRoot")


class PullFileConfig(BaseModel):
    """Serialized as {"pull": [...]} inside the run request."""

    model_config = ConfigDict(populate_by_name=True)

    pull_items: list[PullFileItem] = Field(default_factory=list, alias="pull")


class RunRequest(BaseModel):
    """Everything needed to upload bundles and create one run.

    Validation of device / OS combinations happens upstream; the core only
    relies on has_bundle() being true.
    """

    platform: str
    application: Path | None = None
    test_application: Path | None = None
    application_bundles: list[ApplicationBundle] = Field(default_factory=list)
    library_bundles: list[Path] = Field(default_factory=list)

    name: str | None = None
    link: str | None = None
    branch: str | None = None
    project: str | None = None

    os_version: str | None = None
    system_image: str | None = None
    device: str | None = None
    xcode_version: str | None = None
    flavor: str | None = None

    isolated: bool | None = None
    code_coverage: bool | None = None
    analytics_read_only: bool | None = None
    profiling: bool | None = None

    retry_quota_test_uncompleted: int | None = None
    retry_quota_test_preventive: int | None = None
    retry_quota_test_reactive: int | None = None
    concurrency_limit: int | None = None
    test_timeout_default: int | None = None
    test_timeout_max: int | None = None

    filtering_configuration: dict[str, Any] | None = None
    pull_file_config: PullFileConfig | None = None
    env_args: dict[str, str] | None = None
    test_env_args: dict[str, str] | None = None

    def has_bundle(self) -> bool:
        """True when at least one uploadable test package is present."""
        return (
            self.test_application is not None
            or bool(self.application_bundles)
            or bool(self.library_bundles)
        )


class RunOptions(BaseModel):
    """Caller choices that shape the lifecycle, not the submitted run."""

    wait: bool = True
    output: Path | None = None
    ignore_test_failures: bool = False


# === REMOTE STATE ===


class RunState(str, Enum):
    """Run states reported by the service."""

    QUEUED = "queued"
    RUNNING = "running"
    PASSED = "passed"
    FAILURE = "failure"
    ERROR = "error"


TERMINAL_STATES = frozenset({RunState.PASSED.value, RunState.FAILURE.value, RunState.ERROR.value})


class RunStatus(BaseModel):
    """Snapshot of a run as returned by GET /v1/run/{id}.

    `state` is kept as a plain string so an unknown state from a newer
    service version does not break polling.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    state: str
    passed: int | None = None
    failed: int | None = None
    ignored: int | None = None
    completed_at: datetime | None = Field(default=None, alias="completed")
    total_run_time: float | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        """The service marks completion by setting `completed`."""
        return self.completed_at is not None


class ArtifactNode(BaseModel):
    """One entry of an artifact directory listing."""

    id: str
    name: str = ""
    is_file: bool


class DownloadTask(BaseModel):
    """A file artifact and the local path it is written to."""

    remote_id: str
    local_path: Path

    @classmethod
    def for_artifact(cls, artifact_id: str, run_id: str, output_dir: Path) -> DownloadTask:
        """Map a remote artifact id to a path under output_dir.

        The "<run_id>/" prefix is stripped when present; otherwise a single
        leading "/" is removed and the remainder used as-is. Containment in
        output_dir is checked by the downloader, not here.
        """
        relative = relative_artifact_path(artifact_id, run_id)
        return cls(remote_id=artifact_id, local_path=output_dir / relative)


def relative_artifact_path(artifact_id: str, run_id: str) -> str:
    """Path of an artifact relative to the run's artifact root."""
    prefix = f"{run_id}/"
    if artifact_id.startswith(prefix):
        return artifact_id[len(prefix):]
    return artifact_id.removeprefix("/")


class DownloadFailure(BaseModel):
    """An artifact that could not be downloaded."""

    artifact_id: str
    local_path: Path | None = None
    attempts: int
    last_error: str


class DownloadReport(BaseModel):
    """Aggregated result of one download batch."""

    total: int = 0
    succeeded: int = 0
    failures: list[DownloadFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


# === REPORTED EVENTS ===


class RunStarted(BaseModel):
    """Reported when the caller does not wait for completion."""

    id: str


class RunFinished(BaseModel):
    """Reported once the run reached a terminal state."""

    id: str
    state: str
    report: str
    passed: int | None = None
    failed: int | None = None
    ignored: int | None = None
    billable_time: float = 0.0

    @classmethod
    def from_status(cls, status: RunStatus, report_url: str) -> RunFinished:
        return cls(
            id=status.id,
            state=status.state,
            report=report_url,
            passed=status.passed,
            failed=status.failed,
            ignored=status.ignored,
            billable_time=status.total_run_time or 0.0,
        )


class RunOutcome(BaseModel):
    """Final value of an orchestration: success flag plus what was reported."""

    success: bool
    event: RunStarted | RunFinished
    status: RunStatus | None = None
    download_report: DownloadReport | None = None


class Device(BaseModel):
    """Entry of the device catalog."""

    id: str
    name: str
    manufacturer: str = ""
    width: int | None = None
    height: int | None = None
    dpi: int | None = None
