# src/orchestrator/observer.py — v1
"""Progress observer injected into the orchestration core.

The core never prints; it reports stages, progress ticks and events to an
observer. The default implementation ignores everything.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marathon_cloud.core.models import (
        DownloadReport,
        RunFinished,
        RunStarted,
        RunStatus,
    )


class RunObserver:
    """Receives lifecycle notifications. Override what you need."""

    def on_stage(self, name: str, index: int, total: int) -> None:
        """A new stage started (1-based index)."""

    def on_progress(self, task_id: str, delta: int, total: int) -> None:
        """`delta` more units of `task_id` are done out of `total`.

        Uploads report bytes per file, downloads report one unit per artifact.
        """

    def on_poll(self, status: RunStatus) -> None:
        """A status poll returned."""

    def on_event(self, event: RunStarted | RunFinished) -> None:
        """A run was started or finished."""

    def on_downloads_done(self, report: DownloadReport) -> None:
        """An artifact download batch completed."""
