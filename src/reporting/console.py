# src/reporting/console.py — v1
"""Console rendering of stages, events and download summaries.

Stage lines and results go to stdout; diagnostics stay on the logging
stream (stderr).
"""

from __future__ import annotations

import sys
from typing import TextIO

from marathon_cloud.artifacts.downloader import PROGRESS_TASK_ID
from marathon_cloud.core.models import DownloadReport, RunFinished, RunStarted, RunStatus
from marathon_cloud.orchestrator.observer import RunObserver

MISSING = "missing"


def format_billable_time(seconds: float) -> str:
    """HH:MM:SS.mmm"""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    total_s, ms = divmod(total_ms, 1000)
    h, rest = divmod(total_s, 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"


def _count(value: int | None) -> str:
    return MISSING if value is None else str(value)


def format_event(event: RunStarted | RunFinished) -> str:
    """Human-readable rendering of a reported event."""
    if isinstance(event, RunStarted):
        return f"Test run {event.id} started"

    if event.state == "passed":
        headline = "Marathon Cloud execution finished"
    elif event.state == "failure":
        headline = "Marathon Cloud execution finished with failures"
    else:
        headline = "Marathon cloud execution crashed"
    lines = [
        headline,
        f"\tstate: {event.state}",
        f"\treport: {event.report}",
        f"\tpassed: {_count(event.passed)}",
        f"\tfailed: {_count(event.failed)}",
        f"\tignored: {_count(event.ignored)}",
        f"\tbillable time: {format_billable_time(event.billable_time)}",
    ]
    return "\n".join(lines)


def format_download_report(report: DownloadReport) -> str:
    lines = [f"Downloaded {report.succeeded}/{report.total} file(s)"]
    for failure in report.failures:
        lines.append(
            f"\tfailed: {failure.artifact_id} after {failure.attempts} attempt(s): "
            f"{failure.last_error}"
        )
    return "\n".join(lines)


class ConsoleObserver(RunObserver):
    """Prints "[i/N] stage" lines, events and a download summary.

    With progress disabled only events and summaries are printed.
    """

    def __init__(self, stream: TextIO | None = None, show_progress: bool = True) -> None:
        self._stream = stream or sys.stdout
        self._show_progress = show_progress
        self._last_state: str | None = None
        self._downloaded = 0

    def _print(self, text: str) -> None:
        print(text, file=self._stream, flush=True)

    def on_stage(self, name: str, index: int, total: int) -> None:
        self._print(f"[{index}/{total}] {name}")

    def on_progress(self, task_id: str, delta: int, total: int) -> None:
        if task_id != PROGRESS_TASK_ID or not self._show_progress:
            return
        self._downloaded += delta
        if self._downloaded == total or self._downloaded % 50 == 0:
            self._print(f"\t{self._downloaded}/{total} file(s)")

    def on_poll(self, status: RunStatus) -> None:
        if self._show_progress and status.state != self._last_state:
            self._print(f"\tstate: {status.state}")
        self._last_state = status.state

    def on_event(self, event: RunStarted | RunFinished) -> None:
        self._print(format_event(event))

    def on_downloads_done(self, report: DownloadReport) -> None:
        self._print(format_download_report(report))
