# tests/unit/orchestrator/test_unit_download_orchestrator.py — v1
"""Tests for orchestrator/download_orchestrator.py — the download command flow."""

from __future__ import annotations

import json

import pytest

from marathon_cloud.core.errors import ArtifactListError, RequestFailed
from marathon_cloud.orchestrator.download_orchestrator import DownloadOrchestrator


class TestDownloadOrchestrator:
    @pytest.mark.asyncio
    async def test_downloads_finished_run(
        self, tmp_path, fake_service, fast_settings, recording_observer, status_factory, tree_builder,
    ):
        fake_service.statuses = [status_factory("passed", completed=True)]
        fake_service.tree = tree_builder("R1", ["tests/junit.xml", "report/allure-results/r.json"])
        fake_service.files = {
            "R1/tests/junit.xml": b"<xml/>",
            "R1/report/allure-results/r.json": json.dumps(
                {"attachments": [{"source": "s3/logs/omni/1.log"}]},
            ).encode(),
        }

        report = await DownloadOrchestrator(
            fake_service, fast_settings, recording_observer,
        ).execute("R1", tmp_path)

        assert report.ok
        assert report.succeeded == 2
        assert [s[0] for s in recording_observer.stages] == [
            "Checking test run state...",
            "Fetching file list...",
            "Downloading files...",
            "Patching local relative paths...",
        ]
        assert all(s[2] == 4 for s in recording_observer.stages)
        patched = json.loads((tmp_path / "report" / "allure-results" / "r.json").read_text())
        assert patched["attachments"][0]["source"] == "../../logs/omni/1.log"

    @pytest.mark.asyncio
    async def test_waits_for_completion(self, tmp_path, fake_service, fast_settings, status_factory):
        fake_service.statuses = [
            status_factory("running"),
            status_factory("running"),
            status_factory("passed", completed=True),
        ]
        await DownloadOrchestrator(fake_service, fast_settings).execute("R1", tmp_path, wait=True)
        assert fake_service.get_run_calls == 3

    @pytest.mark.asyncio
    async def test_no_wait_downloads_what_exists(
        self, tmp_path, fake_service, fast_settings, status_factory, tree_builder,
    ):
        fake_service.statuses = [status_factory("running")]
        fake_service.tree = tree_builder("R1", ["logs/a.txt"])
        report = await DownloadOrchestrator(fake_service, fast_settings).execute(
            "R1", tmp_path, wait=False,
        )
        assert fake_service.get_run_calls == 1
        assert report.succeeded == 1

    @pytest.mark.asyncio
    async def test_glob(self, tmp_path, fake_service, fast_settings, status_factory, tree_builder):
        fake_service.statuses = [status_factory("passed", completed=True)]
        fake_service.tree = tree_builder("R1", ["tests/junit.xml", "logs/a.txt", "video/v.mp4"])
        report = await DownloadOrchestrator(fake_service, fast_settings).execute(
            "R1", tmp_path, glob="tests/*",
        )
        assert report.total == 1
        assert (tmp_path / "tests" / "junit.xml").exists()
        assert not (tmp_path / "logs").exists()

    @pytest.mark.asyncio
    async def test_listing_failure(self, tmp_path, fake_service, fast_settings, status_factory, tree_builder):
        fake_service.statuses = [status_factory("passed", completed=True)]
        fake_service.tree = tree_builder("R1", ["logs/a.txt"])
        fake_service.list_failures["R1/logs"] = RequestFailed("down")
        with pytest.raises(ArtifactListError):
            await DownloadOrchestrator(fake_service, fast_settings).execute("R1", tmp_path)
        assert not (tmp_path / "logs").exists()
