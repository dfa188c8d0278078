# tests/unit/artifacts/test_unit_crawler.py — v1
"""Tests for artifacts/crawler.py — frontier crawl of the artifact tree."""

from __future__ import annotations

import pytest

from marathon_cloud.artifacts.crawler import ArtifactTreeCrawler
from marathon_cloud.core.concurrency import CancellationToken
from marathon_cloud.core.errors import ArtifactListError, RequestFailedWithCode, RunCancelled
from marathon_cloud.core.models import ArtifactNode

PATHS = [
    "logs/omni/device-1.log",
    "logs/omni/device-2.log",
    "video/omni/test.mp4",
    "tests/junit.xml",
    "report/allure-results/1-result.json",
    "report/index.html",
    "summary.json",
]


class TestCrawl:
    @pytest.mark.asyncio
    async def test_finds_every_file(self, fake_service, tree_builder):
        fake_service.tree = tree_builder("R1", PATHS)
        files = await ArtifactTreeCrawler(fake_service, worker_limit=2).crawl("R1")
        assert sorted(f.id for f in files) == sorted(f"R1/{p}" for p in PATHS)
        assert all(f.is_file for f in files)

    @pytest.mark.asyncio
    async def test_lists_each_directory_once(self, fake_service, tree_builder):
        fake_service.tree = tree_builder("R1", PATHS)
        await ArtifactTreeCrawler(fake_service, worker_limit=2).crawl("R1")
        assert len(fake_service.listed) == len(set(fake_service.listed))
        assert "R1/report/allure-results" in fake_service.listed

    @pytest.mark.asyncio
    async def test_empty_root(self, fake_service):
        assert await ArtifactTreeCrawler(fake_service).crawl("R1") == []

    @pytest.mark.asyncio
    async def test_duplicates_dropped(self, fake_service):
        dup = ArtifactNode(id="R1/a.txt", name="a.txt", is_file=True)
        fake_service.tree = {
            "R1": [dup, ArtifactNode(id="R1/d", name="d", is_file=False)],
            "R1/d": [dup],
        }
        files = await ArtifactTreeCrawler(fake_service).crawl("R1")
        assert [f.id for f in files] == ["R1/a.txt"]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, fake_service, tree_builder):
        fake_service.tree = tree_builder("R1", [f"d{i}/f.txt" for i in range(10)])
        fake_service.delay = 0.005
        await ArtifactTreeCrawler(fake_service, worker_limit=3).crawl("R1")
        assert fake_service.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_listing_failure_fails_whole_crawl(self, fake_service, tree_builder):
        fake_service.tree = tree_builder("R1", PATHS)
        fake_service.list_failures["R1/logs"] = RequestFailedWithCode(500, "boom")
        with pytest.raises(ArtifactListError) as exc_info:
            await ArtifactTreeCrawler(fake_service).crawl("R1")
        assert exc_info.value.path_id == "R1/logs"
        assert isinstance(exc_info.value.__cause__, RequestFailedWithCode)

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, fake_service, tree_builder):
        fake_service.tree = tree_builder("R1", PATHS)
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RunCancelled):
            await ArtifactTreeCrawler(fake_service, token=token).crawl("R1")
        assert fake_service.listed == []

    @pytest.mark.asyncio
    async def test_cancel_stops_before_next_round(self, fake_service, tree_builder):
        fake_service.tree = tree_builder("R1", PATHS)
        token = CancellationToken()
        list_artifacts = fake_service.list_artifacts

        async def cancel_after_root(path_id):
            nodes = await list_artifacts(path_id)
            token.cancel()
            return nodes

        fake_service.list_artifacts = cancel_after_root
        with pytest.raises(RunCancelled):
            await ArtifactTreeCrawler(fake_service, token=token).crawl("R1")
        assert fake_service.listed == ["R1"]
