# tests/unit/reporting/test_unit_result_file.py — v1
"""Tests for reporting/result_file.py — JSON / YAML result files."""

from __future__ import annotations

import json

import pytest
import yaml

from marathon_cloud.core.errors import UnsupportedResultFormat
from marathon_cloud.core.models import RunFinished, RunStarted
from marathon_cloud.reporting.result_file import result_format, write_result_file

FINISHED = RunFinished(
    id="R1", state="passed", report="https://host/report/R1",
    passed=10, failed=0, ignored=None, billable_time=12.5,
)


class TestResultFormat:
    @pytest.mark.parametrize("name,expected", [
        ("out.json", "json"),
        ("out.yaml", "yaml"),
        ("out.YML", "yaml"),
        ("result", "json"),
    ])
    def test_by_extension(self, tmp_path, name, expected):
        assert result_format(tmp_path / name) == expected

    def test_unsupported(self, tmp_path):
        with pytest.raises(UnsupportedResultFormat):
            result_format(tmp_path / "out.xml")


class TestWriteResultFile:
    def test_json_finished(self, tmp_path):
        path = tmp_path / "nested" / "result.json"
        write_result_file(path, FINISHED)
        assert json.loads(path.read_text()) == {
            "id": "R1",
            "state": "passed",
            "report": "https://host/report/R1",
            "passed": 10,
            "failed": 0,
            "ignored": None,
            "billable_time": 12.5,
        }

    def test_yaml_started(self, tmp_path):
        path = tmp_path / "result.yaml"
        write_result_file(path, RunStarted(id="R1"))
        assert yaml.safe_load(path.read_text()) == {"id": "R1"}

    def test_rejects_unknown_extension(self, tmp_path):
        with pytest.raises(UnsupportedResultFormat):
            write_result_file(tmp_path / "result.txt", FINISHED)
        assert not (tmp_path / "result.txt").exists()
