# tests/unit/core/test_unit_errors.py — v1
"""Tests for core/errors.py — messages and cause-chain rendering."""

from __future__ import annotations

from pathlib import Path

from marathon_cloud.core.errors import (
    ApiError,
    ArtifactListError,
    InvalidAuthenticationToken,
    MarathonCloudError,
    OpenFileFailure,
    RequestFailedWithCode,
    format_error_chain,
)


class TestErrorHierarchy:
    def test_api_errors_share_base(self):
        assert issubclass(InvalidAuthenticationToken, ApiError)
        assert issubclass(ApiError, MarathonCloudError)

    def test_auth_message_mentions_api_key(self):
        err = InvalidAuthenticationToken(401)
        assert err.status_code == 401
        assert "API key" in str(err)

    def test_request_failed_keeps_body(self):
        err = RequestFailedWithCode(500, "oops")
        assert err.status_code == 500
        assert err.body == "oops"
        assert "500" in str(err)

    def test_open_file_failure_has_path(self):
        err = OpenFileFailure(Path("/tmp/app.apk"))
        assert "/tmp/app.apk" in str(err)


class TestFormatErrorChain:
    def test_single(self):
        assert format_error_chain(ApiError("down")) == "error: down"

    def test_with_causes(self):
        try:
            try:
                raise ConnectionError("reset")
            except ConnectionError as exc:
                raise RequestFailedWithCode(502, "bad gateway") from exc
        except RequestFailedWithCode as inner:
            outer = ArtifactListError("R1/logs")
            outer.__cause__ = inner

        lines = format_error_chain(outer).splitlines()
        assert lines[0].startswith("error: Failed to enumerate artifacts")
        assert lines[1].startswith("caused by: RequestFailedWithCode: ")
        assert lines[2] == "caused by: ConnectionError: reset"
