# src/run/submitter.py — v1
"""Compose the run-creation payload and submit it.

Submission is not idempotent: a retried POST would create a second run, so
every failure goes straight back to the caller.
"""

from __future__ import annotations

import json
import logging

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.api.models import CreateRunBundle, CreateRunRequest
from marathon_cloud.core.models import RunRequest
from marathon_cloud.upload.bundle_uploader import UploadedFiles

logger = logging.getLogger(__name__)


def build_payload(request: RunRequest, uploaded: UploadedFiles) -> dict:
    """Wire payload for POST /v2/run, without null fields."""
    bundles = [
        CreateRunBundle(s3_app_path=b.app_path, s3_test_app_path=b.test_app_path)
        for b in uploaded.bundles
    ]
    filtering = (
        json.dumps(request.filtering_configuration)
        if request.filtering_configuration is not None
        else None
    )
    pull_files = (
        request.pull_file_config.model_dump_json(by_alias=True)
        if request.pull_file_config is not None
        else None
    )
    body = CreateRunRequest(
        platform=request.platform,
        s3_app_path=uploaded.app_path,
        s3_test_app_path=uploaded.test_app_path,
        bundles=bundles or None,
        name=request.name,
        link=request.link,
        branch=request.branch,
        project=request.project,
        os_version=request.os_version,
        system_image=request.system_image,
        device=request.device,
        xcode_version=request.xcode_version,
        flavor=request.flavor,
        isolated=request.isolated,
        code_coverage=request.code_coverage,
        analytics_read_only=request.analytics_read_only,
        profiling=request.profiling,
        retry_quota_test_uncompleted=request.retry_quota_test_uncompleted,
        retry_quota_test_preventive=request.retry_quota_test_preventive,
        retry_quota_test_reactive=request.retry_quota_test_reactive,
        concurrency_limit=request.concurrency_limit,
        test_timeout_default=request.test_timeout_default,
        test_timeout_max=request.test_timeout_max,
        filtering_configuration=filtering,
        pull_file_config=pull_files,
        env_args=request.env_args,
        test_env_args=request.test_env_args,
    )
    return body.model_dump(exclude_none=True)


class RunSubmitter:
    """Create a run from a request whose files are already uploaded."""

    def __init__(self, service: BaseTestService) -> None:
        self._service = service

    async def submit(self, request: RunRequest, uploaded: UploadedFiles) -> str:
        """Submit the run and return its id.

        Raises:
            InvalidAuthenticationToken: On HTTP 401/403.
            RequestFailedWithCode: On other non-2xx responses.
            DeserializationFailure: If the response has no run id.
        """
        payload = build_payload(request, uploaded)
        logger.debug("Submitting %s run with %d bundle(s)", request.platform, len(uploaded.bundles))
        run_id = await self._service.create_run(payload)
        logger.info("Created run %s", run_id)
        return run_id
