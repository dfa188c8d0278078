# src/api/models.py — v1
"""Wire-only request and response bodies of the service API."""

from __future__ import annotations

from pydantic import BaseModel


class TokenResponse(BaseModel):
    token: str


class UploadUrlRequest(BaseModel):
    filename: str


class UploadUrlResponse(BaseModel):
    """Presigned upload target plus the handle to use in the run request."""

    file_path: str
    url: str


class UploadResponse(BaseModel):
    file_path: str


class CreateRunBundle(BaseModel):
    s3_test_app_path: str
    s3_app_path: str | None = None


class CreateRunRequest(BaseModel):
    """Body of POST /v2/run. Serialized with exclude_none."""

    platform: str
    s3_app_path: str | None = None
    s3_test_app_path: str | None = None
    bundles: list[CreateRunBundle] | None = None

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

    # JSON documents embedded as strings
    filtering_configuration: str | None = None
    pull_file_config: str | None = None

    env_args: dict[str, str] | None = None
    test_env_args: dict[str, str] | None = None


class CreateRunResponse(BaseModel):
    run_id: str
    status: str | None = None
