# src/upload/multipart_strategy.py — v1
"""Direct multipart form upload to the API host."""

from __future__ import annotations

from typing import TYPE_CHECKING, AsyncIterable

from marathon_cloud.api.models import UploadResponse
from marathon_cloud.upload.base_strategy import BaseUploadStrategy

if TYPE_CHECKING:
    from marathon_cloud.api.http_client import HttpTestService


class MultipartUploadStrategy(BaseUploadStrategy):
    """POST /v1/upload with a single `file` form field.

    httpx builds multipart bodies from in-memory or sync file content only,
    so the stream is drained first; progress therefore tracks reading.
    """

    async def upload(
        self,
        service: HttpTestService,
        filename: str,
        content: AsyncIterable[bytes],
        size: int,
    ) -> str:
        data = b"".join([chunk async for chunk in content])
        response = await service.send(
            "POST",
            service.url("/v1/upload"),
            params=service.key_params(),
            files={"file": (filename, data, "application/octet-stream")},
        )
        return service.parse(response, UploadResponse).file_path

    @property
    def name(self) -> str:
        return "multipart"
