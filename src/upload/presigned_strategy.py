# src/upload/presigned_strategy.py — v1
"""Two-step upload: ask for a presigned URL, then PUT the bytes to it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, AsyncIterable

from marathon_cloud.api.models import UploadUrlRequest, UploadUrlResponse
from marathon_cloud.upload.base_strategy import BaseUploadStrategy

if TYPE_CHECKING:
    from marathon_cloud.api.http_client import HttpTestService

logger = logging.getLogger(__name__)


class PresignedUploadStrategy(BaseUploadStrategy):
    """POST /v2/upload/presigned-url, then stream a PUT with Content-Length."""

    async def upload(
        self,
        service: HttpTestService,
        filename: str,
        content: AsyncIterable[bytes],
        size: int,
    ) -> str:
        response = await service.send(
            "POST",
            service.url("/v2/upload/presigned-url"),
            params=service.key_params(),
            json=UploadUrlRequest(filename=filename).model_dump(),
        )
        target = service.parse(response, UploadUrlResponse)
        logger.debug("Uploading %s (%d bytes) to presigned target", filename, size)

        # Storage backends reject chunked bodies; the length must be explicit.
        await service.send(
            "PUT",
            target.url,
            content=content,
            headers={"Content-Length": str(size)},
            map_auth=False,
        )
        return target.file_path

    @property
    def name(self) -> str:
        return "presigned"
