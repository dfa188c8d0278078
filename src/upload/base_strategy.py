# src/upload/base_strategy.py — v1
"""Abstract upload strategy: how one file reaches the service's storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncIterable

if TYPE_CHECKING:
    from marathon_cloud.api.http_client import HttpTestService


class BaseUploadStrategy(ABC):
    """One way of turning a local byte stream into a remote file handle."""

    @abstractmethod
    async def upload(
        self,
        service: HttpTestService,
        filename: str,
        content: AsyncIterable[bytes],
        size: int,
    ) -> str:
        """Upload `content` (exactly `size` bytes) and return its remote handle."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy identifier (presigned, multipart)."""
