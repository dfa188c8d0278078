# src/api/base_client.py — v1
"""Abstract test-service client interface.

The orchestration core only talks to this interface; HttpTestService is the
production adapter and tests substitute in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator

from marathon_cloud.core.models import ArtifactNode, Device, RunStatus


class BaseTestService(ABC):
    """Unified interface to the remote test-execution service."""

    @abstractmethod
    async def authenticate(self) -> str:
        """Exchange the API key for a bearer token (cached by implementations)."""

    @abstractmethod
    async def upload_file(
        self, filename: str, content: AsyncIterable[bytes], size: int,
    ) -> str:
        """Upload one file and return the remote handle to reference it by."""

    @abstractmethod
    async def create_run(self, payload: dict[str, Any]) -> str:
        """Create a run from a wire payload and return its id."""

    @abstractmethod
    async def get_run(self, run_id: str) -> RunStatus:
        """Current status of a run."""

    @abstractmethod
    async def list_artifacts(self, path_id: str) -> list[ArtifactNode]:
        """Direct children of an artifact directory."""

    @abstractmethod
    def iter_artifact(self, artifact_id: str) -> AsyncIterator[bytes]:
        """Stream the bytes of one file artifact."""

    @abstractmethod
    async def list_devices(self, platform: str) -> list[Device]:
        """Device catalog for a platform."""

    @property
    @abstractmethod
    def base_url(self) -> str:
        """API base url, used to derive report links."""
