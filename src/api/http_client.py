# src/api/http_client.py — v1
"""httpx adapter implementing BaseTestService.

One httpx.AsyncClient (and its connection pool) is shared by every
concurrent caller. The API key travels as a query parameter on key-based
endpoints; artifact endpoints use the JWT obtained from authenticate().
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, AsyncIterator, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from marathon_cloud.api.base_client import BaseTestService
from marathon_cloud.api.models import CreateRunResponse, TokenResponse
from marathon_cloud.core.errors import (
    DeserializationFailure,
    InvalidAuthenticationToken,
    RequestFailed,
    RequestFailedWithCode,
)
from marathon_cloud.core.models import ArtifactNode, Device, RunStatus
from marathon_cloud.upload.base_strategy import BaseUploadStrategy
from marathon_cloud.upload.presigned_strategy import PresignedUploadStrategy

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_ARTIFACT_LIST = TypeAdapter(list[ArtifactNode])
_DEVICE_LIST = TypeAdapter(list[Device])

# Error bodies can be whole HTML pages; keep diagnostics readable.
_MAX_ERROR_BODY = 2000


class HttpTestService(BaseTestService):
    """Marathon Cloud REST API over httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        upload_strategy: BaseUploadStrategy | None = None,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._upload_strategy = upload_strategy or PresignedUploadStrategy()
        self._token: str | None = None
        self._token_lock = asyncio.Lock()

    # --- Plumbing shared with upload strategies ---

    @property
    def base_url(self) -> str:
        return self._base_url

    def url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def key_params(self) -> dict[str, str]:
        return {"api_key": self._api_key}

    async def send(
        self, method: str, url: str, *, map_auth: bool = True, **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and map failures onto the ApiError hierarchy.

        `map_auth=False` is for hosts other than the API (presigned storage
        URLs), where a 401/403 says nothing about the API key.

        Raises:
            InvalidAuthenticationToken: On HTTP 401/403 when `map_auth` is set.
            RequestFailedWithCode: On any other non-2xx status.
            RequestFailed: On transport errors.
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            # The request URL carries the API key; only the exception text is kept.
            raise RequestFailed(f"{method} request failed: {type(exc).__name__}: {exc}") from exc
        await _raise_for_status(response, map_auth)
        return response

    def parse(self, response: httpx.Response, model: type[M]) -> M:
        """Validate a JSON response body against `model`.

        Raises:
            DeserializationFailure: If the body does not match.
        """
        try:
            return model.model_validate_json(response.content)
        except ValidationError as exc:
            raise DeserializationFailure(model.__name__, str(exc)) from exc

    async def _bearer(self) -> dict[str, str]:
        token = await self.authenticate()
        return {"Authorization": f"Bearer {token}"}

    # --- BaseTestService ---

    async def authenticate(self) -> str:
        async with self._token_lock:
            if self._token is None:
                response = await self.send(
                    "GET", self.url("/v1/user/jwt"), params=self.key_params(),
                )
                self._token = self.parse(response, TokenResponse).token
                logger.debug("Obtained API token")
            return self._token

    async def upload_file(
        self, filename: str, content: AsyncIterable[bytes], size: int,
    ) -> str:
        return await self._upload_strategy.upload(self, filename, content, size)

    async def create_run(self, payload: dict[str, Any]) -> str:
        response = await self.send(
            "POST", self.url("/v2/run"), params=self.key_params(), json=payload,
        )
        return self.parse(response, CreateRunResponse).run_id

    async def get_run(self, run_id: str) -> RunStatus:
        response = await self.send(
            "GET", self.url(f"/v1/run/{quote(run_id, safe='')}"), params=self.key_params(),
        )
        return self.parse(response, RunStatus)

    async def list_artifacts(self, path_id: str) -> list[ArtifactNode]:
        response = await self.send(
            "GET",
            self.url(f"/v1/artifact/{quote(path_id, safe='/')}"),
            headers=await self._bearer(),
        )
        try:
            return _ARTIFACT_LIST.validate_json(response.content)
        except ValidationError as exc:
            raise DeserializationFailure("list[ArtifactNode]", str(exc)) from exc

    async def iter_artifact(self, artifact_id: str) -> AsyncIterator[bytes]:
        headers = await self._bearer()
        try:
            async with self._client.stream(
                "GET",
                self.url("/v1/artifact"),
                params={"key": artifact_id},
                headers=headers,
            ) as response:
                await _raise_for_status(response)
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as exc:
            raise RequestFailed(
                f"Download of {artifact_id} failed: {type(exc).__name__}: {exc}"
            ) from exc

    async def list_devices(self, platform: str) -> list[Device]:
        response = await self.send(
            "GET",
            self.url(f"/v1/devices/{platform.lower()}"),
            headers=await self._bearer(),
        )
        try:
            return _DEVICE_LIST.validate_json(response.content)
        except ValidationError as exc:
            raise DeserializationFailure("list[Device]", str(exc)) from exc


async def _raise_for_status(response: httpx.Response, map_auth: bool = True) -> None:
    if response.is_success:
        return
    status = response.status_code
    if map_auth and status in (401, 403):
        raise InvalidAuthenticationToken(status)
    body = (await response.aread()).decode("utf-8", errors="replace")
    raise RequestFailedWithCode(status, body[:_MAX_ERROR_BODY])
