"""Control-plane client: create, sign and complete multipart uploads."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from multipart_uploader.config_manager.uploader_config import ServerConfig
from multipart_uploader.const import (
    COMPLETE_ROUTE,
    CONTROL_PLANE_TIMEOUT_SECONDS,
    CREATE_ROUTE,
    SIGN_PART_ROUTE,
)
from multipart_uploader.exceptions import ConfigurationError, ControlPlaneError
from multipart_uploader.models import (
    CompleteUploadRequest,
    CompleteUploadResponse,
    CreateUploadRequest,
    CreateUploadResponse,
    PartResult,
    SignPartRequest,
    SignPartResponse,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class ControlPlaneClient(Protocol):
    """Service that allocates uploads, signs part URLs and finalizes objects."""

    async def create(
        self,
        metadata: dict[str, Any] | None = None,
        content_type: str | None = None,
    ) -> CreateUploadResponse:
        """Allocate a new multipart upload."""
        ...

    async def sign_part(
        self, part_number: int, upload_id: str, target_key: str
    ) -> SignPartResponse:
        """Return a signed URL for one part."""
        ...

    async def complete(
        self, upload_id: str, target_key: str, parts: Sequence[PartResult]
    ) -> CompleteUploadResponse:
        """Assemble the uploaded parts, given in ascending order."""
        ...


class HttpControlPlaneClient(ControlPlaneClient):
    """JSON-over-HTTP control plane at ``{endpoint}/{namespace}/<route>``."""

    def __init__(
        self,
        client_session: aiohttp.ClientSession,
        server_config: ServerConfig,
        timeout_seconds: float | None = CONTROL_PLANE_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the client.

        Args:
            client_session: aiohttp ClientSession for HTTP requests
            server_config: Endpoint, namespace and extra request headers
            timeout_seconds: Total timeout per request, None to disable
        """
        if not server_config.endpoint:
            raise ConfigurationError("A control-plane endpoint is required.")
        self._session = client_session
        self._server_config = server_config
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _url(self, route: str) -> str:
        endpoint = self._server_config.endpoint.rstrip("/")
        return f"{endpoint}/{self._server_config.namespace}/{route}"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", **self._server_config.headers}

    async def _post(
        self,
        route: str,
        body: dict[str, Any],
        response_model: type[ResponseT],
        *,
        part_number: int | None = None,
    ) -> ResponseT:
        """POST ``body`` to a control-plane route and parse the response.

        Raises:
            ControlPlaneError: On HTTP errors, network errors, timeouts or an
                unexpected response body.
        """
        url = self._url(route)
        try:
            async with self._session.post(
                url,
                json=body,
                headers=self._headers(),
                timeout=self._timeout,
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise ControlPlaneError(
                        f"{route} failed with HTTP {response.status}: {error_text}",
                        operation=route,
                        part_number=part_number,
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as exc:
                    raise ControlPlaneError(
                        f"{route} returned a non-JSON body",
                        operation=route,
                        part_number=part_number,
                    ) from exc
        except aiohttp.ClientError as exc:
            raise ControlPlaneError(
                f"{route} request failed: {exc}",
                operation=route,
                part_number=part_number,
            ) from exc
        except asyncio.TimeoutError as exc:
            raise ControlPlaneError(
                f"{route} request timed out",
                operation=route,
                part_number=part_number,
            ) from exc

        try:
            return response_model.model_validate(data)
        except ValidationError as exc:
            raise ControlPlaneError(
                f"{route} returned an unexpected body: {exc}",
                operation=route,
                part_number=part_number,
            ) from exc

    async def create(
        self,
        metadata: dict[str, Any] | None = None,
        content_type: str | None = None,
    ) -> CreateUploadResponse:
        """Allocate a new multipart upload."""
        request = CreateUploadRequest(metadata=metadata, content_type=content_type)
        return await self._post(CREATE_ROUTE, request.to_wire(), CreateUploadResponse)

    async def sign_part(
        self, part_number: int, upload_id: str, target_key: str
    ) -> SignPartResponse:
        """Return a signed URL for one part."""
        request = SignPartRequest(
            part_number=part_number, upload_id=upload_id, target_key=target_key
        )
        return await self._post(
            SIGN_PART_ROUTE,
            request.to_wire(),
            SignPartResponse,
            part_number=part_number,
        )

    async def complete(
        self, upload_id: str, target_key: str, parts: Sequence[PartResult]
    ) -> CompleteUploadResponse:
        """Assemble the uploaded parts, given in ascending order."""
        request = CompleteUploadRequest.from_results(upload_id, target_key, parts)
        logger.debug(
            "Completing upload %s with %d parts", upload_id, len(request.parts)
        )
        return await self._post(
            COMPLETE_ROUTE, request.to_wire(), CompleteUploadResponse
        )
