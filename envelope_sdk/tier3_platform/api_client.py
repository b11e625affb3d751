"""
envelope_sdk.tier3_platform.api_client
────────────────────────────────────────
HTTP client wrapper for inter-service calls. Propagates the request id and
turns every error response back into the ErrorEnvelope the other service
raised, so callers can inspect status, per-field errors and other data
exactly as the producer built them.

Backed by: httpx (async HTTP). No retries; timeouts belong to httpx.
"""
from __future__ import annotations

from typing import Any

import httpx
import structlog

from envelope_sdk.tier0_core.errors import ErrorEnvelope
from envelope_sdk.tier0_core.http import HTTP
from envelope_sdk.tier0_core.logging import get_logger
from envelope_sdk.tier1_runtime.codec import JSON_MEDIA_TYPE, from_response

log = get_logger(__name__)


class ApiClient:
    """
    Async HTTP client for calling platform services.

    Usage::

        client = ApiClient(base_url="http://user-service")
        try:
            user = await client.get("/users/123")
        except ErrorEnvelope as exc:
            if exc.status_code == 404: ...
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        service_name: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._service_name = service_name or base_url
        self._transport = transport

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": JSON_MEDIA_TYPE}
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        if request_id:
            headers["x-request-id"] = request_id
        return headers

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self._request("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._request("PUT", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self._request("DELETE", path, **kwargs)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {**self._build_headers(), **kwargs.pop("headers", {})}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            log.warning(
                "api_client.request_failed",
                service=self._service_name,
                method=method,
                url=url,
                error=repr(exc),
            )
            raise ErrorEnvelope(
                f"Request to {self._service_name} failed: {exc}",
                HTTP.BAD_GATEWAY,
            ) from exc

        if response.is_error:
            envelope = from_response(response)
            log.info(
                "api_client.error_response",
                service=self._service_name,
                method=method,
                url=url,
                status_code=envelope.status_code,
            )
            raise envelope

        if response.headers.get("content-type", "").startswith(JSON_MEDIA_TYPE):
            return response.json()
        return response.text


__all__ = ["ApiClient"]
