"""
Purpose: Thin request/response wrapper around the storefront HTTP API.
One place for the base URL, bearer credential and status/error normalization.

Contract:
- request(endpoint, method, body, params) -> decoded JSON (or None on 204/empty)
- upload(endpoint, files, data, params) -> same, multipart body
- non-2xx -> TransportError(status_code); no response -> NetworkError
- never retries; the caller decides

Each call opens its own httpx.AsyncClient, so the object holds no connection
state and is safe to reuse across event loops (Streamlit reruns).

Testing: inject httpx.MockTransport and assert headers, bodies and errors.
"""

from __future__ import annotations
import logging
from typing import Any, Mapping, Optional

import httpx

from ..context import ClientContext
from ..errors import NetworkError, TransportError
from ..utils.log import get_logger, log_event

logger = get_logger(__name__)

# name -> (filename, content, content_type)
FileField = tuple[str, bytes, str]


def _clean_params(params: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None}


class TransportClient:
    def __init__(
        self,
        context: ClientContext,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.context = context
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        # credential is read here, once per call; in-flight calls keep it
        headers = {"Accept": "application/json", **self.context.auth_headers()}
        return httpx.AsyncClient(
            base_url=self.context.api_base_url,
            timeout=self.context.request_timeout,
            headers=headers,
            transport=self._transport,
        )

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        async with self._client() as client:
            try:
                resp = await client.request(
                    method.upper(), endpoint, json=body, params=_clean_params(params)
                )
            except httpx.RequestError as e:
                raise self._network_error(endpoint, e) from e
        return self._decode(resp, endpoint)

    async def upload(
        self,
        endpoint: str,
        files: Mapping[str, FileField],
        data: Optional[Mapping[str, str]] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Multipart POST (voice, images, login form). Same error contract as request()."""
        async with self._client() as client:
            try:
                resp = await client.post(
                    endpoint,
                    files=dict(files) or None,
                    data=dict(data or {}),
                    params=_clean_params(params),
                )
            except httpx.RequestError as e:
                raise self._network_error(endpoint, e) from e
        return self._decode(resp, endpoint)

    def _network_error(self, endpoint: str, exc: httpx.RequestError) -> NetworkError:
        log_event(
            logger,
            "request_failed",
            {"endpoint": endpoint, "error": type(exc).__name__, "detail": str(exc)},
            level=logging.WARNING,
        )
        return NetworkError(
            f"No response from {endpoint}: {exc}", endpoint=endpoint, cause=exc
        )

    def _decode(self, resp: httpx.Response, endpoint: str) -> Any:
        if not resp.is_success:
            detail = resp.text[:200] if resp.content else ""
            log_event(
                logger,
                "request_rejected",
                {"endpoint": endpoint, "status": resp.status_code},
                level=logging.WARNING,
            )
            raise TransportError(resp.status_code, detail, endpoint=endpoint)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                resp.status_code, "malformed response body", endpoint=endpoint
            ) from e
