# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport protocols and the httpx-backed implementation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, Protocol

import httpx

from ..config import HttpSettings, load_http_settings
from ..errors import NetworkError, ValidationError, categorize_exception
from .cancel import CancelToken
from .headers import MULTIPART_CONTENT_TYPE, drop_header, header_value, normalize_headers
from .models import MultipartPayload, TransportResponse

logger = logging.getLogger(__name__)

ByteProgress = Callable[[int, int], Any]


class Transport(Protocol):
    """Plain request/response transport."""

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        signal: CancelToken | None = None,
        **extra: Any,
    ) -> TransportResponse: ...

    async def aclose(self) -> None:  # pragma: no cover - optional for adapters
        ...


class ProgressTransport(Transport, Protocol):
    """Transport able to report upload progress as ``on_progress(loaded, total)``."""

    async def send_with_progress(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        signal: CancelToken | None = None,
        on_progress: ByteProgress | None = None,
        **extra: Any,
    ) -> TransportResponse: ...


def _multipart_arguments(payload: MultipartPayload) -> dict[str, Any]:
    data: dict[str, list[str]] = {}
    for name, value in payload.fields:
        data.setdefault(name, []).append(value)
    files = [(name, (item.filename, item.content, item.content_type)) for name, item in payload.files]
    return {"data": data or None, "files": files or None}


def encode_body(headers: Mapping[str, str], body: Any) -> tuple[dict[str, str], dict[str, Any]]:
    """Translate a pipeline body into httpx request keyword arguments."""
    out_headers = dict(headers)
    if body is None:
        return out_headers, {}
    if isinstance(body, MultipartPayload):
        # httpx writes the boundary-qualified value when no Content-Type is set
        if header_value(out_headers, "content-type").lower() == MULTIPART_CONTENT_TYPE:
            out_headers = drop_header(out_headers, "content-type")
        return out_headers, _multipart_arguments(body)
    if isinstance(body, (bytes, bytearray, memoryview)):
        return out_headers, {"content": bytes(body)}
    if isinstance(body, str):
        return out_headers, {"content": body.encode("utf-8")}
    if isinstance(body, (Mapping, list, tuple, int, float, bool)):
        return out_headers, {"json": body}
    raise ValidationError(f"Unsupported request body type: {type(body).__name__}")


class HttpxTransport(ProgressTransport):
    """Asynchronous httpx transport implementing both plain and progress-capable sends."""

    def __init__(self, settings: HttpSettings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or load_http_settings()
        self._client = client
        self._own_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=self.settings.follow_redirects,
                timeout=self.settings.timeout,
                verify=self.settings.verify_ssl,
            )
        return self._client

    def _build_request(self, method: str, url: str, headers: Mapping[str, str], body: Any, extra: Mapping[str, Any]) -> httpx.Request:
        request_headers, body_kwargs = encode_body(headers, body)
        if not header_value(request_headers, "user-agent"):
            request_headers["User-Agent"] = self.settings.user_agent
        timeout = extra.get("timeout")
        return self._get_client().build_request(
            method,
            url,
            headers=request_headers,
            timeout=timeout if timeout is not None else self.settings.timeout,
            **body_kwargs,
        )

    async def _dispatch(self, request: httpx.Request, extra: Mapping[str, Any]) -> TransportResponse:
        follow_redirects = extra.get("follow_redirects")
        if follow_redirects is None:
            follow_redirects = self.settings.follow_redirects
        logger.debug("%s %s", request.method, request.url)
        try:
            response = await self._get_client().send(request, follow_redirects=follow_redirects)
        except httpx.TransportError as exc:
            category = categorize_exception(exc)
            logger.debug("Transport failure for %s %s: %s (%s)", request.method, request.url, exc, category.value)
            raise NetworkError(str(exc) or type(exc).__name__, category=category) from exc
        return TransportResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=normalize_headers(response.headers),
            body=response.content,
            url=str(response.url),
        )

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        signal: CancelToken | None = None,
        **extra: Any,
    ) -> TransportResponse:
        request = self._build_request(method, url, headers, body, extra)
        return await self._dispatch(request, extra)

    async def send_with_progress(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        signal: CancelToken | None = None,
        on_progress: ByteProgress | None = None,
        **extra: Any,
    ) -> TransportResponse:
        encoded = self._build_request(method, url, headers, body, extra)
        payload = encoded.read()
        total = len(payload)
        chunk_size = max(1, self.settings.upload_chunk_size)

        async def _stream() -> AsyncIterator[bytes]:
            loaded = 0
            for start in range(0, total, chunk_size):
                chunk = payload[start:start + chunk_size]
                yield chunk
                loaded += len(chunk)
                if on_progress is not None:
                    on_progress(loaded, total)

        streamed = httpx.Request(
            encoded.method,
            encoded.url,
            headers=encoded.headers,
            content=_stream(),
            extensions=encoded.extensions,
        )
        return await self._dispatch(streamed, extra)

    async def aclose(self) -> None:
        if self._own_client and self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = ["ByteProgress", "HttpxTransport", "ProgressTransport", "Transport", "encode_body"]
