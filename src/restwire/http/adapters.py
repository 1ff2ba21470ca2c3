# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-memory transport for tests and offline use."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import NetworkError
from .cancel import CancelToken
from .models import MultipartPayload, TransportResponse
from .transport import ByteProgress, ProgressTransport


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: Any = None
    signal: CancelToken | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    progress: bool = False


def json_response(status: int, payload: Any, *, headers: Mapping[str, str] | None = None) -> TransportResponse:
    """Shortcut for a JSON TransportResponse."""
    merged = {"content-type": "application/json"}
    merged.update({str(k).lower(): str(v) for k, v in (headers or {}).items()})
    return TransportResponse(status=status, headers=merged, body=json.dumps(payload).encode("utf-8"))


def _payload_size(body: Any) -> int:
    if body is None:
        return 0
    if isinstance(body, MultipartPayload):
        fields = sum(len(name) + len(value.encode("utf-8")) for name, value in body.fields)
        return fields + sum(len(item.content) for _, item in body.files)
    if isinstance(body, (bytes, bytearray)):
        return len(body)
    if isinstance(body, str):
        return len(body.encode("utf-8"))
    return len(json.dumps(body).encode("utf-8"))


class StubTransport(ProgressTransport):
    """Deterministic, programmable transport for tests."""

    def __init__(
        self,
        responses: dict[str, TransportResponse | BaseException] | None = None,
        *,
        delay: float = 0.0,
        chunk_size: int = 4,
    ):
        self._responses: dict[str, TransportResponse | BaseException] = dict(responses or {})
        self.delay = delay
        self.chunk_size = max(1, chunk_size)
        self.requests: list[RecordedRequest] = []
        self.closed = False

    def add(self, url: str, response: TransportResponse | BaseException, *, method: str | None = None) -> None:
        key = f"{method.upper()} {url}" if method else url
        self._responses[key] = response

    def _lookup(self, method: str, url: str) -> TransportResponse:
        response = self._responses.get(f"{method.upper()} {url}", self._responses.get(url))
        if response is None:
            raise NetworkError(f"No stubbed response configured for {method} {url}")
        if isinstance(response, BaseException):
            raise response
        return response

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        signal: CancelToken | None = None,
        **extra: Any,
    ) -> TransportResponse:
        self.requests.append(RecordedRequest(method, url, dict(headers), body, signal, dict(extra)))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._lookup(method, url)

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
        self.requests.append(RecordedRequest(method, url, dict(headers), body, signal, dict(extra), progress=True))
        total = _payload_size(body)
        loaded = 0
        while loaded < total:
            loaded = min(total, loaded + self.chunk_size)
            if on_progress is not None:
                on_progress(loaded, total)
            await asyncio.sleep(self.delay)
        return self._lookup(method, url)

    async def aclose(self) -> None:
        self.closed = True


__all__ = ["RecordedRequest", "StubTransport", "json_response"]
