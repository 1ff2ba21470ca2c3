# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP request/response data models used across restwire."""

from __future__ import annotations

import mimetypes
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from ..errors import InterceptorContractError, ValidationError
from .headers import normalize_headers

Headers = dict[str, str]
ProgressCallback = Callable[["UploadProgress"], Any]

DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"


def is_success_status(status: int | None) -> bool:
    """Return True for 2xx statuses."""
    return status is not None and 200 <= int(status) < 300


@dataclass
class RequestOptions:
    """Normalized request representation threaded through the pipeline and interceptors."""

    url: str
    method: str = "GET"
    headers: Headers = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    query: Any = None
    body: Any = None
    signal: Any = None
    extra: dict[str, Any] = field(default_factory=dict)
    on_progress: ProgressCallback | None = None

    def copy(self, **changes: Any) -> RequestOptions:
        """Return a shallow copy with fresh header/param/extra dicts."""
        clone = replace(
            self,
            headers=dict(self.headers or {}),
            params=dict(self.params or {}),
            extra=dict(self.extra or {}),
        )
        return replace(clone, **changes) if changes else clone


@dataclass
class TransportResponse:
    """Raw exchange result handed back by a transport before normalization."""

    status: int
    status_text: str = ""
    headers: Headers = field(default_factory=dict)
    body: bytes = b""
    url: str | None = None


@dataclass
class HttpResponse:
    """
    Uniform response returned to every caller.

    ``success`` always mirrors ``200 <= status < 300`` and ``error`` is ``None`` exactly when
    ``success`` is true. Use :meth:`build` or :meth:`from_mapping` rather than the raw
    constructor so the invariant holds.
    """

    success: bool
    data: Any = None
    status: int = 0
    status_text: str = ""
    headers: Headers = field(default_factory=dict)
    error: Any = None
    url: str | None = None

    @classmethod
    def build(
        cls,
        status: int,
        *,
        payload: Any = None,
        status_text: str = "",
        headers: Mapping[object, object] | None = None,
        url: str | None = None,
    ) -> HttpResponse:
        """Place ``payload`` in ``data`` or ``error`` depending on the status."""
        success = is_success_status(status)
        error = None
        if not success:
            error = payload if payload not in (None, b"", "") else (status_text or f"HTTP {status}")
        return cls(
            success=success,
            data=payload if success else None,
            status=int(status),
            status_text=status_text or "",
            headers=normalize_headers(headers),
            error=error,
            url=url,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HttpResponse:
        """Coerce a mapping (e.g. an interceptor recovery value) into a conforming response."""
        status = data.get("status")
        if isinstance(status, bool) or not isinstance(status, int):
            raise InterceptorContractError("Response mapping requires an integer 'status'")
        success = is_success_status(status)
        error = data.get("error")
        if success:
            error = None
        elif error is None:
            error = data.get("status_text") or f"HTTP {status}"
        return cls(
            success=success,
            data=data.get("data"),
            status=status,
            status_text=str(data.get("status_text") or ""),
            headers=normalize_headers(data.get("headers")),
            error=error,
            url=data.get("url"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "status": self.status,
            "status_text": self.status_text,
            "headers": dict(self.headers),
            "error": self.error,
            "url": self.url,
        }


def ensure_response(value: Any) -> HttpResponse:
    """Validate that an interceptor result conforms to HttpResponse, coercing mappings."""
    if isinstance(value, HttpResponse):
        # error is None exactly when success is true
        if value.success != is_success_status(value.status) or value.success != (value.error is None):
            raise InterceptorContractError("HttpResponse success/error do not match its status")
        return value
    if isinstance(value, Mapping):
        return HttpResponse.from_mapping(value)
    raise InterceptorContractError(f"Expected HttpResponse or mapping, got {type(value).__name__}")


@dataclass(frozen=True)
class UploadProgress:
    """Byte-level progress for one upload."""

    loaded: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(100.0, self.loaded * 100.0 / self.total)


@dataclass
class UploadFile:
    """A single file part ready to be encoded."""

    filename: str
    content: bytes
    content_type: str = DEFAULT_UPLOAD_CONTENT_TYPE

    @classmethod
    def coerce(cls, value: Any) -> UploadFile:
        """
        Build an UploadFile from the supported file shapes:

        - an UploadFile (returned as-is)
        - raw ``bytes``/``bytearray``
        - a ``str``/``os.PathLike`` path to read from disk
        - a binary file object (``read()`` plus optional ``name``)
        - a ``(filename, content)`` or ``(filename, content, content_type)`` tuple
        """
        if isinstance(value, UploadFile):
            return value
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(filename="blob", content=bytes(value))
        if isinstance(value, (str, os.PathLike)):
            path = os.fspath(value)
            with open(path, "rb") as handle:
                content = handle.read()
            return cls(filename=os.path.basename(path), content=content, content_type=_guess_type(path))
        if isinstance(value, tuple) and len(value) in (2, 3):
            filename, content = str(value[0]), value[1]
            if isinstance(content, str):
                content = content.encode("utf-8")
            elif hasattr(content, "read"):
                content = content.read()
            if not isinstance(content, (bytes, bytearray, memoryview)):
                raise ValidationError(f"Unsupported file content for {filename!r}")
            content_type = value[2] if len(value) == 3 and value[2] else _guess_type(filename)
            return cls(filename=filename, content=bytes(content), content_type=content_type)
        read = getattr(value, "read", None)
        if callable(read):
            content = read()
            if isinstance(content, str):
                content = content.encode("utf-8")
            name = os.path.basename(str(getattr(value, "name", "") or "blob"))
            return cls(filename=name, content=bytes(content), content_type=_guess_type(name))
        raise ValidationError(f"Unsupported upload file type: {type(value).__name__}")


def _guess_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_UPLOAD_CONTENT_TYPE


@dataclass
class MultipartPayload:
    """Multipart body marker: form fields plus file parts, both order-preserving."""

    fields: list[tuple[str, str]] = field(default_factory=list)
    files: list[tuple[str, UploadFile]] = field(default_factory=list)

    @property
    def part_names(self) -> list[str]:
        return [name for name, _ in self.files]


__all__ = [
    "Headers",
    "HttpResponse",
    "MultipartPayload",
    "ProgressCallback",
    "RequestOptions",
    "TransportResponse",
    "UploadFile",
    "UploadProgress",
    "ensure_response",
    "is_success_status",
]
