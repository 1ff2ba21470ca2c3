# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Request pipeline.

``HttpClient`` resolves the URL, merges default, one-shot, auth and per-call headers, runs the
request interceptors, dispatches through a transport (racing the cancellation token), then
normalizes the exchange into an ``HttpResponse`` and runs the response interceptors. Transport
failures go through the error interceptors, which may recover them.

Entry points validate their input synchronously and return an awaitable, so a
``ValidationError`` surfaces at call time before any asynchronous work starts.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Mapping, Sequence
from http import HTTPStatus
from typing import Any

from ..config import HttpSettings, load_http_settings
from ..errors import AbortError, NetworkError, RestwireError, ValidationError, categorize_exception
from .auth import MemoryStorage, Storage, clear_token, resolve_auth_header, store_token
from .cancel import CancelToken, run_cancellable
from .headers import header_value, merge_headers
from .interceptors import Interceptors, Phase
from .models import HttpResponse, MultipartPayload, ProgressCallback, RequestOptions, TransportResponse
from .state import ClientState, get_default_state
from .transport import HttpxTransport, Transport
from .upload import DEFAULT_FIELD_NAME, ProgressTracker, build_multipart
from .url import resolve_url, validate_query

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json, text/plain, */*"}
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
QUERY_METHODS = ("GET", "HEAD", "OPTIONS", "DELETE")
BODY_METHODS = ("POST", "PUT", "PATCH")

_CHARSET_RE = re.compile(r"charset=([\w.:-]+)", re.IGNORECASE)
_TEXTUAL_MARKERS = ("text/", "xml", "javascript", "x-www-form-urlencoded", "html")


def _charset(content_type: str) -> str:
    match = _CHARSET_RE.search(content_type or "")
    return match.group(1).strip("\"'") if match else "utf-8"


def _decode_text(body: bytes, charset: str) -> str:
    try:
        return body.decode(charset, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def decode_body(body: bytes, headers: Mapping[str, str] | None) -> Any:
    """
    Decode a response body according to its content type.

    JSON types are parsed (falling back to text when malformed), textual types become ``str``,
    anything else stays ``bytes``. An empty body decodes to ``None``.
    """
    if not body:
        return None
    content_type = header_value(headers, "content-type").lower()
    charset = _charset(content_type)
    if "json" in content_type:
        text = _decode_text(body, charset)
        try:
            return json.loads(text)
        except ValueError:
            return text
    if not content_type:
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return body
    if any(marker in content_type for marker in _TEXTUAL_MARKERS):
        return _decode_text(body, charset)
    return body


def _status_text(raw: TransportResponse) -> str:
    if raw.status_text:
        return raw.status_text
    try:
        return HTTPStatus(raw.status).phrase
    except ValueError:
        return ""


def _validate_body(body: Any) -> None:
    if body is None or isinstance(body, (MultipartPayload, bytes, bytearray, memoryview, str, Mapping, list, tuple, int, float, bool)):
        return
    raise ValidationError(f"Unsupported request body type: {type(body).__name__}")


def validate_options(options: RequestOptions) -> None:
    """Reject malformed request options before anything is dispatched."""
    if not isinstance(options, RequestOptions):
        raise ValidationError(f"Expected RequestOptions, got {type(options).__name__}")
    if str(options.method).upper() not in HTTP_METHODS:
        raise ValidationError(f"Unsupported HTTP method: {options.method!r}")
    if not isinstance(options.url, str):
        raise ValidationError("Request url must be a string template")
    if options.params is not None and not isinstance(options.params, Mapping):
        raise ValidationError("Path params must be a mapping")
    if options.headers is not None and not isinstance(options.headers, Mapping):
        raise ValidationError("Headers must be a mapping")
    if options.signal is not None and not isinstance(options.signal, CancelToken):
        raise ValidationError("signal must be a CancelToken")
    validate_query(options.query)
    _validate_body(options.body)


class HttpClient:
    """Asynchronous HTTP client exposing the request pipeline."""

    def __init__(
        self,
        settings: HttpSettings | None = None,
        *,
        base_url: str | None = None,
        transport: Transport | None = None,
        default_headers: Mapping[str, str] | None = None,
        auth_detect_token: Sequence[Storage] | None = None,
        state: ClientState | None = None,
    ):
        self.settings = settings or load_http_settings()
        self.base_url = self.settings.base_url if base_url is None else base_url
        self.transport = transport or HttpxTransport(self.settings)
        self.default_headers = dict(DEFAULT_HEADERS if default_headers is None else default_headers)
        self.token_storages: list[Storage] = list(auth_detect_token) if auth_detect_token is not None else [MemoryStorage()]
        self.state = state or get_default_state()
        self.interceptors = Interceptors(self.state.interceptors)

    # -- shared state -------------------------------------------------------------------------

    def set_extra_headers(self, headers: Mapping[str, str] | None) -> None:
        """Attach ``headers`` to the next request issued through this client's state only."""
        self.state.extra_headers.set(headers)

    async def set_token(self, token: str) -> None:
        await store_token(self.token_storages, token, self.settings.auth_token_key)

    async def clear_token(self) -> None:
        await clear_token(self.token_storages, self.settings.auth_token_key)

    # -- entry points -------------------------------------------------------------------------

    def build_options(
        self,
        method: str,
        url: str,
        *,
        query: Any = None,
        body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        signal: CancelToken | None = None,
        timeout: float | None = None,
        follow_redirects: bool | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RequestOptions:
        extra: dict[str, Any] = {}
        if timeout is not None:
            extra["timeout"] = timeout
        if follow_redirects is not None:
            extra["follow_redirects"] = follow_redirects
        return RequestOptions(
            url=url,
            method=str(method).upper(),
            headers=dict(headers or {}),
            params=dict(params or {}),
            query=query,
            body=body,
            signal=signal,
            extra=extra,
            on_progress=on_progress,
        )

    def request(self, options: RequestOptions) -> Awaitable[HttpResponse]:
        validate_options(options)
        return self._execute(options.copy(method=options.method.upper()), self.state.extra_headers.consume(), upload=False)

    def get(self, url: str, query: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("GET", url, query=query, **options))

    def head(self, url: str, query: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("HEAD", url, query=query, **options))

    def options(self, url: str, query: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("OPTIONS", url, query=query, **options))

    def delete(self, url: str, query: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("DELETE", url, query=query, **options))

    def post(self, url: str, body: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("POST", url, body=body, **options))

    def put(self, url: str, body: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("PUT", url, body=body, **options))

    def patch(self, url: str, body: Any = None, **options: Any) -> Awaitable[HttpResponse]:
        return self.request(self.build_options("PATCH", url, body=body, **options))

    def upload(
        self,
        url: str,
        files: Any,
        *,
        name: str = DEFAULT_FIELD_NAME,
        body: Mapping[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
        method: str = "POST",
        **options: Any,
    ) -> Awaitable[HttpResponse]:
        """Send one or more files as multipart/form-data, reporting byte progress."""
        if not callable(getattr(self.transport, "send_with_progress", None)):
            raise TypeError(f"{type(self.transport).__name__} cannot report upload progress")
        payload = build_multipart(files, name, body)
        request_options = self.build_options(method, url, body=payload, on_progress=on_progress, **options)
        validate_options(request_options)
        return self._execute(request_options, self.state.extra_headers.consume(), upload=True)

    # -- pipeline -----------------------------------------------------------------------------

    async def _assemble(self, options: RequestOptions, extra_headers: Mapping[str, str]) -> RequestOptions:
        url = resolve_url(options.url, options.params, options.query, self.base_url)
        auth = await resolve_auth_header(
            self.token_storages,
            token_key=self.settings.auth_token_key,
            header_key=self.settings.auth_header_key,
            header_type=self.settings.auth_header_type,
        )
        headers = merge_headers(
            self.default_headers,
            extra_headers,
            auth,
            options.headers,
            multipart=isinstance(options.body, MultipartPayload),
        )
        return options.copy(url=url, headers=headers, query=None)

    async def _dispatch(self, options: RequestOptions, tracker: ProgressTracker | None) -> TransportResponse:
        if tracker is not None:
            return await self.transport.send_with_progress(  # type: ignore[attr-defined]
                options.method,
                options.url,
                options.headers,
                options.body,
                options.signal,
                on_progress=tracker.update,
                **options.extra,
            )
        return await self.transport.send(options.method, options.url, options.headers, options.body, options.signal, **options.extra)

    async def _execute(self, options: RequestOptions, extra_headers: Mapping[str, str], *, upload: bool) -> HttpResponse:
        prepared = await self._assemble(options, extra_headers)
        prepared = await self.interceptors.run(Phase.REQUEST, prepared)
        tracker = ProgressTracker(prepared.on_progress) if upload else None

        error: RestwireError | None = None
        try:
            raw = await run_cancellable(self._dispatch(prepared, tracker), prepared.signal)
        except (NetworkError, AbortError) as exc:
            error = exc
        except RestwireError:
            raise
        except Exception as exc:  # noqa: BLE001
            error = NetworkError(str(exc) or type(exc).__name__, category=categorize_exception(exc))
            error.__cause__ = exc

        if error is not None:
            logger.debug("%s %s failed: %s", prepared.method, prepared.url, error)
            return await self.interceptors.run_error(error, prepared)

        if tracker is not None:
            tracker.finish()
        response = HttpResponse.build(
            raw.status,
            payload=decode_body(raw.body, raw.headers),
            status_text=_status_text(raw),
            headers=raw.headers,
            url=raw.url or prepared.url,
        )
        logger.debug("%s %s -> %s", prepared.method, prepared.url, response.status)
        return await self.interceptors.run(Phase.RESPONSE, response)

    # -- lifecycle ----------------------------------------------------------------------------

    async def aclose(self) -> None:
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        await self.aclose()


def create_default_http_client(settings: HttpSettings | None = None, **kwargs: Any) -> HttpClient:
    """Factory for the default httpx-backed client."""
    return HttpClient(settings or load_http_settings(), **kwargs)


__all__ = [
    "BODY_METHODS",
    "DEFAULT_HEADERS",
    "HTTP_METHODS",
    "HttpClient",
    "QUERY_METHODS",
    "create_default_http_client",
    "decode_body",
    "validate_options",
]
