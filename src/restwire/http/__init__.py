# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP client exports."""

from .adapters import RecordedRequest, StubTransport, json_response
from .auth import EnvironStorage, JsonFileStorage, MemoryStorage, Storage, resolve_auth_header
from .cancel import CancelToken
from .client import HttpClient, create_default_http_client, decode_body
from .headers import header_value, merge_headers, normalize_headers
from .interceptors import InterceptorEntry, InterceptorRegistry, Interceptors, Phase, Scope
from .models import Headers, HttpResponse, MultipartPayload, RequestOptions, TransportResponse, UploadFile, UploadProgress
from .state import ClientState, OneShotHeaders, get_default_state, reset_default_state
from .transport import HttpxTransport, ProgressTransport, Transport
from .upload import ProgressTracker, build_multipart
from .url import interpolate, resolve_url, serialize_query, validate_query

__all__ = [
    "CancelToken",
    "ClientState",
    "EnvironStorage",
    "Headers",
    "HttpClient",
    "HttpResponse",
    "HttpxTransport",
    "InterceptorEntry",
    "InterceptorRegistry",
    "Interceptors",
    "JsonFileStorage",
    "MemoryStorage",
    "MultipartPayload",
    "OneShotHeaders",
    "Phase",
    "ProgressTracker",
    "ProgressTransport",
    "RecordedRequest",
    "RequestOptions",
    "Scope",
    "Storage",
    "StubTransport",
    "Transport",
    "TransportResponse",
    "UploadFile",
    "UploadProgress",
    "build_multipart",
    "create_default_http_client",
    "decode_body",
    "get_default_state",
    "header_value",
    "interpolate",
    "json_response",
    "merge_headers",
    "normalize_headers",
    "reset_default_state",
    "resolve_auth_header",
    "resolve_url",
    "serialize_query",
    "validate_query",
]
