# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
restwire package entrypoint.

This package provides an asynchronous HTTP request layer: URL template resolution, token
injection from pluggable storage, a global/instance interceptor pipeline, multipart uploads
with progress reporting, and a factory that binds dotted endpoint keys to request callables.
Network I/O sits behind an injectable transport (httpx by default).
"""

from .config import HttpSettings, load_http_settings
from .errors import (
    AbortError,
    EndpointNotFoundError,
    ErrorCategory,
    InterceptorContractError,
    NetworkError,
    RestwireError,
    ValidationError,
)
from .factory import EndpointFactory, FactoryConfig, PathParams, create_factory, flatten_endpoints
from .http import (
    CancelToken,
    ClientState,
    HttpClient,
    HttpResponse,
    HttpxTransport,
    MemoryStorage,
    Phase,
    RequestOptions,
    Scope,
    StubTransport,
    UploadFile,
    UploadProgress,
    create_default_http_client,
    get_default_state,
    reset_default_state,
    resolve_url,
    serialize_query,
)
from .log import setup_logging
from .version import __version__

__all__ = [
    "AbortError",
    "CancelToken",
    "ClientState",
    "EndpointFactory",
    "EndpointNotFoundError",
    "ErrorCategory",
    "FactoryConfig",
    "HttpClient",
    "HttpResponse",
    "HttpSettings",
    "HttpxTransport",
    "InterceptorContractError",
    "MemoryStorage",
    "NetworkError",
    "PathParams",
    "Phase",
    "RequestOptions",
    "RestwireError",
    "Scope",
    "StubTransport",
    "UploadFile",
    "UploadProgress",
    "ValidationError",
    "create_default_http_client",
    "create_factory",
    "flatten_endpoints",
    "get_default_state",
    "load_http_settings",
    "reset_default_state",
    "resolve_url",
    "serialize_query",
    "setup_logging",
    "__version__",
]
