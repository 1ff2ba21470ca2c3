# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers.

Two failure channels reach callers: a resolved ``HttpResponse`` with ``success=False`` for
application-level failures (non-2xx status), and the exceptions below for validation and
transport-level failures.
"""

from __future__ import annotations

import socket
import ssl as ssl_module
from enum import Enum

import httpx


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DNS_ERROR = "DNS_ERROR"
    ABORTED = "ABORTED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class RestwireError(Exception):
    """Base class for every error raised by restwire."""


class ValidationError(RestwireError, ValueError):
    """Malformed request input detected before any network activity."""


class NetworkError(RestwireError):
    """The transport failed to complete the exchange."""

    def __init__(self, message: str, *, category: ErrorCategory = ErrorCategory.UNKNOWN_ERROR):
        super().__init__(message)
        self.category = category


class AbortError(RestwireError):
    """The request's cancellation token fired before the exchange completed."""

    category = ErrorCategory.ABORTED

    def __init__(self, reason: str | None = None):
        super().__init__(reason or "Request aborted")
        self.reason = reason


class EndpointNotFoundError(RestwireError, KeyError):
    """A factory key does not resolve to any endpoint template."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Endpoint not found"


class InterceptorContractError(RestwireError, TypeError):
    """An interceptor returned a value that does not fit its phase."""


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.
    """
    if isinstance(exc, AbortError):
        return ErrorCategory.ABORTED

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.SSL_ERROR

    if isinstance(exc, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    # httpx wraps the OS-level error; look at the cause before falling back.
    cause = exc.__cause__ or exc.__context__
    if cause is not None and cause is not exc and isinstance(cause, (ssl_module.SSLError, socket.gaierror, socket.herror)):
        return categorize_exception(cause)

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError, httpx.ProxyError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, (ConnectionError, ConnectionRefusedError, ConnectionResetError)):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.TIMEOUT: "Network timeout",
        ErrorCategory.SSL_ERROR: "TLS/certificate issue",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.ABORTED: "Request cancelled",
        ErrorCategory.UNKNOWN_ERROR: "Network error",
        None: "",
    }
    return mapping.get(category, "Request failed due to network error")


__all__ = [
    "AbortError",
    "EndpointNotFoundError",
    "ErrorCategory",
    "InterceptorContractError",
    "NetworkError",
    "RestwireError",
    "ValidationError",
    "categorize_exception",
    "error_category_to_reason",
]
