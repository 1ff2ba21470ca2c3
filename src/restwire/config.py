# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for restwire."""

import os
from dataclasses import dataclass

from .version import __version__

DEFAULT_USER_AGENT = f"restwire/{__version__}"
DEFAULT_AUTH_TOKEN_KEY = "token"
DEFAULT_AUTH_HEADER_KEY = "Authorization"
DEFAULT_AUTH_HEADER_TYPE = "Bearer"


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class HttpSettings:
    """HTTP client defaults."""

    base_url: str = ""
    timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    follow_redirects: bool = True
    verify_ssl: bool = True
    auth_token_key: str = DEFAULT_AUTH_TOKEN_KEY
    auth_header_key: str = DEFAULT_AUTH_HEADER_KEY
    auth_header_type: str = DEFAULT_AUTH_HEADER_TYPE
    upload_chunk_size: int = 64 * 1024

    @classmethod
    def from_env(cls) -> "HttpSettings":
        """Create settings from environment variables (evaluated at call time)."""
        upload_chunk_size = _int_env("RESTWIRE_UPLOAD_CHUNK_SIZE", cls.upload_chunk_size)
        if upload_chunk_size <= 0:
            upload_chunk_size = cls.upload_chunk_size
        return cls(
            base_url=os.getenv("RESTWIRE_BASE_URL", cls.base_url),
            timeout=_float_env("RESTWIRE_HTTP_TIMEOUT", cls.timeout),
            user_agent=os.getenv("RESTWIRE_USER_AGENT", cls.user_agent),
            follow_redirects=_bool_env("RESTWIRE_HTTP_REDIRECTS", cls.follow_redirects),
            verify_ssl=_bool_env("RESTWIRE_HTTP_VERIFY_SSL", cls.verify_ssl),
            auth_token_key=os.getenv("RESTWIRE_AUTH_TOKEN_KEY", cls.auth_token_key),
            auth_header_key=os.getenv("RESTWIRE_AUTH_HEADER_KEY", cls.auth_header_key),
            auth_header_type=os.getenv("RESTWIRE_AUTH_HEADER_TYPE", cls.auth_header_type),
            upload_chunk_size=upload_chunk_size,
        )


def load_http_settings() -> HttpSettings:
    """Load HTTP settings from environment with sensible defaults."""
    return HttpSettings.from_env()
