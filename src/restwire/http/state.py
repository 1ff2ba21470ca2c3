# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Process-wide mutable client state.

Two things are shared by every client built on the same ``ClientState``: the one-shot
"extra" headers and the global interceptor registry. Clients receive the state explicitly;
``get_default_state()`` is only the fallback, and ``reset_default_state()`` gives tests a
clean slate.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from .interceptors import InterceptorRegistry, Scope


class OneShotHeaders:
    """Headers attached to exactly the next request that consumes them."""

    def __init__(self) -> None:
        self._pending: dict[str, str] | None = None

    def set(self, headers: Mapping[str, str] | None) -> None:
        self._pending = {str(k): str(v) for k, v in headers.items()} if headers else None

    def peek(self) -> dict[str, str] | None:
        return dict(self._pending) if self._pending else None

    def consume(self) -> dict[str, str]:
        # read and clear without an await in between: the first reader wins
        pending, self._pending = self._pending, None
        return pending or {}

    def clear(self) -> None:
        self._pending = None


@dataclass
class ClientState:
    extra_headers: OneShotHeaders = field(default_factory=OneShotHeaders)
    interceptors: InterceptorRegistry = field(default_factory=lambda: InterceptorRegistry(Scope.GLOBAL))

    def reset(self) -> None:
        self.extra_headers.clear()
        self.interceptors.clear()


_default_state = ClientState()


def get_default_state() -> ClientState:
    """Return the process-wide default state."""
    return _default_state


def reset_default_state() -> ClientState:
    """Clear the process-wide default state in place and return it."""
    _default_state.reset()
    return _default_state


__all__ = ["ClientState", "OneShotHeaders", "get_default_state", "reset_default_state"]
