# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Interceptor registry.

Handlers are grouped by phase (request, response, error) and by scope (global, instance).
A run threads a value through a snapshot of the handlers, global scope first, then instance
scope, each in registration order. Returning ``None`` from a request/response handler keeps the
current value; returning anything else replaces it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import InterceptorContractError
from .auth import maybe_await
from .models import HttpResponse, RequestOptions, ensure_response

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Phase(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"


class Scope(str, Enum):
    GLOBAL = "global"
    INSTANCE = "instance"


@dataclass(frozen=True)
class InterceptorEntry:
    phase: Phase
    scope: Scope
    handler: Handler


class InterceptorRegistry:
    """Ordered handler lists for a single scope."""

    def __init__(self, scope: Scope = Scope.INSTANCE):
        self.scope = Scope(scope)
        self._handlers: dict[Phase, list[Handler]] = {phase: [] for phase in Phase}

    def register(self, phase: Phase | str, handler: Handler) -> Handler:
        if not callable(handler):
            raise TypeError("Interceptor handler must be callable")
        phase = Phase(phase)
        self._handlers[phase].append(handler)
        logger.debug("Registered %s %s interceptor %r", self.scope.value, phase.value, handler)
        return handler

    def unregister(self, phase: Phase | str, handler: Handler) -> bool:
        """Remove ``handler`` by identity; returns False when it was not registered."""
        handlers = self._handlers[Phase(phase)]
        for index, candidate in enumerate(handlers):
            if candidate is handler:
                del handlers[index]
                return True
        return False

    def handlers(self, phase: Phase | str) -> tuple[Handler, ...]:
        return tuple(self._handlers[Phase(phase)])

    def entries(self) -> list[InterceptorEntry]:
        return [InterceptorEntry(phase, self.scope, handler) for phase in Phase for handler in self._handlers[phase]]

    def clear(self, phase: Phase | str | None = None) -> None:
        if phase is None:
            for handlers in self._handlers.values():
                handlers.clear()
        else:
            self._handlers[Phase(phase)].clear()

    def __len__(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())


def _check_value(phase: Phase, value: Any) -> Any:
    if phase is Phase.REQUEST:
        if not isinstance(value, RequestOptions):
            raise InterceptorContractError(f"Request interceptors must return RequestOptions, got {type(value).__name__}")
        return value
    return ensure_response(value)


class Interceptors:
    """Global and instance registries seen together by one client."""

    def __init__(self, global_registry: InterceptorRegistry, instance_registry: InterceptorRegistry | None = None):
        self.global_registry = global_registry
        self.instance_registry = instance_registry or InterceptorRegistry(Scope.INSTANCE)

    def _registry(self, scope: Scope | str) -> InterceptorRegistry:
        return self.global_registry if Scope(scope) is Scope.GLOBAL else self.instance_registry

    def register(self, phase: Phase | str, handler: Handler, scope: Scope | str = Scope.INSTANCE) -> Handler:
        return self._registry(scope).register(phase, handler)

    def unregister(self, phase: Phase | str, handler: Handler, scope: Scope | str = Scope.INSTANCE) -> bool:
        return self._registry(scope).unregister(phase, handler)

    def snapshot(self, phase: Phase | str, scope: Scope | str | None = None) -> tuple[Handler, ...]:
        if scope is not None:
            return self._registry(scope).handlers(phase)
        return self.global_registry.handlers(phase) + self.instance_registry.handlers(phase)

    async def run(self, phase: Phase | str, value: Any, scope: Scope | str | None = None) -> Any:
        """Thread ``value`` through the request or response handlers."""
        phase = Phase(phase)
        if phase is Phase.ERROR:
            raise ValueError("Use run_error() for the error phase")
        for handler in self.snapshot(phase, scope):
            result = await maybe_await(handler(value))
            if result is not None:
                value = _check_value(phase, result)
        return value

    async def run_error(self, error: BaseException, options: RequestOptions, scope: Scope | str | None = None) -> HttpResponse:
        """
        Let error handlers observe ``error``.

        The first handler returning a value recovers the call: that value becomes the response
        and later handlers are skipped. When nobody recovers, ``error`` is re-raised.
        """
        for handler in self.snapshot(Phase.ERROR, scope):
            result = await maybe_await(handler(error, options))
            if result is not None:
                logger.debug("Error %s recovered by %r", type(error).__name__, handler)
                return ensure_response(result)
        raise error


__all__ = [
    "Handler",
    "InterceptorEntry",
    "InterceptorRegistry",
    "Interceptors",
    "Phase",
    "Scope",
]
