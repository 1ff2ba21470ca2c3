# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Endpoint factory.

Turns a declarative endpoint map into request callables bound to a dotted key and an HTTP
method::

    api = create_factory({"endpoint": {"users": {"detail": "/users/{id}"}}, "client": client})
    get_user = api("users.detail", "get")
    response = await get_user({"id": 42})

A plain mapping is flattened once. A zero-argument callable is re-flattened on every call so
endpoints registered after the factory was created are still found.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import EndpointNotFoundError, ValidationError
from .http.client import HttpClient, create_default_http_client
from .http.models import HttpResponse
from .http.url import template_placeholders

logger = logging.getLogger(__name__)

FACTORY_METHODS = ("get", "post", "put", "patch", "delete", "head", "options", "upload")

EndpointMap = Mapping[str, Union[str, "EndpointMap"]]
EndpointProducer = Callable[[], EndpointMap]
BoundRequest = Callable[..., Awaitable[HttpResponse]]


class PathParams(dict):
    """Explicit marker for URL parameters passed as the trailing positional argument."""


def flatten_endpoints(endpoints: EndpointMap, prefix: str = "") -> dict[str, str]:
    """Flatten nested endpoint maps into ``{"a.b": template}`` form."""
    if not isinstance(endpoints, Mapping):
        raise ValidationError(f"Endpoint map must be a mapping, got {type(endpoints).__name__}")
    flat: dict[str, str] = {}
    for segment, value in endpoints.items():
        key = f"{prefix}.{segment}" if prefix else str(segment)
        if isinstance(value, str):
            flat[key] = value
        elif isinstance(value, Mapping):
            flat.update(flatten_endpoints(value, key))
        else:
            raise ValidationError(f"Endpoint {key!r} must be a URL template or a nested map")
    return flat


@dataclass(frozen=True)
class StaticEndpoints:
    flat: Mapping[str, str]

    def resolve(self) -> Mapping[str, str]:
        return self.flat


@dataclass(frozen=True)
class LazyEndpoints:
    producer: EndpointProducer

    def resolve(self) -> Mapping[str, str]:
        return flatten_endpoints(self.producer())


EndpointSource = Union[StaticEndpoints, LazyEndpoints]


def endpoint_source(endpoint: Any) -> EndpointSource:
    if isinstance(endpoint, (StaticEndpoints, LazyEndpoints)):
        return endpoint
    if isinstance(endpoint, Mapping):
        return StaticEndpoints(flatten_endpoints(endpoint))
    if callable(endpoint):
        return LazyEndpoints(endpoint)
    raise ValidationError(f"Unsupported endpoint definition: {type(endpoint).__name__}")


@dataclass
class FactoryConfig:
    endpoint: Any
    client: HttpClient | None = None
    defaults: dict[str, Any] = field(default_factory=dict)


def _take_path_params(value: Any, template: str) -> dict[str, Any] | None:
    """
    Return the path params carried by a trailing positional argument, or None.

    A ``PathParams`` always counts. A plain dict counts when it names at least one placeholder
    of ``template``; its other keys are dropped.
    """
    if isinstance(value, PathParams):
        return dict(value)
    if type(value) is not dict:
        return None
    placeholders = set(template_placeholders(template))
    params = {key: item for key, item in value.items() if key in placeholders}
    if not params:
        return None
    ignored = sorted(str(key) for key in value if key not in placeholders)
    if ignored:
        logger.debug("Ignoring keys %s that are not placeholders of %s", ignored, template)
    return params


class EndpointFactory:
    """Produces request callables for dotted endpoint keys."""

    def __init__(self, config: FactoryConfig):
        self.config = config
        self.source = endpoint_source(config.endpoint)
        self.client = config.client or create_default_http_client()

    def endpoints(self) -> Mapping[str, str]:
        return self.source.resolve()

    def resolve(self, key: str) -> str:
        endpoints = self.endpoints()
        try:
            return endpoints[key]
        except KeyError:
            raise EndpointNotFoundError(f"Unknown endpoint key: {key!r}") from None

    def __call__(self, key: str, method: str = "get") -> BoundRequest:
        method_name = str(method).lower()
        if method_name not in FACTORY_METHODS:
            raise ValueError(f"Unsupported factory method: {method!r}")

        def call(*args: Any, **kwargs: Any) -> Awaitable[HttpResponse]:
            template = self.resolve(key)
            positional = list(args)
            params: dict[str, Any] = {}
            trailing = _take_path_params(positional[-1], template) if positional else None
            if trailing is not None:
                positional.pop()
                params = trailing
            if kwargs.get("params"):
                params.update(kwargs["params"])
            options = {**self.config.defaults, **kwargs}
            if params:
                options["params"] = params
            logger.debug("Factory call %s %s -> %s", method_name.upper(), key, template)
            return getattr(self.client, method_name)(template, *positional, **options)

        call.__name__ = f"{method_name}_{key.replace('.', '_')}"
        call.__qualname__ = call.__name__
        return call


def create_factory(config: FactoryConfig | Mapping[str, Any]) -> EndpointFactory:
    """Build an EndpointFactory from a FactoryConfig or an equivalent mapping."""
    if isinstance(config, FactoryConfig):
        return EndpointFactory(config)
    if isinstance(config, Mapping):
        if "endpoint" not in config:
            raise ValidationError("Factory config requires an 'endpoint' entry")
        return EndpointFactory(FactoryConfig(**dict(config)))
    raise ValidationError(f"Unsupported factory config: {type(config).__name__}")


__all__ = [
    "EndpointFactory",
    "FACTORY_METHODS",
    "FactoryConfig",
    "LazyEndpoints",
    "PathParams",
    "StaticEndpoints",
    "create_factory",
    "endpoint_source",
    "flatten_endpoints",
]
