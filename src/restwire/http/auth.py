# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Token storage backends and authorization header resolution."""

from __future__ import annotations

import inspect
import json
import logging
import os
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from ..config import DEFAULT_AUTH_HEADER_KEY, DEFAULT_AUTH_HEADER_TYPE, DEFAULT_AUTH_TOKEN_KEY
from ..log import mask_secret

logger = logging.getLogger(__name__)


@runtime_checkable
class Storage(Protocol):
    """
    Minimal key/value storage contract used for auth tokens.

    Each method may return its result directly or as an awaitable.
    """

    def get_item(self, key: str) -> Any: ...

    def set_item(self, key: str, value: str) -> Any: ...

    def remove_item(self, key: str) -> Any: ...


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class MemoryStorage(Storage):
    """In-process dict-backed storage."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class EnvironStorage(Storage):
    """Storage view over ``os.environ``, with an optional key prefix."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def _name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_item(self, key: str) -> str | None:
        return os.environ.get(self._name(key))

    def set_item(self, key: str, value: str) -> None:
        os.environ[self._name(key)] = str(value)

    def remove_item(self, key: str) -> None:
        os.environ.pop(self._name(key), None)


class JsonFileStorage(Storage):
    """Storage persisted as a flat JSON object on disk."""

    def __init__(self, path: str | os.PathLike[str]):
        self.path = os.fspath(path)

    def _load(self) -> dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = str(value)
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


async def read_token(storages: Sequence[Storage], key: str = DEFAULT_AUTH_TOKEN_KEY) -> str | None:
    """Return the first non-empty token found, probing storages in order."""
    for storage in storages:
        try:
            value = await maybe_await(storage.get_item(key))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Token read from %s failed: %s", type(storage).__name__, exc)
            continue
        if value:
            return str(value)
    return None


async def resolve_auth_header(
    storages: Sequence[Storage],
    *,
    token_key: str = DEFAULT_AUTH_TOKEN_KEY,
    header_key: str = DEFAULT_AUTH_HEADER_KEY,
    header_type: str = DEFAULT_AUTH_HEADER_TYPE,
) -> dict[str, str]:
    """
    Build the authorization header from the first stored token.

    Returns an empty dict when no storage holds a token; the request then proceeds
    unauthenticated.
    """
    token = await read_token(storages, token_key)
    if not token:
        logger.debug("No auth token under %r; sending unauthenticated", token_key)
        return {}
    value = f"{header_type or ''} {token}".strip()
    logger.debug("Resolved %s=%s", header_key, mask_secret(value))
    return {header_key: value}


async def store_token(storages: Sequence[Storage], token: str, key: str = DEFAULT_AUTH_TOKEN_KEY) -> None:
    """Write ``token`` to the first storage in the detection order."""
    if not storages:
        raise RuntimeError("No token storage configured")
    await maybe_await(storages[0].set_item(key, token))


async def clear_token(storages: Sequence[Storage], key: str = DEFAULT_AUTH_TOKEN_KEY) -> None:
    """Remove ``key`` from every configured storage."""
    for storage in storages:
        await maybe_await(storage.remove_item(key))


__all__ = [
    "EnvironStorage",
    "JsonFileStorage",
    "MemoryStorage",
    "Storage",
    "clear_token",
    "maybe_await",
    "read_token",
    "resolve_auth_header",
    "store_token",
]
