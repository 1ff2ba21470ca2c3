# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""URL template expansion and query serialization."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, urlencode, urlparse

from ..errors import ValidationError

PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_ABSOLUTE_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")

QueryPairs = list[tuple[str, str]]


def template_placeholders(template: str) -> list[str]:
    """Return placeholder names in order of first appearance."""
    seen: list[str] = []
    for match in PLACEHOLDER_RE.finditer(str(template or "")):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


def interpolate(template: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Replace ``{name}`` placeholders with percent-encoded values from ``params``.

    Placeholders without a (non-None) value are left untouched.
    """
    if not params:
        return str(template or "")

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        value = params.get(name)
        if value is None:
            return match.group(0)
        return quote(_scalar_to_str(value), safe="")

    return PLACEHOLDER_RE.sub(_sub, str(template or ""))


def is_absolute_url(url: str) -> bool:
    return bool(_ABSOLUTE_URL_RE.match(str(url or "")))


def join_base_url(base_url: str, path: str) -> str:
    """Prefix ``path`` with ``base_url`` unless ``path`` is already absolute."""
    if not base_url or is_absolute_url(path):
        return path
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _scalar_to_str(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return ""
    return str(value)


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _is_pair(item: Any) -> bool:
    return isinstance(item, (tuple, list)) and len(item) == 2 and isinstance(item[0], str)


def _has_multi_items(query: Any) -> bool:
    return callable(getattr(query, "multi_items", None))


def validate_query(query: Any) -> None:
    """Raise ValidationError unless ``query`` is one of the accepted query shapes."""
    if query is None or isinstance(query, str):
        return
    if _has_multi_items(query):
        return
    if isinstance(query, Mapping):
        for key, value in query.items():
            if not isinstance(key, str):
                raise ValidationError(f"Query keys must be strings, got {type(key).__name__}")
            if isinstance(value, (list, tuple)):
                if not all(_is_scalar(item) for item in value):
                    raise ValidationError(f"Query value for {key!r} must contain only scalars")
            elif not _is_scalar(value):
                raise ValidationError(f"Unsupported query value for {key!r}: {type(value).__name__}")
        return
    if isinstance(query, (list, tuple)):
        for item in query:
            if not _is_pair(item) or not _is_scalar(item[1]):
                raise ValidationError("Query sequences must contain (key, value) pairs")
        return
    raise ValidationError(f"Unsupported query type: {type(query).__name__}")


def query_pairs(query: Any) -> QueryPairs:
    """Flatten any accepted query shape (except raw strings) into ordered key/value pairs."""
    validate_query(query)
    if query is None:
        return []
    if _has_multi_items(query):
        return [(str(k), _scalar_to_str(v)) for k, v in query.multi_items()]
    if isinstance(query, Mapping):
        pairs: QueryPairs = []
        for key, value in query.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((key, _scalar_to_str(item)) for item in value)
            else:
                pairs.append((key, _scalar_to_str(value)))
        return pairs
    if isinstance(query, (list, tuple)):
        return [(key, _scalar_to_str(value)) for key, value in query]
    raise ValidationError(f"Raw query strings have no pair form: {query!r}")


def serialize_query(query: Any) -> str:
    """
    Serialize a query into its canonical string form.

    Accepted shapes: a mapping (sequence values repeat the key), a sequence of pairs, an object
    exposing ``multi_items()`` (e.g. ``httpx.QueryParams``), or a raw string which is used
    verbatim after stripping a leading ``?``.
    """
    if isinstance(query, str):
        return query[1:] if query.startswith("?") else query
    return urlencode(query_pairs(query))


def resolve_url(
    template: str,
    params: Mapping[str, Any] | None = None,
    query: Any = None,
    base_url: str = "",
) -> str:
    """Expand ``template`` with ``params``, prefix ``base_url`` and append the serialized ``query``."""
    url = join_base_url(base_url, interpolate(template, params))
    query_string = serialize_query(query)
    if not query_string:
        return url
    if url.endswith(("?", "&")):
        return f"{url}{query_string}"
    separator = "&" if urlparse(url).query else "?"
    return f"{url}{separator}{query_string}"


__all__ = [
    "PLACEHOLDER_RE",
    "interpolate",
    "is_absolute_url",
    "join_base_url",
    "query_pairs",
    "resolve_url",
    "serialize_query",
    "template_placeholders",
    "validate_query",
]
