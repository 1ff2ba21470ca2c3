# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Header normalization and merging.

HTTP header field names are case-insensitive (RFC 9110). Responses are handed to callers as
lower-cased flat dicts; outgoing headers keep the spelling of whichever source set them last.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

CONTENT_TYPE = "Content-Type"
MULTIPART_CONTENT_TYPE = "multipart/form-data"


def _coerce_headers_mapping(headers: Any) -> Mapping[object, object] | None:
    """
    Best-effort coercion of "dict-like" header containers into a Mapping.

    Accepts plain dicts, httpx.Headers, objects exposing `.items()` and iterables of pairs.
    """
    if not headers:
        return None
    if isinstance(headers, Mapping):
        return headers

    items = getattr(headers, "items", None)
    if callable(items):
        try:
            return dict(items())
        except (TypeError, ValueError):
            pass

    try:
        return dict(headers)
    except (TypeError, ValueError):
        return None


def normalize_headers(headers: Mapping[object, object] | None) -> dict[str, str]:
    """Return a lowercase-keyed copy of a header mapping."""
    coerced = _coerce_headers_mapping(headers)
    if not coerced:
        return {}
    out: dict[str, str] = {}
    for key, value in coerced.items():
        if key is None:
            continue
        name = str(key).strip().lower()
        if not name:
            continue
        out[name] = "" if value is None else str(value)
    return out


def header_value(headers: Mapping[object, object] | None, name: str, default: str = "") -> str:
    """
    Return a header value using case-insensitive key matching.

    Fast-paths common key casings before falling back to a full scan.
    """
    if not headers or not name:
        return default

    coerced = _coerce_headers_mapping(headers)
    if not coerced:
        return default

    lower = str(name).lower()
    for key in (name, lower, lower.title()):
        if key in coerced:
            value = coerced.get(key)
            return default if value is None else str(value).strip()

    for key, value in coerced.items():
        if key is None:
            continue
        if str(key).lower() == lower:
            return default if value is None else str(value).strip()

    return default


def merge_headers(
    defaults: Mapping[object, object] | None = None,
    extra: Mapping[object, object] | None = None,
    auth: Mapping[object, object] | None = None,
    per_call: Mapping[object, object] | None = None,
    *,
    multipart: bool = False,
) -> dict[str, str]:
    """
    Merge header sources, later sources overriding earlier ones by case-insensitive name.

    Precedence: instance defaults < one-shot extra headers < auth header < per-call headers.
    For multipart bodies the Content-Type is pinned to the multipart marker and only a per-call
    Content-Type may replace it.
    """
    merged: dict[str, tuple[str, str]] = {}

    def _apply(source: Mapping[object, object] | None, *, pin_content_type: bool) -> None:
        coerced = _coerce_headers_mapping(source)
        if not coerced:
            return
        for key, value in coerced.items():
            if key is None or value is None:
                continue
            name = str(key).strip()
            if not name:
                continue
            lower = name.lower()
            if pin_content_type and lower == "content-type":
                continue
            merged[lower] = (name, str(value))

    _apply(defaults, pin_content_type=multipart)
    _apply(extra, pin_content_type=multipart)
    _apply(auth, pin_content_type=multipart)
    if multipart:
        merged["content-type"] = (CONTENT_TYPE, MULTIPART_CONTENT_TYPE)
    _apply(per_call, pin_content_type=False)

    return {name: value for name, value in merged.values()}


def drop_header(headers: Mapping[str, str], name: str) -> dict[str, str]:
    """Return a copy of ``headers`` without ``name`` (case-insensitive)."""
    lower = name.lower()
    return {key: value for key, value in headers.items() if key.lower() != lower}


__all__ = [
    "CONTENT_TYPE",
    "MULTIPART_CONTENT_TYPE",
    "drop_header",
    "header_value",
    "merge_headers",
    "normalize_headers",
]
