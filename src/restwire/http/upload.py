# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Multipart payload construction and upload progress bookkeeping."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from typing import Any

from ..errors import ValidationError
from .models import MultipartPayload, ProgressCallback, UploadFile, UploadProgress

logger = logging.getLogger(__name__)

ARRAY_MARKER = "[]"
DEFAULT_FIELD_NAME = "file"


def is_file_collection(value: Any) -> bool:
    """True for sequences/iterables of files, False for a single file-like value."""
    if isinstance(value, (bytes, bytearray, memoryview, str, os.PathLike, UploadFile, tuple, Mapping)):
        return False
    if callable(getattr(value, "read", None)):
        return False
    return isinstance(value, Iterable)


def _field_values(name: str, value: Any) -> list[tuple[str, str]]:
    if isinstance(value, (list, tuple)):
        return [pair for item in value for pair in _field_values(name, item)]
    if value is None:
        return []
    if isinstance(value, bool):
        return [(name, "true" if value else "false")]
    if isinstance(value, (str, int, float)):
        return [(name, str(value))]
    raise ValidationError(f"Upload field {name!r} must be a scalar or a list of scalars")


def build_multipart(files: Any, name: str = DEFAULT_FIELD_NAME, body: Mapping[str, Any] | None = None) -> MultipartPayload:
    """
    Assemble a multipart payload.

    A single file becomes one part named ``name``. A collection of files becomes one part per
    file, all sharing ``name`` suffixed with ``[]`` unless it already ends with it. Scalar
    entries of ``body`` are added as plain form fields.
    """
    if files is None:
        raise ValidationError("upload() requires at least one file")
    if not name:
        raise ValidationError("upload() requires a field name")
    if body is not None and not isinstance(body, Mapping):
        raise ValidationError("Upload body must be a mapping of form fields")

    payload = MultipartPayload()
    if is_file_collection(files):
        items = [UploadFile.coerce(item) for item in files]
        if not items:
            raise ValidationError("upload() received an empty file collection")
        field_name = name if name.endswith(ARRAY_MARKER) else f"{name}{ARRAY_MARKER}"
        payload.files.extend((field_name, item) for item in items)
    else:
        payload.files.append((name, UploadFile.coerce(files)))

    for key, value in (body or {}).items():
        payload.fields.extend(_field_values(str(key), value))
    return payload


class ProgressTracker:
    """
    Forward byte progress to a user callback.

    Reports never go backwards, ``total`` stays fixed once known, and exactly one terminal
    report with ``loaded == total`` is delivered.
    """

    def __init__(self, callback: ProgressCallback | None):
        self.callback = callback
        self.loaded = 0
        self.total: int | None = None
        self.finished = False
        self.calls = 0

    def _emit(self) -> None:
        if self.callback is None:
            return
        self.calls += 1
        self.callback(UploadProgress(loaded=self.loaded, total=self.total or 0))

    def update(self, loaded: int, total: int | None = None) -> None:
        if self.finished:
            return
        if self.total is None and total:
            self.total = int(total)
        loaded = int(loaded)
        if self.total is not None:
            loaded = min(loaded, self.total)
        if loaded < self.loaded or (loaded == self.loaded and self.calls):
            return
        self.loaded = loaded
        if self.total is not None and loaded == self.total:
            self.finished = True
        self._emit()

    def finish(self) -> None:
        if self.finished:
            return
        if self.total is None:
            self.total = self.loaded
        self.loaded = self.total
        self.finished = True
        logger.debug("Upload complete: %s bytes", self.total)
        self._emit()


__all__ = ["ARRAY_MARKER", "DEFAULT_FIELD_NAME", "ProgressTracker", "build_multipart", "is_file_collection"]
