# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import io

import pytest

from restwire.config import HttpSettings
from restwire.errors import NetworkError, ValidationError
from restwire.http.adapters import StubTransport, json_response
from restwire.http.client import HttpClient
from restwire.http.interceptors import Phase
from restwire.http.models import MultipartPayload, UploadFile, UploadProgress
from restwire.http.state import ClientState
from restwire.http.upload import ProgressTracker, build_multipart, is_file_collection

BASE = "https://files.example.com"


class NamedStream(io.BytesIO):
    pass


def make_client(transport, **kwargs):
    return HttpClient(
        HttpSettings(base_url=BASE),
        transport=transport,
        default_headers={"Content-Type": "application/json"},
        state=ClientState(),
        **kwargs,
    )


def test_single_file_uses_field_name_as_is():
    payload = build_multipart(b"abc", "avatar")
    assert payload.part_names == ["avatar"]
    assert payload.files[0][1] == UploadFile(filename="blob", content=b"abc")


def test_multiple_files_share_array_field_name():
    payload = build_multipart([b"a", b"b"], "files")
    assert payload.part_names == ["files[]", "files[]"]

    already_marked = build_multipart([b"a", b"b"], "files[]")
    assert already_marked.part_names == ["files[]", "files[]"]


def test_body_fields_are_added_as_form_fields():
    payload = build_multipart(("a.txt", b"x"), "file", {"folder": "docs", "tags": ["x", "y"], "public": True, "skip": None})
    assert payload.fields == [("folder", "docs"), ("tags", "x"), ("tags", "y"), ("public", "true")]
    assert payload.files[0][1].content_type == "text/plain"


def test_build_multipart_rejects_bad_input():
    with pytest.raises(ValidationError):
        build_multipart(None)
    with pytest.raises(ValidationError):
        build_multipart([], "files")
    with pytest.raises(ValidationError):
        build_multipart(b"x", "file", {"nested": {"a": 1}})
    with pytest.raises(ValidationError):
        build_multipart(12345)


def test_file_shapes_are_coerced(tmp_path):
    path = tmp_path / "report.json"
    path.write_bytes(b"{}")
    stream = NamedStream(b"stream-bytes")
    stream.name = "/tmp/upload.bin"

    assert UploadFile.coerce(path) == UploadFile("report.json", b"{}", "application/json")
    assert UploadFile.coerce(str(path)).filename == "report.json"
    assert UploadFile.coerce(stream) == UploadFile("upload.bin", b"stream-bytes", "application/octet-stream")
    assert UploadFile.coerce(("n.csv", "a,b", "text/csv")) == UploadFile("n.csv", b"a,b", "text/csv")


def test_is_file_collection():
    assert is_file_collection([b"a"]) is True
    assert is_file_collection((f for f in [b"a"])) is True
    assert is_file_collection(b"a") is False
    assert is_file_collection(("name.txt", b"a")) is False
    assert is_file_collection(io.BytesIO(b"a")) is False


def test_progress_tracker_is_monotonic_with_single_terminal_call():
    seen = []
    tracker = ProgressTracker(seen.append)
    tracker.update(0, 10)
    tracker.update(4, 10)
    tracker.update(3, 10)
    tracker.update(4, 10)
    tracker.update(8, 12)
    tracker.update(10, 10)
    tracker.update(10, 10)
    tracker.finish()

    assert [(p.loaded, p.total) for p in seen] == [(0, 10), (4, 10), (8, 10), (10, 10)]
    assert seen[-1].percentage == 100.0


def test_progress_tracker_finish_emits_terminal_when_transport_did_not():
    seen = []
    tracker = ProgressTracker(seen.append)
    tracker.update(5, 20)
    tracker.finish()
    assert seen == [UploadProgress(5, 20), UploadProgress(20, 20)]


@pytest.mark.asyncio
async def test_upload_two_files_reports_progress_and_sends_multipart():
    transport = StubTransport({f"{BASE}/upload/7": json_response(201, {"stored": 2})}, chunk_size=3)
    client = make_client(transport)
    progress = []

    response = await client.upload(
        "/upload/{id}",
        [("a.txt", b"hello"), ("b.txt", b"world!")],
        name="files[]",
        body={"folder": "docs"},
        on_progress=progress.append,
        params={"id": 7},
    )

    assert response.success is True
    assert response.data == {"stored": 2}

    sent = transport.requests[0]
    assert sent.progress is True
    assert sent.method == "POST"
    assert isinstance(sent.body, MultipartPayload)
    assert sent.body.part_names == ["files[]", "files[]"]
    assert sent.body.fields == [("folder", "docs")]
    assert sent.headers["Content-Type"] == "multipart/form-data"

    loaded = [p.loaded for p in progress]
    assert loaded == sorted(loaded)
    assert len({p.total for p in progress}) == 1
    assert progress[-1].loaded == progress[-1].total
    assert sum(1 for p in progress if p.loaded == p.total) == 1


@pytest.mark.asyncio
async def test_upload_per_call_content_type_overrides_marker():
    transport = StubTransport({f"{BASE}/u": json_response(200, {})})
    client = make_client(transport)
    await client.upload("/u", b"x", headers={"content-type": "multipart/mixed"}, method="PUT")
    assert transport.requests[0].headers["content-type"] == "multipart/mixed"
    assert transport.requests[0].method == "PUT"


@pytest.mark.asyncio
async def test_upload_failure_goes_through_error_interceptors():
    transport = StubTransport({f"{BASE}/u": NetworkError("reset")})
    client = make_client(transport)
    seen = []
    client.interceptors.register(Phase.ERROR, lambda error, options: seen.append(options.on_progress))

    progress = []
    with pytest.raises(NetworkError):
        await client.upload("/u", b"abc", on_progress=progress.append)
    assert seen == [progress.append]
    assert all(p.loaded <= p.total for p in progress)


def test_upload_requires_progress_capable_transport():
    class PlainTransport:
        async def send(self, *args, **kwargs):  # pragma: no cover - never dispatched
            raise AssertionError

    client = HttpClient(HttpSettings(), transport=PlainTransport(), state=ClientState())
    with pytest.raises(TypeError):
        client.upload("/u", b"x")


def test_upload_validation_is_synchronous():
    client = make_client(StubTransport())
    with pytest.raises(ValidationError):
        client.upload("/u", None)
