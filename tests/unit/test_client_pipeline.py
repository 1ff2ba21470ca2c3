# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import asyncio
import gc
import inspect
import warnings

import pytest

from restwire.config import HttpSettings
from restwire.errors import AbortError, ErrorCategory, NetworkError, ValidationError
from restwire.http.adapters import StubTransport, json_response
from restwire.http.auth import MemoryStorage
from restwire.http.cancel import CancelToken, run_cancellable
from restwire.http.client import HttpClient, decode_body
from restwire.http.interceptors import Phase, Scope
from restwire.http.models import HttpResponse, RequestOptions, TransportResponse
from restwire.http.state import ClientState, get_default_state

BASE = "https://api.example.com"


def make_client(transport=None, **kwargs):
    kwargs.setdefault("state", ClientState())
    return HttpClient(HttpSettings(base_url=BASE), transport=transport or StubTransport(), **kwargs)


@pytest.mark.asyncio
async def test_get_resolves_url_query_and_default_headers():
    transport = StubTransport({f"{BASE}/users/7?page=1&tags=a&tags=b": json_response(200, {"id": 7})})
    client = make_client(transport)

    response = await client.get("/users/{id}", {"page": 1, "tags": ["a", "b"]}, params={"id": 7})

    assert response.success is True
    assert response.status == 200
    assert response.status_text == "OK"
    assert response.data == {"id": 7}
    assert response.error is None
    assert response.headers["content-type"] == "application/json"
    sent = transport.requests[0]
    assert sent.method == "GET"
    assert sent.body is None
    assert sent.headers["Accept"].startswith("application/json")


@pytest.mark.asyncio
async def test_post_uses_body_slot_and_forwards_transport_knobs():
    transport = StubTransport({f"{BASE}/items": json_response(201, {"id": 1})})
    client = make_client(transport)

    response = await client.post("/items", {"name": "a"}, timeout=2.5, follow_redirects=False)

    assert response.status == 201
    assert transport.requests[0].body == {"name": "a"}
    assert transport.requests[0].extra == {"timeout": 2.5, "follow_redirects": False}


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["get", "head", "options", "delete"])
async def test_query_methods_place_second_argument_in_query(method):
    transport = StubTransport({f"{BASE}/x?q=1": TransportResponse(status=204)})
    client = make_client(transport)
    response = await getattr(client, method)("/x", {"q": 1})
    assert response.success is True
    assert response.data is None
    assert transport.requests[0].method == method.upper()


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["post", "put", "patch"])
async def test_body_methods_place_second_argument_in_body(method):
    transport = StubTransport({f"{BASE}/x": TransportResponse(status=200, body=b"done", headers={"content-type": "text/plain"})})
    client = make_client(transport)
    response = await getattr(client, method)("/x", "payload", query=None)
    assert response.data == "done"
    assert transport.requests[0].body == "payload"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [100, 199, 200, 204, 299, 300, 301, 404, 500, 599])
async def test_success_mirrors_status(status):
    transport = StubTransport({f"{BASE}/s": TransportResponse(status=status)})
    response = await make_client(transport).get("/s")
    assert response.success is (200 <= status < 300)
    assert (response.error is None) is response.success


@pytest.mark.asyncio
async def test_not_found_json_body_becomes_error():
    transport = StubTransport({f"{BASE}/missing": json_response(404, {"message": "not found"})})
    response = await make_client(transport).get("/missing")
    assert response.success is False
    assert response.status == 404
    assert response.data is None
    assert response.error == {"message": "not found"}


@pytest.mark.asyncio
async def test_error_status_with_empty_body_uses_status_text():
    transport = StubTransport({f"{BASE}/boom": TransportResponse(status=500)})
    response = await make_client(transport).get("/boom")
    assert response.error == "Internal Server Error"


def test_decode_body_by_content_type():
    assert decode_body(b"", {"content-type": "application/json"}) is None
    assert decode_body(b'{"a": 1}', {"Content-Type": "application/problem+json"}) == {"a": 1}
    assert decode_body(b"not json", {"content-type": "application/json"}) == "not json"
    assert decode_body("café".encode("latin-1"), {"content-type": "text/plain; charset=latin-1"}) == "café"
    assert decode_body(b"\x89PNG", {"content-type": "image/png"}) == b"\x89PNG"
    assert decode_body(b"plain", {}) == "plain"
    assert decode_body(b"\xff\xfe\x00", {}) == b"\xff\xfe\x00"


@pytest.mark.asyncio
async def test_auth_header_injected_from_storage():
    transport = StubTransport({f"{BASE}/me": json_response(200, {})})
    storage = MemoryStorage({"token": "secret"})
    client = make_client(transport, auth_detect_token=[storage])

    await client.get("/me")
    assert transport.requests[0].headers["Authorization"] == "Bearer secret"

    await client.clear_token()
    await client.get("/me")
    assert "Authorization" not in transport.requests[1].headers

    await client.set_token("fresh")
    await client.get("/me", headers={"authorization": "Basic override"})
    assert transport.requests[2].headers == {"Accept": "application/json, text/plain, */*", "authorization": "Basic override"}


@pytest.mark.asyncio
async def test_extra_headers_apply_to_next_request_only():
    transport = StubTransport({f"{BASE}/a": json_response(200, {})})
    client = make_client(transport)

    client.set_extra_headers({"X-Once": "1"})
    await client.get("/a")
    await client.get("/a")

    assert transport.requests[0].headers["X-Once"] == "1"
    assert "X-Once" not in transport.requests[1].headers


@pytest.mark.asyncio
async def test_extra_headers_first_issued_request_wins():
    transport = StubTransport({f"{BASE}/a": json_response(200, {})}, delay=0.01)
    state = ClientState()
    first, second = make_client(transport, state=state), make_client(transport, state=state)

    first.set_extra_headers({"X-Once": "1"})
    pending = [first.get("/a"), second.get("/a")]
    await asyncio.gather(*pending)

    with_header = [r for r in transport.requests if "X-Once" in r.headers]
    assert len(with_header) == 1


@pytest.mark.asyncio
async def test_request_interceptor_can_replace_options_and_response_interceptor_can_transform():
    transport = StubTransport({f"{BASE}/v2/users": json_response(200, [1, 2])})
    client = make_client(transport)

    def rewrite(options):
        return options.copy(url=options.url.replace("/v1/", "/v2/"), headers={**options.headers, "X-Rewritten": "yes"})

    def count(response):
        response.data = len(response.data)
        return response

    client.interceptors.register(Phase.REQUEST, rewrite)
    client.interceptors.register(Phase.RESPONSE, count)

    response = await client.get("/v1/users")
    assert response.data == 2
    assert transport.requests[0].headers["X-Rewritten"] == "yes"


@pytest.mark.asyncio
async def test_global_interceptors_are_shared_through_state():
    transport = StubTransport({f"{BASE}/a": json_response(200, {})})
    state = ClientState()
    one, two = make_client(transport, state=state), make_client(transport, state=state)
    marks = []
    one.interceptors.register(Phase.REQUEST, lambda options: marks.append("global"), scope=Scope.GLOBAL)
    one.interceptors.register(Phase.REQUEST, lambda options: marks.append("one"))

    await two.get("/a")
    await one.get("/a")
    assert marks == ["global", "global", "one"]


def test_default_state_is_process_wide():
    first = HttpClient(HttpSettings(), transport=StubTransport())
    second = HttpClient(HttpSettings(), transport=StubTransport())
    assert first.state is second.state is get_default_state()
    assert first.interceptors.global_registry is second.interceptors.global_registry
    assert first.interceptors.instance_registry is not second.interceptors.instance_registry


@pytest.mark.asyncio
async def test_network_error_runs_error_interceptors_then_propagates():
    transport = StubTransport({f"{BASE}/down": NetworkError("refused", category=ErrorCategory.CONNECTION_ERROR)})
    client = make_client(transport)
    seen = []
    client.interceptors.register(Phase.ERROR, lambda error, options: seen.append((error.category, options.url)))

    with pytest.raises(NetworkError):
        await client.get("/down")
    assert seen == [(ErrorCategory.CONNECTION_ERROR, f"{BASE}/down")]


@pytest.mark.asyncio
async def test_unexpected_transport_exception_is_wrapped_as_network_error():
    transport = StubTransport({f"{BASE}/down": ConnectionResetError("reset")})
    with pytest.raises(NetworkError) as excinfo:
        await make_client(transport).get("/down")
    assert excinfo.value.category is ErrorCategory.CONNECTION_ERROR
    assert isinstance(excinfo.value.__cause__, ConnectionResetError)


@pytest.mark.asyncio
async def test_error_interceptor_can_recover():
    transport = StubTransport({f"{BASE}/down": NetworkError("refused")})
    client = make_client(transport)
    client.interceptors.register(Phase.ERROR, lambda error, options: {"status": 200, "data": {"cached": True}})

    response = await client.get("/down")
    assert response.success is True
    assert response.data == {"cached": True}


@pytest.mark.asyncio
async def test_cancel_token_aborts_in_flight_request():
    transport = StubTransport({f"{BASE}/slow": json_response(200, {})}, delay=5)
    client = make_client(transport)
    observed = []
    client.interceptors.register(Phase.ERROR, lambda error, options: observed.append(type(error)))
    token = CancelToken()

    pending = asyncio.ensure_future(client.get("/slow", signal=token))
    await asyncio.sleep(0.01)
    token.cancel("user navigated away")

    with pytest.raises(AbortError) as excinfo:
        await pending
    assert excinfo.value.reason == "user navigated away"
    assert observed == [AbortError]


@pytest.mark.asyncio
async def test_already_cancelled_token_never_dispatches():
    transport = StubTransport({f"{BASE}/a": json_response(200, {})})
    token = CancelToken()
    token.cancel()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        with pytest.raises(AbortError):
            await make_client(transport).get("/a", signal=token)
        gc.collect()

    assert transport.requests == []
    assert [str(w.message) for w in caught if issubclass(w.category, RuntimeWarning)] == []


@pytest.mark.asyncio
async def test_pre_cancelled_token_closes_pending_coroutine():
    async def work():
        return "done"

    token = CancelToken()
    token.cancel("stop")
    pending = work()

    with pytest.raises(AbortError) as excinfo:
        await run_cancellable(pending, token)

    assert excinfo.value.reason == "stop"
    assert inspect.getcoroutinestate(pending) == inspect.CORO_CLOSED


def test_validation_errors_raise_before_awaiting():
    transport = StubTransport()
    client = make_client(transport)
    client.set_extra_headers({"X-Once": "1"})

    with pytest.raises(ValidationError):
        client.get("/a", 42)
    with pytest.raises(ValidationError):
        client.post("/a", object())
    with pytest.raises(ValidationError):
        client.request(RequestOptions(url="/a", method="BREW"))
    with pytest.raises(ValidationError):
        client.get("/a", signal="not-a-token")

    assert transport.requests == []
    assert client.state.extra_headers.peek() == {"X-Once": "1"}


@pytest.mark.asyncio
async def test_request_accepts_prebuilt_options():
    transport = StubTransport({f"{BASE}/raw?x=1": json_response(200, "ok")})
    client = make_client(transport)
    response = await client.request(RequestOptions(url="/raw", method="get", query="x=1", headers=None))
    assert isinstance(response, HttpResponse)
    assert response.data == "ok"
    assert transport.requests[0].method == "GET"


@pytest.mark.asyncio
async def test_async_context_manager_closes_transport():
    transport = StubTransport()
    async with make_client(transport):
        pass
    assert transport.closed is True
