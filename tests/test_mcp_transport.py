from __future__ import annotations

import json

import httpx
import pytest

from pinecall.errors import AuthError, MalformedResponseError, TransportAuthError, TransportError
from pinecall.mcp.transport import SESSION_HEADER, SessionTransport
from pinecall.mcp.types import RequestEnvelope

GATEWAY_URL = "https://gateway.test"
ACCESS_TOKEN = "tok_abc"
USER_ID = "user_123"


def _transport(handler) -> SessionTransport:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SessionTransport(http, GATEWAY_URL + "/", ACCESS_TOKEN, USER_ID)


def _echo(request: httpx.Request) -> httpx.Response:
    payload = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload.get("id"), "result": {}})


@pytest.mark.asyncio
async def test_send_posts_to_mcp_endpoint_with_identity_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _echo(request)

    transport = _transport(handler)
    envelope = await transport.send(RequestEnvelope(id=1, method="tasks/get", params={"taskId": "t"}))

    assert envelope.result == {}
    request = seen[0]
    assert str(request.url) == "https://gateway.test/mcp"
    assert request.method == "POST"
    assert request.headers["Authorization"] == f"Bearer {ACCESS_TOKEN}"
    assert request.headers["X-Pine-User-Id"] == USER_ID
    assert request.headers["Content-Type"] == "application/json"
    assert SESSION_HEADER not in request.headers
    assert json.loads(request.content) == {"jsonrpc": "2.0", "id": 1, "method": "tasks/get", "params": {"taskId": "t"}}


@pytest.mark.asyncio
async def test_session_token_is_captured_and_echoed() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = _echo(request)
        if len(seen) == 1:
            response.headers[SESSION_HEADER] = "sess-42"
        return response

    transport = _transport(handler)
    await transport.send(RequestEnvelope(id=1, method="initialize", params={}))
    await transport.send(RequestEnvelope(id=2, method="tasks/get", params={}))

    assert transport.session.token == "sess-42"
    assert seen[1].headers[SESSION_HEADER] == "sess-42"


@pytest.mark.asyncio
async def test_session_token_is_captured_from_error_responses() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom", headers={SESSION_HEADER: "sess-err"})

    transport = _transport(handler)
    with pytest.raises(TransportError):
        await transport.send(RequestEnvelope(id=1, method="initialize", params={}))

    assert transport.session.token == "sess-err"


@pytest.mark.asyncio
async def test_set_credential_drops_the_session() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _echo(request)

    transport = _transport(handler)
    transport.session.token = "old-session"
    transport.session.allocate_id()

    transport.set_credential("tok_new")
    await transport.send(RequestEnvelope(id=1, method="initialize", params={}))

    assert transport.session.token is None
    assert transport.session.next_id == 1
    assert seen[0].headers["Authorization"] == "Bearer tok_new"
    assert SESSION_HEADER not in seen[0].headers


@pytest.mark.asyncio
async def test_http_401_is_an_auth_transport_error() -> None:
    transport = _transport(lambda request: httpx.Response(401, text="Unauthorized"))

    with pytest.raises(TransportAuthError) as exc_info:
        await transport.send(RequestEnvelope(id=1, method="initialize", params={}))

    assert isinstance(exc_info.value, AuthError)
    assert exc_info.value.status == 401
    assert exc_info.value.body == "Unauthorized"


@pytest.mark.asyncio
async def test_non_success_status_carries_status_and_body() -> None:
    transport = _transport(lambda request: httpx.Response(503, text="upstream unavailable"))

    with pytest.raises(TransportError) as exc_info:
        await transport.send(RequestEnvelope(id=1, method="tasks/get", params={}))

    assert not isinstance(exc_info.value, AuthError)
    assert exc_info.value.status == 503
    assert str(exc_info.value) == "MCP HTTP 503: upstream unavailable"


@pytest.mark.asyncio
async def test_network_failure_has_no_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler)
    with pytest.raises(TransportError) as exc_info:
        await transport.send(RequestEnvelope(id=1, method="initialize", params={}))

    assert exc_info.value.status is None
    assert "connection refused" in str(exc_info.value)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"jsonrpc": "2.0", "id": 1},
        {"jsonrpc": "2.0", "id": 1, "result": {}, "error": {"code": -32000, "message": "x"}},
        ["not", "an", "object"],
    ],
    ids=["neither", "both", "not-object"],
)
async def test_malformed_envelopes_are_rejected(body: object) -> None:
    transport = _transport(lambda request: httpx.Response(200, json=body))

    with pytest.raises(MalformedResponseError) as exc_info:
        await transport.send(RequestEnvelope(id=1, method="tasks/get", params={}))

    assert exc_info.value.method == "tasks/get"


@pytest.mark.asyncio
async def test_null_error_with_result_is_accepted() -> None:
    body = {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}, "error": None}
    transport = _transport(lambda request: httpx.Response(200, json=body))

    envelope = await transport.send(RequestEnvelope(id=1, method="tasks/get", params={}))

    assert envelope.result == {"ok": True}
    assert not envelope.is_error


@pytest.mark.asyncio
async def test_response_id_must_match_request_id() -> None:
    body = {"jsonrpc": "2.0", "id": 99, "result": {}}
    transport = _transport(lambda request: httpx.Response(200, json=body))

    with pytest.raises(MalformedResponseError, match="does not match"):
        await transport.send(RequestEnvelope(id=1, method="tasks/get", params={}))


@pytest.mark.asyncio
async def test_non_json_body_is_malformed() -> None:
    transport = _transport(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(MalformedResponseError, match="invalid JSON"):
        await transport.send(RequestEnvelope(id=1, method="tasks/get", params={}))


@pytest.mark.asyncio
async def test_notify_omits_id_and_tolerates_rejection() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(400, text="bad")

    transport = _transport(handler)
    await transport.notify(RequestEnvelope(method="notifications/initialized"))

    assert seen == [{"jsonrpc": "2.0", "method": "notifications/initialized"}]


@pytest.mark.asyncio
async def test_notify_network_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler)
    with pytest.raises(TransportError) as exc_info:
        await transport.notify(RequestEnvelope(method="notifications/initialized"))

    assert exc_info.value.status is None
