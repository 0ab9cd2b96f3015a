from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from pinecall.mcp.client import ProtocolClient

GATEWAY_URL = "https://gateway.test"
ACCESS_TOKEN = "tok_abc"
USER_ID = "user_123"

CALL_RESULT: dict[str, Any] = {
    "call_id": "call-1",
    "status": "completed",
    "duration_seconds": 125,
    "summary": "Booked a table for two at 7pm.",
    "transcript": [
        {"speaker": "agent", "text": "Hi, I'd like to book a table."},
        {"speaker": "user", "text": "Sure, for how many?"},
    ],
    "triage_category": "successful",
    "credits_charged": 3,
}


class FakeGateway:
    """In-memory MCP backend mounted through ``httpx.MockTransport``."""

    def __init__(
        self,
        *,
        session_id: str | None = "sess-1",
        statuses: list[str] | None = None,
        poll_interval: int | None = None,
        result: Any = None,
    ) -> None:
        self.session_id = session_id
        self.statuses = statuses or ["completed"]
        self.poll_interval = poll_interval
        self.result = result if result is not None else {"structuredContent": CALL_RESULT}
        self.errors: dict[str, dict[str, Any]] = {}
        self.http_status: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.payloads: list[dict[str, Any]] = []
        self.submitted_ttl: int | None = None
        self.status_calls = 0

    @property
    def methods(self) -> list[str]:
        return [payload["method"] for payload in self.payloads]

    @property
    def request_ids(self) -> list[int]:
        return [payload["id"] for payload in self.payloads if "id" in payload]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(request)
        self.payloads.append(payload)
        method = payload["method"]

        headers: dict[str, str] = {}
        if method == "initialize" and self.session_id:
            headers["Mcp-Session-Id"] = self.session_id
        if method in self.http_status:
            return httpx.Response(self.http_status[method], text="gateway says no", headers=headers)
        if "id" not in payload:
            return httpx.Response(202, headers=headers)
        if method in self.errors:
            body = {"jsonrpc": "2.0", "id": payload["id"], "error": self.errors[method]}
            return httpx.Response(200, json=body, headers=headers)

        result = self._result(method, payload.get("params") or {})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result}, headers=headers)

    def task(self, status: str) -> dict[str, Any]:
        task: dict[str, Any] = {
            "taskId": "task-1",
            "status": status,
            "createdAt": "2026-01-01T10:00:00Z",
            "lastUpdatedAt": "2026-01-01T10:00:05Z",
            "ttl": self.submitted_ttl,
        }
        if self.poll_interval is not None:
            task["pollInterval"] = self.poll_interval
        return task

    def _result(self, method: str, params: dict[str, Any]) -> Any:
        if method == "initialize":
            return {"protocolVersion": params.get("protocolVersion"), "capabilities": {}, "serverInfo": {"name": "fake"}}
        if method == "tools/call":
            self.submitted_ttl = params["task"]["ttl"]
            return {"task": self.task("working")}
        if method == "tasks/get":
            status = self.statuses[min(self.status_calls, len(self.statuses) - 1)]
            self.status_calls += 1
            return self.task(status)
        if method == "tasks/result":
            return self.result
        raise AssertionError(f"unexpected method {method}")


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def client(gateway: FakeGateway) -> ProtocolClient:
    return ProtocolClient(GATEWAY_URL, ACCESS_TOKEN, USER_ID, http=gateway.http_client())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    monkeypatch.setenv("PINECALL_HOME", str(tmp_path_factory.mktemp("pinecall-home")))
    for name in ("PINECALL_ACCESS_TOKEN", "PINECALL_USER_ID", "PINECALL_GATEWAY_URL", "PINECALL_TOOLS_ALLOW"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_gateway() -> type[FakeGateway]:
    return FakeGateway


@pytest.fixture
def call_result() -> dict[str, Any]:
    return json.loads(json.dumps(CALL_RESULT))
