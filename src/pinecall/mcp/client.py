"""Minimal MCP client for the Pine voice gateway.

Implements the four JSON-RPC methods the voice call flow needs over streamable
HTTP: ``initialize``, ``tools/call``, ``tasks/get`` and ``tasks/result``.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from pinecall import __version__
from pinecall.errors import MalformedResponseError, ProtocolAuthError, ProtocolError
from pinecall.mcp.transport import SessionTransport
from pinecall.mcp.types import CallResult, RequestEnvelope, RPCErrorDetail, Task

PROTOCOL_VERSION = "2025-11-25"
CLIENT_NAME = "pinecall"
VOICE_CALL_TOOL = "pine_voice_call"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
AUTH_ERROR_CODES = frozenset({"TOKEN_EXPIRED", "UNAUTHORIZED", "INVALID_TOKEN", "UNAUTHENTICATED"})


class ProtocolClient:
    """Session-scoped client for the gateway's MCP endpoint.

    ``initialize`` must be awaited once per session before any other call.
    """

    def __init__(
        self,
        gateway_url: str,
        access_token: str,
        user_id: str,
        *,
        http: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout_seconds)
        self._transport = SessionTransport(self._http, gateway_url, access_token, user_id)

    @property
    def session_token(self) -> str | None:
        return self._transport.session.token

    async def __aenter__(self) -> ProtocolClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def initialize(self) -> None:
        """Negotiate the protocol version, then send ``notifications/initialized``."""

        await self._call(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": CLIENT_NAME, "version": __version__},
            },
        )
        await self._transport.notify(RequestEnvelope(method="notifications/initialized"))
        logger.info("mcp.initialized endpoint={}", self._transport.endpoint)

    async def submit(self, arguments: dict[str, Any], ttl_ms: int) -> Task:
        """Start a voice call as an async task and return the created task."""

        result = await self._call(
            "tools/call",
            {"name": VOICE_CALL_TOOL, "arguments": arguments, "task": {"ttl": ttl_ms}},
        )
        if not isinstance(result, dict) or "task" not in result:
            raise MalformedResponseError("tools/call result has no task", method="tools/call")
        task = self._task_from(result["task"], method="tools/call")
        logger.info("task.submitted task_id={} status={}", task.task_id, task.status)
        return task

    async def fetch_status(self, task_id: str) -> Task:
        result = await self._call("tasks/get", {"taskId": task_id})
        return self._task_from(result, method="tasks/get")

    async def fetch_result(self, task_id: str) -> CallResult:
        """Fetch the result of a finished task.

        Prefers ``structuredContent``; otherwise the bare result is read as a call result.
        """

        result = await self._call("tasks/result", {"taskId": task_id})
        payload = result
        if isinstance(result, dict) and isinstance(result.get("structuredContent"), dict):
            payload = result["structuredContent"]
        try:
            return CallResult.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(f"invalid call result: {exc!s}", method="tasks/result") from exc

    def set_credential(self, access_token: str) -> None:
        """Swap the bearer token. The server-side session belongs to the old token, so it is dropped."""

        self._transport.set_credential(access_token)
        logger.info("mcp.credential_rotated")

    async def _call(self, method: str, params: dict[str, Any]) -> Any:
        request = RequestEnvelope(id=self._transport.session.allocate_id(), method=method, params=params)
        response = await self._transport.send(request)
        if response.error is not None:
            raise _protocol_error(response.error, method)
        return response.result

    @staticmethod
    def _task_from(payload: Any, *, method: str) -> Task:
        try:
            return Task.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(f"invalid task: {exc!s}", method=method) from exc


def _protocol_error(detail: RPCErrorDetail, method: str) -> ProtocolError:
    if _is_auth_code(detail.code) or _is_auth_code(_data_code(detail.data)):
        return ProtocolAuthError(detail.code, detail.message, detail.data, method=method)
    return ProtocolError(detail.code, detail.message, detail.data, method=method)


def _data_code(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("code")
    return None


def _is_auth_code(code: Any) -> bool:
    if isinstance(code, str):
        return code.upper() in AUTH_ERROR_CODES
    return code == httpx.codes.UNAUTHORIZED
