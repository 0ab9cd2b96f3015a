"""Single request/response exchange with the gateway's MCP endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from pinecall.errors import MalformedResponseError, TransportAuthError, TransportError
from pinecall.mcp.types import RequestEnvelope, ResponseEnvelope

MCP_PATH = "/mcp"
SESSION_HEADER = "Mcp-Session-Id"
USER_ID_HEADER = "X-Pine-User-Id"


@dataclass
class Session:
    """Session token and request-id counter for one logical conversation."""

    token: str | None = None
    next_id: int = 1

    def allocate_id(self) -> int:
        request_id = self.next_id
        self.next_id += 1
        return request_id


class SessionTransport:
    """POSTs JSON-RPC envelopes and keeps the session token in sync.

    The session token is plain shared state: whichever response arrives last
    wins, and every later request presents it until ``reset_session`` runs.
    """

    def __init__(self, http: httpx.AsyncClient, gateway_url: str, access_token: str, user_id: str) -> None:
        self._http = http
        self.endpoint = f"{gateway_url.rstrip('/')}{MCP_PATH}"
        self._access_token = access_token
        self._user_id = user_id
        self.session = Session()

    def set_credential(self, access_token: str) -> None:
        self._access_token = access_token
        self.reset_session()

    def reset_session(self) -> None:
        self.session = Session()

    async def send(self, request: RequestEnvelope) -> ResponseEnvelope:
        """Send one request and return the decoded response envelope."""

        logger.debug("mcp.request method={} id={}", request.method, request.id)
        response = await self._post(request.to_payload())
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise TransportAuthError(response.status_code, response.text)
        if not response.is_success:
            raise TransportError(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"invalid JSON response: {exc!s}", method=request.method) from exc
        try:
            envelope = ResponseEnvelope.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(f"malformed response envelope: {exc!s}", method=request.method) from exc
        if envelope.id != request.id:
            raise MalformedResponseError(
                f"response id {envelope.id!r} does not match request id {request.id!r}",
                method=request.method,
            )
        return envelope

    async def notify(self, request: RequestEnvelope) -> None:
        """Send a notification without waiting for a result.

        A rejected notification is only logged: the server answered, so the
        session is live. A network failure raises ``TransportError`` because the
        gateway is unreachable and every following request would fail the same way.
        """

        logger.debug("mcp.notify method={}", request.method)
        response = await self._post(request.to_payload())
        if not response.is_success:
            logger.warning("mcp.notify_rejected method={} status={}", request.method, response.status_code)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._access_token}",
            USER_ID_HEADER: self._user_id,
        }
        if self.session.token:
            headers[SESSION_HEADER] = self.session.token
        return headers

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._http.post(self.endpoint, headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(None, str(exc) or type(exc).__name__) from exc

        session_token = response.headers.get(SESSION_HEADER)
        if session_token:
            if session_token != self.session.token:
                logger.debug("mcp.session_established")
            self.session.token = session_token
        return response
