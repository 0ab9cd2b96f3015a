"""Email verification flow that yields gateway credentials."""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx
from loguru import logger

from pinecall.errors import AuthRequestError

REQUEST_CODE_PATH = "/api/v2/auth/email/request"
VERIFY_CODE_PATH = "/api/v2/auth/email/verify"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class Credentials:
    """Access credentials returned after email verification."""

    access_token: str
    user_id: str


class PendingAuthStore:
    """Request tokens for auth flows that are waiting for their email code.

    Owned by whoever drives the flow and keyed by email, so the verify step
    does not need the token passed back in.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, str] = {}

    def put(self, email: str, request_token: str) -> None:
        self._tokens[self._key(email)] = request_token

    def get(self, email: str) -> str | None:
        return self._tokens.get(self._key(email))

    def discard(self, email: str) -> None:
        self._tokens.pop(self._key(email), None)

    def __contains__(self, email: object) -> bool:
        return isinstance(email, str) and self._key(email) in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().casefold()


class AuthClient:
    """Requests and verifies email codes against the gateway."""

    def __init__(
        self,
        gateway_url: str,
        *,
        http: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = gateway_url.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout_seconds)

    async def __aenter__(self) -> AuthClient:
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

    async def request_code(self, email: str) -> str:
        """Send a verification code to ``email`` and return the request token."""

        data = await self._post(REQUEST_CODE_PATH, {"email": email})
        request_token = data.get("request_token")
        if not isinstance(request_token, str) or not request_token:
            raise AuthRequestError(None, "response did not include a request token")
        logger.info("auth.code_requested email={}", email)
        return request_token

    async def verify_code(self, email: str, request_token: str, code: str) -> Credentials:
        data = await self._post(
            VERIFY_CODE_PATH,
            {"email": email, "request_token": request_token, "code": code},
        )
        access_token = data.get("access_token")
        user_id = data.get("user_id")
        if not isinstance(access_token, str) or not access_token or user_id in (None, ""):
            raise AuthRequestError(None, "response did not include credentials")
        logger.info("auth.verified email={}", email)
        return Credentials(access_token=access_token, user_id=str(user_id))

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.post(
                f"{self._base_url}{path}",
                json=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise AuthRequestError(None, str(exc) or type(exc).__name__) from exc

        try:
            data = response.json()
        except ValueError:
            data = None
        if not response.is_success:
            raise AuthRequestError(response.status_code, _error_message(data, response))
        if not isinstance(data, dict):
            raise AuthRequestError(response.status_code, "invalid JSON response")
        return data


def _error_message(data: Any, response: httpx.Response) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            code = error.get("code")
            return f"{code}: {error['message']}" if code else str(error["message"])
        if isinstance(data.get("message"), str):
            return data["message"]
    return f"HTTP {response.status_code}"
