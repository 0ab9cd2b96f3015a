"""Application-level exception types for pinecall."""

from __future__ import annotations

from typing import Any


class PinecallError(Exception):
    """Base exception for pinecall."""


class ConfigurationError(PinecallError):
    """Base exception for configuration and startup validation errors."""


class CredentialsMissingError(ConfigurationError):
    """Raised when the access token or user id is not configured."""


class AuthError(PinecallError):
    """Marker base for failures caused by a missing, invalid or expired credential."""


class TransportError(PinecallError):
    """Raised when the HTTP exchange itself fails.

    ``status`` is the HTTP status code, or ``None`` when no response was received.
    """

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        if status is None:
            super().__init__(f"MCP transport failed: {body}")
        else:
            super().__init__(f"MCP HTTP {status}: {body}")


class TransportAuthError(TransportError, AuthError):
    """HTTP 401 from the gateway."""


class ProtocolError(PinecallError):
    """Raised when the backend answers with a JSON-RPC error envelope."""

    def __init__(
        self,
        code: int | str | None,
        message: str,
        data: Any = None,
        *,
        method: str | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.data = data
        self.method = method
        super().__init__(message)


class ProtocolAuthError(ProtocolError, AuthError):
    """Error envelope carrying an authentication signal."""


class MalformedResponseError(ProtocolError):
    """Response envelope that is not valid JSON-RPC (no result/error, both, or id mismatch)."""

    def __init__(self, message: str, *, method: str | None = None) -> None:
        super().__init__(-32600, message, method=method)


class TaskTimeoutError(PinecallError, TimeoutError):
    """Raised when a task does not reach a terminal status before the deadline."""

    def __init__(self, task_id: str, max_wait_ms: int) -> None:
        self.task_id = task_id
        self.max_wait_ms = max_wait_ms
        super().__init__("Call timed out waiting for result")


class AuthRequestError(PinecallError):
    """Raised when the email verification endpoints reject a request."""

    def __init__(self, status: int | None, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500
