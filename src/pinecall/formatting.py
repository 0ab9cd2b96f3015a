"""Turn tasks, call results and errors into agent-facing tool results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pinecall.errors import (
    AuthError,
    AuthRequestError,
    CredentialsMissingError,
    ProtocolError,
    TaskTimeoutError,
    TransportError,
)
from pinecall.mcp.types import CallResult, Task, TaskStatus

AUTH_SIGNALS = ("401", "TOKEN_EXPIRED", "Unauthorized", "expired")

AUTH_MISSING_MESSAGE = "\n".join(
    [
        "Pine Voice is not authenticated yet. Both a user ID and access token are required before making calls.",
        "",
        "Ask the user for their Pine AI account email, then:",
        "  1. Call pine_voice_auth_request with the email. A verification code is sent to that inbox.",
        "  2. Ask the user for the code (tell them to check spam too).",
        "  3. Call pine_voice_auth_verify with the email and code. Credentials are saved automatically.",
        "",
        "Terminal fallback:",
        "  pinecall auth setup --email <USER_EMAIL>",
        "  pinecall auth verify --email <USER_EMAIL> --request-token <TOKEN> --code <CODE>",
        "",
        "If they don't have a Pine AI account, they can sign up at https://pine.ai.",
    ]
)

AUTH_EXPIRED_MESSAGE = "\n".join(
    [
        "Pine Voice authentication has expired or is invalid.",
        "",
        "To re-authenticate, ask the user for their Pine AI account email, call pine_voice_auth_request,",
        "then pine_voice_auth_verify with the code they receive. From a terminal:",
        "  pinecall auth setup --email <USER_EMAIL>",
        "  pinecall auth verify --email <USER_EMAIL> --request-token <TOKEN> --code <CODE>",
    ]
)


class ErrorKind(StrEnum):
    AUTH = "auth"
    TIMEOUT = "timeout"
    BACKEND = "backend"


@dataclass(frozen=True)
class ToolResult:
    """Result handed back to the agent."""

    text: str
    structured_content: dict[str, Any] | None = None
    is_error: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }
        if self.structured_content is not None:
            payload["structuredContent"] = self.structured_content
        return payload


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an error as authentication, timeout or generic backend failure.

    Structured signals win; the message substring check only covers errors
    that carry no structured code.
    """

    if isinstance(error, (AuthError, CredentialsMissingError)):
        return ErrorKind.AUTH
    if isinstance(error, TaskTimeoutError):
        return ErrorKind.TIMEOUT
    if _has_structured_code(error):
        return ErrorKind.BACKEND
    message = str(error)
    if any(signal in message for signal in AUTH_SIGNALS):
        return ErrorKind.AUTH
    return ErrorKind.BACKEND


def _has_structured_code(error: BaseException) -> bool:
    if isinstance(error, ProtocolError):
        return error.code is not None
    if isinstance(error, TransportError):
        return error.status is not None
    return False


def format_error(error: BaseException) -> ToolResult:
    if isinstance(error, CredentialsMissingError):
        return ToolResult(AUTH_MISSING_MESSAGE, is_error=True)
    if isinstance(error, TaskTimeoutError):
        minutes = max(1, round(error.max_wait_ms / 60_000))
        return ToolResult(
            f"Call timed out waiting for result after about {minutes} min. "
            "The call continues on Pine's side; use pine_voice_call_status with "
            f'task_id "{error.task_id}" to check it later.',
            structured_content={"task_id": error.task_id, "status": "timeout"},
            is_error=True,
        )
    if classify_error(error) is ErrorKind.AUTH:
        return ToolResult(AUTH_EXPIRED_MESSAGE, is_error=True)

    hint = ""
    if isinstance(error, ProtocolError) and error.code is not None:
        hint = f" (code: {error.code})"
    return ToolResult(f"Pine Voice Call Error: {error}{hint}", is_error=True)


def format_auth_request_error(error: BaseException) -> ToolResult:
    hint = ""
    if isinstance(error, AuthRequestError) and error.is_client_error:
        hint = " The email may not be registered; the user can sign up at https://pine.ai."
    return ToolResult(f"Pine Voice auth request failed: {error}.{hint}", is_error=True)


def format_auth_verify_error(error: BaseException) -> ToolResult:
    if "expired" in str(error).lower():
        hint = " The request token has expired; call pine_voice_auth_request again to send a new code."
    else:
        hint = " Ask the user to double-check the code and try again."
    return ToolResult(f"Pine Voice auth verification failed: {error}.{hint}", is_error=True)


def format_call_result(result: CallResult, task: Task | None = None) -> ToolResult:
    """Render a finished call: summary, duration, credits and transcript."""

    status = result.status or (task.status.value if task is not None else "completed")
    structured = result.model_dump(mode="json")
    structured["status"] = status
    if task is not None:
        structured.setdefault("task_id", task.task_id)

    if status == TaskStatus.FAILED:
        reason = result.summary or (task.status_message if task is not None else None) or "Unknown error"
        return ToolResult(f"Call failed: {reason}", structured_content=structured, is_error=True)
    if status == TaskStatus.CANCELLED:
        return ToolResult("Call was cancelled.", structured_content=structured)

    lines = [
        f"**Call {status}** ({result.triage_category or 'untriaged'})",
        f"Duration: {format_duration(result.duration_seconds)} | Credits charged: {result.credits_charged:g}",
        "",
        f"**Summary:** {result.summary}",
    ]
    if result.transcript:
        lines.extend(["", "**Transcript:**"])
        lines.extend(f"- **{entry.speaker}:** {entry.text}" for entry in result.transcript)
    return ToolResult("\n".join(lines), structured_content=structured)


def format_task_started(task: Task) -> ToolResult:
    return ToolResult(
        f"Call initiated (task_id: {task.task_id}).\n\n"
        f'Use pine_voice_call_status with task_id "{task.task_id}" to check progress. '
        f"Poll every {_poll_seconds(task)} seconds until the call completes.",
        structured_content={"task_id": task.task_id, "status": task.status.value},
    )


def format_task_progress(task: Task) -> ToolResult:
    detail = f" {task.status_message}" if task.status_message else ""
    return ToolResult(
        f"Call is still in progress (status: {task.status.value}).{detail}\n\n"
        f"Call again in {_poll_seconds(task)} seconds to check status.",
        structured_content={"task_id": task.task_id, "status": task.status.value},
    )


def format_duration(seconds: float) -> str:
    total = int(seconds or 0)
    minutes, remainder = divmod(total, 60)
    return f"{minutes}m {remainder}s" if minutes > 0 else f"{remainder}s"


def _poll_seconds(task: Task) -> int:
    if task.poll_interval and task.poll_interval > 0:
        return max(1, task.poll_interval // 1000)
    return 30
