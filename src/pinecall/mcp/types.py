"""JSON-RPC envelopes and task records spoken by the Pine voice gateway."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

JSONRPC_VERSION = "2.0"

TRIAGE_CATEGORIES = ("successful", "partially_successful", "unsuccessful", "no_contact")


class RequestEnvelope(BaseModel):
    """One JSON-RPC request. A request without ``id`` is a notification."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int | None = None
    method: str
    params: dict[str, Any] | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RPCErrorDetail(BaseModel):
    code: int | str
    message: str = ""
    data: Any = None


class ResponseEnvelope(BaseModel):
    """One JSON-RPC response: exactly one of ``result`` or ``error``."""

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    result: Any = None
    error: RPCErrorDetail | None = None

    @model_validator(mode="before")
    @classmethod
    def _exactly_one_outcome(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ValueError("response envelope must be a JSON object")
        has_result = "result" in data
        has_error = data.get("error") is not None
        if has_result and has_error:
            raise ValueError("response envelope carries both result and error")
        if not has_result and not has_error:
            raise ValueError("response envelope carries neither result nor error")
        return data

    @property
    def is_error(self) -> bool:
        return self.error is not None


class TaskStatus(StrEnum):
    WORKING = "working"
    INPUT_REQUIRED = "input_required"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})


class Task(BaseModel):
    """A long-running job accepted by the backend.

    Instances are immutable; a newer view of the same task comes from fetching
    its status again.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    task_id: str = Field(..., alias="taskId")
    status: TaskStatus
    status_message: str | None = Field(default=None, alias="statusMessage")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    last_updated_at: datetime | None = Field(default=None, alias="lastUpdatedAt")
    ttl: int | None = None
    poll_interval: int | None = Field(default=None, alias="pollInterval")
    result: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TranscriptEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    speaker: str
    text: str


class CallResult(BaseModel):
    """Outcome of a finished voice call."""

    model_config = ConfigDict(extra="allow", frozen=True)

    call_id: str | None = None
    status: str | None = None
    duration_seconds: float = 0
    summary: str = ""
    transcript: list[TranscriptEntry] = Field(default_factory=list)
    triage_category: str | None = None
    credits_charged: float = 0
