"""MCP task protocol client for the Pine voice gateway."""

from pinecall.mcp.client import ProtocolClient
from pinecall.mcp.poller import DEFAULT_POLL_INTERVAL_MS, TaskPoller
from pinecall.mcp.transport import Session, SessionTransport
from pinecall.mcp.types import (
    TERMINAL_STATUSES,
    CallResult,
    RequestEnvelope,
    ResponseEnvelope,
    Task,
    TaskStatus,
    TranscriptEntry,
)

__all__ = [
    "DEFAULT_POLL_INTERVAL_MS",
    "TERMINAL_STATUSES",
    "CallResult",
    "ProtocolClient",
    "RequestEnvelope",
    "ResponseEnvelope",
    "Session",
    "SessionTransport",
    "Task",
    "TaskPoller",
    "TaskStatus",
    "TranscriptEntry",
]
