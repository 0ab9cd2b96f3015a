"""Voice call tools: place a call, wait for it, or check on it later."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from pinecall.config import GatewayCredentials, Settings
from pinecall.errors import PinecallError
from pinecall.formatting import (
    ToolResult,
    format_call_result,
    format_error,
    format_task_progress,
    format_task_started,
)
from pinecall.mcp.client import ProtocolClient
from pinecall.mcp.poller import Clock, Sleep, TaskPoller
from pinecall.tools.registry import ToolRegistry

ClientFactory = Callable[[GatewayCredentials], ProtocolClient]

CALL_DESCRIPTION = (
    "Make a phone call via Pine AI voice agent. The agent calls the specified number and handles the "
    "conversation (including IVR navigation, negotiation, and verification) based on your instructions. "
    "The voice agent can only speak English, so calls can only be delivered to English-speaking "
    "countries and recipients who understand English. "
    "BEFORE calling this tool, gather from the user all information that may be needed during the call, "
    "including any authentication, verification, or payment details the callee may require. "
    "The voice agent has no way to contact a human for missing information mid-call. "
    "For negotiations, include target outcome, acceptable range, constraints, and leverage points. "
    "Powered by Pine AI."
)


class VoiceCallInput(BaseModel):
    to: str = Field(
        ...,
        description="Phone number to call (E.164 format, e.g. +14155551234) in an English-speaking country",
    )
    callee_name: str = Field(..., description="Name of the person or business being called")
    callee_context: str = Field(
        ...,
        description=(
            "Comprehensive context about the callee and all information needed for the call, including any "
            "authentication, verification, or payment details the callee may require"
        ),
    )
    objective: str = Field(
        ...,
        description=(
            "Specific goal the call should accomplish. For negotiations, include target outcome, acceptable "
            "range, and constraints"
        ),
    )
    instructions: str | None = Field(
        default=None,
        description="Detailed strategy for the voice agent: leverage points, offers to accept or reject, fallbacks",
    )
    voice: Literal["male", "female"] | None = Field(default=None, description="Voice gender")
    max_duration_minutes: int = Field(default=120, ge=1, le=120, description="Maximum call duration in minutes")

    def to_arguments(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CallStatusInput(BaseModel):
    task_id: str = Field(..., description="The task_id returned by pine_voice_call")


def _default_client_factory(settings: Settings) -> ClientFactory:
    def factory(credentials: GatewayCredentials) -> ProtocolClient:
        return ProtocolClient(
            credentials.gateway_url,
            credentials.access_token,
            credentials.user_id,
            timeout_seconds=settings.http_timeout_seconds,
        )

    return factory


class VoiceCallService:
    """Drives initialize → submit → wait → result for the voice tools."""

    def __init__(
        self,
        settings: Settings,
        *,
        client_factory: ClientFactory | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or _default_client_factory(settings)
        self._sleep = sleep
        self._clock = clock

    def ttl_ms(self, max_duration_minutes: int) -> int:
        return (max_duration_minutes + self._settings.wait_grace_minutes) * 60_000

    async def call_and_wait(self, params: VoiceCallInput) -> ToolResult:
        try:
            credentials = self._settings.credentials()
        except PinecallError as exc:
            return format_error(exc)

        ttl_ms = self.ttl_ms(params.max_duration_minutes)
        async with self._client_factory(credentials) as client:
            try:
                await client.initialize()
                task = await client.submit(params.to_arguments(), ttl_ms)
                if not task.is_terminal:
                    poller = TaskPoller(
                        client,
                        default_interval_ms=self._settings.poll_interval_ms,
                        sleep=self._sleep,
                        clock=self._clock,
                    )
                    task = await poller.wait(task.task_id, max_wait_ms=ttl_ms, poll_interval_ms=task.poll_interval)
                result = await client.fetch_result(task.task_id)
            except PinecallError as exc:
                logger.error("pine-voice.error tool=pine_voice_call_and_wait error={}", exc)
                return format_error(exc)
        return format_call_result(result, task)

    async def start_call(self, params: VoiceCallInput) -> ToolResult:
        try:
            credentials = self._settings.credentials()
        except PinecallError as exc:
            return format_error(exc)

        async with self._client_factory(credentials) as client:
            try:
                await client.initialize()
                task = await client.submit(params.to_arguments(), self.ttl_ms(params.max_duration_minutes))
            except PinecallError as exc:
                logger.error("pine-voice.error tool=pine_voice_call error={}", exc)
                return format_error(exc)
        return format_task_started(task)

    async def call_status(self, task_id: str) -> ToolResult:
        try:
            credentials = self._settings.credentials()
        except PinecallError as exc:
            return format_error(exc)

        async with self._client_factory(credentials) as client:
            try:
                await client.initialize()
                task = await client.fetch_status(task_id)
                if not task.is_terminal:
                    return format_task_progress(task)
                result = await client.fetch_result(task_id)
            except PinecallError as exc:
                logger.error("pine-voice.error tool=pine_voice_call_status error={}", exc)
                return format_error(exc)
        return format_call_result(result, task)


def register_voice_tools(registry: ToolRegistry, service: VoiceCallService) -> None:
    """Register the voice call tools. All of them are optional."""

    register = registry.register

    @register(
        name="pine_voice_call_and_wait",
        short_description="Place a phone call and wait for the outcome",
        detail=CALL_DESCRIPTION + " Blocks until the call finishes and returns the summary and transcript.",
        model=VoiceCallInput,
        optional=True,
    )
    async def call_and_wait(params: VoiceCallInput) -> ToolResult:
        return await service.call_and_wait(params)

    @register(
        name="pine_voice_call",
        short_description="Place a phone call without waiting",
        detail=CALL_DESCRIPTION
        + " Returns immediately with a task_id. Use pine_voice_call_status to check progress and get results.",
        model=VoiceCallInput,
        optional=True,
    )
    async def start_call(params: VoiceCallInput) -> ToolResult:
        return await service.start_call(params)

    @register(
        name="pine_voice_call_status",
        short_description="Check a call started by pine_voice_call",
        model=CallStatusInput,
        optional=True,
    )
    async def call_status(params: CallStatusInput) -> ToolResult:
        """Check the status of a phone call initiated by pine_voice_call.

        Returns the current status and, once the call is complete, the transcript,
        summary and triage result. Poll until the status is terminal (completed,
        failed, or cancelled).
        """
        return await service.call_status(params.task_id)
