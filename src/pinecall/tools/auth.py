"""Conversational auth tools: the agent drives the email verification flow."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger
from pydantic import BaseModel, Field

from pinecall.auth import AuthClient, PendingAuthStore
from pinecall.config import Settings
from pinecall.config_store import build_auth_config, load_config, write_config
from pinecall.errors import PinecallError
from pinecall.formatting import ToolResult, format_auth_request_error, format_auth_verify_error
from pinecall.tools.registry import ToolRegistry

AuthClientFactory = Callable[[str], AuthClient]


class AuthRequestInput(BaseModel):
    email: str = Field(..., description="The user's Pine AI account email address")


class AuthVerifyInput(BaseModel):
    email: str = Field(..., description="The same email used in pine_voice_auth_request")
    code: str = Field(..., description="The verification code from the user's email")
    request_token: str | None = Field(
        default=None,
        description="Request token from pine_voice_auth_request (usually not needed, resolved automatically)",
    )


class AuthFlow:
    """Request/verify steps sharing one pending-auth store."""

    def __init__(
        self,
        settings: Settings,
        pending: PendingAuthStore,
        *,
        client_factory: AuthClientFactory | None = None,
    ) -> None:
        self._settings = settings
        self._pending = pending
        self._client_factory = client_factory or (
            lambda gateway_url: AuthClient(gateway_url, timeout_seconds=settings.http_timeout_seconds)
        )

    async def request(self, email: str) -> ToolResult:
        try:
            async with self._client_factory(self._settings.resolved_gateway_url) as client:
                request_token = await client.request_code(email)
        except PinecallError as exc:
            logger.error("pine-voice.auth_request_failed error={}", exc)
            return format_auth_request_error(exc)

        self._pending.put(email, request_token)
        return ToolResult(
            f"Verification code sent to {email}. "
            "Ask the user to check their email (including spam folder) and provide the code. "
            "Then call pine_voice_auth_verify with the email and code."
        )

    async def verify(self, email: str, code: str, request_token: str | None = None) -> ToolResult:
        token = request_token or self._pending.get(email)
        if not token:
            return ToolResult(
                "No pending auth request found for this email. "
                "Call pine_voice_auth_request first to send a new verification code.",
                is_error=True,
            )

        try:
            async with self._client_factory(self._settings.resolved_gateway_url) as client:
                credentials = await client.verify_code(email, token, code)
            config_path = self._settings.config_path
            updated, added = build_auth_config(load_config(config_path), credentials.access_token, credentials.user_id)
            write_config(config_path, updated)
        except PinecallError as exc:
            logger.error("pine-voice.auth_verify_failed error={}", exc)
            return format_auth_verify_error(exc)

        self._pending.discard(email)
        logger.info("pine-voice.auth_saved path={}", config_path)
        tools_note = f" Voice tools ({', '.join(added)}) have been added to tools.allow." if added else ""
        return ToolResult(
            f"Authentication successful! Credentials have been saved to {config_path}.{tools_note} "
            "Restart the agent for the voice tools to become available."
        )


def register_auth_tools(registry: ToolRegistry, flow: AuthFlow) -> None:
    """Register the auth tools. They are always available so an unauthenticated host can recover."""

    register = registry.register

    @register(
        name="pine_voice_auth_request",
        short_description="Send a Pine AI verification code by email",
        detail=(
            "Start Pine Voice authentication. Sends a verification code to the user's Pine AI account email. "
            "After calling this, ask the user to check their email (including spam) and provide the code, "
            "then call pine_voice_auth_verify."
        ),
        model=AuthRequestInput,
    )
    async def auth_request(params: AuthRequestInput) -> ToolResult:
        return await flow.request(params.email)

    @register(
        name="pine_voice_auth_verify",
        short_description="Verify the emailed code and save credentials",
        detail=(
            "Complete Pine Voice authentication. Verifies the code the user received by email, saves the "
            "credentials to the config file and enables the voice tools. Must be called after "
            "pine_voice_auth_request."
        ),
        model=AuthVerifyInput,
    )
    async def auth_verify(params: AuthVerifyInput) -> ToolResult:
        return await flow.verify(params.email, params.code, params.request_token)
