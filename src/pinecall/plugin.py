"""Pine voice plugin: agent tools plus the ``auth``/``call``/``status`` CLI commands."""

from __future__ import annotations

import asyncio

import typer
from pydantic import ValidationError

from pinecall.auth import AuthClient, PendingAuthStore
from pinecall.config import Settings, load_settings
from pinecall.config_store import PLUGIN_ID, build_auth_config, load_config, write_config
from pinecall.errors import PinecallError
from pinecall.formatting import ToolResult
from pinecall.hookspecs import hookimpl
from pinecall.tools.auth import AuthFlow, register_auth_tools
from pinecall.tools.registry import ToolRegistry
from pinecall.tools.voice import VoiceCallInput, VoiceCallService, register_voice_tools

PLUGIN_NAME = PLUGIN_ID


class PineVoicePlugin:
    def __init__(self, pending: PendingAuthStore | None = None) -> None:
        self.pending = pending or PendingAuthStore()

    @hookimpl
    def register_tools(self, registry: ToolRegistry, settings: Settings) -> None:
        register_auth_tools(registry, AuthFlow(settings, self.pending))
        register_voice_tools(registry, VoiceCallService(settings))

    @hookimpl
    def register_cli_commands(self, app: typer.Typer) -> None:
        auth_app = typer.Typer(help="Pine AI authentication", no_args_is_help=True)

        @auth_app.command("setup")
        def auth_setup(
            email: str = typer.Option(..., "--email", help="Your Pine AI account email"),
        ) -> None:
            """Request a verification code by email."""

            settings = load_settings()
            typer.echo(f"Requesting verification code for {email}...")
            try:
                request_token = asyncio.run(_request_code(settings, email))
            except PinecallError as exc:
                typer.echo(f"Error: {exc}", err=True)
                raise typer.Exit(1) from exc

            typer.echo("Verification code sent! Check your email.")
            typer.echo(f"Then run: pinecall auth verify --email {email} --request-token {request_token} --code <code>")

        @auth_app.command("verify")
        def auth_verify(
            email: str = typer.Option(..., "--email", help="Your Pine AI account email"),
            request_token: str = typer.Option(..., "--request-token", help="Request token from auth setup"),
            code: str = typer.Option(..., "--code", help="Verification code from email"),
            save: bool = typer.Option(True, "--save/--no-save", help="Write credentials to config.json"),
        ) -> None:
            """Verify the emailed code and store the access token."""

            settings = load_settings()
            try:
                access_token, user_id = asyncio.run(_verify_code(settings, email, request_token, code))
            except PinecallError as exc:
                typer.echo(f"Error: {exc}", err=True)
                raise typer.Exit(1) from exc

            typer.echo("Authentication successful!")
            if save:
                updated, added = build_auth_config(load_config(settings.config_path), access_token, user_id)
                write_config(settings.config_path, updated)
                typer.echo(f"Credentials saved to {settings.config_path}.")
                if added:
                    typer.echo(f"Added to tools.allow: {', '.join(added)}")
                return

            typer.echo(f"Add this to {settings.config_path}:")
            typer.echo("")
            typer.echo('  "plugins": {')
            typer.echo('    "entries": {')
            typer.echo(f'      "{PLUGIN_ID}": {{')
            typer.echo('        "config": {')
            typer.echo(f'          "access_token": "{access_token}",')
            typer.echo(f'          "user_id": "{user_id}"')
            typer.echo("        }")
            typer.echo("      }")
            typer.echo("    }")
            typer.echo("  }")

        app.add_typer(auth_app, name="auth")

        @app.command("call")
        def call(
            to: str = typer.Option(..., "--to", help="Phone number in E.164 format"),
            callee_name: str = typer.Option(..., "--callee-name", help="Person or business being called"),
            callee_context: str = typer.Option(..., "--context", help="Everything the voice agent needs to know"),
            objective: str = typer.Option(..., "--objective", help="What the call should accomplish"),
            instructions: str | None = typer.Option(None, "--instructions", help="Detailed strategy"),
            voice: str | None = typer.Option(None, "--voice", help="male or female"),
            max_duration_minutes: int = typer.Option(120, "--max-minutes", min=1, max=120),
            wait: bool = typer.Option(True, "--wait/--no-wait", help="Block until the call finishes"),
        ) -> None:
            """Place a phone call."""

            try:
                params = VoiceCallInput.model_validate(
                    {
                        "to": to,
                        "callee_name": callee_name,
                        "callee_context": callee_context,
                        "objective": objective,
                        "instructions": instructions,
                        "voice": voice,
                        "max_duration_minutes": max_duration_minutes,
                    }
                )
            except ValidationError as exc:
                typer.echo(f"Error: {exc}", err=True)
                raise typer.Exit(2) from exc
            service = VoiceCallService(load_settings())
            run = service.call_and_wait if wait else service.start_call
            _emit(asyncio.run(run(params)))

        @app.command("status")
        def status(task_id: str = typer.Argument(..., help="Task id returned by call --no-wait")) -> None:
            """Check a call started with --no-wait."""

            service = VoiceCallService(load_settings())
            _emit(asyncio.run(service.call_status(task_id)))


async def _request_code(settings: Settings, email: str) -> str:
    async with AuthClient(settings.resolved_gateway_url, timeout_seconds=settings.http_timeout_seconds) as client:
        return await client.request_code(email)


async def _verify_code(settings: Settings, email: str, request_token: str, code: str) -> tuple[str, str]:
    async with AuthClient(settings.resolved_gateway_url, timeout_seconds=settings.http_timeout_seconds) as client:
        credentials = await client.verify_code(email, request_token, code)
    return credentials.access_token, credentials.user_id


def _emit(result: ToolResult) -> None:
    typer.echo(result.text, err=result.is_error)
    if result.is_error:
        raise typer.Exit(1)
