"""pinecall CLI bootstrap."""

from __future__ import annotations

import json

import typer

from pinecall.config import load_settings
from pinecall.framework import PinecallFramework
from pinecall.logging_utils import configure_logging


def create_cli_app() -> typer.Typer:
    settings = load_settings()
    configure_logging(settings.log_level, profile="cli")

    app = typer.Typer(name="pinecall", help="Place and monitor phone calls via Pine AI", add_completion=False)
    framework = PinecallFramework(settings)
    framework.load_plugins()
    framework.register_cli_commands(app)

    @app.command("tools")
    def list_tools(
        schema: bool = typer.Option(False, "--schema", help="Print JSON schemas instead of a summary"),
    ) -> None:
        """Show the agent tools this host grants."""

        registry = framework.build_registry()
        if schema:
            typer.echo(json.dumps(registry.schemas(), indent=2))
            return
        rows = registry.compact_rows()
        if not rows:
            typer.echo("(no tools)")
            return
        for row in rows:
            typer.echo(row)

    @app.command("hooks")
    def list_hooks() -> None:
        """Show hook implementation mapping."""

        report = framework.hook_report()
        if not report:
            typer.echo("(no hook implementations)")
            return
        for hook_name, plugin_names in report.items():
            typer.echo(f"{hook_name}: {', '.join(plugin_names)}")
        for plugin_name, error in framework.failed_plugins.items():
            typer.echo(f"failed {plugin_name}: {error}")

    return app
