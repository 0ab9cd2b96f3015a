"""Pluggy hook namespace and host hook specifications."""

from __future__ import annotations

from typing import Any

import pluggy

from pinecall.config import Settings
from pinecall.tools.registry import ToolRegistry

PINECALL_HOOK_NAMESPACE = "pinecall"
hookspec = pluggy.HookspecMarker(PINECALL_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(PINECALL_HOOK_NAMESPACE)


class PinecallHookSpecs:
    """Hook contract for plugins hosted by pinecall."""

    @hookspec
    def register_tools(self, registry: ToolRegistry, settings: Settings) -> None:
        """Register agent tools. Optional tools only land if the host allow-lists them."""

    @hookspec
    def register_cli_commands(self, app: Any) -> None:
        """Register CLI commands onto the root Typer application."""
