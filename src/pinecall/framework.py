"""Plugin host: loads plugins and asks them for tools and CLI commands."""

from __future__ import annotations

from importlib.metadata import entry_points
from typing import Any

import pluggy
from loguru import logger

from pinecall.config import Settings
from pinecall.config_store import allowed_tools, load_config
from pinecall.hookspecs import PINECALL_HOOK_NAMESPACE, PinecallHookSpecs
from pinecall.plugin import PLUGIN_NAME, PineVoicePlugin
from pinecall.tools.registry import ToolRegistry


class PinecallFramework:
    """Minimal host core. Tools and commands come from plugins."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._plugin_manager = pluggy.PluginManager(PINECALL_HOOK_NAMESPACE)
        self._plugin_manager.add_hookspecs(PinecallHookSpecs)
        self._failed_plugins: dict[str, str] = {}

    @property
    def plugin_names(self) -> list[str]:
        return sorted(name for name, _ in self._plugin_manager.list_name_plugin() if name)

    @property
    def failed_plugins(self) -> dict[str, str]:
        return dict(self._failed_plugins)

    def register(self, plugin: object, name: str) -> None:
        self._plugin_manager.register(plugin, name=name)

    def load_plugins(self) -> None:
        """Register the builtin voice plugin, then any installed entry-point plugins."""

        self._failed_plugins = {}
        if self._plugin_manager.get_plugin(PLUGIN_NAME) is None:
            self.register(PineVoicePlugin(), PLUGIN_NAME)

        for entry_point in entry_points(group=PINECALL_HOOK_NAMESPACE):
            if self._plugin_manager.get_plugin(entry_point.name) is not None:
                continue
            try:
                self.register(entry_point.load(), entry_point.name)
            except Exception as exc:
                self._failed_plugins[entry_point.name] = str(exc)
                logger.opt(exception=True).warning("plugin.load_failed plugin={}", entry_point.name)

    def allowed_tools(self) -> set[str]:
        return {*allowed_tools(load_config(self.settings.config_path)), *self.settings.tools_allow}

    def build_registry(self) -> ToolRegistry:
        """Collect tools from every plugin, gated by the host allow-list."""

        registry = ToolRegistry(allowed=self.allowed_tools())
        self._plugin_manager.hook.register_tools(registry=registry, settings=self.settings)
        logger.debug("tools.registered names={}", [descriptor.name for descriptor in registry.descriptors()])
        return registry

    def register_cli_commands(self, app: Any) -> None:
        """Ask plugins to register CLI commands."""

        self._plugin_manager.hook.register_cli_commands(app=app)

    def hook_report(self) -> dict[str, list[str]]:
        """Return hook implementation summary for diagnostics."""

        report: dict[str, list[str]] = {}
        for hook_name, hook_caller in sorted(self._plugin_manager.hook.__dict__.items()):
            if hook_name.startswith("_") or not hasattr(hook_caller, "get_hookimpls"):
                continue
            plugin_names = [impl.plugin_name for impl in hook_caller.get_hookimpls()]
            if plugin_names:
                report[hook_name] = plugin_names
        return report
