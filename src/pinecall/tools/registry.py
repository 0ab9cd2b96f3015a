"""Unified tool registry."""

from __future__ import annotations

import builtins
import inspect
import json
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel

from pinecall.formatting import ToolResult

ToolHandler = Callable[[Any], Awaitable[ToolResult]]

# Argument values that must never reach the log.
_REDACTED_KEYS = frozenset({"code", "request_token", "access_token"})


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    short_description: str
    detail: str
    model: type[BaseModel]
    handler: ToolHandler
    optional: bool = False
    source: str = "builtin"

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.detail,
            "parameters": self.model.model_json_schema(),
        }


class ToolRegistry:
    """Registry for agent tools.

    Optional tools are only registered when their name is in ``allowed``;
    the host decides which optional capabilities it grants.
    """

    def __init__(self, allowed: Iterable[str] | None = None) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._allowed = frozenset(allowed or ())

    def is_allowed(self, name: str) -> bool:
        return name in self._allowed

    def register(
        self,
        *,
        name: str,
        short_description: str,
        model: type[BaseModel],
        detail: str | None = None,
        optional: bool = False,
        source: str = "builtin",
    ) -> Callable[[ToolHandler], ToolHandler]:
        def decorator(handler: ToolHandler) -> ToolHandler:
            if optional and not self.is_allowed(name):
                logger.debug("tool.skipped name={} reason=not_allowed", name)
                return handler
            if name in self._tools:
                raise ValueError(f"Duplicate tool name: {name}")
            self._tools[name] = ToolDescriptor(
                name=name,
                short_description=short_description,
                detail=detail or inspect.cleandoc(handler.__doc__ or short_description),
                model=model,
                handler=handler,
                optional=optional,
                source=source,
            )
            return handler

        return decorator

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def descriptors(self) -> builtins.list[ToolDescriptor]:
        return sorted(self._tools.values(), key=lambda item: item.name)

    def compact_rows(self) -> builtins.list[str]:
        rows: builtins.list[str] = []
        for descriptor in self.descriptors():
            marker = " (optional)" if descriptor.optional else ""
            rows.append(f"{descriptor.name}{marker}: {descriptor.short_description}")
        return rows

    def schemas(self) -> builtins.list[dict[str, Any]]:
        return [descriptor.schema() for descriptor in self.descriptors()]

    async def execute(self, name: str, *, kwargs: dict[str, Any]) -> ToolResult:
        descriptor = self.get(name)
        if descriptor is None:
            raise KeyError(name)

        params = descriptor.model.model_validate(kwargs)
        self._log_tool_call(name, kwargs)
        start = time.monotonic()
        try:
            return await descriptor.handler(params)
        except Exception:
            logger.exception("tool.call.error name={}", name)
            raise
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)

    def _log_tool_call(self, name: str, kwargs: dict[str, Any]) -> None:
        params: list[str] = []
        for key, value in kwargs.items():
            if key in _REDACTED_KEYS:
                params.append(f"{key}=***")
                continue
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            value = _shorten_text(rendered, width=30, placeholder="...")
            if value.startswith('"') and not value.endswith('"'):
                value = value + '"'
            params.append(f"{key}={value}")
        logger.info("tool.call.start name={} {{ {} }}", name, ", ".join(params))
