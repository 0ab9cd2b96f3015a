"""Host config file: plugin entries and the tool allow-list."""

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any

from loguru import logger

from pinecall.errors import ConfigurationError

PLUGIN_ID = "pine-voice"
VOICE_TOOLS = (
    "pine_voice_call_and_wait",
    "pine_voice_call",
    "pine_voice_call_status",
)


def load_config(path: Path) -> dict[str, Any]:
    """Read the host config file; a missing file is an empty config."""

    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc!s}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a JSON object")
    return data


def write_config(path: Path, config: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(config, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    tmp_path.replace(path)
    logger.info("config.written path={}", path)


def plugin_config(config: dict[str, Any]) -> dict[str, Any]:
    """Return ``plugins.entries[<plugin>].config`` or an empty mapping."""

    entry = _mapping(_mapping(_mapping(config.get("plugins")).get("entries")).get(PLUGIN_ID))
    return dict(_mapping(entry.get("config")))


def allowed_tools(config: dict[str, Any]) -> list[str]:
    allow = _mapping(config.get("tools")).get("allow")
    if not isinstance(allow, list):
        return []
    return [item for item in allow if isinstance(item, str)]


def build_auth_config(config: dict[str, Any], access_token: str, user_id: str) -> tuple[dict[str, Any], list[str]]:
    """Merge fresh credentials and the voice tools into a host config.

    Returns the updated config and the voice tools that were missing from
    ``tools.allow``. The input mapping is left untouched.
    """

    updated = deepcopy(config)
    plugins = dict(_mapping(updated.get("plugins")))
    entries = dict(_mapping(plugins.get("entries")))
    entry = dict(_mapping(entries.get(PLUGIN_ID)))
    entry["config"] = {
        **_mapping(entry.get("config")),
        "access_token": access_token,
        "user_id": user_id,
    }
    entries[PLUGIN_ID] = entry
    plugins["entries"] = entries
    updated["plugins"] = plugins

    existing = allowed_tools(config)
    added = [name for name in VOICE_TOOLS if name not in existing]
    tools = dict(_mapping(updated.get("tools")))
    tools["allow"] = [*existing, *added]
    updated["tools"] = tools
    return updated, added


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}
