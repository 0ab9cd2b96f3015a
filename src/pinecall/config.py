"""Configuration management for pinecall."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pinecall.config_store import load_config, plugin_config
from pinecall.errors import CredentialsMissingError

DEFAULT_GATEWAY_URL = "https://agent3-api-gateway-staging.19pine.ai"
DEFAULT_HOME = Path.home() / ".pinecall"
CONFIG_FILE_NAME = "config.json"
FILE_BACKED_FIELDS = ("gateway_url", "access_token", "user_id")


@dataclass(frozen=True)
class GatewayCredentials:
    """Validated connection details for the voice gateway."""

    gateway_url: str
    access_token: str
    user_id: str


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PINECALL_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    home: Path = Field(default=DEFAULT_HOME, description="Directory holding the host config file")

    # Gateway
    gateway_url: str | None = Field(default=None, description="Pine voice gateway base URL")
    access_token: str | None = Field(default=None, description="Bearer token from email verification")
    user_id: str | None = Field(default=None, description="Pine user id sent as X-Pine-User-Id")
    http_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request HTTP timeout")

    # Calls
    poll_interval_ms: int = Field(default=5000, gt=0, description="Fallback task poll interval")
    wait_grace_minutes: int = Field(default=5, ge=0, description="Extra wait beyond the call duration cap")
    tools_allow: list[str] = Field(default_factory=list, description="Optional tools granted on top of config.json")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    def resolve_home(self) -> Path:
        return self.home.expanduser().resolve()

    @property
    def config_path(self) -> Path:
        return self.resolve_home() / CONFIG_FILE_NAME

    @property
    def resolved_gateway_url(self) -> str:
        return (self.gateway_url or DEFAULT_GATEWAY_URL).rstrip("/")

    def credentials(self) -> GatewayCredentials:
        """Return gateway credentials, or raise before any network call if they are incomplete."""

        access_token = (self.access_token or "").strip()
        user_id = (self.user_id or "").strip()
        if not access_token or not user_id:
            raise CredentialsMissingError("Pine Voice access token and user id are not configured")
        return GatewayCredentials(
            gateway_url=self.resolved_gateway_url,
            access_token=access_token,
            user_id=user_id,
        )


def load_settings(home: Path | None = None) -> Settings:
    """Load settings from the environment, filling gaps from the host config file.

    Args:
        home: Optional override for the directory holding ``config.json``

    Returns:
        Settings instance
    """

    settings = Settings(home=home) if home is not None else Settings()
    file_values = plugin_config(load_config(settings.config_path))
    updates: dict[str, object] = {}
    for key in FILE_BACKED_FIELDS:
        value = file_values.get(key)
        if getattr(settings, key) is None and isinstance(value, str) and value.strip():
            updates[key] = value.strip()
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
