# Settings: pydantic-settings backed configuration for twitchplays.
# Values come from TWITCHPLAYS_* environment variables or a local .env file.

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# The one redirect endpoint this application owns. It has to be listed as an
# OAuth Redirect URL on the registered Twitch application.
REDIRECT_URI = "http://localhost:9000/"

CHAT_SCOPES: tuple[str, ...] = ("chat:read",)

DEFAULT_TARGET = "DARKSOULS"


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TWITCHPLAYS_",
        env_file=".env",
        extra="ignore",
    )

    config_dir: Path = Field(default_factory=lambda: Path.home() / ".twitchplays")
    target_process: str = DEFAULT_TARGET

    # OAuth
    redirect_uri: str = REDIRECT_URI
    scopes: list[str] = Field(default_factory=lambda: list(CHAT_SCOPES))
    auth_timeout: float = 60.0
    http_timeout: float = 15.0

    # Chat session
    irc_host: str = "irc.chat.twitch.tv"
    irc_port: int = 6697
    retry_limit: int = 10
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0
    poll_interval: float = 0.01

    # Logging
    log_level: str = "INFO"
    log_file: str = "output.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


def get_config_dir(settings: Settings | None = None) -> Path:
    """Get/create the config directory."""
    d = (settings or get_settings()).config_dir
    d.mkdir(parents=True, exist_ok=True)
    return d
