"""Application settings using Pydantic Settings.

Values come from, in priority order: keyword arguments, ``ALERTRELAY_*``
environment variables (``__`` separates nested keys, e.g.
``ALERTRELAY_PROVIDERS__OPS__DRY_RUN=true``), then the TOML config file.
"""

import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from alertrelay.alerts.config import Duration, ProviderConfig
from alertrelay.alerts.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"
CONFIG_PATH_ENV = "ALERTRELAY_CONFIG"


class AppConfig(BaseModel):
    """HTTP server and process settings."""

    address: str = "0.0.0.0:6000"
    server_timeout: Duration = Field(default=timedelta(seconds=5))
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def host(self) -> str:
        host, _, _ = self.address.rpartition(":")
        return host or "0.0.0.0"

    @property
    def port(self) -> int:
        _, _, port = self.address.rpartition(":")
        return int(port)


class Settings(BaseSettings):
    """
    Central configuration for alertrelay.

    ``providers`` maps a room name to that room's provider settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="ALERTRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app: AppConfig = Field(default_factory=AppConfig)
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Load settings from a TOML file merged with the environment.

    Args:
        config_path: Explicit config file. Falls back to ``$ALERTRELAY_CONFIG``
            and then ``config.toml``.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: An explicit config file is missing, or the
            merged configuration is invalid or lists no providers.
    """
    explicit = config_path or os.environ.get(CONFIG_PATH_ENV)
    path = Path(explicit or DEFAULT_CONFIG_PATH)

    if not path.is_file():
        if explicit:
            raise ConfigurationError(f"config file not found: {path}")
        logger.warning(
            "Unable to open config file, falling back to env vars",
            path=str(path),
        )
        settings_cls: type[Settings] = Settings
    else:
        logger.info("Loading config from file", path=str(path))

        class _FileSettings(Settings):
            model_config = SettingsConfigDict(toml_file=path)

        settings_cls = _FileSettings

    try:
        settings = settings_cls()
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e

    if not settings.providers:
        raise ConfigurationError("no providers listed in config")
    return settings
