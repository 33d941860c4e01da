"""Pydantic models for automation configuration.

Nested sections are plain ``BaseModel`` so pydantic-settings only reads the
environment for the top-level :class:`AutomationConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class EngineSection(BaseModel):
    """Workflow engine settings."""

    data_dir: str = "~/.local/share/evofit"
    store: Literal["memory", "sqlite"] = "sqlite"
    db_name: str = "executions.db"
    load_default_workflows: bool = True
    workflows_file: str = ""
    max_nested_depth: int = Field(default=8, ge=0)
    fail_on_retry_exhaustion: bool = False


class SchedulerSection(BaseModel):
    """Schedule trigger settings."""

    strategy: Literal["legacy", "cron"] = "legacy"
    default_timezone: str = "UTC"


class ActionsSection(BaseModel):
    """Collaborator settings for action dispatch."""

    api_base_url: str = ""
    http_timeout_seconds: float = Field(default=30.0, gt=0)


class ServerSection(BaseModel):
    """HTTP server for webhooks and queries."""

    host: str = "127.0.0.1"
    port: int = 7810


class LoggingSection(BaseModel):
    level: str = "info"


class AutomationConfig(BaseSettings):
    """Top-level automation configuration.

    Maps to the TOML structure:
        [engine] / [scheduler] / [actions] / [server] / [logging]

    Environment overrides use the ``EVOFIT_`` prefix with ``__`` between
    section and key, e.g. ``EVOFIT_SERVER__PORT=9000``, and win over values
    passed in (which is how the config file arrives).
    """

    model_config = SettingsConfigDict(env_prefix="EVOFIT_", env_nested_delimiter="__")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: env vars > init kwargs (the TOML file) > defaults."""
        return env_settings, init_settings

    engine: EngineSection = Field(default_factory=EngineSection)
    scheduler: SchedulerSection = Field(default_factory=SchedulerSection)
    actions: ActionsSection = Field(default_factory=ActionsSection)
    server: ServerSection = Field(default_factory=ServerSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)

    def get_data_path(self) -> Path:
        """Return the resolved data directory path."""
        return Path(self.engine.data_dir).expanduser()

    def get_db_path(self) -> Path:
        """Return the resolved execution database path."""
        return self.get_data_path() / self.engine.db_name
