"""Configuration management using pydantic-settings.

Provides validated configuration with support for:
- JSON config file (config.json)
- Environment variable overrides (DISCORD_BACKUP_*)
- Type coercion and validation
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from discord_backup.utils.filenames import sanitize_filename

ArchiveLayout = Literal["document", "channels"]

DEFAULT_HISTORY_TIME_BUDGET = 600.0  # seconds, per channel


class AppSettings(BaseSettings):
    """Deployment settings, loaded once at run start and never mutated.

    Ignore-lists are plain data so that each community can carry its own
    config file.
    """

    token: str = ""
    user_agent: str = "DiscordBot (https://github.com/discord-backup, 1.0)"

    destination_root: Path = Path("backups")
    download_attachments: bool = False
    layout: ArchiveLayout = "document"
    skip_empty_channels: bool = False

    ignored_channel_ids: frozenset[int] = frozenset()
    ignored_category_ids: frozenset[int] = frozenset()
    ignored_link_domains: frozenset[str] = frozenset()
    archived_media_subtypes: frozenset[str] = frozenset({"pdf"})

    history_time_budget: float = Field(default=DEFAULT_HISTORY_TIME_BUDGET, gt=0)
    download_concurrency: int = Field(default=4, ge=1)
    max_download_bytes: int | None = Field(default=None, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="DISCORD_BACKUP_",
        extra="ignore",
        frozen=True,
    )

    @field_validator("ignored_channel_ids", "ignored_category_ids", mode="before")
    @classmethod
    def coerce_snowflakes(cls, v: Any) -> Any:
        """Accept snowflakes written as strings (JSON can't hold 64-bit ints safely)."""
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(int(x) for x in v)
        return v

    @field_validator("ignored_link_domains", "archived_media_subtypes", mode="before")
    @classmethod
    def normalize_lowercase(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(str(x).strip().lower() for x in v)
        return v

    @classmethod
    def from_json(cls, path: str | Path = "config.json") -> "AppSettings":
        """Load settings from a JSON config file.

        Args:
            path: Path to the JSON config file

        Returns:
            AppSettings instance; defaults (plus environment) if the file is missing
        """
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls(**data)
        return cls()


class PipelineOptions(BaseModel):
    """Per-run options handed to the pipeline by the command layer."""

    model_config = ConfigDict(frozen=True)

    download_attachments: bool = False
    archive_name: str
    destination_root: Path

    @field_validator("archive_name")
    @classmethod
    def make_filesystem_safe(cls, v: str) -> str:
        return sanitize_filename(v)

    @property
    def archive_path(self) -> Path:
        return self.destination_root / self.archive_name


def build_options(
    settings: AppSettings,
    community_name: str,
    archive_name: str | None = None,
    download_attachments: bool | None = None,
) -> PipelineOptions:
    """Build run options, defaulting the archive name to the community name."""
    return PipelineOptions(
        download_attachments=(
            settings.download_attachments
            if download_attachments is None
            else download_attachments
        ),
        archive_name=archive_name or community_name,
        destination_root=settings.destination_root,
    )


@lru_cache
def get_settings(config_path: str = "config.json") -> AppSettings:
    """Get cached application settings.

    Args:
        config_path: Path to JSON config file (default: config.json)

    Returns:
        Cached AppSettings instance
    """
    return AppSettings.from_json(config_path)


def load_config(path: str | Path = "config.json") -> AppSettings:
    """Load configuration from *path*, bypassing the get_settings cache."""
    get_settings.cache_clear()
    return AppSettings.from_json(path)
