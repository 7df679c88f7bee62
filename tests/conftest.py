"""Shared fixtures for discord-backup tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from discord_backup.config.settings import AppSettings, PipelineOptions


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    """Settings with no ignore-lists, writing under tmp_path."""
    return AppSettings(token="Bot test", destination_root=tmp_path)


@pytest.fixture
def options(tmp_path: Path) -> PipelineOptions:
    """Run options with downloads enabled."""
    return PipelineOptions(
        download_attachments=True,
        archive_name="Test Server",
        destination_root=tmp_path,
    )
