"""Mappers for converting Discord API JSON to archive snapshots."""

from discord_backup.backup.mappers.channel import map_category, map_channel
from discord_backup.backup.mappers.guild import map_community
from discord_backup.backup.mappers.message import (
    map_attachment,
    map_author,
    map_message,
    map_messages,
)

__all__ = [
    "map_attachment",
    "map_author",
    "map_category",
    "map_channel",
    "map_community",
    "map_message",
    "map_messages",
]
