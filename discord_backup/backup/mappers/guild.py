"""Guild API JSON to model mapper."""

from __future__ import annotations

from typing import Any

from discord_backup.backup.models import Community


def map_community(data: dict[str, Any]) -> Community:
    guild_id = int(data["id"])
    return Community(id=guild_id, display_name=data.get("name") or str(guild_id))
