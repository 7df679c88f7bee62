"""Channel discovery and filtering.

Lists a guild's channels and active threads, keeps the archivable kinds and
drops everything on the configured ignore-lists.
"""

from __future__ import annotations

from typing import Any

import httpx

from discord_backup.backup.client import DiscordAPIError, DiscordClient
from discord_backup.backup.errors import DiscoveryError
from discord_backup.backup.logger import logger
from discord_backup.backup.mappers import map_channel
from discord_backup.backup.mappers.channel import (
    CHANNEL_TYPE_CATEGORY,
    is_archivable,
)
from discord_backup.backup.models import Channel, Community
from discord_backup.config.settings import AppSettings


async def list_archivable_channels(
    client: DiscordClient,
    community: Community,
    settings: AppSettings,
) -> list[Channel]:
    """List the channels of *community* that should be archived.

    Args:
        client: Discord client
        community: Guild being archived
        settings: Supplies the channel and category ignore-lists

    Returns:
        Channels in platform-reported order, threads after regular channels

    Raises:
        DiscoveryError: If the guild channel listing fails
    """
    try:
        channels_data = await client.get_guild_channels(community.id)
    except (DiscordAPIError, httpx.HTTPError) as e:
        raise DiscoveryError(community.id, e) from e

    try:
        threads_data = await client.get_active_threads(community.id)
    except (DiscordAPIError, httpx.HTTPError) as e:
        logger.warning(f"Could not list active threads, archiving without them: {e}")
        threads_data = []

    selected = select_channels(
        channels_data + threads_data,
        ignored_channel_ids=settings.ignored_channel_ids,
        ignored_category_ids=settings.ignored_category_ids,
    )
    logger.channels_selected(len(selected), len(channels_data) + len(threads_data))
    return selected


def select_channels(
    channels_data: list[dict[str, Any]],
    ignored_channel_ids: frozenset[int] = frozenset(),
    ignored_category_ids: frozenset[int] = frozenset(),
) -> list[Channel]:
    """Filter raw channel objects down to archivable, non-ignored channels."""
    # Regular channel -> category, so threads can be filtered by their parent's category
    channel_categories: dict[int, int | None] = {
        int(c["id"]): int(c["parent_id"]) if c.get("parent_id") else None
        for c in channels_data
        if c.get("type") != CHANNEL_TYPE_CATEGORY
    }

    selected: list[Channel] = []
    seen: set[int] = set()

    for data in channels_data:
        if not is_archivable(data.get("type", -1)):
            continue

        channel = map_channel(data, thread_parent_categories=channel_categories)
        if channel.id in seen:
            continue
        seen.add(channel.id)

        if channel.id in ignored_channel_ids:
            logger.debug(f"Ignoring channel #{channel.name} ({channel.id})")
            continue
        if channel.parent_channel_id in ignored_channel_ids:
            logger.debug(f"Ignoring thread {channel.name}: parent channel is ignored")
            continue
        if channel.parent_category_id in ignored_category_ids:
            logger.debug(
                f"Ignoring channel #{channel.name}: "
                f"category {channel.parent_category_id} is ignored"
            )
            continue

        selected.append(channel)

    return selected
