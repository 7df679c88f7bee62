"""Channel API JSON to model mapper."""

from __future__ import annotations

from typing import Any

from discord_backup.backup.models import Category, Channel, ChannelKind


# Channel type constants
CHANNEL_TYPE_TEXT = 0
CHANNEL_TYPE_DM = 1
CHANNEL_TYPE_VOICE = 2
CHANNEL_TYPE_GROUP_DM = 3
CHANNEL_TYPE_CATEGORY = 4
CHANNEL_TYPE_ANNOUNCEMENT = 5
CHANNEL_TYPE_ANNOUNCEMENT_THREAD = 10
CHANNEL_TYPE_PUBLIC_THREAD = 11
CHANNEL_TYPE_PRIVATE_THREAD = 12
CHANNEL_TYPE_STAGE = 13
CHANNEL_TYPE_FORUM = 15

# Channel types archived, and the kind each one is archived as
ARCHIVABLE_KINDS: dict[int, ChannelKind] = {
    CHANNEL_TYPE_TEXT: "text",
    CHANNEL_TYPE_ANNOUNCEMENT: "text",
    CHANNEL_TYPE_ANNOUNCEMENT_THREAD: "thread",
    CHANNEL_TYPE_PUBLIC_THREAD: "thread",
    CHANNEL_TYPE_PRIVATE_THREAD: "thread",
}


def is_archivable(channel_type: int) -> bool:
    """Check if a channel type holds a text message history we archive."""
    return channel_type in ARCHIVABLE_KINDS


def is_thread(channel_type: int) -> bool:
    return ARCHIVABLE_KINDS.get(channel_type) == "thread"


def map_channel(
    data: dict[str, Any],
    thread_parent_categories: dict[int, int | None] | None = None,
) -> Channel:
    """Convert Discord API channel JSON to a Channel snapshot.

    Args:
        data: Raw channel object from Discord API (must be archivable)
        thread_parent_categories: channel ID -> category ID of regular
            channels, used to give threads their parent's category

    Returns:
        Channel snapshot
    """
    channel_type = data["type"]
    kind = ARCHIVABLE_KINDS[channel_type]
    channel_id = int(data["id"])
    parent_id = int(data["parent_id"]) if data.get("parent_id") else None

    if kind == "thread":
        # A thread's parent_id is its text channel, not a category
        categories = thread_parent_categories or {}
        category_id = categories.get(parent_id) if parent_id is not None else None
        parent_channel_id = parent_id
    else:
        category_id = parent_id
        parent_channel_id = None

    return Channel(
        id=channel_id,
        name=data.get("name") or f"channel-{channel_id}",
        kind=kind,
        parent_category_id=category_id,
        parent_channel_id=parent_channel_id,
        position=data.get("position"),
    )


def map_category(data: dict[str, Any]) -> Category:
    """Convert Discord API category-channel JSON to a Category."""
    if data.get("type") != CHANNEL_TYPE_CATEGORY:
        raise ValueError(f"Channel {data.get('id')} is not a category")
    category_id = int(data["id"])
    return Category(id=category_id, name=data.get("name") or f"category-{category_id}")
