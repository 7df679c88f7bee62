"""Message API JSON to model mapper."""

from __future__ import annotations

from typing import Any

from discord_backup.backup.models import Author, Message, PlatformAttachment
from discord_backup.utils.time import parse_iso8601


def map_author(data: dict[str, Any]) -> Author:
    """Prefer the global display name, fall back to the username."""
    return Author(
        id=int(data["id"]),
        display_name=data.get("global_name") or data.get("username") or str(data["id"]),
    )


def map_attachment(data: dict[str, Any]) -> PlatformAttachment:
    return PlatformAttachment(
        id=int(data["id"]),
        filename=data.get("filename") or str(data["id"]),
        source_url=data["url"],
    )


def map_message(data: dict[str, Any]) -> Message:
    """Convert Discord API message JSON to a Message snapshot.

    Args:
        data: Raw message object from Discord API

    Returns:
        Message snapshot with its platform attachments
    """
    created_at = parse_iso8601(data.get("timestamp"))
    if created_at is None:
        raise ValueError(f"Message {data.get('id')} has no timestamp")

    return Message(
        id=int(data["id"]),
        author=map_author(data["author"]),
        # NULL bytes show up in some bot payloads and are useless in an archive
        body_text=(data.get("content") or "").replace("\x00", ""),
        created_at=created_at,
        attachments=tuple(map_attachment(a) for a in data.get("attachments", [])),
    )


def map_messages(data_list: list[dict[str, Any]]) -> list[Message]:
    """Convert a page of message API responses, preserving order."""
    return [map_message(data) for data in data_list]
