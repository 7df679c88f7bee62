"""Transcript assembly.

Turns a newest-first history plus harvested resources into a chronological
ChannelArchive, marking where transcript groups start.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Mapping, Sequence

import httpx

from discord_backup.backup.client import DiscordAPIError, DiscordClient
from discord_backup.backup.logger import logger
from discord_backup.backup.mappers import map_category
from discord_backup.backup.models import (
    Category,
    Channel,
    ChannelArchive,
    HarvestedResource,
    Message,
    MessageArchive,
)

GROUP_GAP = timedelta(hours=1)


def starts_new_group(previous: Message | None, current: Message) -> bool:
    """A group starts at the first message, on an author change, or after a gap of an hour or more."""
    if previous is None:
        return True
    if previous.author.id != current.author.id:
        return True
    return current.created_at - previous.created_at >= GROUP_GAP


class ArchiveAssembler:
    """Builds ChannelArchives and resolves categories, one lookup per category."""

    def __init__(self, client: DiscordClient) -> None:
        self.client = client
        self._categories: dict[int, Category | None] = {}

    async def resolve_category(self, channel: Channel) -> Category | None:
        """Look up the channel's category; failures yield None (logged)."""
        category_id = channel.parent_category_id
        if category_id is None:
            return None
        if category_id in self._categories:
            return self._categories[category_id]

        category: Category | None
        try:
            category = map_category(await self.client.get_channel(category_id))
        except (DiscordAPIError, httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning(
                f"#{channel.name}: could not resolve category {category_id}, "
                f"archiving without it: {e}"
            )
            category = None

        self._categories[category_id] = category
        return category

    def assemble(
        self,
        channel: Channel,
        history: Sequence[Message],
        harvested: Mapping[int, list[HarvestedResource]],
        category: Category | None = None,
    ) -> ChannelArchive:
        """Build the archive of one channel.

        Args:
            channel: The channel
            history: Messages newest first, as read by fetch_history
            harvested: Message ID -> harvested resources
            category: The channel's resolved category, if any

        Returns:
            ChannelArchive with messages in chronological order
        """
        archive = ChannelArchive(channel=channel, category=category)
        previous: Message | None = None

        # Stable sort on (timestamp, id) after reversing: identical timestamps keep ID order
        chronological = sorted(reversed(history), key=lambda m: (m.created_at, m.id))
        for message in chronological:
            archive.messages.append(
                MessageArchive(
                    message=message,
                    resources=list(harvested.get(message.id, [])),
                    starts_group=starts_new_group(previous, message),
                )
            )
            previous = message

        return archive
