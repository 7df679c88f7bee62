"""Channel history retrieval.

History is read newest to oldest with the `before` cursor: each request asks
for messages older than the oldest message of the previous page, until Discord
returns an empty page. The whole read shares one deadline.

The read is a small state machine (HistoryCursor) whose step() returns one of
Page, Empty, Timeout or Error, so each termination condition can be exercised
on its own. Retrying failed pages is the client's job, not this module's.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Union

import httpx

from discord_backup.backup.client import MESSAGES_PAGE_LIMIT, DiscordAPIError, DiscordClient
from discord_backup.backup.errors import FetchFailed, TimedOut
from discord_backup.backup.logger import logger
from discord_backup.backup.mappers import map_messages
from discord_backup.backup.models import Channel, Message
from discord_backup.utils.snowflake import snowflake_date


@dataclass
class Page:
    """A non-empty page; its new messages were added to the accumulator."""

    messages: list[Message]


@dataclass
class Empty:
    """No older messages: history is complete."""


@dataclass
class Timeout:
    """The deadline passed before the history was complete."""


@dataclass
class Error:
    """A page request failed."""

    cause: BaseException


FetchStep = Union[Page, Empty, Timeout, Error]


@dataclass
class HistoryCursor:
    """Pagination state for one channel.

    Attributes:
        channel_id: Channel being read
        deadline: Event-loop time after which no further page is requested
        cursor: Oldest message ID seen so far (None before the first page)
        accumulated: Messages fetched so far, newest first, without duplicates
    """

    channel_id: int
    deadline: float
    cursor: int | None = None
    accumulated: list[Message] = field(default_factory=list)
    page_size: int = MESSAGES_PAGE_LIMIT
    _seen: set[int] = field(default_factory=set, repr=False)

    @classmethod
    def start(
        cls, channel_id: int, time_budget: float, page_size: int = MESSAGES_PAGE_LIMIT
    ) -> "HistoryCursor":
        loop = asyncio.get_running_loop()
        return cls(channel_id=channel_id, deadline=loop.time() + time_budget, page_size=page_size)

    def remaining(self) -> float:
        return self.deadline - asyncio.get_running_loop().time()

    async def step(self, client: DiscordClient) -> FetchStep:
        """Fetch the next older page and advance the cursor."""
        remaining = self.remaining()
        if remaining <= 0:
            return Timeout()

        try:
            data = await asyncio.wait_for(
                client.get_messages(
                    channel_id=self.channel_id,
                    limit=self.page_size,
                    before=self.cursor,
                ),
                timeout=remaining,
            )
        except asyncio.TimeoutError:
            return Timeout()
        except (DiscordAPIError, httpx.HTTPError) as e:
            return Error(e)

        if not data:
            return Empty()

        try:
            page = map_messages(data)
        except (KeyError, TypeError, ValueError) as e:
            return Error(e)

        # Discord sends newest first; sort anyway so the cursor can't regress
        page.sort(key=lambda m: m.id, reverse=True)
        new_messages = [m for m in page if m.id not in self._seen]
        if not new_messages:
            # Only repeats: the platform ignored the cursor, stop instead of looping
            return Empty()

        self._seen.update(m.id for m in new_messages)
        self.accumulated.extend(new_messages)
        self.cursor = page[-1].id if self.cursor is None else min(self.cursor, page[-1].id)
        return Page(new_messages)


async def fetch_history(
    client: DiscordClient,
    channel: Channel,
    time_budget: float,
    on_page: Callable[[HistoryCursor], None] | None = None,
) -> list[Message]:
    """Read a channel's complete history, newest first.

    Args:
        client: Discord client
        channel: Channel to read
        time_budget: Seconds allowed for the whole read
        on_page: Optional callback after every page (progress output)

    Returns:
        All messages of the channel, newest first

    Raises:
        TimedOut: The budget ran out; carries the messages fetched so far
        FetchFailed: A page request failed; carries the messages fetched so far
    """
    state = HistoryCursor.start(channel.id, time_budget)

    while True:
        step = await state.step(client)

        if isinstance(step, Empty):
            return state.accumulated

        if isinstance(step, Timeout):
            raise TimedOut(channel.id, time_budget, partial=state.accumulated)

        if isinstance(step, Error):
            raise FetchFailed(channel.id, step.cause, partial=state.accumulated) from step.cause

        if on_page is not None:
            on_page(state)
        else:
            logger.batch_progress(
                len(state.accumulated),
                oldest_date=snowflake_date(state.cursor) if state.cursor else None,
            )
