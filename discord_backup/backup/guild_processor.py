"""Per-channel processing.

One channel is read, harvested and assembled at a time. A channel whose
history can't be read (timeout or failed page) is skipped; the run goes on.
"""

from __future__ import annotations

from dataclasses import dataclass

from discord_backup.backup.assembler import ArchiveAssembler
from discord_backup.backup.client import DiscordClient
from discord_backup.backup.errors import FetchFailed, TimedOut
from discord_backup.backup.harvester import AttachmentHarvester
from discord_backup.backup.history import HistoryCursor, fetch_history
from discord_backup.backup.logger import logger
from discord_backup.backup.models import Channel, ChannelArchive, HarvestedResource
from discord_backup.backup.writer import ArchiveWriter
from discord_backup.config.settings import AppSettings, PipelineOptions
from discord_backup.utils.snowflake import snowflake_date


@dataclass
class ChannelProcessResult:
    """Result of processing a channel.

    Exactly one of: ``archive`` is set; ``skipped_reason`` is set (a warning);
    ``omitted_empty`` is True (empty channel left out by policy).
    """

    archive: ChannelArchive | None = None
    skipped_reason: str | None = None
    omitted_empty: bool = False


@dataclass
class ChannelContext:
    """Collaborators shared by every channel of a run."""

    client: DiscordClient
    assembler: ArchiveAssembler
    harvester: AttachmentHarvester
    writer: ArchiveWriter
    options: PipelineOptions
    settings: AppSettings


async def process_channel(channel: Channel, ctx: ChannelContext) -> ChannelProcessResult:
    """Read, harvest and assemble a single channel.

    Args:
        channel: Channel to archive
        ctx: Run-wide collaborators and configuration

    Returns:
        The channel's archive, or why it was left out
    """
    with logger.block(f"#{channel.name}") as block:
        block.field("channel ID", channel.id)
        block.field("kind", channel.kind)

        category = await ctx.assembler.resolve_category(channel)
        if category:
            block.field("category", category.name)

        def on_page(state: HistoryCursor) -> None:
            oldest = f" [→ {snowflake_date(state.cursor)}]" if state.cursor else ""
            block.progress(f"Fetched {len(state.accumulated):,} messages{oldest}")

        try:
            history = await fetch_history(
                ctx.client,
                channel,
                ctx.settings.history_time_budget,
                on_page=on_page,
            )
        except (TimedOut, FetchFailed) as e:
            logger.warning(f"Skipping #{channel.name} ({channel.id}): {e.reason}")
            block.skip(e.reason)
            return ChannelProcessResult(skipped_reason=e.reason)

        if not history and ctx.settings.skip_empty_channels:
            block.empty()
            return ChannelProcessResult(omitted_empty=True)

        resource_dir = ctx.writer.resource_dir(channel, category)
        harvested: dict[int, list[HarvestedResource]] = {}
        skipped_before = ctx.harvester.stats.skipped

        # Oldest first, so resource names are claimed in chronological order
        for message in reversed(history):
            if not message.attachments and not ctx.options.download_attachments:
                continue
            resources = await ctx.harvester.harvest(
                message, resource_dir, ctx.options, channel_name=channel.name
            )
            if resources:
                harvested[message.id] = resources

        archive = ctx.assembler.assemble(channel, history, harvested, category)

        skipped = ctx.harvester.stats.skipped - skipped_before
        if skipped:
            block.warn(f"{skipped:,} resources skipped")
        if archive.messages:
            block.result(f"archived {len(archive.messages):,} messages")
        else:
            block.empty()

    return ChannelProcessResult(archive=archive)
