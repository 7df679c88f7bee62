"""Main orchestration for a guild backup.

``run_backup`` is the entry point the command layer calls with a validated
(guild ID, options, progress sink). It never raises for expected failures:
discovery and write failures end in a FAILED RunResult, skipped channels and
resources in COMPLETED_WITH_WARNINGS.
"""

from __future__ import annotations

from pathlib import Path

import httpx

from discord_backup.backup.assembler import ArchiveAssembler
from discord_backup.backup.channel_selector import list_archivable_channels
from discord_backup.backup.client import DiscordAPIError, DiscordClient
from discord_backup.backup.errors import BackupError, CommunityFetchError
from discord_backup.backup.fetcher import ResourceFetcher
from discord_backup.backup.guild_processor import ChannelContext, process_channel
from discord_backup.backup.harvester import AttachmentHarvester
from discord_backup.backup.links import LinkClassifier
from discord_backup.backup.logger import logger
from discord_backup.backup.mappers import map_community
from discord_backup.backup.models import (
    Community,
    RunResult,
    RunStatus,
    ServerArchive,
    SkippedChannel,
)
from discord_backup.backup.progress import ConsoleProgressSink, ProgressSink, percent_done
from discord_backup.backup.writer import ArchiveWriter
from discord_backup.config.settings import (
    AppSettings,
    ArchiveLayout,
    PipelineOptions,
    build_options,
    load_config,
)
from discord_backup.core import BaseOrchestrator
from discord_backup.utils.time import utcnow


async def fetch_community(client: DiscordClient, community_id: int) -> Community:
    """Fetch the guild being archived.

    Raises:
        CommunityFetchError: If the guild can't be fetched
    """
    try:
        return map_community(await client.get_guild(community_id))
    except (DiscordAPIError, httpx.HTTPError) as e:
        raise CommunityFetchError(community_id, e) from e


class BackupOrchestrator(BaseOrchestrator[RunResult]):
    """Runs one backup of one guild, sequentially channel by channel."""

    def __init__(
        self,
        client: DiscordClient,
        fetcher: ResourceFetcher,
        community_id: int,
        options: PipelineOptions,
        progress: ProgressSink,
        settings: AppSettings,
        community: Community | None = None,
    ) -> None:
        super().__init__()
        self.client = client
        self.fetcher = fetcher
        self.community_id = community_id
        self.options = options
        self.progress = progress
        self.settings = settings
        self.community = community
        self.archive: ServerArchive | None = None

    async def _run_pipeline(self) -> RunResult:
        try:
            result = await self._backup()
        except BackupError as e:
            logger.error(str(e))
            self.progress.on_failed(str(e))
            return RunResult(status=RunStatus.FAILED, reason=str(e))
        except Exception as e:
            self.progress.on_failed(f"unexpected error: {e}")
            raise

        self.progress.on_complete()
        return result

    async def _backup(self) -> RunResult:
        community = self.community or await fetch_community(self.client, self.community_id)
        logger.guild_start(community.id, community.display_name, self.options.archive_name)

        channels = await list_archivable_channels(self.client, community, self.settings)

        writer = ArchiveWriter(
            self.options.destination_root,
            self.options.archive_name,
            layout=self.settings.layout,
        )
        staging = writer.prepare()

        harvester = AttachmentHarvester(
            fetcher=self.fetcher,
            classifier=LinkClassifier(
                self.fetcher,
                ignored_domains=self.settings.ignored_link_domains,
                accepted_subtypes=self.settings.archived_media_subtypes,
            ),
            archive_root=staging,
            concurrency=self.settings.download_concurrency,
            max_download_bytes=self.settings.max_download_bytes,
        )
        ctx = ChannelContext(
            client=self.client,
            assembler=ArchiveAssembler(self.client),
            harvester=harvester,
            writer=writer,
            options=self.options,
            settings=self.settings,
        )

        self.archive = ServerArchive(community=community, archived_at=utcnow())
        skipped: list[SkippedChannel] = []

        for done, channel in enumerate(channels, start=1):
            channel_result = await process_channel(channel, ctx)
            if channel_result.archive is not None:
                self.archive.channels.append(channel_result.archive)
            elif channel_result.skipped_reason is not None:
                skipped.append(SkippedChannel(channel, channel_result.skipped_reason))
            self.progress.on_progress(percent_done(done, len(channels)))

        archive_path = writer.write(self.archive)

        warnings = bool(skipped) or harvester.stats.skipped > 0
        return RunResult(
            status=RunStatus.COMPLETED_WITH_WARNINGS if warnings else RunStatus.COMPLETED,
            archive_path=archive_path,
            channels_archived=len(self.archive.channels),
            messages_archived=sum(len(c.messages) for c in self.archive.channels),
            skipped_channels=skipped,
            skipped_resources=harvester.stats.skipped,
        )

    def _log_summary(self, result: RunResult, elapsed: float) -> None:
        if result.status is RunStatus.FAILED:
            return
        logger.summary(
            channels=result.channels_archived,
            messages=result.messages_archived,
            skipped_channels=len(result.skipped_channels),
            skipped_resources=result.skipped_resources,
            elapsed=elapsed,
        )
        for skipped in result.skipped_channels:
            logger.warning(f"Skipped #{skipped.channel.name} ({skipped.channel.id}): {skipped.reason}")


async def run_backup(
    client: DiscordClient,
    community_id: int,
    options: PipelineOptions,
    progress: ProgressSink,
    settings: AppSettings,
    fetcher: ResourceFetcher | None = None,
    community: Community | None = None,
) -> RunResult:
    """Back up one guild.

    Args:
        client: Open Discord client (the transport collaborator)
        community_id: Guild to back up
        options: Per-run options (archive name, destination, downloads)
        progress: Receives percent-done and terminal notifications
        settings: Ignore-lists, time budget, layout and other deployment settings
        fetcher: Resource fetcher; one is opened for the run if omitted
        community: The guild, if the caller already fetched it

    Returns:
        RunResult describing the outcome
    """
    if fetcher is not None:
        orchestrator = BackupOrchestrator(
            client, fetcher, community_id, options, progress, settings, community
        )
        return await orchestrator.run()

    async with ResourceFetcher(timeout=settings.request_timeout) as own_fetcher:
        orchestrator = BackupOrchestrator(
            client, own_fetcher, community_id, options, progress, settings, community
        )
        return await orchestrator.run()


async def backup_from_config(
    config_path: str | Path,
    guild_id: int,
    archive_name: str | None = None,
    download_attachments: bool | None = None,
    layout: ArchiveLayout | None = None,
) -> RunResult:
    """CLI entry point: load config, open a client and back up *guild_id*."""
    settings = load_config(config_path)
    if layout is not None:
        settings = settings.model_copy(update={"layout": layout})
    if not settings.token:
        raise ValueError(f"No bot token configured (config: {config_path})")

    progress = ConsoleProgressSink()
    async with DiscordClient(
        token=settings.token,
        user_agent=settings.user_agent,
        timeout=settings.request_timeout,
    ) as client:
        # The default archive name is the guild's name, so fetch it up front
        try:
            community = await fetch_community(client, guild_id)
        except BackupError as e:
            logger.error(str(e))
            progress.on_failed(str(e))
            return RunResult(status=RunStatus.FAILED, reason=str(e))

        options = build_options(
            settings,
            community.display_name,
            archive_name=archive_name,
            download_attachments=download_attachments,
        )
        return await run_backup(
            client, guild_id, options, progress, settings, community=community
        )
