"""Attachment and linked-document harvesting.

For each message the harvester records every platform attachment and, when
downloads are enabled, stores attachment bytes plus any linked documents the
LinkClassifier accepts.

File names are reserved in message order before any download starts, so the
on-disk names don't depend on which download finishes first. Downloads within
a message run concurrently, bounded by a semaphore shared by the whole run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

import httpx

from discord_backup.backup.errors import DownloadFailed
from discord_backup.backup.fetcher import ResourceFetcher
from discord_backup.backup.links import Accepted, LinkClassifier, Rejected, extract_urls
from discord_backup.backup.logger import logger
from discord_backup.backup.models import HarvestedResource, Message, PlatformAttachment
from discord_backup.config.settings import PipelineOptions
from discord_backup.utils.filenames import file_extension, sanitize_filename


class ResourceNames:
    """Hands out unique file names within one resource directory.

    Comparison is case-insensitive so archives survive being copied to
    case-insensitive filesystems.
    """

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._taken

    def claim(self, preferred: str, fallback: str | None = None) -> str:
        """Reserve *preferred*, else *fallback*, else *preferred* with a counter."""
        for candidate in (preferred, fallback):
            if candidate and candidate not in self:
                self._taken.add(candidate.lower())
                return candidate

        ext = file_extension(preferred)
        stem = preferred[: -len(ext)] if ext else preferred
        counter = 2
        while f"{stem}-{counter}{ext}" in self:
            counter += 1
        name = f"{stem}-{counter}{ext}"
        self._taken.add(name.lower())
        return name


def attachment_key(attachment: PlatformAttachment) -> str:
    """File name for a platform attachment: its ID plus the declared extension."""
    ext = file_extension(attachment.filename)
    if ext:
        return f"{attachment.id}{ext}"
    logger.debug(
        f"No extension in attachment filename {attachment.filename!r}, "
        f"keeping the declared name"
    )
    return f"{attachment.id}-{sanitize_filename(attachment.filename)}"


def link_keys(url: str, media_subtype: str) -> tuple[str, str]:
    """Preferred and collision-fallback file names for a linked document.

    The preferred name is the URL's last path segment; the fallback prefixes
    it with the domain. Names without an extension get one from the media type.
    """
    parsed = httpx.URL(url)
    try:
        host = parsed.host
    except ValueError:
        host = parsed.raw_host.decode("ascii", errors="replace")
    domain = sanitize_filename(host or "link")
    segments = [s for s in parsed.path.split("/") if s]
    segment = sanitize_filename(unquote(segments[-1])) if segments else domain
    if not file_extension(segment):
        segment = f"{segment}.{media_subtype}"
    return segment, f"{domain}-{segment}"


@dataclass
class HarvestStats:
    downloaded: int = 0
    skipped: int = 0


@dataclass
class _PlannedDownload:
    index: int
    url: str
    path: Path
    identifier: object


class AttachmentHarvester:
    """Harvests the resources referenced by messages into an archive tree.

    Args:
        fetcher: HTTP access for downloads
        classifier: Decides which embedded links are documents
        archive_root: Root the recorded resource paths are relative to
        concurrency: Max simultaneous metadata lookups and downloads
        max_download_bytes: Skip resources larger than this (None: no limit)
    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        classifier: LinkClassifier,
        archive_root: Path,
        concurrency: int = 4,
        max_download_bytes: int | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.classifier = classifier
        self.archive_root = archive_root
        self.max_download_bytes = max_download_bytes
        self.stats = HarvestStats()
        self._semaphore = asyncio.Semaphore(concurrency)
        self._names: dict[Path, ResourceNames] = {}

    def names_for(self, directory: Path) -> ResourceNames:
        return self._names.setdefault(directory, ResourceNames())

    async def harvest(
        self,
        message: Message,
        destination_dir: Path,
        options: PipelineOptions,
        channel_name: str = "",
    ) -> list[HarvestedResource]:
        """Record and (optionally) download everything *message* references.

        Failures are logged and counted, never raised.

        Returns:
            Attachments first, in platform order, then downloaded linked
            documents in order of appearance
        """
        resources: list[HarvestedResource] = []
        planned: list[_PlannedDownload] = []
        names = self.names_for(destination_dir)

        for attachment in message.attachments:
            resources.append(
                HarvestedResource(
                    origin="attachment",
                    filename=attachment.filename,
                    source_url=attachment.source_url,
                )
            )
            if options.download_attachments:
                planned.append(
                    _PlannedDownload(
                        index=len(resources) - 1,
                        url=attachment.source_url,
                        path=destination_dir / names.claim(attachment_key(attachment)),
                        identifier=f"attachment {attachment.id}",
                    )
                )

        link_indexes: set[int] = set()
        if options.download_attachments:
            for url, verdict in await self._classify_links(message.body_text):
                if isinstance(verdict, Rejected):
                    logger.debug(f"Not archiving {url}: {verdict.reason}")
                    continue
                preferred, fallback = link_keys(url, verdict.media_type)
                resources.append(
                    HarvestedResource(origin="link", filename=preferred, source_url=url)
                )
                link_indexes.add(len(resources) - 1)
                planned.append(
                    _PlannedDownload(
                        index=len(resources) - 1,
                        url=verdict.final_url,
                        path=destination_dir / names.claim(preferred, fallback),
                        identifier=url,
                    )
                )

        if not planned:
            return resources

        outcomes = await asyncio.gather(*(self._download(p) for p in planned))

        failed_links: set[int] = set()
        for plan, error in zip(planned, outcomes):
            if error is None:
                self.stats.downloaded += 1
                rel_path = plan.path.relative_to(self.archive_root).as_posix()
                resources[plan.index] = resources[plan.index].model_copy(
                    update={"path": rel_path}
                )
                continue

            self.stats.skipped += 1
            logger.resource_skip(
                channel_name or "?",
                f"{plan.identifier} (message {message.id})",
                str(error.cause),
            )
            if plan.index in link_indexes:
                failed_links.add(plan.index)

        return [r for i, r in enumerate(resources) if i not in failed_links]

    async def _classify_links(self, text: str) -> list[tuple[str, Accepted | Rejected]]:
        urls = extract_urls(text)

        async def classify(url: str) -> Accepted | Rejected:
            async with self._semaphore:
                return await self.classifier.classify(url)

        verdicts = await asyncio.gather(*(classify(url) for url in urls))
        return list(zip(urls, verdicts))

    async def _download(self, plan: _PlannedDownload) -> DownloadFailed | None:
        async with self._semaphore:
            try:
                plan.path.parent.mkdir(parents=True, exist_ok=True)
                await self.fetcher.download_to(
                    plan.url, plan.path, max_bytes=self.max_download_bytes
                )
            except OSError as e:
                return DownloadFailed(plan.url, e)
            except DownloadFailed as e:
                return e
        return None
