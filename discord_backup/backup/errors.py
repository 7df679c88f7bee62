"""Backup pipeline error taxonomy.

Fatal for the run:
    DiscoveryError - the guild (CommunityFetchError) or its channel listing
        could not be fetched
    WriteError - the archive could not be written to disk

Recoverable, caught at their own boundary:
    FetchFailed / TimedOut - skip the channel
    DownloadFailed - skip the resource
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from discord_backup.backup.models import Message


class BackupError(Exception):
    """Base class for all backup pipeline errors."""


class DiscoveryError(BackupError):
    """Raised when a community's channels cannot be enumerated."""

    def __init__(
        self,
        community_id: int,
        cause: BaseException,
        message: str | None = None,
    ) -> None:
        self.community_id = community_id
        self.cause = cause
        super().__init__(
            message or f"Failed to list channels of guild {community_id}: {cause}"
        )


class CommunityFetchError(DiscoveryError):
    """Raised when the community itself cannot be fetched."""

    def __init__(self, community_id: int, cause: BaseException) -> None:
        super().__init__(
            community_id, cause, f"Failed to fetch guild {community_id}: {cause}"
        )


class ChannelError(BackupError):
    """Base class for per-channel failures (channel is skipped)."""

    def __init__(self, channel_id: int, reason: str) -> None:
        self.channel_id = channel_id
        self.reason = reason
        super().__init__(f"Channel {channel_id}: {reason}")


class FetchFailed(ChannelError):
    """A history page request failed."""

    def __init__(
        self,
        channel_id: int,
        cause: BaseException,
        partial: list["Message"] | None = None,
    ) -> None:
        self.cause = cause
        self.partial = partial or []
        super().__init__(channel_id, f"history fetch failed: {cause}")


class TimedOut(ChannelError):
    """The history fetch exceeded its time budget.

    Carries whatever was fetched before the deadline.
    """

    def __init__(
        self,
        channel_id: int,
        time_budget: float,
        partial: list["Message"] | None = None,
    ) -> None:
        self.time_budget = time_budget
        self.partial = partial or []
        super().__init__(
            channel_id,
            f"history fetch timed out after {time_budget:g}s "
            f"({len(self.partial):,} messages fetched)",
        )


class DownloadFailed(BackupError):
    """A single attachment or linked document could not be downloaded."""

    def __init__(self, url: str, cause: BaseException | str) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Download of {url} failed: {cause}")


class WriteError(BackupError):
    """The archive could not be written to the destination."""

    def __init__(self, path: object, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write archive at {path}: {cause}")
