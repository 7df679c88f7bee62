"""Archive data model.

Platform snapshots (Community, Channel, Message, ...) are read once per run and
never mutated. The archive models (ChannelArchive, ServerArchive) are built
incrementally by the assembler and serialized by the writer; they round-trip
through JSON via pydantic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ChannelKind = Literal["text", "thread"]
ResourceOrigin = Literal["attachment", "link"]


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class Community(_Snapshot):
    id: int
    display_name: str


class Category(_Snapshot):
    id: int
    name: str


class Channel(_Snapshot):
    id: int
    name: str
    kind: ChannelKind
    parent_category_id: int | None = None
    # Threads only: the text channel the thread hangs off
    parent_channel_id: int | None = None
    position: int | None = None


class Author(_Snapshot):
    id: int
    display_name: str


class PlatformAttachment(_Snapshot):
    id: int
    filename: str
    source_url: str


class Message(_Snapshot):
    id: int
    author: Author
    body_text: str = ""
    created_at: datetime
    attachments: tuple[PlatformAttachment, ...] = ()


class HarvestedResource(_Snapshot):
    """A platform attachment or a link-derived document after harvesting.

    ``path`` is relative to the archive root and is None when the bytes were
    not downloaded (downloads disabled, or the download failed).
    """

    origin: ResourceOrigin
    filename: str
    source_url: str
    path: str | None = None

    @property
    def downloaded(self) -> bool:
        return self.path is not None


class MessageArchive(BaseModel):
    message: Message
    resources: list[HarvestedResource] = Field(default_factory=list)
    # Rendering hint: first message of a transcript group
    starts_group: bool = True


class ChannelArchive(BaseModel):
    channel: Channel
    category: Category | None = None
    messages: list[MessageArchive] = Field(default_factory=list)

    def groups(self) -> list[list[MessageArchive]]:
        """Split messages into transcript groups at each ``starts_group``."""
        groups: list[list[MessageArchive]] = []
        for entry in self.messages:
            if entry.starts_group or not groups:
                groups.append([])
            groups[-1].append(entry)
        return groups


class ServerArchive(BaseModel):
    community: Community
    channels: list[ChannelArchive] = Field(default_factory=list)
    archived_at: datetime | None = None


class RunStatus(str, Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    FAILED = "failed"


@dataclass
class SkippedChannel:
    """A channel left out of the archive and why."""

    channel: Channel
    reason: str


@dataclass
class RunResult:
    """Outcome of one backup run."""

    status: RunStatus
    archive_path: Path | None = None
    channels_archived: int = 0
    messages_archived: int = 0
    skipped_channels: list[SkippedChannel] = field(default_factory=list)
    skipped_resources: int = 0
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.FAILED
