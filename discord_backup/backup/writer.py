"""Archive serialization to disk.

A run writes into a hidden staging directory next to the destination
(``.<archive_name>.partial``). Only when every document has been written is
any previous archive of the same name deleted and the staging directory
renamed into place, so ``<destination_root>/<archive_name>`` is either absent,
the previous complete archive, or the new complete archive.

Layouts:

    document:
        <archive_name>/<archive_name>.json      whole ServerArchive
        <archive_name>/attachments/<key>

    channels:
        <archive_name>/server.json              community + channel directories
        <archive_name>/[<category>/]<channel>/messages.json
        <archive_name>/[<category>/]<channel>/attachments/<key>
"""

from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel

from discord_backup.backup.errors import WriteError
from discord_backup.backup.logger import logger
from discord_backup.backup.models import (
    Category,
    Channel,
    ChannelArchive,
    Community,
    ServerArchive,
)
from discord_backup.config.settings import ArchiveLayout
from discord_backup.utils.filenames import sanitize_filename

ATTACHMENTS_DIR = "attachments"
MESSAGES_FILE = "messages.json"
SERVER_MANIFEST = "server.json"
STAGING_SUFFIX = ".partial"

# Entries inside every channel directory of the channels layout
CHANNEL_FILES = (MESSAGES_FILE, ATTACHMENTS_DIR)


class ServerManifest(BaseModel):
    """Index of a channels-layout archive."""

    community: Community
    archived_at: datetime | None = None
    channels: list[str]


class ArchiveWriter:
    """Owns the on-disk tree of one archive for the duration of a run."""

    def __init__(
        self,
        destination_root: Path,
        archive_name: str,
        layout: ArchiveLayout = "document",
    ) -> None:
        self.destination_root = Path(destination_root)
        self.archive_name = archive_name
        self.layout = layout
        self.final_path = self.destination_root / archive_name
        self.staging_path = self.destination_root / f".{archive_name}{STAGING_SUFFIX}"
        self._channel_dirs: dict[int, str] = {}

    def prepare(self) -> Path:
        """Create a fresh, empty staging directory.

        Leftovers of an earlier failed run with the same name are discarded.

        Raises:
            WriteError: If the staging directory can't be created
        """
        try:
            if self.staging_path.exists():
                logger.info(f"Removing stale staging directory {self.staging_path}")
                shutil.rmtree(self.staging_path)
            self.staging_path.mkdir(parents=True)
        except OSError as e:
            raise WriteError(self.staging_path, e) from e
        return self.staging_path

    def channel_dir(self, channel: Channel, category: Category | None) -> str:
        """Archive-relative directory of a channel (channels layout).

        Names are sanitized display names. A clash with another channel or with
        an entry the layout reserves gets the channel ID appended.
        """
        if channel.id in self._channel_dirs:
            return self._channel_dirs[channel.id]

        parent = f"{sanitize_filename(category.name)}/" if category else ""
        rel_dir = f"{parent}{sanitize_filename(channel.name)}"
        if self._is_reserved(rel_dir):
            rel_dir = f"{rel_dir}-{channel.id}"

        self._channel_dirs[channel.id] = rel_dir
        return rel_dir

    def _is_reserved(self, rel_dir: str) -> bool:
        """True if *rel_dir* would collide with a path the channels layout already uses.

        Besides other channel directories that is the top-level manifest and
        the files inside every channel directory, in either nesting order.
        """
        taken = {d.lower() for d in self._channel_dirs.values()}
        candidate = rel_dir.lower()
        if candidate in taken or candidate == SERVER_MANIFEST:
            return True

        parent, _, leaf = candidate.rpartition("/")
        if parent in taken and leaf in CHANNEL_FILES:
            return True
        return any(f"{candidate}/{name}" in taken for name in CHANNEL_FILES)

    def resource_dir(self, channel: Channel, category: Category | None) -> Path:
        """Staging directory the harvester stores a channel's files in."""
        if self.layout == "document":
            return self.staging_path / ATTACHMENTS_DIR
        return self.staging_path / self.channel_dir(channel, category) / ATTACHMENTS_DIR

    def write(self, archive: ServerArchive) -> Path:
        """Serialize *archive* and move it into place, replacing any previous archive.

        Returns:
            Path of the finished archive directory

        Raises:
            WriteError: On any filesystem failure; the staging directory is left as is
        """
        try:
            self.staging_path.mkdir(parents=True, exist_ok=True)
            if self.layout == "document":
                self._write_document(archive)
            else:
                self._write_channels(archive)

            if self.final_path.exists():
                logger.info(f"Replacing previous archive at {self.final_path}")
                shutil.rmtree(self.final_path)
            self.staging_path.rename(self.final_path)
        except OSError as e:
            raise WriteError(self.final_path, e) from e

        return self.final_path

    def _write_document(self, archive: ServerArchive) -> None:
        path = self.staging_path / f"{self.archive_name}.json"
        path.write_text(archive.model_dump_json(indent=2), encoding="utf-8")

    def _write_channels(self, archive: ServerArchive) -> None:
        rel_dirs: list[str] = []
        for channel_archive in archive.channels:
            rel_dir = self.channel_dir(channel_archive.channel, channel_archive.category)
            channel_path = self.staging_path / rel_dir
            channel_path.mkdir(parents=True, exist_ok=True)
            (channel_path / MESSAGES_FILE).write_text(
                channel_archive.model_dump_json(indent=2), encoding="utf-8"
            )
            rel_dirs.append(rel_dir)

        manifest = ServerManifest(
            community=archive.community,
            archived_at=archive.archived_at,
            channels=rel_dirs,
        )
        (self.staging_path / SERVER_MANIFEST).write_text(
            manifest.model_dump_json(indent=2), encoding="utf-8"
        )


def detect_layout(archive_path: Path) -> ArchiveLayout:
    if (archive_path / f"{archive_path.name}.json").is_file():
        return "document"
    if (archive_path / SERVER_MANIFEST).is_file():
        return "channels"
    raise FileNotFoundError(f"No archive found at {archive_path}")


def read_archive(archive_path: Path, layout: ArchiveLayout | None = None) -> ServerArchive:
    """Load an archive written by ArchiveWriter back into the model.

    Resource bytes stay on disk; ``HarvestedResource.path`` is relative to
    *archive_path*.
    """
    archive_path = Path(archive_path)
    layout = layout or detect_layout(archive_path)

    if layout == "document":
        document = archive_path / f"{archive_path.name}.json"
        return ServerArchive.model_validate_json(document.read_text(encoding="utf-8"))

    manifest = ServerManifest.model_validate_json(
        (archive_path / SERVER_MANIFEST).read_text(encoding="utf-8")
    )
    channels = [
        ChannelArchive.model_validate_json(
            (archive_path / rel_dir / MESSAGES_FILE).read_text(encoding="utf-8")
        )
        for rel_dir in manifest.channels
    ]
    return ServerArchive(
        community=manifest.community,
        channels=channels,
        archived_at=manifest.archived_at,
    )
