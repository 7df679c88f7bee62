"""Progress reporting interface.

The pipeline only calls a ProgressSink; turning the calls into chat messages,
typing indicators or console output is the caller's business.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from discord_backup.backup.logger import BackupLogger, logger as default_logger


@runtime_checkable
class ProgressSink(Protocol):
    def on_progress(self, percent: int) -> None: ...

    def on_complete(self) -> None: ...

    def on_failed(self, reason: str) -> None: ...


class ConsoleProgressSink:
    """ProgressSink that reports through the rich backup logger (CLI use)."""

    def __init__(self, logger: BackupLogger = default_logger) -> None:
        self.logger = logger
        self.last_percent = 0

    def on_progress(self, percent: int) -> None:
        self.last_percent = percent
        self.logger.info(f"{percent}% done..")

    def on_complete(self) -> None:
        self.logger.success("Successfully copied server.")

    def on_failed(self, reason: str) -> None:
        self.logger.error(f"Backup failed: {reason}")


class NullProgressSink:
    """ProgressSink that ignores every notification."""

    def on_progress(self, percent: int) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_failed(self, reason: str) -> None:
        pass


def percent_done(done: int, total: int) -> int:
    """Whole percent of *done* out of *total*; an empty run is 100% done."""
    if total <= 0:
        return 100
    return min(100, (100 * done) // total)
