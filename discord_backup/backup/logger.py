"""Rich-based logging for the backup pipeline."""

from __future__ import annotations

from typing import Any

from discord_backup.utils.pipeline_logger import BasePipelineLogger


class BackupLogger(BasePipelineLogger):
    """Logger for backup runs.

    Extends BasePipelineLogger with transport, guild and resource messages.
    Per-channel output goes through ``block()``.
    """

    def __init__(self) -> None:
        super().__init__(__name__)

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def rate_limit(self, retry_after: float) -> None:
        self._logger.warning(f"Rate limited. Waiting {retry_after:.1f}s...")

    def retry(
        self, attempt: int, max_attempts: int, wait_time: float, reason: str = ""
    ) -> None:
        msg = f"Retry {attempt}/{max_attempts} in {wait_time:.1f}s"
        if reason:
            msg += f" ({reason})"
        self._logger.warning(msg)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def guild_start(self, guild_id: int, guild_name: str, archive_name: str) -> None:
        self.console.print()
        self.console.rule(f"[bold cyan]{guild_name}[/bold cyan]", style="cyan")
        self.console.print(f"[dim]Guild ID: {guild_id} → archive '{archive_name}'[/dim]")

    def channels_selected(self, selected: int, listed: int) -> None:
        self.info(f"Selected {selected:,} of {listed:,} channels for archival")

    def resource_skip(self, channel_name: str, identifier: object, reason: str) -> None:
        """A single attachment or linked document was skipped."""
        self._clear_progress_line()
        self._logger.warning(f"#{channel_name}: skipped resource {identifier}: {reason}")

    def summary(
        self,
        channels: int = 0,
        messages: int = 0,
        skipped_channels: int = 0,
        skipped_resources: int = 0,
        elapsed: float = 0.0,
        **kwargs: Any,
    ) -> None:
        """Print final backup summary."""
        self.print_summary(
            "Backup Complete",
            elapsed=elapsed,
            stats={
                "Channels archived": channels,
                "Messages archived": messages,
                "Channels skipped": skipped_channels,
                "Resources skipped": skipped_resources,
            },
            style="yellow" if skipped_channels or skipped_resources else "cyan",
        )


# Global logger instance
logger = BackupLogger()
