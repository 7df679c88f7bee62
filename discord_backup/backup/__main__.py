"""CLI entry point for discord_backup.backup.

Usage:
    python -m discord_backup.backup --guild-id 123                 # Back up a guild
    python -m discord_backup.backup --guild-id 123 --name snapshot # Custom archive name
    python -m discord_backup.backup --guild-id 123 --download-attachments
    python -m discord_backup.backup --guild-id 123 --debug         # Show debug info
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from discord_backup.backup.logger import logger
from discord_backup.backup.models import RunStatus
from discord_backup.backup.run import backup_from_config
from discord_backup.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Discord Guild Backup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m discord_backup.backup --guild-id 123456789
      Back up the guild into <destination_root>/<guild name>

  python -m discord_backup.backup --guild-id 123456789 --name pre-migration
      Back up into <destination_root>/pre-migration, replacing any earlier copy

  python -m discord_backup.backup --guild-id 123456789 --download-attachments
      Also store attachments and linked PDF documents

  python -m discord_backup.backup --guild-id 123456789 --layout channels
      One messages.json per channel instead of a single document
        """,
    )

    parser.add_argument(
        "--guild-id",
        type=int,
        required=True,
        help="Guild to back up",
    )
    parser.add_argument(
        "--name",
        type=str,
        help="Archive name (default: the guild's name)",
    )
    parser.add_argument(
        "--download-attachments",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Download attachments and linked documents (default: from config)",
    )
    parser.add_argument(
        "--layout",
        choices=["document", "channels"],
        help="Archive layout (default: from config)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config.json",
        help="Path to config.json (default: config.json)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (DEBUG level)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with third-party library logs",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Optional file to write logs to",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.debug or args.verbose else logging.INFO,
        log_file=args.log_file,
        debug_third_party=args.debug,
    )

    logger.info("Starting Discord Guild Backup")

    try:
        result = asyncio.run(
            backup_from_config(
                config_path=args.config,
                guild_id=args.guild_id,
                archive_name=args.name,
                download_attachments=args.download_attachments,
                layout=args.layout,
            )
        )
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise

    if result.status is RunStatus.FAILED:
        sys.exit(1)
    if result.status is RunStatus.COMPLETED_WITH_WARNINGS:
        logger.warning(f"Backup written to {result.archive_path} with omissions")
    else:
        logger.success(f"Backup written to {result.archive_path}")


if __name__ == "__main__":
    main()
