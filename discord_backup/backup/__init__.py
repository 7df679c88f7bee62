"""Discord guild backup pipeline.

This package archives a guild's text channels, threads, message history and
(optionally) attachments and linked documents into a re-readable snapshot on
disk.

Usage:
    python -m discord_backup.backup --guild-id X
    python -m discord_backup.backup --guild-id X --name before-cleanup --download-attachments
"""
