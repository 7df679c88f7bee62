# discord_backup/utils/filenames.py
"""Filesystem-safe names for archives, channel directories and resources."""

from __future__ import annotations

import re
import unicodedata

# Characters rejected by at least one of Windows, macOS or Linux filesystems
_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')
_RESERVED_WINDOWS = {
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
}

MAX_NAME_LENGTH = 120
FALLBACK_NAME = "untitled"


def sanitize_filename(name: str, replacement: str = "_") -> str:
    """Turn an arbitrary display name into a single safe path component.

    Unsafe characters are replaced, leading/trailing dots and spaces removed,
    Windows device names prefixed, and the result truncated. Never returns an
    empty string.
    """
    name = unicodedata.normalize("NFC", name)
    name = _UNSAFE_CHARS.sub(replacement, name)
    name = name.strip(" .")
    name = name[:MAX_NAME_LENGTH].rstrip(" .")

    if not name or set(name) == {replacement}:
        return FALLBACK_NAME
    if name.split(".")[0].upper() in _RESERVED_WINDOWS:
        name = f"{replacement}{name}"
    return name


def file_extension(filename: str) -> str:
    """Return the lowercase extension of *filename* including the dot, or ''."""
    base = filename.rsplit("/", 1)[-1]
    if "." not in base.strip("."):
        return ""
    ext = base.rsplit(".", 1)[-1].lower()
    if not ext or not ext.isalnum() or len(ext) > 10:
        return ""
    return f".{ext}"
