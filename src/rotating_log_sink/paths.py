"""File naming, directory resolution, and per-day generation bookkeeping.

On-disk layout::

    {dir}/{filename}_{YYYY-MM-DD}.{generation}.log

Generations start at 0 for each date and only ever grow.  The highest
generation present for a date is the most recently active file.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from datetime import date
from typing import Optional, Union

from rotating_log_sink.config import DirectoryDescriptor

logger = logging.getLogger(__name__)


def path(
    dir: Optional[str],
    filename: Optional[str],
    day: Optional[date],
    generation: Optional[int],
) -> Optional[str]:
    """Return the log file path for a generation, or ``None`` if any part is missing."""
    if dir is None or filename is None or day is None or generation is None:
        return None
    return f"{os.path.join(dir, filename)}_{day.isoformat()}.{generation}.log"


def next_generation(dir: Optional[str], filename: Optional[str], day: date) -> int:
    """Return the first unused generation number for *day*.

    Scans *dir* for files already written for *day* (for instance by an
    earlier process) so numbering continues instead of appending to an old
    generation.  A missing or unreadable directory counts as empty.
    """
    if dir is None or filename is None:
        return 0
    try:
        entries = os.listdir(dir)
    except OSError:
        return 0

    pattern = re.compile(
        rf"{re.escape(filename)}_{re.escape(day.isoformat())}\.(\d+)\.log"
    )
    found = [int(m.group(1)) for m in map(pattern.fullmatch, entries) if m]
    if not found:
        return 0
    return max(found) + 1


def prune_generations(
    dir: Optional[str],
    filename: Optional[str],
    day: date,
    ceiling: int,
    keep: Optional[int],
) -> list[int]:
    """Delete generations ``ceiling - keep`` down to 0 for *day*.

    Best-effort: files that are already gone or cannot be removed are
    skipped.  Returns the generations actually deleted.
    """
    if keep is None:
        return []

    deleted: list[int] = []
    for generation in range(ceiling - keep, -1, -1):
        target = path(dir, filename, day, generation)
        if target is None:
            break
        try:
            os.remove(target)
        except OSError:
            continue
        deleted.append(generation)

    if deleted:
        logger.debug("Pruned %s generations %s for %s", filename, deleted, day)
    return deleted


# ── directory resolution ────────────────────────────────────────────


def user_data_root() -> str:
    """Platform root for per-user application data."""
    if sys.platform == "win32":
        root = os.environ.get("LOCALAPPDATA")
        if root:
            return root
        return os.path.join(os.path.expanduser("~"), "AppData", "Local")
    if sys.platform == "darwin":
        return os.path.join(os.path.expanduser("~"), "Library", "Application Support")
    return os.environ.get("XDG_DATA_HOME") or os.path.join(
        os.path.expanduser("~"), ".local", "share"
    )


def resolve_directory(
    directory: Union[str, os.PathLike, DirectoryDescriptor, None],
) -> Optional[str]:
    """Turn a configured directory into a filesystem path.

    Plain paths are returned as strings unchanged.  A
    :class:`DirectoryDescriptor` expands to::

        root / [author] / app / [version] / ["Logs"]
    """
    if directory is None:
        return None
    if not isinstance(directory, DirectoryDescriptor):
        return os.fspath(directory)

    parts = [user_data_root()]
    if directory.author:
        parts.append(directory.author)
    parts.append(directory.app)
    if directory.version:
        parts.append(directory.version)
    if directory.kind == "user_log":
        parts.append("Logs")
    return os.path.abspath(os.path.expanduser(os.path.join(*parts)))
