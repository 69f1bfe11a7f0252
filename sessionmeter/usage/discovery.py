"""Locate the Claude Code JSONL logs worth scanning on this cycle."""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".jsonl"
RECENT_WINDOW = timedelta(hours=24)


def default_data_dirs() -> list[Path]:
    """Return the directories Claude Code writes project logs to."""
    home = Path.home()
    return [home / ".claude" / "projects", home / ".config" / "claude" / "projects"]


def resolve_data_dirs(data_paths: str = "", data_path: str = "") -> list[Path]:
    """Resolve the set of existing log directories.

    Args:
        data_paths: Colon-separated list of directories (takes precedence).
        data_path: A single directory override.

    Falls back to :func:`default_data_dirs` when neither override is set.
    Directories that don't exist are dropped silently.
    """
    if data_paths.strip():
        candidates = [Path(p).expanduser() for p in data_paths.split(":") if p.strip()]
    elif data_path.strip():
        candidates = [Path(data_path.strip()).expanduser()]
    else:
        candidates = default_data_dirs()

    dirs: list[Path] = []
    for path in candidates:
        if path.is_dir() and path not in dirs:
            dirs.append(path)
        else:
            logger.debug("Ignoring missing data directory %s", path)
    return dirs


def find_recent_files(
    dirs: list[Path],
    now: datetime | None = None,
    window: timedelta = RECENT_WINDOW,
) -> list[Path]:
    """Enumerate ``*.jsonl`` files under ``dirs`` modified within ``window`` of ``now``.

    Hidden files and directories are skipped.  A file whose mtime can't be
    read is included anyway; dropping live data is worse than one extra scan.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = (now - window).timestamp()
    files: list[Path] = []

    for root in dirs:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                if name.startswith(".") or not name.endswith(LOG_SUFFIX):
                    continue
                path = Path(dirpath) / name
                try:
                    st = path.stat()
                except OSError:
                    files.append(path)
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue
                if st.st_mtime > cutoff:
                    files.append(path)

    return files


def _log_walk_error(err: OSError) -> None:
    logger.debug("Could not scan %s: %s", err.filename, err)
