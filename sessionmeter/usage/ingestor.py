"""Concurrent JSONL ingestion with cross-file deduplication.

Each candidate file is decoded on a worker thread into its own list of
events.  The per-file lists are joined back on the calling thread, which
alone owns that pass's dedup set, so the decode path never needs a lock
and concurrent passes over the same loader cannot interfere.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path

from sessionmeter.usage.discovery import RECENT_WINDOW, find_recent_files, resolve_data_dirs
from sessionmeter.usage.records import UsageEvent, decode_record

logger = logging.getLogger(__name__)


def parse_usage_file(file_path: Path) -> list[UsageEvent]:
    """Decode every usable line of one JSONL file.

    The file is read as raw bytes and split on line feeds; ``json.loads``
    accepts bytes directly so no text decoding pass is needed.  Unreadable
    files and malformed lines contribute nothing.
    """
    try:
        data = file_path.read_bytes()
    except OSError as e:
        logger.debug("Could not read %s: %s", file_path, e)
        return []

    events: list[UsageEvent] = []
    for line in data.split(b"\n"):
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except ValueError:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            continue
        event = decode_record(entry)
        if event is not None:
            events.append(event)
    return events


class UsageLoader:
    """Loads one deduplicated, time-ordered event sequence per call.

    ``load()`` is a full pass: discovery, parallel decode, dedup and sort.
    Nothing carries over between passes, so two passes may overlap safely.
    """

    def __init__(
        self,
        data_paths: str = "",
        data_path: str = "",
        *,
        max_workers: int = 8,
        recent_window: timedelta = RECENT_WINDOW,
    ) -> None:
        self.data_paths = data_paths
        self.data_path = data_path
        self.max_workers = max(1, max_workers)
        self.recent_window = recent_window

    def discover(self, now: datetime | None = None) -> list[Path]:
        dirs = resolve_data_dirs(self.data_paths, self.data_path)
        return find_recent_files(dirs, now=now, window=self.recent_window)

    def load(self, now: datetime | None = None) -> list[UsageEvent]:
        files = self.discover(now)
        if not files:
            logger.debug("No recent usage files found")
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(files))) as pool:
            batches = list(pool.map(parse_usage_file, files))

        events = _deduplicate(batches)
        events.sort(key=lambda e: e.timestamp)
        logger.debug("Loaded %d events from %d files", len(events), len(files))
        return events


def _deduplicate(batches: Iterable[list[UsageEvent]]) -> list[UsageEvent]:
    """Keep the first occurrence of each message:request key, in batch order."""
    seen: set[str] = set()
    unique: list[UsageEvent] = []
    for batch in batches:
        for event in batch:
            key = event.dedup_key
            if key is not None:
                if key in seen:
                    continue
                seen.add(key)
            unique.append(event)
    return unique


def load_usage_events(
    data_paths: str = "",
    data_path: str = "",
    *,
    now: datetime | None = None,
    max_workers: int = 8,
    recent_window: timedelta = RECENT_WINDOW,
) -> list[UsageEvent]:
    """Convenience wrapper: one full ingestion pass with a throwaway loader."""
    loader = UsageLoader(data_paths, data_path, max_workers=max_workers, recent_window=recent_window)
    return loader.load(now)
