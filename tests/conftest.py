"""Shared test fixtures."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from sessionmeter.usage.records import UsageEvent


def ts(hour: int, minute: int = 0, second: int = 0, day: int = 19) -> datetime:
    """Shorthand for a UTC instant on 2026-02-<day>."""
    return datetime(2026, 2, day, hour, minute, second, tzinfo=timezone.utc)


def make_event(
    at: datetime,
    model: str | None = "claude-sonnet-4-6",
    input_tokens: int = 100,
    output_tokens: int = 50,
    **kwargs: Any,
) -> UsageEvent:
    return UsageEvent(
        timestamp=at,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        model=model,
        **kwargs,
    )


def assistant_line(
    timestamp: str,
    *,
    model: str = "claude-sonnet-4-6",
    input_tokens: int = 100,
    output_tokens: int = 50,
    message_id: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """A record shaped like the ones Claude Code writes for assistant turns."""
    message: dict[str, Any] = {
        "role": "assistant",
        "model": model,
        "content": [{"type": "text", "text": "ok"}],
        "usage": {
            "input_tokens": input_tokens,
            "cache_creation_input_tokens": 10,
            "cache_read_input_tokens": 20,
            "output_tokens": output_tokens,
        },
    }
    if message_id is not None:
        message["id"] = message_id
    entry: dict[str, Any] = {"type": "assistant", "message": message, "timestamp": timestamp}
    if request_id is not None:
        entry["requestId"] = request_id
    return entry


@pytest.fixture
def write_jsonl() -> Callable[..., Path]:
    """Write entries to a JSONL file, optionally back-dating its mtime."""

    def _write(path: Path, entries: list[Any], mtime: float | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for entry in entries:
                f.write((entry if isinstance(entry, str) else json.dumps(entry)) + "\n")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """An empty fake ``~/.claude/projects`` directory."""
    projects = tmp_path / ".claude" / "projects"
    projects.mkdir(parents=True)
    return projects
