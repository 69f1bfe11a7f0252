"""Decode Claude Code JSONL records into typed usage events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sessionmeter.usage.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

SYNTHETIC_MODEL = "<synthetic>"


@dataclass(frozen=True)
class UsageEvent:
    """A single billable API call."""

    timestamp: datetime
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0  # tracked, never billed
    cache_read_tokens: int = 0  # tracked, never billed
    model: str | None = None
    message_id: str | None = None
    request_id: str | None = None

    @property
    def dedup_key(self) -> str | None:
        """Identity used for cross-file deduplication, or None if unidentifiable."""
        if self.message_id is None or self.request_id is None:
            return None
        return f"{self.message_id}:{self.request_id}"

    @property
    def raw_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _count(usage: dict[str, Any] | None, key: str) -> int:
    if usage is None:
        return 0
    value = usage.get(key)
    # bool is an int subclass; a stray true/false is not a token count.
    if isinstance(value, bool):
        return 0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        return 0
    return max(0, value)


def decode_record(entry: Any) -> UsageEvent | None:
    """Map one parsed JSONL object to a UsageEvent.

    Returns None for anything that is not a billable, timestamped record:
    non-objects, ``<synthetic>`` model entries, and missing or malformed
    timestamps.  Usage, model and id fields may live at the top level or
    nested under ``message``; the top level wins when both are present.
    """
    record = _as_dict(entry)
    if record is None:
        return None

    message = _as_dict(record.get("message")) or {}

    model = _as_str(record.get("model")) or _as_str(message.get("model"))
    if model == SYNTHETIC_MODEL:
        return None

    ts_str = _as_str(record.get("timestamp"))
    if not ts_str:
        return None
    try:
        timestamp = parse_timestamp(ts_str)
    except ValueError:
        logger.debug("Skipping record with bad timestamp %r", ts_str)
        return None

    usage = _as_dict(record.get("usage"))
    if usage is None:
        usage = _as_dict(message.get("usage"))

    return UsageEvent(
        timestamp=timestamp,
        input_tokens=_count(usage, "input_tokens"),
        output_tokens=_count(usage, "output_tokens"),
        cache_creation_tokens=_count(usage, "cache_creation_input_tokens"),
        cache_read_tokens=_count(usage, "cache_read_input_tokens"),
        model=model,
        message_id=_as_str(message.get("id")) or _as_str(record.get("message_id")),
        request_id=_as_str(record.get("requestId")) or _as_str(record.get("request_id")),
    )
