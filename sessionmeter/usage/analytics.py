"""Burn rate, exhaustion prediction and per-model breakdown.

All functions take ``now`` explicitly so a cycle's figures are derived
from one consistent instant.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sessionmeter.usage.blocks import SESSION_DURATION, SessionBlock, is_billed_model

BURN_WINDOW = timedelta(hours=1)

EXCEEDED = "Exceeded"
UNBOUNDED = "∞"
CAPPED = "5h+"
NOT_AVAILABLE = "N/A"

_CAP_MINUTES = SESSION_DURATION.total_seconds() / 60


@dataclass(frozen=True)
class ModelBreakdown:
    """One model's share of the active session."""

    model: str
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int
    raw_tokens: int
    weighted_tokens: int


def calculate_burn_rate(blocks: Iterable[SessionBlock], now: datetime) -> float:
    """Tokens per minute over the trailing hour.

    Each block's weighted tokens are spread evenly over its active span
    (start to last event, or to ``now`` while still active) and the part
    of that span inside the last hour is attributed to the window.
    """
    hour_ago = now - BURN_WINDOW
    tokens_in_hour = 0.0

    for block in blocks:
        if block.is_gap:
            continue
        actual_end = now if block.is_active_at(now) else block.actual_end_time
        overlap_start = max(block.start_time, hour_ago)
        overlap_end = min(actual_end, now)
        if overlap_start >= overlap_end:
            continue

        overlap = (overlap_end - overlap_start).total_seconds()
        total = (actual_end - block.start_time).total_seconds()
        if total > 0 and overlap > 0:
            tokens_in_hour += block.display_tokens * (overlap / total)

    return tokens_in_hour / 60.0


def minutes_until(end: datetime, now: datetime) -> float:
    return (end - now).total_seconds() / 60.0


def calculate_time_remaining(
    current_tokens: int,
    token_limit: int,
    burn_rate: float,
    session_end: datetime,
    now: datetime,
) -> str:
    """Human-readable time until the limit is hit or the window resets, whichever first."""
    if current_tokens >= token_limit:
        return EXCEEDED
    if burn_rate <= 0:
        return UNBOUNDED

    by_burn_rate = (token_limit - current_tokens) / burn_rate
    effective = min(by_burn_rate, minutes_until(session_end, now))

    if effective < 0:
        return EXCEEDED
    if effective > _CAP_MINUTES:
        return CAPPED
    total = int(effective)
    return f"{total // 60}h {total % 60}m"


def will_exceed_before_reset(
    current_tokens: int,
    token_limit: int,
    burn_rate: float,
    session_end: datetime,
    now: datetime,
) -> bool:
    if burn_rate <= 0:
        return False
    by_burn_rate = (token_limit - current_tokens) / burn_rate
    return by_burn_rate < minutes_until(session_end, now)


def calculate_model_breakdown(block: SessionBlock) -> list[ModelBreakdown]:
    """Per-model figures for Sonnet and Opus models, heaviest first."""
    rows = [
        ModelBreakdown(
            model=name,
            input_tokens=stats.input_tokens,
            output_tokens=stats.output_tokens,
            cache_creation_tokens=stats.cache_creation_tokens,
            cache_read_tokens=stats.cache_read_tokens,
            raw_tokens=stats.raw_tokens,
            weighted_tokens=stats.weighted_tokens(name),
        )
        for name, stats in block.models.items()
        if is_billed_model(name)
    ]
    rows.sort(key=lambda r: r.weighted_tokens, reverse=True)
    return rows


def usage_percentage(current_tokens: int, token_limit: int) -> float:
    if token_limit <= 0:
        return 0.0
    return current_tokens / token_limit * 100


def usage_level(percentage: float) -> str:
    """Traffic-light bucket: normal < 50% <= warning < 90% <= critical."""
    if percentage < 50:
        return "normal"
    if percentage < 90:
        return "warning"
    return "critical"


_BURN_RATE_TIERS = (
    (100, "idle"),
    (300, "walking"),
    (600, "running"),
    (1000, "driving"),
    (2000, "flying"),
)


def burn_rate_tier(burn_rate: float) -> str:
    for ceiling, label in _BURN_RATE_TIERS:
        if burn_rate < ceiling:
            return label
    return "rocket"
