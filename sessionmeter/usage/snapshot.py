"""Assemble one immutable UsageSnapshot per polling cycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sessionmeter.usage.analytics import (
    NOT_AVAILABLE,
    ModelBreakdown,
    burn_rate_tier,
    calculate_burn_rate,
    calculate_model_breakdown,
    calculate_time_remaining,
    usage_level,
    usage_percentage,
    will_exceed_before_reset,
)
from sessionmeter.usage.blocks import SessionBlock, find_active_block, identify_session_blocks
from sessionmeter.usage.ingestor import UsageLoader
from sessionmeter.usage.plans import PlanType, detect_plan
from sessionmeter.usage.records import UsageEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageSnapshot:
    """Everything the presentation layer needs for one refresh."""

    has_active_session: bool
    current_tokens: int
    session_start_time: datetime
    session_end_time: datetime
    burn_rate: float  # tokens / minute
    time_remaining: str
    session_reset_time: str
    model_breakdown: tuple[ModelBreakdown, ...]
    current_block: SessionBlock | None
    detected_plan: PlanType
    detected_token_limit: int
    plan: PlanType
    token_limit: int
    is_manual_plan: bool
    usage_percentage: float
    usage_level: str
    burn_rate_tier: str
    will_exceed_before_reset: bool
    computed_at: datetime


def _format_clock(ts: datetime) -> str:
    """HH:MM in the machine's local time zone."""
    return ts.astimezone().strftime("%H:%M")


def _effective_plan(
    detected: tuple[PlanType, int],
    plan_override: PlanType | None,
) -> tuple[PlanType, int]:
    if plan_override is None:
        return detected
    return plan_override, plan_override.token_limit


def empty_snapshot(
    now: datetime | None = None,
    *,
    blocks: list[SessionBlock] | None = None,
    plan_override: PlanType | None = None,
) -> UsageSnapshot:
    """The "no active session" snapshot; plan detection still runs over ``blocks``."""
    now = now or datetime.now(timezone.utc)
    detected_plan, detected_limit = detect_plan(blocks or [])
    plan, limit = _effective_plan((detected_plan, detected_limit), plan_override)
    return UsageSnapshot(
        has_active_session=False,
        current_tokens=0,
        session_start_time=now,
        session_end_time=now,
        burn_rate=0.0,
        time_remaining=NOT_AVAILABLE,
        session_reset_time=NOT_AVAILABLE,
        model_breakdown=(),
        current_block=None,
        detected_plan=detected_plan,
        detected_token_limit=detected_limit,
        plan=plan,
        token_limit=limit,
        is_manual_plan=plan_override is not None,
        usage_percentage=0.0,
        usage_level=usage_level(0.0),
        burn_rate_tier=burn_rate_tier(0.0),
        will_exceed_before_reset=False,
        computed_at=now,
    )


def build_snapshot(
    events: list[UsageEvent],
    now: datetime | None = None,
    *,
    plan_override: PlanType | None = None,
) -> UsageSnapshot:
    """Segment ``events`` and derive every metric for the instant ``now``."""
    now = now or datetime.now(timezone.utc)
    blocks = identify_session_blocks(events)
    active = find_active_block(blocks, now)
    if active is None:
        return empty_snapshot(now, blocks=blocks, plan_override=plan_override)

    detected_plan, detected_limit = detect_plan(blocks)
    plan, limit = _effective_plan((detected_plan, detected_limit), plan_override)

    current = active.display_tokens
    burn_rate = calculate_burn_rate(blocks, now)
    percentage = usage_percentage(current, limit)

    return UsageSnapshot(
        has_active_session=True,
        current_tokens=current,
        session_start_time=active.start_time,
        session_end_time=active.end_time,
        burn_rate=burn_rate,
        time_remaining=calculate_time_remaining(current, limit, burn_rate, active.end_time, now),
        session_reset_time=_format_clock(active.end_time),
        model_breakdown=tuple(calculate_model_breakdown(active)),
        current_block=active,
        detected_plan=detected_plan,
        detected_token_limit=detected_limit,
        plan=plan,
        token_limit=limit,
        is_manual_plan=plan_override is not None,
        usage_percentage=percentage,
        usage_level=usage_level(percentage),
        burn_rate_tier=burn_rate_tier(burn_rate),
        will_exceed_before_reset=will_exceed_before_reset(current, limit, burn_rate, active.end_time, now),
        computed_at=now,
    )


def compute_snapshot(
    loader: UsageLoader,
    now: datetime | None = None,
    *,
    plan_override: PlanType | None = None,
) -> UsageSnapshot:
    """Run a full cycle: ingest from scratch, then build the snapshot."""
    now = now or datetime.now(timezone.utc)
    events = loader.load(now)
    return build_snapshot(events, now, plan_override=plan_override)


# -- Serialization helpers -----------------------------------------------------


def _block_to_dict(b: SessionBlock) -> dict[str, Any]:
    return {
        "id": b.id,
        "start_time": b.start_time.isoformat(),
        "end_time": b.end_time.isoformat(),
        "actual_end_time": b.actual_end_time.isoformat(),
        "is_gap": b.is_gap,
        "display_tokens": b.display_tokens,
        "raw_tokens": b.raw_tokens,
        "event_count": b.event_count,
        "models": sorted(b.models),
    }


def snapshot_to_dict(s: UsageSnapshot) -> dict[str, Any]:
    """Convert a UsageSnapshot to a JSON-serializable dict."""
    return {
        "has_active_session": s.has_active_session,
        "current_tokens": s.current_tokens,
        "session_start_time": s.session_start_time.isoformat(),
        "session_end_time": s.session_end_time.isoformat(),
        "burn_rate": round(s.burn_rate, 2),
        "time_remaining": s.time_remaining,
        "session_reset_time": s.session_reset_time,
        "model_breakdown": [
            {
                "model": m.model,
                "input_tokens": m.input_tokens,
                "output_tokens": m.output_tokens,
                "cache_creation_tokens": m.cache_creation_tokens,
                "cache_read_tokens": m.cache_read_tokens,
                "raw_tokens": m.raw_tokens,
                "weighted_tokens": m.weighted_tokens,
            }
            for m in s.model_breakdown
        ],
        "current_block": _block_to_dict(s.current_block) if s.current_block else None,
        "detected_plan": s.detected_plan.value,
        "detected_token_limit": s.detected_token_limit,
        "plan": s.plan.value,
        "token_limit": s.token_limit,
        "is_manual_plan": s.is_manual_plan,
        "usage_percentage": round(s.usage_percentage, 1),
        "usage_level": s.usage_level,
        "burn_rate_tier": s.burn_rate_tier,
        "will_exceed_before_reset": s.will_exceed_before_reset,
        "computed_at": s.computed_at.isoformat(),
    }
