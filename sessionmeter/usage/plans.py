"""Subscription plan tiers and peak-based plan detection."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from sessionmeter.usage.blocks import SessionBlock

CUSTOM_ROUNDING = 10_000


class PlanType(str, Enum):
    PRO = "Pro"
    MAX5 = "Max5"
    MAX20 = "Max20"
    CUSTOM_MAX = "Custom Max"

    @property
    def token_limit(self) -> int:
        """Published per-session limit (a placeholder for Custom Max)."""
        return _LIMITS[self]

    @classmethod
    def from_name(cls, name: str) -> PlanType:
        """Look up a plan by value or by setting name (``max5``, ``custom_max``...)."""
        key = name.strip().lower().replace(" ", "_")
        for plan in cls:
            if key in (plan.name.lower(), plan.value.lower().replace(" ", "_")):
                return plan
        raise ValueError(f"Unknown plan {name!r}")


_LIMITS: dict[PlanType, int] = {
    PlanType.PRO: 44_000,
    PlanType.MAX5: 220_000,
    PlanType.MAX20: 880_000,
    PlanType.CUSTOM_MAX: 890_000,
}

# Ascending fixed tiers; peaks above the last one become Custom Max.
_FIXED_TIERS = (PlanType.PRO, PlanType.MAX5, PlanType.MAX20)


def detect_plan_from_peak(peak_tokens: int) -> tuple[PlanType, int]:
    """Map the largest single-block usage seen to a plan and its limit."""
    for plan in _FIXED_TIERS:
        if peak_tokens <= plan.token_limit:
            return plan, plan.token_limit
    custom_limit = (peak_tokens // CUSTOM_ROUNDING + 1) * CUSTOM_ROUNDING
    return PlanType.CUSTOM_MAX, custom_limit


def detect_plan(blocks: Iterable[SessionBlock]) -> tuple[PlanType, int]:
    """Detect the plan from every block's weighted tokens, not just the active one."""
    peak = max((b.display_tokens for b in blocks), default=0)
    return detect_plan_from_peak(peak)


def resolve_plan_override(setting: str | None) -> PlanType | None:
    """Translate a ``plan`` setting into a forced tier (None means auto-detect)."""
    if setting is None or setting.strip().lower() in ("", "auto"):
        return None
    return PlanType.from_name(setting)
