"""Session-block segmentation and token weighting.

Claude subscription limits reset on 5-hour windows that start at the top
of the hour of the first message.  This module folds a time-ordered event
stream into those windows, with explicit gap blocks for long idle periods.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from types import MappingProxyType

from sessionmeter.usage.records import UsageEvent

# Window length, block boundary and idle-gap threshold all share this value.
SESSION_DURATION = timedelta(hours=5)

UNKNOWN_MODEL = "unknown"

# Opus 4.5 and later are billed at 5/3 of Sonnet; earlier Opus models at 5x.
_DISCOUNTED_OPUS = re.compile(r"opus-(?:4[-.][5-9]|[5-9])(?!\d)")


def model_weight(model: str) -> Fraction:
    """Billing weight of a model relative to Sonnet (0 for unrecognised models)."""
    name = model.lower()
    if "opus" in name:
        if _DISCOUNTED_OPUS.search(name):
            return Fraction(5, 3)
        return Fraction(5)
    if "sonnet" in name:
        return Fraction(1)
    return Fraction(0)


def is_billed_model(model: str) -> bool:
    name = model.lower()
    return "opus" in name or "sonnet" in name


class _TokenTotals:
    input_tokens: int
    output_tokens: int

    @property
    def raw_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def weighted_tokens(self, model: str) -> int:
        return int(self.raw_tokens * model_weight(model))


@dataclass(frozen=True)
class ModelStats(_TokenTotals):
    """Closed per-model totals of one block."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    event_count: int = 0


@dataclass
class ModelAccumulator(_TokenTotals):
    """Running per-model totals inside one block."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    event_count: int = 0

    def add(self, event: UsageEvent) -> None:
        self.input_tokens += event.input_tokens
        self.output_tokens += event.output_tokens
        self.cache_creation_tokens += event.cache_creation_tokens
        self.cache_read_tokens += event.cache_read_tokens
        self.event_count += 1

    def freeze(self) -> ModelStats:
        return ModelStats(**asdict(self))


@dataclass(frozen=True)
class SessionBlock:
    """A closed 5-hour usage window (or a gap marker between two of them).

    Blocks hash by identity fields only; ``models`` is a read-only view.
    """

    id: str
    start_time: datetime
    end_time: datetime
    first_event: UsageEvent | None = None
    last_event: UsageEvent | None = None
    models: Mapping[str, ModelStats] = field(default_factory=lambda: MappingProxyType({}))
    is_gap: bool = False

    def __hash__(self) -> int:
        return hash((self.id, self.start_time, self.is_gap))

    @property
    def actual_end_time(self) -> datetime:
        return self.last_event.timestamp if self.last_event else self.start_time

    @property
    def display_tokens(self) -> int:
        """Billing-weighted tokens counted against the plan limit."""
        return sum(stats.weighted_tokens(name) for name, stats in self.models.items())

    @property
    def raw_tokens(self) -> int:
        """Unweighted input + output tokens across every model."""
        return sum(stats.raw_tokens for stats in self.models.values())

    @property
    def event_count(self) -> int:
        return sum(stats.event_count for stats in self.models.values())

    def is_active_at(self, now: datetime) -> bool:
        return not self.is_gap and self.start_time <= now < self.end_time

    @property
    def is_active(self) -> bool:
        return self.is_active_at(datetime.now(timezone.utc))


def floor_to_hour(ts: datetime) -> datetime:
    return ts.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


class _BlockBuilder:
    """Mutable accumulator for the block currently being folded."""

    def __init__(self, first: UsageEvent) -> None:
        self.start_time = floor_to_hour(first.timestamp)
        self.end_time = self.start_time + SESSION_DURATION
        self.first_event: UsageEvent | None = None
        self.last_event: UsageEvent | None = None
        self.models: dict[str, ModelAccumulator] = {}
        self.add(first)

    def add(self, event: UsageEvent) -> None:
        if self.first_event is None:
            self.first_event = event
        self.last_event = event
        name = event.model or UNKNOWN_MODEL
        self.models.setdefault(name, ModelAccumulator()).add(event)

    def accepts(self, event: UsageEvent) -> bool:
        if event.timestamp >= self.end_time:
            return False
        if self.last_event and event.timestamp - self.last_event.timestamp >= SESSION_DURATION:
            return False
        return True

    def freeze(self) -> SessionBlock:
        return SessionBlock(
            id=f"session-{int(self.start_time.timestamp())}",
            start_time=self.start_time,
            end_time=self.end_time,
            first_event=self.first_event,
            last_event=self.last_event,
            models=MappingProxyType({name: stats.freeze() for name, stats in self.models.items()}),
        )


def _gap_between(closed: SessionBlock, next_event: UsageEvent) -> SessionBlock | None:
    gap_start = closed.actual_end_time
    if next_event.timestamp - gap_start < SESSION_DURATION:
        return None
    return SessionBlock(
        id=f"gap-{int(gap_start.timestamp())}",
        start_time=gap_start,
        end_time=next_event.timestamp,
        is_gap=True,
    )


def identify_session_blocks(events: Iterable[UsageEvent]) -> list[SessionBlock]:
    """Fold time-ordered events into session blocks.

    A new block starts when an event lands at or after the current block's
    end, or 5h or more after the previous event.  When the idle period
    between the closed block's last event and the new event is itself 5h
    or more, a gap block covering exactly that interval is emitted between
    them.
    """
    blocks: list[SessionBlock] = []
    current: _BlockBuilder | None = None

    for event in events:
        if current is None:
            current = _BlockBuilder(event)
            continue
        if current.accepts(event):
            current.add(event)
            continue

        closed = current.freeze()
        blocks.append(closed)
        gap = _gap_between(closed, event)
        if gap is not None:
            blocks.append(gap)
        current = _BlockBuilder(event)

    if current is not None:
        blocks.append(current.freeze())
    return blocks


def find_active_block(blocks: Iterable[SessionBlock], now: datetime) -> SessionBlock | None:
    return next((b for b in blocks if b.is_active_at(now)), None)
