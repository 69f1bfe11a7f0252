from sessionmeter.usage.analytics import ModelBreakdown, calculate_burn_rate, calculate_time_remaining
from sessionmeter.usage.blocks import SessionBlock, ModelAccumulator, ModelStats, identify_session_blocks
from sessionmeter.usage.ingestor import UsageLoader, load_usage_events
from sessionmeter.usage.plans import PlanType, detect_plan
from sessionmeter.usage.records import UsageEvent, decode_record
from sessionmeter.usage.snapshot import (
    UsageSnapshot,
    build_snapshot,
    compute_snapshot,
    empty_snapshot,
    snapshot_to_dict,
)

__all__ = [
    "UsageEvent",
    "UsageLoader",
    "UsageSnapshot",
    "SessionBlock",
    "ModelAccumulator",
    "ModelStats",
    "ModelBreakdown",
    "PlanType",
    "build_snapshot",
    "calculate_burn_rate",
    "calculate_time_remaining",
    "compute_snapshot",
    "decode_record",
    "detect_plan",
    "empty_snapshot",
    "identify_session_blocks",
    "load_usage_events",
    "snapshot_to_dict",
]
