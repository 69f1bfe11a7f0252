"""API routes for the usage monitor.

Endpoints:
  GET  /api/status           — monitor health (cycles, last error, interval)
  GET  /api/usage/snapshot   — latest published snapshot
  POST /api/usage/refresh    — run a cycle now and return its snapshot
  GET  /api/usage/plan       — effective + detected plan
  PUT  /api/usage/plan       — set a manual plan, or "auto"
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from sessionmeter.monitor import UsageMonitor
from sessionmeter.usage.snapshot import snapshot_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


# -- Request/Response models ---------------------------------------------------


class PlanRequest(BaseModel):
    plan: str  # "auto" | "pro" | "max5" | "max20" | "custom_max"


class PlanResponse(BaseModel):
    plan: str
    token_limit: int
    detected_plan: str
    detected_token_limit: int
    is_manual_plan: bool


def _monitor(request: Request) -> UsageMonitor:
    return request.app.state.monitor


def _plan_response(monitor: UsageMonitor) -> PlanResponse:
    snap = monitor.snapshot
    override = monitor.plan_override
    return PlanResponse(
        plan=override.value if override else snap.detected_plan.value,
        token_limit=override.token_limit if override else snap.detected_token_limit,
        detected_plan=snap.detected_plan.value,
        detected_token_limit=snap.detected_token_limit,
        is_manual_plan=override is not None,
    )


@router.get("/status")
def system_status(request: Request) -> dict[str, Any]:
    """Monitor status; useful for checking the poller is alive."""
    return {"status": "ok", "monitor": _monitor(request).status()}


@router.get("/usage/snapshot")
def get_snapshot(request: Request) -> dict[str, Any]:
    """Return the most recently published snapshot without rescanning."""
    return snapshot_to_dict(_monitor(request).snapshot)


@router.post("/usage/refresh")
async def refresh_snapshot(request: Request) -> dict[str, Any]:
    """Force a full rescan and return the fresh snapshot."""
    snapshot = await _monitor(request).refresh()
    return snapshot_to_dict(snapshot)


@router.get("/usage/plan", response_model=PlanResponse)
def get_plan(request: Request) -> PlanResponse:
    return _plan_response(_monitor(request))


@router.put("/usage/plan", response_model=PlanResponse)
async def set_plan(req: PlanRequest, request: Request) -> PlanResponse:
    """Force a plan tier (or go back to auto-detection) and recompute."""
    monitor = _monitor(request)
    try:
        monitor.set_plan(req.plan)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await monitor.refresh()
    return _plan_response(monitor)
