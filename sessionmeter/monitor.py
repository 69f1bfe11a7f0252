"""Background monitor: re-runs the usage engine on a fixed cadence.

Each cycle is a full re-scan; the blocking work runs in a thread so the
event loop stays responsive.  The latest snapshot is simply replaced
(last write wins), and a cycle that blows up publishes an empty snapshot
instead of leaving stale data behind.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from sessionmeter.config import Settings
from sessionmeter.usage.ingestor import UsageLoader
from sessionmeter.usage.plans import PlanType, resolve_plan_override
from sessionmeter.usage.snapshot import UsageSnapshot, compute_snapshot, empty_snapshot

logger = logging.getLogger(__name__)


class UsageMonitor:
    """Polls Claude Code logs and keeps the most recent UsageSnapshot."""

    def __init__(
        self,
        loader: UsageLoader,
        interval: float = 6.0,
        plan_override: PlanType | None = None,
        on_snapshot: Callable[[UsageSnapshot], Any] | None = None,
    ) -> None:
        self.loader = loader
        self.interval = interval
        self.plan_override = plan_override
        self.on_snapshot = on_snapshot
        self.snapshot: UsageSnapshot = empty_snapshot(plan_override=plan_override)
        self.last_error: str | None = None
        self.cycles: int = 0
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @classmethod
    def from_settings(cls, s: Settings, **kwargs: Any) -> UsageMonitor:
        loader = UsageLoader(
            s.claude_data_paths,
            s.claude_data_path,
            max_workers=s.decode_workers,
            recent_window=timedelta(hours=s.recent_file_hours),
        )
        return cls(
            loader,
            interval=s.poll_interval,
            plan_override=resolve_plan_override(s.plan),
            **kwargs,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop(), name="usage-monitor")
        logger.info("Usage monitor started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        """Stop the background poller."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Usage monitor stopped")

    def set_plan(self, plan: str) -> PlanType | None:
        """Switch between auto-detection ("auto") and a forced plan tier.

        Takes effect from the next cycle.  Raises ValueError for unknown names.
        """
        self.plan_override = resolve_plan_override(plan)
        logger.info(
            "Plan override set to %s",
            self.plan_override.value if self.plan_override else "auto",
        )
        return self.plan_override

    def compute(self, now: datetime | None = None) -> UsageSnapshot:
        """Run one cycle synchronously; never raises."""
        now = now or datetime.now(timezone.utc)
        try:
            snapshot = compute_snapshot(self.loader, now, plan_override=self.plan_override)
            self.last_error = None
        except Exception as e:
            logger.exception("Usage refresh failed")
            self.last_error = str(e)
            snapshot = empty_snapshot(now, plan_override=self.plan_override)
        return snapshot

    async def refresh(self) -> UsageSnapshot:
        """Run one cycle in a worker thread and publish its result."""
        loop = asyncio.get_running_loop()
        snapshot = await loop.run_in_executor(None, self.compute)
        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: UsageSnapshot) -> None:
        self.snapshot = snapshot
        self.cycles += 1
        if self.on_snapshot:
            try:
                self.on_snapshot(snapshot)
            except Exception:
                logger.exception("Snapshot callback error")

    async def _poll_loop(self) -> None:
        while self._running:
            await self.refresh()
            logger.debug(
                "Cycle %d: active=%s tokens=%d burn=%.1f/min",
                self.cycles,
                self.snapshot.has_active_session,
                self.snapshot.current_tokens,
                self.snapshot.burn_rate,
            )
            await asyncio.sleep(self.interval)

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "interval": self.interval,
            "cycles": self.cycles,
            "last_error": self.last_error,
            "plan_override": self.plan_override.value if self.plan_override else None,
            "last_computed_at": self.snapshot.computed_at.isoformat(),
        }
