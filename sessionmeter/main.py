"""Command-line entry point: one-shot snapshot, live watch, or API server."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import uvicorn
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from sessionmeter.config import settings
from sessionmeter.monitor import UsageMonitor
from sessionmeter.usage.snapshot import UsageSnapshot, snapshot_to_dict

console = Console()

_LEVEL_STYLES = {"normal": "green", "warning": "yellow", "critical": "red"}


def _fmt(n: int) -> str:
    """Format a token count for display."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 10_000:
        return f"{n // 1_000}K"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return f"{n:,}"


def render_snapshot(snap: UsageSnapshot) -> Group:
    """Build a rich renderable for one snapshot."""
    plan_label = f"{snap.plan.value} (manual)" if snap.is_manual_plan else snap.plan.value
    if not snap.has_active_session:
        return Group(Panel(f"No active session  ·  plan {plan_label}", style="dim"))

    style = _LEVEL_STYLES.get(snap.usage_level, "white")
    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Tokens", f"[{style}]{_fmt(snap.current_tokens)} / {_fmt(snap.token_limit)} ({snap.usage_percentage:.1f}%)[/{style}]")
    summary.add_row("Burn rate", f"{snap.burn_rate:,.0f} tok/min ({snap.burn_rate_tier})")
    summary.add_row("Time left", snap.time_remaining)
    summary.add_row("Resets at", snap.session_reset_time)
    summary.add_row("Plan", plan_label)
    if snap.will_exceed_before_reset:
        summary.add_row("", "[bold red]Limit will be hit before the session resets[/bold red]")

    models = Table(title="Models", show_edge=False)
    models.add_column("Model")
    models.add_column("Input", justify="right")
    models.add_column("Output", justify="right")
    models.add_column("Weighted", justify="right")
    for m in snap.model_breakdown:
        models.add_row(m.model, _fmt(m.input_tokens), _fmt(m.output_tokens), _fmt(m.weighted_tokens))

    return Group(Panel(summary, title="Current session", style="bold blue"), models)


def run_snapshot(as_json: bool) -> None:
    """Compute and print a single snapshot."""
    monitor = UsageMonitor.from_settings(settings)
    snap = monitor.compute()
    if as_json:
        print(json.dumps(snapshot_to_dict(snap), indent=2, ensure_ascii=False))
    else:
        console.print(render_snapshot(snap))


async def _watch(monitor: UsageMonitor) -> None:
    with Live(render_snapshot(monitor.snapshot), console=console, refresh_per_second=1) as live:
        monitor.on_snapshot = lambda snap: live.update(render_snapshot(snap))
        await monitor.start()
        try:
            while monitor.running:
                await asyncio.sleep(1)
        finally:
            await monitor.stop()


def run_watch(interval: float | None) -> None:
    """Re-render the snapshot every polling cycle until interrupted."""
    monitor = UsageMonitor.from_settings(settings)
    if interval:
        monitor.interval = interval
    try:
        asyncio.run(_watch(monitor))
    except KeyboardInterrupt:
        pass


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting sessionmeter API server", style="bold green"))
    uvicorn.run(
        "sessionmeter.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Claude Code session usage monitor")
    sub = parser.add_subparsers(dest="command")

    snap_parser = sub.add_parser("snapshot", help="Print the current usage snapshot")
    snap_parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table")

    watch_parser = sub.add_parser("watch", help="Live-updating usage view")
    watch_parser.add_argument("--interval", type=float, default=None, help="Seconds between refreshes")

    sub.add_parser("serve", help="Start the API server")

    args = parser.parse_args()

    if args.command == "snapshot":
        run_snapshot(args.json)
    elif args.command == "watch":
        run_watch(args.interval)
    elif args.command == "serve":
        run_server()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
