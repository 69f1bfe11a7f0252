"""Claude Code session usage monitor: burn rate, time to limit and plan detection."""

__version__ = "0.1.0"
