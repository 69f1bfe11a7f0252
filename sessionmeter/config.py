from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

from sessionmeter.usage.plans import resolve_plan_override


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Log locations. CLAUDE_DATA_PATHS (colon-separated) wins over CLAUDE_DATA_PATH;
    # with neither set, ~/.claude/projects and ~/.config/claude/projects are scanned.
    claude_data_paths: str = ""
    claude_data_path: str = ""

    # "auto" detects the plan from peak usage; pro | max5 | max20 | custom_max force one
    plan: str = "auto"

    # Polling
    poll_interval: float = 6.0  # seconds between refresh cycles
    recent_file_hours: int = 24  # only files modified this recently are scanned
    decode_workers: int = 8

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    # Logging
    log_level: str = "INFO"

    @field_validator("plan")
    @classmethod
    def _check_plan(cls, value: str) -> str:
        resolve_plan_override(value)  # raises ValueError for unknown plans
        return value.strip().lower() or "auto"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


settings = Settings()
