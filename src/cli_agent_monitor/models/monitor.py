"""Event monitor configuration model."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from cli_agent_monitor.constants import (
    DEFAULT_CAPTURE_LINES,
    DEFAULT_CAPTURE_TIMEOUT_MS,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_SILENCE_THRESHOLD_MS,
    ENV_CAPTURE_LINES,
    ENV_CAPTURE_TIMEOUT_MS,
    ENV_POLL_INTERVAL_MS,
    ENV_SILENCE_THRESHOLD_MS,
)


def _get_int_env(name: str, default: int) -> int:
    """Parse int env var with safe fallback."""
    try:
        value = int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


class MonitorOptions(BaseModel):
    """Settings for one event monitor."""

    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    capture_lines: int = Field(default=DEFAULT_CAPTURE_LINES, gt=0)
    silence_threshold_ms: int = Field(default=DEFAULT_SILENCE_THRESHOLD_MS, gt=0)
    capture_timeout_ms: int = Field(default=DEFAULT_CAPTURE_TIMEOUT_MS, gt=0)
    # Explicit pane to watch; when unset the first pane of the session is used
    pane_id: Optional[str] = None

    @classmethod
    def from_env(cls, pane_id: Optional[str] = None) -> "MonitorOptions":
        """Build options from CAM_* environment variables over the defaults."""
        return cls(
            poll_interval_ms=_get_int_env(ENV_POLL_INTERVAL_MS, DEFAULT_POLL_INTERVAL_MS),
            capture_lines=_get_int_env(ENV_CAPTURE_LINES, DEFAULT_CAPTURE_LINES),
            silence_threshold_ms=_get_int_env(
                ENV_SILENCE_THRESHOLD_MS, DEFAULT_SILENCE_THRESHOLD_MS
            ),
            capture_timeout_ms=_get_int_env(ENV_CAPTURE_TIMEOUT_MS, DEFAULT_CAPTURE_TIMEOUT_MS),
            pane_id=pane_id,
        )
