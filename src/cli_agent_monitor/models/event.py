"""Monitor event models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from cli_agent_monitor.models.state import ClassifiedState


class EventType(str, Enum):
    """Kinds of events emitted by an event monitor."""

    STATE_CHANGE = "state_change"
    OUTPUT = "output"
    SILENCE = "silence"
    ACTIVITY = "activity"
    PERMISSION = "permission"
    QUESTION = "question"
    ERROR = "error"
    COMPLETE = "complete"


class ClaudeEvent(BaseModel):
    """A single event observed on a monitored pane."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    state: Optional[ClassifiedState] = None
    output_delta: Optional[str] = None
    silence_ms: Optional[float] = None
    timestamp: float


class MonitorSnapshot(BaseModel):
    """Read-only view of a monitor session taken between polls."""

    model_config = ConfigDict(frozen=True)

    target_id: Optional[str] = None
    last_output: str = ""
    last_state: Optional[ClassifiedState] = None
    last_activity: float
    running: bool = False
    poll_count: int = 0
    poll_errors: int = 0
