"""Classified agent state models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StateType(str, Enum):
    """Interactive state of an agent inferred from its terminal output."""

    IDLE = "idle"
    WORKING = "working"
    PERMISSION = "permission"
    QUESTION = "question"
    ERROR = "error"
    COMPLETE = "complete"
    TOOL_USE = "tool_use"
    UNKNOWN = "unknown"


class ClassifiedState(BaseModel):
    """Best-guess state for one window of terminal output.

    Produced fresh by every classification and never mutated afterwards.
    ``timestamp`` is epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    type: StateType
    detail: Optional[str] = None
    options: Optional[List[str]] = None
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: float
    raw_window: str = ""

    @property
    def needs_user_action(self) -> bool:
        return self.type in (StateType.PERMISSION, StateType.QUESTION)


class PermissionDetails(BaseModel):
    """What a pending permission prompt is asking to do."""

    model_config = ConfigDict(frozen=True)

    type: str
    command: Optional[str] = None
    file: Optional[str] = None


class CompletionAssessment(BaseModel):
    """Verdict of the completion heuristic for one pair of states."""

    model_config = ConfigDict(frozen=True)

    complete: bool
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)
