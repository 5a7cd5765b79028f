from cli_agent_monitor.models.completion import CompletionResult, MethodMetrics
from cli_agent_monitor.models.event import ClaudeEvent, EventType, MonitorSnapshot
from cli_agent_monitor.models.monitor import MonitorOptions
from cli_agent_monitor.models.state import (
    ClassifiedState,
    CompletionAssessment,
    PermissionDetails,
    StateType,
)

__all__ = [
    "ClaudeEvent",
    "ClassifiedState",
    "CompletionAssessment",
    "CompletionResult",
    "EventType",
    "MethodMetrics",
    "MonitorOptions",
    "MonitorSnapshot",
    "PermissionDetails",
    "StateType",
]
