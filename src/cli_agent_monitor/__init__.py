"""CLI Agent Monitor: state detection and completion tracking for terminal AI agents."""

from cli_agent_monitor.detection import classify, diff_output
from cli_agent_monitor.models import (
    ClaudeEvent,
    ClassifiedState,
    CompletionResult,
    EventType,
    MethodMetrics,
    MonitorOptions,
    StateType,
)
from cli_agent_monitor.services import (
    CompletionStrategy,
    EventMonitor,
    ExternalSignal,
    Hybrid,
    MonitorError,
    SilenceTimeout,
    StateDetection,
    get_default_method,
    get_method,
)

__version__ = "0.1.0"

__all__ = [
    "ClaudeEvent",
    "ClassifiedState",
    "CompletionResult",
    "CompletionStrategy",
    "EventMonitor",
    "EventType",
    "ExternalSignal",
    "Hybrid",
    "MethodMetrics",
    "MonitorError",
    "MonitorOptions",
    "SilenceTimeout",
    "StateDetection",
    "StateType",
    "classify",
    "diff_output",
    "get_default_method",
    "get_method",
]
