from cli_agent_monitor.services.completion import (
    PRESET_METHODS,
    CompletionStrategy,
    ExternalSignal,
    Hybrid,
    SilenceTimeout,
    StateDetection,
    get_default_method,
    get_method,
    get_method_from_env,
    list_methods,
)
from cli_agent_monitor.services.event_monitor import EventMonitor, MonitorError

__all__ = [
    "PRESET_METHODS",
    "CompletionStrategy",
    "EventMonitor",
    "ExternalSignal",
    "Hybrid",
    "MonitorError",
    "SilenceTimeout",
    "StateDetection",
    "get_default_method",
    "get_method",
    "get_method_from_env",
    "list_methods",
]
