"""Shared fakes for monitor and completion tests."""

import threading
from typing import List, Optional

import pytest

from cli_agent_monitor.clients.base import CaptureClient
from cli_agent_monitor.models.event import ClaudeEvent, EventType
from cli_agent_monitor.models.monitor import MonitorOptions
from cli_agent_monitor.models.state import ClassifiedState
from cli_agent_monitor.services.event_monitor import EventMonitor


class FakeCaptureClient(CaptureClient):
    """Capture client that serves whatever ``screen`` currently holds."""

    def __init__(self, screen: str = "", target: str = "%1"):
        self.screen = screen
        self.target = target
        self.capture_calls = 0
        self.resolved: List[str] = []
        self.errors: List[Exception] = []
        self.block: Optional[threading.Event] = None
        self.signal_result = True

    def resolve_target(self, session_name: str) -> str:
        self.resolved.append(session_name)
        if session_name == "missing":
            raise ValueError(f"Session '{session_name}' not found")
        return self.target

    def capture_output(self, target_id: str, lines: int) -> str:
        self.capture_calls += 1
        if self.block is not None:
            self.block.wait(5)
        if self.errors:
            raise self.errors.pop(0)
        return self.screen

    def wait_for_signal(self, channel: str, timeout_ms: float) -> bool:
        return self.signal_result


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class StubMonitor:
    """Minimal event hub standing in for a live EventMonitor."""

    def __init__(self, state: Optional[ClassifiedState] = None):
        self.state = state
        self._handlers = {t: [] for t in EventType}
        self._lock = threading.Lock()

    def on(self, event_type, handler):
        event_type = EventType(event_type)
        with self._lock:
            self._handlers[event_type].append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers[event_type]:
                    self._handlers[event_type].remove(handler)

        return unsubscribe

    def handler_count(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())

    def get_current_state(self) -> Optional[ClassifiedState]:
        return self.state

    def emit(self, event: ClaudeEvent) -> None:
        if event.type == EventType.STATE_CHANGE and event.state is not None:
            self.state = event.state
        with self._lock:
            handlers = list(self._handlers[event.type])
        for handler in handlers:
            handler(event)


@pytest.fixture
def fake_client():
    return FakeCaptureClient()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def monitor_factory():
    """Build monitors that only poll when the test calls poll()."""
    monitors = []

    def factory(client, clock=None, session_name="test-session", **overrides):
        overrides.setdefault("poll_interval_ms", 600_000)
        monitor = EventMonitor(
            session_name, options=MonitorOptions(**overrides), client=client, clock=clock
        )
        monitors.append(monitor)
        return monitor

    yield factory

    for monitor in monitors:
        monitor.stop()
