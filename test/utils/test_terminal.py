"""Unit tests for the blocking wait helpers."""

import threading

import pytest

from cli_agent_monitor.models.event import ClaudeEvent, EventType
from cli_agent_monitor.models.state import ClassifiedState, StateType
from cli_agent_monitor.utils.terminal import wait_for_completion, wait_for_silence, wait_for_state

from conftest import StubMonitor


def _state(type_, confidence=0.7):
    return ClassifiedState(type=type_, confidence=confidence, timestamp=0.0)


def _state_change(type_):
    return ClaudeEvent(type=EventType.STATE_CHANGE, state=_state(type_), timestamp=0.0)


def _emit_later(monitor, event, delay_s=0.05):
    timer = threading.Timer(delay_s, monitor.emit, args=(event,))
    timer.daemon = True
    timer.start()


def _is_idle(state):
    return state.type == StateType.IDLE


class TestWaitForState:
    """Tests for wait_for_state()."""

    def test_current_state_already_matches(self):
        monitor = StubMonitor(state=_state(StateType.IDLE))
        assert wait_for_state(monitor, _is_idle, timeout_ms=10).type == StateType.IDLE
        assert monitor.handler_count() == 0

    def test_waits_for_state_change(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        _emit_later(monitor, _state_change(StateType.QUESTION))
        _emit_later(monitor, _state_change(StateType.IDLE), delay_s=0.1)

        state = wait_for_state(monitor, _is_idle, timeout_ms=2000)

        assert state.type == StateType.IDLE

    def test_timeout(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        with pytest.raises(TimeoutError, match="timeout waiting for state"):
            wait_for_state(monitor, _is_idle, timeout_ms=50)
        assert monitor.handler_count() == 0


class TestWaitForSilence:
    """Tests for wait_for_silence()."""

    def test_returns_observed_silence(self):
        silence = wait_for_silence(StubMonitor(), silence_ms=50, timeout_ms=1000)
        assert silence >= 50

    def test_zero_timeout(self):
        with pytest.raises(TimeoutError, match="100ms of silence"):
            wait_for_silence(StubMonitor(), silence_ms=100, timeout_ms=0)


class TestWaitForCompletion:
    """Tests for wait_for_completion()."""

    def test_complete_event(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        event = ClaudeEvent(type=EventType.COMPLETE, state=_state(StateType.IDLE), timestamp=0.0)
        _emit_later(monitor, event)

        state, reason = wait_for_completion(monitor, silence_ms=10000, timeout_ms=2000)

        assert state.type == StateType.IDLE
        assert reason == "complete event"
        assert monitor.handler_count() == 0

    def test_activity_postpones_silence(self):
        """Activity just before the threshold restarts the silence count."""
        monitor = StubMonitor(state=_state(StateType.IDLE))
        _emit_later(monitor, ClaudeEvent(type=EventType.ACTIVITY, timestamp=0.0), delay_s=0.15)

        state, reason = wait_for_completion(monitor, silence_ms=200, timeout_ms=2000)

        assert state.type == StateType.IDLE
        assert reason.startswith("silence (")
        assert int(reason[len("silence ("):].split("ms")[0]) >= 200

    def test_timeout(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        with pytest.raises(TimeoutError, match="timeout waiting for completion"):
            wait_for_completion(monitor, silence_ms=50, timeout_ms=200)
        assert monitor.handler_count() == 0
