"""Unit tests for completion detection strategies."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from cli_agent_monitor.models.event import ClaudeEvent, EventType
from cli_agent_monitor.models.state import ClassifiedState, StateType
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

from conftest import FakeCaptureClient, StubMonitor


def _state(type_, confidence=0.7, detail=None):
    return ClassifiedState(type=type_, confidence=confidence, detail=detail, timestamp=0.0)


def _emit_later(monitor, event, delay_s=0.05):
    timer = threading.Timer(delay_s, monitor.emit, args=(event,))
    timer.daemon = True
    timer.start()
    return timer


class ScriptedStrategy(CompletionStrategy):
    """Returns a fixed verdict after an optional delay and records its budgets."""

    def __init__(self, name, complete, reason="scripted", delay_s=0.0):
        super().__init__(name, "scripted test strategy")
        self.complete = complete
        self.reason = reason
        self.delay_s = delay_s
        self.budgets = []

    def detect(self, monitor, timeout_ms=120000):
        self.budgets.append(timeout_ms)
        started = time.monotonic()
        if self.delay_s:
            time.sleep(self.delay_s)
        return self._result(self.complete, self.reason, started)


class TestSilenceTimeout:
    """Tests for the silence-based strategy."""

    def test_quiet_monitor_completes(self):
        """No activity for 5000ms within a 120000ms budget -> complete."""
        result = SilenceTimeout(5000).detect(StubMonitor(), timeout_ms=120000)
        assert result.complete
        assert "5000ms" in result.reason
        assert result.method_name == "silence-5000ms"
        assert result.latency_ms >= 5000

    def test_steady_activity_times_out(self):
        monitor = StubMonitor()
        stop = threading.Event()

        def chatter():
            while not stop.wait(0.02):
                monitor.emit(ClaudeEvent(type=EventType.ACTIVITY, timestamp=0.0))

        thread = threading.Thread(target=chatter, daemon=True)
        thread.start()
        try:
            result = SilenceTimeout(200).detect(monitor, timeout_ms=300)
        finally:
            stop.set()
            thread.join(1)

        assert not result.complete
        assert result.reason == "timeout waiting for 200ms of silence"
        assert monitor.handler_count() == 0

    def test_result_carries_current_state(self):
        monitor = StubMonitor(state=_state(StateType.IDLE))
        result = SilenceTimeout(20).detect(monitor, timeout_ms=1000)
        assert result.state.type == StateType.IDLE


class TestStateDetection:
    """Tests for the state-based strategy."""

    def test_idle_state_change(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        _emit_later(monitor, ClaudeEvent(type=EventType.STATE_CHANGE, state=_state(StateType.IDLE), timestamp=0.0))

        result = StateDetection(silence_ms=10000).detect(monitor, timeout_ms=2000)

        assert result.complete
        assert result.reason == "idle state"
        assert result.state.type == StateType.IDLE
        assert monitor.handler_count() == 0

    def test_error_state_change(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        error = _state(StateType.ERROR, 0.8, "boom")
        _emit_later(monitor, ClaudeEvent(type=EventType.STATE_CHANGE, state=error, timestamp=0.0))

        result = StateDetection(silence_ms=10000).detect(monitor, timeout_ms=2000)

        assert result.complete
        assert result.reason == "error"
        assert result.state.detail == "boom"

    def test_complete_event(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        done = _state(StateType.COMPLETE, 0.6)
        _emit_later(monitor, ClaudeEvent(type=EventType.COMPLETE, state=done, timestamp=0.0))

        result = StateDetection(silence_ms=10000).detect(monitor, timeout_ms=2000)

        assert result.complete
        assert result.reason == "complete event"

    def test_silence_while_idle(self):
        monitor = StubMonitor(state=_state(StateType.IDLE))
        result = StateDetection(silence_ms=50).detect(monitor, timeout_ms=2000)
        assert result.complete
        assert result.reason.startswith("silence (")

    def test_permission_prompt_does_not_complete(self):
        monitor = StubMonitor(state=_state(StateType.WORKING))
        prompt = _state(StateType.PERMISSION, 0.9)
        _emit_later(monitor, ClaudeEvent(type=EventType.STATE_CHANGE, state=prompt, timestamp=0.0))

        result = StateDetection(silence_ms=10000).detect(monitor, timeout_ms=300)

        assert not result.complete
        assert result.reason.startswith("timeout waiting for completion")

    def test_silence_without_idle_requirement(self):
        result = StateDetection(silence_ms=50, require_idle=False).detect(
            StubMonitor(), timeout_ms=2000
        )
        assert result.complete
        assert result.state.type == StateType.UNKNOWN
        assert result.reason.endswith("non-idle")


class TestExternalSignal:
    """Tests for the tmux wait-for strategy."""

    def test_signal_received(self):
        client = FakeCaptureClient()
        strategy = ExternalSignal("done", client=client)
        result = strategy.detect(StubMonitor(), timeout_ms=1000)

        assert strategy.name == "wait-for-done"
        assert result.complete
        assert result.reason == 'signal received on channel "done"'

    def test_signal_timeout(self):
        client = FakeCaptureClient()
        client.signal_result = False
        result = ExternalSignal("done", client=client).detect(StubMonitor(), timeout_ms=1000)

        assert not result.complete
        assert result.reason == 'timeout waiting for signal on channel "done"'

    def test_signal_failure(self):
        client = MagicMock()
        client.wait_for_signal.side_effect = OSError("no server running")
        result = ExternalSignal("done", client=client).detect(StubMonitor(), timeout_ms=1000)

        assert not result.complete
        assert result.reason == "signal wait failed: no server running"
        client.wait_for_signal.assert_called_once_with("done", 1000)


class TestHybrid:
    """Tests for primary/fallback composition."""

    def test_primary_success_is_tagged(self):
        primary = ScriptedStrategy("p", True, "idle state")
        fallback = ScriptedStrategy("f", True)
        hybrid = Hybrid(primary, fallback)

        result = hybrid.detect(StubMonitor(), timeout_ms=120000)

        assert result.complete
        assert result.reason == "primary(idle state)"
        assert result.method_name == "hybrid(p,f)"
        assert fallback.budgets == []

    def test_budgets_are_capped(self):
        primary = ScriptedStrategy("p", False)
        fallback = ScriptedStrategy("f", True, "silence for 5000ms")
        hybrid = Hybrid(primary, fallback, primary_budget_ms=1000, fallback_budget_ms=5000)

        result = hybrid.detect(StubMonitor(), timeout_ms=120000)

        assert primary.budgets == [1000]
        assert fallback.budgets == [5000]
        assert result.reason == "fallback(silence for 5000ms)"
        assert result.method_name == "hybrid(p,f)"

    def test_fallback_gets_remaining_time(self):
        primary = ScriptedStrategy("p", False, delay_s=0.1)
        fallback = ScriptedStrategy("f", False)
        hybrid = Hybrid(primary, fallback, primary_budget_ms=1000, fallback_budget_ms=90000)

        result = hybrid.detect(StubMonitor(), timeout_ms=300)

        assert primary.budgets == [300]
        assert 0 < fallback.budgets[0] < 250
        assert not result.complete
        assert result.latency_ms >= 100

    def test_no_time_left_after_primary(self):
        primary = ScriptedStrategy("p", False, delay_s=0.1)
        fallback = ScriptedStrategy("f", True)
        result = Hybrid(primary, fallback).detect(StubMonitor(), timeout_ms=50)

        assert not result.complete
        assert result.reason == "timeout after primary method"
        assert fallback.budgets == []

    def test_default_method(self):
        method = get_default_method()
        assert method.name == "hybrid(state-detection,silence-5000ms)"
        assert method.primary_budget_ms == 30000
        assert method.fallback_budget_ms == 90000


class TestMethodMetrics:
    """Tests for effectiveness bookkeeping."""

    def test_fresh_metrics(self):
        metrics = SilenceTimeout(100).metrics
        assert metrics.total_runs == 0
        assert metrics.success_rate == 1.0
        assert metrics.min_latency_ms == float("inf")

    def test_success_rate_and_latency(self):
        strategy = SilenceTimeout(100)
        for latency in (10, 20, 30, 40, 50, 60, 70):
            strategy.record_result(latency, correct=True)
        strategy.record_result(80, correct=False, is_false_positive=True)
        strategy.record_result(90, correct=False, is_false_positive=True)
        strategy.record_result(100, correct=False)

        metrics = strategy.metrics
        assert metrics.total_runs == 10
        assert metrics.false_positives == 2
        assert metrics.false_negatives == 1
        assert metrics.success_rate == pytest.approx(0.7)
        assert metrics.avg_latency_ms == pytest.approx(55)
        assert metrics.min_latency_ms == 10
        assert metrics.max_latency_ms == 100

    def test_metrics_are_per_instance(self):
        first = get_method("silence-3s")
        first.record_result(10, correct=False)
        assert get_method("silence-3s").metrics.total_runs == 0


class TestMethodRegistry:
    """Tests for building strategies by name."""

    def test_presets(self):
        assert get_method("silence-3s").silence_ms == 3000
        assert get_method("silence-10s").silence_ms == 10000
        assert isinstance(get_method("state-detection"), StateDetection)

        aggressive = get_method("aggressive-hybrid")
        assert aggressive.primary_budget_ms == 10000
        assert aggressive.fallback_budget_ms == 30000
        assert aggressive.fallback.silence_ms == 2000

        conservative = get_method("conservative-hybrid")
        assert conservative.fallback.silence_ms == 10000
        assert conservative.fallback_budget_ms == 120000

    @pytest.mark.parametrize(
        "name,expected_ms",
        [("silence-1500ms", 1500), ("silence-4s", 4000), ("silence-250", 250)],
    )
    def test_silence_names(self, name, expected_ms):
        method = get_method(name)
        assert isinstance(method, SilenceTimeout)
        assert method.silence_ms == expected_ms

    def test_wait_for_names(self):
        method = get_method("wait-for-build-done")
        assert isinstance(method, ExternalSignal)
        assert method.channel == "build-done"

    def test_unknown_name_falls_back_to_default(self):
        assert get_method("bogus").name == get_default_method().name
        assert get_method(None).name == get_default_method().name

    def test_list_methods(self):
        methods = list_methods()
        assert [name for name, _ in methods] == list(PRESET_METHODS)
        assert all(description for _, description in methods)

    def test_method_from_env(self, monkeypatch):
        monkeypatch.setenv("CAM_COMPLETION_METHOD", "silence-10s")
        assert get_method_from_env().silence_ms == 10000

        monkeypatch.delenv("CAM_COMPLETION_METHOD")
        assert isinstance(get_method_from_env(), Hybrid)
