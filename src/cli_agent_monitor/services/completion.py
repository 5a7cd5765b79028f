"""Completion detection strategies.

A strategy answers "has the agent finished its task?" for a running
``EventMonitor``, within a caller-supplied deadline. Every strategy keeps
running effectiveness metrics that the caller feeds by grading results with
``record_result()``.

Strategies can be built directly or by name through ``get_method()``:
presets (``silence-3s``, ``aggressive-hybrid``, ...), ad hoc silence
timeouts (``silence-1500ms``, ``silence-4s``) and external signal channels
(``wait-for-<channel>``).
"""

import logging
import os
import re
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from cli_agent_monitor.clients.base import CaptureClient
from cli_agent_monitor.clients.tmux import tmux_client
from cli_agent_monitor.constants import (
    DEFAULT_DETECT_TIMEOUT_MS,
    DEFAULT_FALLBACK_BUDGET_MS,
    DEFAULT_FALLBACK_SILENCE_MS,
    DEFAULT_PRIMARY_BUDGET_MS,
    ENV_COMPLETION_METHOD,
    STATE_DETECTION_SILENCE_MS,
)
from cli_agent_monitor.models.completion import CompletionResult, MethodMetrics
from cli_agent_monitor.models.state import ClassifiedState
from cli_agent_monitor.services.event_monitor import EventMonitor
from cli_agent_monitor.utils.terminal import wait_for_completion, wait_for_silence

logger = logging.getLogger(__name__)

SILENCE_METHOD_PATTERN = re.compile(r"^silence-(\d+)(ms|s)?$")
WAIT_FOR_METHOD_PATTERN = re.compile(r"^wait-for-(.+)$")


class CompletionStrategy(ABC):
    """Base class for completion detectors."""

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.metrics = MethodMetrics(name=name)
        # Detections may run on several threads at once; grading is serialized
        self._metrics_lock = threading.Lock()

    @abstractmethod
    def detect(
        self, monitor: EventMonitor, timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS
    ) -> CompletionResult:
        """Block until the task looks complete or ``timeout_ms`` elapses.

        Never raises on timeout; an inconclusive run returns ``complete=False``.
        """
        pass

    def record_result(self, latency_ms: float, correct: bool, is_false_positive: bool = False) -> None:
        """Grade one detection and fold it into this strategy's metrics."""
        with self._metrics_lock:
            self.metrics.record(latency_ms, correct, is_false_positive)

    def _result(
        self,
        complete: bool,
        reason: str,
        started: float,
        state: Optional[ClassifiedState] = None,
    ) -> CompletionResult:
        return CompletionResult(
            complete=complete,
            state=state,
            reason=reason,
            latency_ms=(time.monotonic() - started) * 1000,
            method_name=self.name,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class SilenceTimeout(CompletionStrategy):
    """Complete once the pane has been quiet for ``silence_ms``."""

    def __init__(self, silence_ms: int):
        super().__init__(
            f"silence-{silence_ms}ms", f"Detect completion when no output for {silence_ms}ms"
        )
        self.silence_ms = silence_ms

    def detect(
        self, monitor: EventMonitor, timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS
    ) -> CompletionResult:
        started = time.monotonic()
        try:
            wait_for_silence(monitor, self.silence_ms, timeout_ms)
        except TimeoutError as e:
            return self._result(False, str(e), started)

        return self._result(
            True, f"silence for {self.silence_ms}ms", started, monitor.get_current_state()
        )


class StateDetection(CompletionStrategy):
    """Complete when the screen settles on idle, complete or error."""

    def __init__(self, silence_ms: int = STATE_DETECTION_SILENCE_MS, require_idle: bool = True):
        super().__init__("state-detection", "Detect completion when idle state is detected")
        self.silence_ms = silence_ms
        self.require_idle = require_idle

    def detect(
        self, monitor: EventMonitor, timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS
    ) -> CompletionResult:
        started = time.monotonic()
        try:
            state, reason = wait_for_completion(
                monitor,
                silence_ms=self.silence_ms,
                timeout_ms=timeout_ms,
                require_idle=self.require_idle,
            )
        except TimeoutError as e:
            return self._result(False, str(e), started)

        return self._result(True, reason, started, state)


class ExternalSignal(CompletionStrategy):
    """Complete when an out-of-band signal arrives on a tmux ``wait-for`` channel.

    Advisory only: the agent (or a hook) has to send the signal, so this is
    best paired with a screen-based strategy.
    """

    def __init__(self, channel: str, client: Optional[CaptureClient] = None):
        super().__init__(
            f"wait-for-{channel}", f'Wait for tmux wait-for signal on channel "{channel}"'
        )
        self.channel = channel
        self._client = client if client is not None else tmux_client

    def detect(
        self, monitor: EventMonitor, timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS
    ) -> CompletionResult:
        started = time.monotonic()
        try:
            received = self._client.wait_for_signal(self.channel, timeout_ms)
        except Exception as e:
            logger.warning(f"Waiting on channel {self.channel} failed: {e}")
            return self._result(False, f"signal wait failed: {e}", started)

        if not received:
            return self._result(
                False, f'timeout waiting for signal on channel "{self.channel}"', started
            )

        state = monitor.get_current_state() if monitor is not None else None
        return self._result(True, f'signal received on channel "{self.channel}"', started, state)


class Hybrid(CompletionStrategy):
    """Try ``primary`` within its budget, then ``fallback`` with what is left."""

    def __init__(
        self,
        primary: CompletionStrategy,
        fallback: CompletionStrategy,
        primary_budget_ms: float = DEFAULT_PRIMARY_BUDGET_MS,
        fallback_budget_ms: float = DEFAULT_FALLBACK_BUDGET_MS,
    ):
        super().__init__(
            f"hybrid({primary.name},{fallback.name})",
            f"Try {primary.name} first, fall back to {fallback.name}",
        )
        self.primary = primary
        self.fallback = fallback
        self.primary_budget_ms = primary_budget_ms
        self.fallback_budget_ms = fallback_budget_ms

    def detect(
        self, monitor: EventMonitor, timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS
    ) -> CompletionResult:
        started = time.monotonic()

        primary_result = self.primary.detect(monitor, min(self.primary_budget_ms, timeout_ms))
        if primary_result.complete:
            return primary_result.model_copy(
                update={
                    "reason": f"primary({primary_result.reason})",
                    "method_name": self.name,
                }
            )

        remaining_ms = timeout_ms - (time.monotonic() - started) * 1000
        if remaining_ms <= 0:
            return self._result(False, "timeout after primary method", started)

        logger.debug(
            f"{self.name}: primary inconclusive ({primary_result.reason}), "
            f"falling back with {remaining_ms:.0f}ms left"
        )
        fallback_result = self.fallback.detect(
            monitor, min(self.fallback_budget_ms, remaining_ms)
        )
        return fallback_result.model_copy(
            update={
                "reason": f"fallback({fallback_result.reason})",
                "method_name": self.name,
                "latency_ms": (time.monotonic() - started) * 1000,
            }
        )


def get_default_method() -> CompletionStrategy:
    """State detection first, a 5s silence timeout as the fallback."""
    return Hybrid(
        StateDetection(),
        SilenceTimeout(DEFAULT_FALLBACK_SILENCE_MS),
        primary_budget_ms=DEFAULT_PRIMARY_BUDGET_MS,
        fallback_budget_ms=DEFAULT_FALLBACK_BUDGET_MS,
    )


PRESET_METHODS: Dict[str, Callable[[], CompletionStrategy]] = {
    "silence-3s": lambda: SilenceTimeout(3000),
    "silence-5s": lambda: SilenceTimeout(5000),
    "silence-10s": lambda: SilenceTimeout(10000),
    "state-detection": lambda: StateDetection(),
    "hybrid": get_default_method,
    "aggressive-hybrid": lambda: Hybrid(
        StateDetection(), SilenceTimeout(2000), primary_budget_ms=10000, fallback_budget_ms=30000
    ),
    "conservative-hybrid": lambda: Hybrid(
        StateDetection(), SilenceTimeout(10000), primary_budget_ms=60000, fallback_budget_ms=120000
    ),
}


def get_method(name: Optional[str]) -> CompletionStrategy:
    """Build a strategy from a preset or pattern name.

    Unrecognized names fall back to the default hybrid strategy.
    """
    if name in PRESET_METHODS:
        return PRESET_METHODS[name]()

    silence = SILENCE_METHOD_PATTERN.match(name or "")
    if silence:
        value = int(silence.group(1))
        unit = silence.group(2) or "ms"
        return SilenceTimeout(value * 1000 if unit == "s" else value)

    wait_for = WAIT_FOR_METHOD_PATTERN.match(name or "")
    if wait_for:
        return ExternalSignal(wait_for.group(1))

    if name:
        logger.info(f"Unknown completion method '{name}', using default hybrid")
    return get_default_method()


def get_method_from_env() -> CompletionStrategy:
    """Build the strategy named by CAM_COMPLETION_METHOD (default hybrid when unset)."""
    return get_method(os.getenv(ENV_COMPLETION_METHOD, "").strip() or None)


def list_methods() -> List[Tuple[str, str]]:
    """Return ``(preset name, description)`` pairs for every preset."""
    return [(name, factory().description) for name, factory in PRESET_METHODS.items()]
