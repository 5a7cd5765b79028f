"""Helpers that block until a monitored terminal reaches some condition.

Each helper subscribes to the monitor's event stream, returns as soon as its
condition holds, raises ``TimeoutError`` at the deadline, and always removes
its subscriptions before returning.
"""

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Dict, Tuple

from cli_agent_monitor.constants import (
    COMPLETION_CHECK_INTERVAL_MS,
    DEFAULT_DETECT_TIMEOUT_MS,
    DEFAULT_STATE_WAIT_TIMEOUT_MS,
    SILENCE_CHECK_INTERVAL_MS,
)
from cli_agent_monitor.models.event import ClaudeEvent, EventType
from cli_agent_monitor.models.state import ClassifiedState, StateType

if TYPE_CHECKING:
    from cli_agent_monitor.services.event_monitor import EventMonitor

logger = logging.getLogger(__name__)

_DONE_STATES = (StateType.IDLE, StateType.COMPLETE, StateType.ERROR)


def wait_for_state(
    monitor: "EventMonitor",
    predicate: Callable[[ClassifiedState], bool],
    timeout_ms: float = DEFAULT_STATE_WAIT_TIMEOUT_MS,
) -> ClassifiedState:
    """Wait until the monitor's state satisfies ``predicate``.

    The current state is checked first, then every state change.

    Raises:
        TimeoutError: If no matching state is seen within ``timeout_ms``
    """
    found: Dict[str, ClassifiedState] = {}
    matched = threading.Event()

    def on_state_change(event: ClaudeEvent) -> None:
        if event.state is not None and not matched.is_set() and predicate(event.state):
            found["state"] = event.state
            matched.set()

    unsubscribe = monitor.on(EventType.STATE_CHANGE, on_state_change)
    try:
        current = monitor.get_current_state()
        if current is not None and predicate(current):
            return current

        if not matched.wait(max(timeout_ms, 0) / 1000):
            raise TimeoutError(f"timeout waiting for state after {timeout_ms}ms")
        return found["state"]
    finally:
        unsubscribe()


def wait_for_silence(
    monitor: "EventMonitor",
    silence_ms: float,
    timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS,
) -> float:
    """Wait until no activity event has fired for ``silence_ms``.

    Silence is counted from the moment of the call, not from the monitor's
    last activity.

    Returns:
        The observed silence in milliseconds

    Raises:
        TimeoutError: If activity keeps arriving until ``timeout_ms`` elapses
    """
    start = time.monotonic()
    deadline = start + max(timeout_ms, 0) / 1000
    last_activity = [start]
    check_interval = min(SILENCE_CHECK_INTERVAL_MS, max(silence_ms, 1)) / 1000

    def on_activity(_event: ClaudeEvent) -> None:
        last_activity[0] = time.monotonic()

    unsubscribe = monitor.on(EventType.ACTIVITY, on_activity)
    try:
        while True:
            now = time.monotonic()
            silence = (now - last_activity[0]) * 1000
            if silence >= silence_ms:
                return silence
            if now >= deadline:
                raise TimeoutError(f"timeout waiting for {silence_ms}ms of silence")
            time.sleep(min(check_interval, deadline - now))
    finally:
        unsubscribe()


def wait_for_completion(
    monitor: "EventMonitor",
    silence_ms: float = 3000,
    timeout_ms: float = DEFAULT_DETECT_TIMEOUT_MS,
    require_idle: bool = True,
) -> Tuple[ClassifiedState, str]:
    """Wait until the agent looks finished.

    Resolves on a ``complete`` event, on a change to idle (when
    ``require_idle``) or error, or once ``silence_ms`` of quiet has passed
    while the screen shows idle, complete or error. Without
    ``require_idle`` any sufficiently long silence counts.

    Returns:
        The state that ended the wait and the reason it ended

    Raises:
        TimeoutError: If none of the above happens within ``timeout_ms``
    """
    start = time.monotonic()
    deadline = start + max(timeout_ms, 0) / 1000
    last_activity = [start]
    check_interval = min(COMPLETION_CHECK_INTERVAL_MS, max(silence_ms, 1)) / 1000
    outcome: Dict[str, object] = {}
    done = threading.Event()

    def finish(state: ClassifiedState, reason: str) -> None:
        if not done.is_set():
            outcome["state"] = state
            outcome["reason"] = reason
            done.set()

    def on_complete(event: ClaudeEvent) -> None:
        if event.state is not None:
            finish(event.state, "complete event")

    def on_activity(_event: ClaudeEvent) -> None:
        last_activity[0] = time.monotonic()

    def on_state_change(event: ClaudeEvent) -> None:
        state = event.state
        if state is None or state.needs_user_action:
            return
        if require_idle and state.type == StateType.IDLE:
            finish(state, "idle state")
        elif state.type == StateType.ERROR:
            finish(state, "error")

    unsubscribers = [
        monitor.on(EventType.COMPLETE, on_complete),
        monitor.on(EventType.ACTIVITY, on_activity),
        monitor.on(EventType.STATE_CHANGE, on_state_change),
    ]
    try:
        while not done.is_set():
            now = time.monotonic()
            silence = (now - last_activity[0]) * 1000
            if silence >= silence_ms:
                current = monitor.get_current_state()
                if current is not None and current.type in _DONE_STATES:
                    finish(current, f"silence ({int(silence)}ms)")
                    break
                if not require_idle:
                    if current is None:
                        current = ClassifiedState(
                            type=StateType.UNKNOWN, confidence=0.0, timestamp=time.time() * 1000
                        )
                    finish(current, f"silence ({int(silence)}ms) - non-idle")
                    break

            if now >= deadline:
                raise TimeoutError(f"timeout waiting for completion after {timeout_ms}ms")
            done.wait(min(check_interval, deadline - now))

        logger.debug(f"Completion wait ended: {outcome['reason']}")
        return outcome["state"], outcome["reason"]
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
