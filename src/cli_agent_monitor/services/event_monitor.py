"""Event monitor for agent terminal sessions.

Polls one tmux pane on a fixed interval, diffs each capture against the
previous one, re-classifies the screen, and emits typed events (output,
activity, state_change, silence, permission, question, error, complete) to
subscribers.

Threading model:
- A daemon thread drives the poll timer, so an abandoned monitor never keeps
  the interpreter alive.
- Only the poll path writes session state. Readers get the immutable
  ``MonitorSnapshot`` published at the end of each poll.
- At most one poll runs at a time; a tick that finds a poll in flight is
  skipped.
- Every capture runs on its own daemon thread and is abandoned after
  ``capture_timeout_ms``, so a hung tmux call cannot stall the monitor.
- Events are delivered synchronously on the poll thread, in poll order.
  After ``stop()`` nothing more is delivered, including the remaining
  events of a poll that was already in flight.
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Union

from cli_agent_monitor.clients.base import CaptureClient, CaptureError
from cli_agent_monitor.clients.tmux import normalize_pane_id, tmux_client
from cli_agent_monitor.constants import COMPLETION_EVENT_MIN_CONFIDENCE
from cli_agent_monitor.detection.classifier import assess_completion, classify
from cli_agent_monitor.detection.differ import diff_output
from cli_agent_monitor.models.event import ClaudeEvent, EventType, MonitorSnapshot
from cli_agent_monitor.models.monitor import MonitorOptions
from cli_agent_monitor.models.state import ClassifiedState, StateType

logger = logging.getLogger(__name__)

EventHandler = Callable[[ClaudeEvent], None]
PollErrorHandler = Callable[[Exception], None]
Unsubscribe = Callable[[], None]

# State types that also get a dedicated event on entry
_NARROW_EVENTS = {
    StateType.PERMISSION: EventType.PERMISSION,
    StateType.QUESTION: EventType.QUESTION,
    StateType.ERROR: EventType.ERROR,
}


class MonitorError(Exception):
    """Exception raised when a monitor cannot start."""

    pass


def _now_ms() -> float:
    return time.time() * 1000


class EventMonitor:
    """Watches one agent pane and publishes what it sees as events."""

    def __init__(
        self,
        session_name: str,
        options: Optional[MonitorOptions] = None,
        client: Optional[CaptureClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.session_name = session_name
        self.options = options or MonitorOptions()
        self._client = client if client is not None else tmux_client
        self._clock = clock or _now_ms

        self._handlers: Dict[EventType, List[EventHandler]] = {t: [] for t in EventType}
        self._any_handlers: List[EventHandler] = []
        self._error_handlers: List[PollErrorHandler] = []
        self._handlers_lock = threading.Lock()

        self._poll_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._capture_thread: Optional[threading.Thread] = None
        self._generation = 0

        # Session state, written only by the poll path
        self._target_id: Optional[str] = None
        self._running = False
        self._last_output = ""
        self._last_state: Optional[ClassifiedState] = None
        self._last_activity = self._clock()
        self._silence_crossings = 0
        self._poll_count = 0
        self._poll_errors = 0
        self._snapshot = self._build_snapshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Resolve the pane, poll once, then keep polling in the background.

        Raises:
            MonitorError: If no capture target can be found
        """
        if self._running:
            return

        if self.options.pane_id:
            self._target_id = normalize_pane_id(self.options.pane_id)
        else:
            try:
                self._target_id = self._client.resolve_target(self.session_name)
            except ValueError as e:
                raise MonitorError(str(e)) from e

        self._generation += 1
        self._stop_event = threading.Event()
        self._running = True
        self._last_activity = self._clock()
        self._silence_crossings = 0
        self._publish()
        logger.info(
            f"Started monitor for session {self.session_name} (pane {self._target_id}, "
            f"interval {self.options.poll_interval_ms}ms)"
        )

        self.poll()

        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name=f"cam-monitor-{self._target_id}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop polling. No event is delivered after this returns."""
        if not self._running:
            return
        self._running = False
        self._generation += 1
        self._stop_event.set()
        self._publish()
        logger.info(f"Stopped monitor for session {self.session_name} (pane {self._target_id})")

    def is_running(self) -> bool:
        return self._running

    @property
    def target_id(self) -> Optional[str]:
        return self._target_id

    def __enter__(self) -> "EventMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get_current_state(self) -> Optional[ClassifiedState]:
        return self._snapshot.last_state

    def get_silence_ms(self) -> float:
        """Milliseconds since the pane last produced new output."""
        return self._clock() - self._snapshot.last_activity

    def get_snapshot(self) -> MonitorSnapshot:
        return self._snapshot

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> Unsubscribe:
        """Register a handler for one event type.

        Returns:
            A callable that removes the handler again
        """
        event_type = EventType(event_type)
        with self._handlers_lock:
            self._handlers[event_type].append(handler)
        return lambda: self.off(event_type, handler)

    def off(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        event_type = EventType(event_type)
        with self._handlers_lock:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

    def on_any(self, handler: EventHandler) -> Unsubscribe:
        """Register a handler for every event type."""
        with self._handlers_lock:
            self._any_handlers.append(handler)

        def unsubscribe() -> None:
            with self._handlers_lock:
                if handler in self._any_handlers:
                    self._any_handlers.remove(handler)

        return unsubscribe

    def on_poll_error(self, handler: PollErrorHandler) -> Unsubscribe:
        """Register a handler for non-fatal capture failures."""
        with self._handlers_lock:
            self._error_handlers.append(handler)

        def unsubscribe() -> None:
            with self._handlers_lock:
                if handler in self._error_handlers:
                    self._error_handlers.remove(handler)

        return unsubscribe

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _run(self, stop_event: threading.Event) -> None:
        interval = self.options.poll_interval_ms / 1000
        while not stop_event.wait(interval):
            self.poll()

    def poll(self) -> None:
        """Capture, diff, classify and emit once. Skipped if a poll is in flight."""
        if not self._running or self._target_id is None:
            return

        if not self._poll_lock.acquire(blocking=False):
            logger.debug(f"Poll already in flight for {self._target_id}, skipping tick")
            return
        try:
            self._poll(self._generation)
        finally:
            self._poll_lock.release()

    def _poll(self, generation: int) -> None:
        try:
            output = self._capture()
        except Exception as e:
            # Capture failures never end monitoring
            self._poll_errors += 1
            logger.warning(f"Capture failed for pane {self._target_id}: {e}")
            self._publish()
            self._notify_poll_error(e, generation)
            return

        if not self._is_current(generation):
            return

        now = self._clock()
        self._poll_count += 1
        events: List[ClaudeEvent] = []

        if output != self._last_output:
            delta = diff_output(self._last_output, output)
            if delta:
                self._last_activity = now
                self._silence_crossings = 0
                events.append(ClaudeEvent(type=EventType.OUTPUT, output_delta=delta, timestamp=now))
                events.append(ClaudeEvent(type=EventType.ACTIVITY, timestamp=now))

            new_state = classify(output, timestamp=now)
            previous_state = self._last_state

            if previous_state is not None and new_state.type != previous_state.type:
                logger.debug(
                    f"Pane {self._target_id}: {previous_state.type.value} -> {new_state.type.value} "
                    f"(confidence {new_state.confidence:.2f})"
                )
                events.append(
                    ClaudeEvent(type=EventType.STATE_CHANGE, state=new_state, timestamp=now)
                )

                narrow = _NARROW_EVENTS.get(new_state.type)
                if narrow is not None:
                    events.append(ClaudeEvent(type=narrow, state=new_state, timestamp=now))

                assessment = assess_completion(new_state, previous_state)
                if assessment.complete and assessment.confidence > COMPLETION_EVENT_MIN_CONFIDENCE:
                    logger.debug(f"Pane {self._target_id}: completion ({assessment.reason})")
                    events.append(
                        ClaudeEvent(type=EventType.COMPLETE, state=new_state, timestamp=now)
                    )

            self._last_state = new_state
            self._last_output = output
        else:
            silence_ms = now - self._last_activity
            crossings = int(silence_ms // self.options.silence_threshold_ms)
            if crossings > self._silence_crossings:
                self._silence_crossings = crossings
                events.append(
                    ClaudeEvent(type=EventType.SILENCE, silence_ms=silence_ms, timestamp=now)
                )

        self._publish()
        for event in events:
            self._emit(event, generation)

    def _capture(self) -> str:
        """Run one bounded capture on a throwaway daemon thread."""
        if self._capture_thread is not None and self._capture_thread.is_alive():
            raise CaptureError(f"Previous capture of {self._target_id} is still pending")

        result: Dict[str, object] = {}
        target_id = self._target_id
        lines = self.options.capture_lines

        def capture() -> None:
            try:
                result["output"] = self._client.capture_output(target_id, lines)
            except Exception as e:
                result["error"] = e

        self._capture_thread = threading.Thread(
            target=capture, name=f"cam-capture-{target_id}", daemon=True
        )
        self._capture_thread.start()
        self._capture_thread.join(self.options.capture_timeout_ms / 1000)

        if self._capture_thread.is_alive():
            raise CaptureError(
                f"Capture of {target_id} timed out after {self.options.capture_timeout_ms}ms"
            )
        if "error" in result:
            raise result["error"]
        return result.get("output") or ""

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    def _emit(self, event: ClaudeEvent, generation: int) -> None:
        with self._handlers_lock:
            handlers = list(self._handlers[event.type]) + list(self._any_handlers)

        for handler in handlers:
            if not self._is_current(generation):
                return
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler for {event.type.value} event failed: {e}")

    def _notify_poll_error(self, error: Exception, generation: int) -> None:
        with self._handlers_lock:
            handlers = list(self._error_handlers)

        for handler in handlers:
            if not self._is_current(generation):
                return
            try:
                handler(error)
            except Exception as e:
                logger.error(f"Poll error handler failed: {e}")

    def _build_snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            target_id=self._target_id,
            last_output=self._last_output,
            last_state=self._last_state,
            last_activity=self._last_activity,
            running=self._running,
            poll_count=self._poll_count,
            poll_errors=self._poll_errors,
        )

    def _publish(self) -> None:
        self._snapshot = self._build_snapshot()
