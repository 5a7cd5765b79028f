#!/usr/bin/env python3
"""
Watch an agent running in a tmux session and report when its task is done.

Prints every state change and attention-worthy event of the session, then
blocks on the completion method named by CAM_COMPLETION_METHOD (the default
hybrid strategy when unset) and exits once the agent looks finished.

Usage:
    SESSION=my-agent python watch_agent.py
"""

# ── 1. Imports ──────────────────────────────────────────────────────────────

import logging
import os
import sys

from cli_agent_monitor import EventMonitor, MonitorError, MonitorOptions
from cli_agent_monitor.detection import extract_permission_details
from cli_agent_monitor.models import ClaudeEvent, EventType
from cli_agent_monitor.services import get_method_from_env

# ── 2. Configuration ────────────────────────────────────────────────────────

SESSION = os.getenv("SESSION", "")
PANE = os.getenv("PANE") or None
TIMEOUT_MS = int(os.getenv("TIMEOUT_MS", "600000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ── 3. Event printing ───────────────────────────────────────────────────────


def log(msg: str) -> None:
    print(msg, flush=True)


def on_event(event: ClaudeEvent) -> None:
    if event.type == EventType.STATE_CHANGE:
        state = event.state
        detail = f" ({state.detail})" if state.detail else ""
        log(f"[state] {state.type.value}{detail} confidence={state.confidence:.2f}")
    elif event.type == EventType.PERMISSION:
        details = extract_permission_details(event.state.raw_window)
        target = (details.command or details.file) if details else None
        log(f"[permission] agent is waiting for approval: {target or event.state.detail}")
    elif event.type == EventType.QUESTION:
        options = ", ".join(event.state.options or [])
        log(f"[question] agent is asking: {options or event.state.detail}")
    elif event.type == EventType.SILENCE:
        log(f"[silence] no output for {event.silence_ms / 1000:.0f}s")


# ── 4. Main ─────────────────────────────────────────────────────────────────


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL, format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )
    if not SESSION and not PANE:
        log("Set SESSION (or PANE) to the tmux target running the agent")
        sys.exit(2)

    method = get_method_from_env()
    monitor = EventMonitor(SESSION, options=MonitorOptions.from_env(pane_id=PANE))
    monitor.on_any(on_event)
    monitor.on_poll_error(lambda e: log(f"[poll error] {e}"))

    try:
        monitor.start()
    except MonitorError as e:
        log(f"Cannot watch {SESSION}: {e}")
        sys.exit(1)

    log(f"Watching pane {monitor.target_id} with {method.name}")
    try:
        result = method.detect(monitor, timeout_ms=TIMEOUT_MS)
    finally:
        monitor.stop()

    log(f"complete={result.complete} reason={result.reason} after {result.latency_ms / 1000:.1f}s")
    sys.exit(0 if result.complete else 1)


if __name__ == "__main__":
    main()
