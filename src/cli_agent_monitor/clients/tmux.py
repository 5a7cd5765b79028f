"""Tmux capture client built on libtmux."""

import logging
import subprocess
from typing import List, Optional

import libtmux

from cli_agent_monitor.clients.base import CaptureClient, CaptureError
from cli_agent_monitor.constants import TMUX_PANE_ID_PREFIX

logger = logging.getLogger(__name__)


def normalize_pane_id(pane_id: str) -> str:
    """Return a tmux pane id with its leading percent sign ("3" -> "%3")."""
    return pane_id if pane_id.startswith(TMUX_PANE_ID_PREFIX) else f"{TMUX_PANE_ID_PREFIX}{pane_id}"


class TmuxClient(CaptureClient):
    """Captures pane text and waits on ``tmux wait-for`` channels."""

    def __init__(self, server: Optional[libtmux.Server] = None):
        self._server = server

    @property
    def server(self) -> libtmux.Server:
        if self._server is None:
            self._server = libtmux.Server()
        return self._server

    def _tmux_command(self) -> List[str]:
        command = ["tmux"]
        if self.server.socket_name:
            command.extend(["-L", self.server.socket_name])
        elif self.server.socket_path:
            command.extend(["-S", str(self.server.socket_path)])
        return command

    def resolve_target(self, session_name: str) -> str:
        """Return the id of the first pane of the session's first window."""
        session = self.server.sessions.get(session_name=session_name, default=None)
        if session is None:
            raise ValueError(f"Session '{session_name}' not found")

        windows = session.windows
        if not windows:
            raise ValueError(f"No windows found in session '{session_name}'")

        panes = windows[0].panes
        if not panes:
            raise ValueError(f"No panes found in session '{session_name}'")

        return panes[0].pane_id

    def capture_output(self, target_id: str, lines: int) -> str:
        pane_id = normalize_pane_id(target_id)
        pane = self.server.panes.get(pane_id=pane_id, default=None)
        if pane is None:
            raise CaptureError(f"Pane '{pane_id}' not found")

        # -e keeps escape sequences, -J joins wrapped lines
        result = pane.cmd("capture-pane", "-p", "-e", "-J", "-S", f"-{lines}")
        if result.stderr:
            raise CaptureError(f"capture-pane failed for {pane_id}: {' '.join(result.stderr)}")

        output_lines = list(result.stdout)
        # Unused rows below the prompt come back as blank lines
        while output_lines and not output_lines[-1].strip():
            output_lines.pop()

        return "\n".join(output_lines[-lines:])

    def wait_for_signal(self, channel: str, timeout_ms: float) -> bool:
        command = self._tmux_command() + ["wait-for", channel]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=max(timeout_ms, 0) / 1000,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"No signal on channel '{channel}' within {timeout_ms}ms")
            return False

        if result.returncode != 0:
            logger.warning(f"tmux wait-for {channel} failed: {result.stderr.strip()}")
            return False
        return True

    def send_signal(self, channel: str) -> None:
        """Wake every client waiting on ``channel``."""
        self.server.cmd("wait-for", "-S", channel)


# Module-level singleton
tmux_client = TmuxClient()
