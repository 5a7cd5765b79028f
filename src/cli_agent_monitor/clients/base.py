"""Base class for terminal capture clients."""

from abc import ABC, abstractmethod


class CaptureError(Exception):
    """Exception raised when a terminal capture fails."""

    pass


class CaptureClient(ABC):
    """Read access to the on-screen text of an agent's terminal.

    The monitor only ever reads through this interface, so any multiplexer
    (or a recorded transcript in tests) can stand behind it.
    """

    @abstractmethod
    def resolve_target(self, session_name: str) -> str:
        """Find the capture target (pane id) for a session.

        Raises:
            ValueError: If the session has no capturable pane
        """
        pass

    @abstractmethod
    def capture_output(self, target_id: str, lines: int) -> str:
        """Return the last ``lines`` lines of the target's buffer, ANSI codes included.

        Raises:
            CaptureError: If the target cannot be read
        """
        pass

    @abstractmethod
    def wait_for_signal(self, channel: str, timeout_ms: float) -> bool:
        """Block until a completion signal fires on ``channel``.

        Returns:
            True if the signal arrived, False if the timeout elapsed first
        """
        pass
