from cli_agent_monitor.utils.terminal import (
    wait_for_completion,
    wait_for_silence,
    wait_for_state,
)

__all__ = ["wait_for_completion", "wait_for_silence", "wait_for_state"]
