from cli_agent_monitor.clients.base import CaptureClient, CaptureError

__all__ = ["CaptureClient", "CaptureError"]
