"""Completion detection result and metrics models."""

from typing import Optional

from pydantic import BaseModel

from cli_agent_monitor.models.state import ClassifiedState


class CompletionResult(BaseModel):
    """Outcome of one completion detection attempt."""

    complete: bool
    state: Optional[ClassifiedState] = None
    reason: str
    latency_ms: float
    method_name: str


class MethodMetrics(BaseModel):
    """Running effectiveness metrics of a completion strategy.

    Counters only grow; a fresh strategy instance starts a fresh set.
    """

    name: str
    total_runs: int = 0
    avg_latency_ms: float = 0.0
    min_latency_ms: float = float("inf")
    max_latency_ms: float = 0.0
    false_positives: int = 0
    false_negatives: int = 0
    success_rate: float = 1.0

    def record(self, latency_ms: float, correct: bool, is_false_positive: bool) -> None:
        """Fold one graded detection into the running totals."""
        self.total_runs += 1
        self.avg_latency_ms = (
            self.avg_latency_ms * (self.total_runs - 1) + latency_ms
        ) / self.total_runs
        self.min_latency_ms = min(self.min_latency_ms, latency_ms)
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)

        if not correct:
            if is_false_positive:
                self.false_positives += 1
            else:
                self.false_negatives += 1

        self.success_rate = (
            self.total_runs - self.false_positives - self.false_negatives
        ) / self.total_runs
