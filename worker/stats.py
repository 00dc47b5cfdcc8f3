"""
Delivery statistics for the sync manager.

In-memory counters for diagnostics and the periodic summary log line.
Reset when the process restarts.
"""

import time
from dataclasses import dataclass, field, asdict
from typing import Optional


@dataclass
class DeliveryStats:
    """Counters describing the manager's delivery history."""

    probes_failed: int = 0
    attempts: int = 0
    delivered: int = 0
    failed: int = 0
    dead_lettered: int = 0
    ack_mismatches: int = 0
    total_submit_time: float = 0.0
    errors_by_type: dict = field(default_factory=dict)
    last_error: Optional[str] = None
    last_delivered_at: Optional[float] = None
    session_start: float = field(default_factory=time.time)

    def record_probe_failure(self) -> None:
        self.probes_failed += 1

    def record_delivery(self, submit_time: float) -> None:
        """A submission was accepted by the remote side."""
        self.attempts += 1
        self.delivered += 1
        self.total_submit_time += submit_time
        self.last_delivered_at = time.time()

    def record_failure(self, error: BaseException, submit_time: float = 0.0) -> None:
        """A submission failed; the same commit will be retried."""
        self.attempts += 1
        self.failed += 1
        self.total_submit_time += submit_time
        error_type = type(error).__name__
        self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1
        self.last_error = f"{error_type}: {error}"

    def record_dead_letter(self) -> None:
        self.dead_lettered += 1

    def record_ack_mismatch(self) -> None:
        """Delivered, but the queue head had changed so nothing was removed."""
        self.ack_mismatches += 1

    @property
    def success_rate(self) -> float:
        """Delivered / attempts as a percentage (0.0 when nothing attempted)."""
        if self.attempts == 0:
            return 0.0
        return (self.delivered / self.attempts) * 100.0

    @property
    def avg_submit_time(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.total_submit_time / self.attempts

    def to_dict(self) -> dict:
        """JSON-serializable snapshot including derived values."""
        data = asdict(self)
        data['errors_by_type'] = dict(self.errors_by_type)
        data['success_rate'] = round(self.success_rate, 1)
        data['avg_submit_time'] = self.avg_submit_time
        return data
