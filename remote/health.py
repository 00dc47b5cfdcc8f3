"""
Liveness check for the sync gate.

Wraps SyncGate.probe() so the manager loop gets a plain answer even when a
gate implementation raises instead of returning False, and records probe
latency for the logs.

This module provides a health check function used by:
- Manager loop (gating delivery attempts)
- Host bridge and CLI "check" commands
"""

import time
from typing import Tuple, TYPE_CHECKING

from shared.log import create_logger

if TYPE_CHECKING:
    from remote.gate import SyncGate

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Health")

__all__ = ["check_gate_health"]


def check_gate_health(gate: "SyncGate") -> Tuple[bool, float]:
    """
    Probe the remote side through the gate.

    Args:
        gate: SyncGate whose probe() applies its own bounded timeout

    Returns:
        Tuple of (is_healthy, latency_ms):
        - (True, latency_ms) if the probe succeeded
        - (False, 0.0) if the probe returned False or raised

    Examples:
        >>> from remote.gate import SqlHttpGate
        >>> gate = SqlHttpGate.connect("postgresql://user:pw@host/db")
        >>> healthy, latency = check_gate_health(gate)
    """
    try:
        start = time.perf_counter()
        healthy = bool(gate.probe())
        end = time.perf_counter()
    except Exception as exc:
        # Failures are routine while offline; caller decides the log level
        log_debug(f"Health check failed: {type(exc).__name__}: {exc}")
        return (False, 0.0)

    if not healthy:
        log_debug("Health check failed: remote unreachable")
        return (False, 0.0)

    latency_ms = (end - start) * 1000.0
    log_trace(f"Health check passed (latency: {latency_ms:.1f}ms)")
    return (True, latency_ms)
