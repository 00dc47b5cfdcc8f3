"""
Background delivery of queued commits.

Exports SyncManager, the sequential loop that drains the commit queue
through a SyncGate with fixed backoff and at-least-once delivery.
"""

from worker.manager import SyncManager, ManagerState
from worker.stats import DeliveryStats

__all__ = ['SyncManager', 'ManagerState', 'DeliveryStats']
