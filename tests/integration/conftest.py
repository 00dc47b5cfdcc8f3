"""
Integration test fixtures for sparkwms-sync.

These fixtures compose the unit test fixtures from tests/conftest.py into
complete producer -> queue file -> manager -> gate scenarios.

All integration tests should be marked with @pytest.mark.integration
"""

import pytest


# Integration fixtures inherit from tests/conftest.py automatically via pytest


@pytest.fixture
def restart_manager(queue_path):
    """
    Build a fresh SyncManager on the same queue file, as after a process
    restart: nothing is shared with earlier managers except the file.
    """
    from worker.manager import SyncManager

    def _restart(gate, **kwargs):
        kwargs.setdefault('idle_interval', 0.05)
        kwargs.setdefault('backoff_interval', 0.1)
        return SyncManager(gate, queue_path, **kwargs)

    return _restart
