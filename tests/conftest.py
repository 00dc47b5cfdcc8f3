"""
Shared pytest fixtures for sparkwms-sync tests.

Provides:
- Queue file paths in a temp directory
- Sample commits (valid field mappings and Commit models)
- RecordingGate: in-memory SyncGate that records submissions and can be
  scripted to be offline or to fail a number of times
- Settings built from explicit values, isolated from SPARKWMS_* env vars
"""

import threading

import pytest
from unittest.mock import MagicMock


# =============================================================================
# Environment isolation
# =============================================================================

@pytest.fixture(autouse=True)
def clean_sparkwms_env(monkeypatch):
    """Remove SPARKWMS_* variables so tests never read the developer's env."""
    import os

    for key in list(os.environ):
        if key.startswith("SPARKWMS_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def isolate_respx_global_router():
    """Roll back routes added to the global respx router so they never leak between tests."""
    import respx

    respx.mock.snapshot()
    yield
    respx.mock.rollback()


# =============================================================================
# Queue Fixtures
# =============================================================================

@pytest.fixture
def queue_path(tmp_path):
    """Path of a queue file that does not exist yet."""
    return tmp_path / "commit_queue.json"


@pytest.fixture
def commit_fields():
    """
    Valid commit as a plain mapping (what the host passes in).

    Usage:
        def test_enqueue(queue_path, commit_fields):
            enqueue(queue_path, commit_fields)
    """
    return {
        'device_id': 'dev-1',
        'location': 'A1',
        'delta': 5,
        'item_id': 42,
    }


@pytest.fixture
def make_commit():
    """Factory for Commit models with overridable fields."""
    from commit_queue.models import Commit

    def _make(device_id='dev-1', location='A1', delta=5, item_id=42):
        return Commit(device_id=device_id, location=location, delta=delta, item_id=item_id)

    return _make


@pytest.fixture
def sample_commits(make_commit):
    """Three distinct commits in enqueue order."""
    return [
        make_commit(location='A1', delta=5),
        make_commit(location='B2', delta=-3),
        make_commit(location='A1', delta=0, item_id=7),
    ]


# =============================================================================
# Gate Fixtures
# =============================================================================

class RecordingGate:
    """
    Scriptable in-memory SyncGate.

    Attributes:
        online: probe() result
        fail_next: Number of upcoming submit() calls that raise ``error``
        error: Exception raised by failing submissions
        calls: Every commit passed to submit(), including failed ones
        delivered: Commits whose submit() returned normally
    """

    def __init__(self, online=True, fail_next=0, error=None):
        self.online = online
        self.fail_next = fail_next
        self.error = error
        self.probes = 0
        self.calls = []
        self.delivered = []

    def probe(self):
        self.probes += 1
        return self.online

    def submit(self, commit):
        from validation.errors import NetworkError

        self.calls.append(commit)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise self.error or NetworkError("connection reset")
        self.delivered.append(commit)

    def close(self):
        pass


class BlockingGate(RecordingGate):
    """
    RecordingGate whose submit() blocks until ``release`` is set, then fails.

    Tracks how many submissions are inside submit() at once and which
    threads made them.
    """

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()
        self.in_flight = 0
        self.max_in_flight = 0
        self.threads = set()
        self._lock = threading.Lock()

    def submit(self, commit):
        from validation.errors import NetworkError

        with self._lock:
            self.calls.append(commit)
            self.threads.add(threading.current_thread())
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.entered.set()
        try:
            self.release.wait(5.0)
            raise NetworkError("connection reset")
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def blocking_gate():
    """BlockingGate, released at teardown so no thread is left waiting."""
    gate = BlockingGate()
    yield gate
    gate.release.set()


@pytest.fixture
def recording_gate():
    """Online RecordingGate that accepts every submission."""
    return RecordingGate()


@pytest.fixture
def gate_factory():
    """Build RecordingGates with custom behavior."""
    return RecordingGate


@pytest.fixture
def mock_gate():
    """
    MagicMock gate: probe() True, submit() returns None.

    Usage:
        def test_offline(mock_gate):
            mock_gate.probe.return_value = False
    """
    gate = MagicMock()
    gate.probe.return_value = True
    gate.submit.return_value = None
    return gate


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def settings(queue_path):
    """SyncSettings with a remote configured and fast intervals."""
    from validation.config import SyncSettings

    return SyncSettings(
        queue_path=queue_path,
        connect_string="postgresql://user:pw@db.example.com/inventory",
        idle_interval=0.05,
        backoff_interval=0.1,
    )


@pytest.fixture
def manager_factory(queue_path):
    """Build SyncManagers on the temp queue with short waits."""
    from worker.manager import SyncManager

    def _make(gate, **kwargs):
        kwargs.setdefault('idle_interval', 0.05)
        kwargs.setdefault('backoff_interval', 0.1)
        return SyncManager(gate, queue_path, **kwargs)

    return _make
