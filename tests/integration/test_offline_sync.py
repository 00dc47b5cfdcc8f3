"""
Integration tests for offline-first delivery.

Producers enqueue while the remote is unreachable; commits survive
"restarts" (fresh loads and fresh managers) and are delivered in order,
each exactly once on the happy path, once the remote comes back.
"""

import pytest


@pytest.mark.integration
class TestOfflineThenOnline:
    """Commits recorded offline are delivered after reconnecting."""

    def test_two_adjustments_delivered_in_order(self, queue_path, gate_factory, restart_manager):
        """dev-1 records +5 and -2 at A1 offline; both arrive in order once online."""
        from commit_queue.operations import enqueue, queue_len

        gate = gate_factory(online=False)
        enqueue(queue_path, {'device_id': 'dev-1', 'location': 'A1', 'delta': 5, 'item_id': 42})
        enqueue(queue_path, {'device_id': 'dev-1', 'location': 'A1', 'delta': -2, 'item_id': 42})
        assert queue_len(queue_path) == 2

        manager = restart_manager(gate)
        assert manager.drain() == 0
        assert queue_len(queue_path) == 2

        gate.online = True
        assert manager.drain() == 2

        assert queue_len(queue_path) == 0
        assert [(c.delta, c.item_id) for c in gate.delivered] == [(5, 42), (-2, 42)]

    def test_queue_survives_restart(self, queue_path, gate_factory, restart_manager, sample_commits):
        """A new manager after a restart picks up where the file left off."""
        from commit_queue.operations import enqueue

        for commit in sample_commits:
            enqueue(queue_path, commit)

        first_gate = gate_factory()
        restart_manager(first_gate).drain(max_commits=1)

        second_gate = gate_factory()
        restart_manager(second_gate).drain()

        assert first_gate.delivered == sample_commits[:1]
        assert second_gate.delivered == sample_commits[1:]

    def test_crash_between_submit_and_ack_redelivers(self, queue_path, gate_factory, restart_manager, sample_commits, mocker):
        """If the process dies after submit but before removal, the commit is sent again."""
        from commit_queue.operations import enqueue, list_pending
        from validation.errors import PersistenceError
        from worker.manager import ManagerState

        for commit in sample_commits:
            enqueue(queue_path, commit)

        gate = gate_factory()
        manager = restart_manager(gate)
        mocker.patch('worker.manager.ack_head', side_effect=PersistenceError("power loss"))
        assert manager.step() is ManagerState.FAILED
        mocker.stopall()

        restart_manager(gate).drain()

        assert gate.delivered == [sample_commits[0]] + sample_commits
        assert list_pending(queue_path) == []

    def test_flaky_remote_delivers_everything_in_order(self, queue_path, gate_factory, restart_manager, make_commit):
        """Intermittent failures never reorder or drop commits."""
        from commit_queue.operations import enqueue, queue_len
        from worker.manager import ManagerState

        commits = [make_commit(delta=i) for i in range(5)]
        for commit in commits:
            enqueue(queue_path, commit)

        gate = gate_factory()
        manager = restart_manager(gate)
        for _ in range(20):
            if queue_len(queue_path) == 0:
                break
            gate.fail_next = 1 if len(gate.calls) % 2 == 0 else 0
            manager.step()

        assert gate.delivered == commits

    def test_enqueue_while_manager_running(self, queue_path, gate_factory, restart_manager, make_commit):
        """Producers and the background manager share only the queue file."""
        import time
        from commit_queue.operations import enqueue, queue_len

        gate = gate_factory()
        manager = restart_manager(gate)
        manager.start()
        try:
            for i in range(10):
                enqueue(queue_path, make_commit(delta=i))
                manager.wake()
            deadline = time.monotonic() + 5.0
            while queue_len(queue_path) and time.monotonic() < deadline:
                time.sleep(0.02)
        finally:
            manager.stop(timeout=2.0)

        assert [c.delta for c in gate.delivered] == list(range(10))
