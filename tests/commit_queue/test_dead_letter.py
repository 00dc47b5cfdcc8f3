"""
Tests for commit_queue/dead_letter.py - DeadLetterQueue.

Uses a real SQLite database in a temp directory.
"""

import sqlite3

import pytest


@pytest.fixture
def dlq(tmp_path):
    """Fresh dead letter queue."""
    from commit_queue.dead_letter import DeadLetterQueue

    return DeadLetterQueue(tmp_path / "dead.db")


class TestDeadLetterPath:
    """Tests for dead_letter_path_for()."""

    def test_sibling_of_queue_file(self, tmp_path):
        """Default store sits beside the queue file."""
        from commit_queue.dead_letter import dead_letter_path_for

        path = dead_letter_path_for(tmp_path / "commit_queue.json")

        assert path == tmp_path / "commit_queue.json.dead.db"


class TestDeadLetterQueue:
    """Tests for adding and reading dead letters."""

    def test_init_creates_schema(self, tmp_path):
        """Creating the queue creates the database and table."""
        from commit_queue.dead_letter import DeadLetterQueue

        db_path = tmp_path / "dead.db"
        DeadLetterQueue(db_path)

        conn = sqlite3.connect(str(db_path))
        tables = [r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")]
        conn.close()
        assert 'dead_letters' in tables

    def test_empty_count(self, dlq):
        """New store is empty."""
        assert dlq.get_count() == 0
        assert dlq.get_recent() == []

    def test_add_records_commit_and_error(self, dlq, make_commit):
        """add() stores the commit, the classified error and attempts."""
        from validation.errors import ErrorCode, ServerRejectedError

        commit = make_commit()
        entry_id = dlq.add(commit, ServerRejectedError(400, "bad location"), attempts=3)

        assert entry_id == 1
        assert dlq.get_count() == 1
        entry = dlq.get_recent()[0]
        assert entry['commit'] == commit
        assert entry['error_code'] == int(ErrorCode.SERVER)
        assert entry['error_type'] == 'ServerRejectedError'
        assert 'bad location' in entry['error_message']
        assert entry['attempts'] == 3

    def test_add_unclassified_error(self, dlq, make_commit):
        """Plain exceptions are stored with their classified code."""
        from validation.errors import ErrorCode

        dlq.add(make_commit(), RuntimeError("boom"), attempts=1)

        assert dlq.get_recent()[0]['error_code'] == int(ErrorCode.INTERNAL)

    def test_get_recent_newest_first(self, dlq, make_commit):
        """Most recently added entries come first."""
        dlq.add(make_commit(delta=1), RuntimeError("a"), attempts=1)
        dlq.add(make_commit(delta=2), RuntimeError("b"), attempts=1)

        recent = dlq.get_recent(limit=1)

        assert len(recent) == 1
        assert recent[0]['commit'].delta == 2

    def test_error_summary(self, dlq, make_commit):
        """Entries are counted per error type."""
        from validation.errors import NetworkError

        dlq.add(make_commit(), NetworkError("x"), attempts=1)
        dlq.add(make_commit(), NetworkError("y"), attempts=1)
        dlq.add(make_commit(), RuntimeError("z"), attempts=1)

        assert dlq.get_error_summary() == {'NetworkError': 2, 'RuntimeError': 1}

    def test_delete_older_than(self, dlq, make_commit):
        """Only entries older than the cutoff are removed."""
        dlq.add(make_commit(delta=1), RuntimeError("old"), attempts=1)
        dlq.add(make_commit(delta=2), RuntimeError("new"), attempts=1)
        conn = sqlite3.connect(str(dlq.db_path))
        conn.execute("UPDATE dead_letters SET failed_at = failed_at - 40 * 86400 WHERE id = 1")
        conn.commit()
        conn.close()

        removed = dlq.delete_older_than(30)

        assert removed == 1
        assert [e['commit'].delta for e in dlq.get_recent()] == [2]

    def test_unopenable_store_raises_persistence_error(self, tmp_path):
        """A store path that cannot be opened raises PersistenceError."""
        from commit_queue.dead_letter import DeadLetterQueue
        from validation.errors import PersistenceError

        with pytest.raises(PersistenceError):
            DeadLetterQueue(tmp_path / "missing" / "dead.db")

    @pytest.mark.parametrize("call", [
        lambda dlq, queue_path: dlq.get_count(),
        lambda dlq, queue_path: dlq.get_recent(),
        lambda dlq, queue_path: dlq.get_error_summary(),
        lambda dlq, queue_path: dlq.delete_older_than(30),
        lambda dlq, queue_path: dlq.requeue(queue_path),
    ], ids=['get_count', 'get_recent', 'get_error_summary', 'delete_older_than', 'requeue'])
    def test_damaged_store_raises_persistence_error(self, dlq, queue_path, call):
        """A store file damaged after opening surfaces as PersistenceError on every read or write."""
        from validation.errors import ErrorCode, PersistenceError

        dlq.db_path.write_bytes(b"this is not a sqlite database " * 64)

        with pytest.raises(PersistenceError) as exc_info:
            call(dlq, queue_path)

        assert exc_info.value.code == ErrorCode.PERSISTENCE
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    def test_damaged_store_add_raises_persistence_error(self, dlq, make_commit):
        """add() on a damaged store raises PersistenceError."""
        from validation.errors import PersistenceError

        dlq.db_path.write_bytes(b"this is not a sqlite database " * 64)

        with pytest.raises(PersistenceError):
            dlq.add(make_commit(), RuntimeError("x"), attempts=1)


class TestRequeue:
    """Tests for requeue() - moving dead letters back onto the queue."""

    def test_requeue_all(self, dlq, queue_path, sample_commits):
        """All entries are appended to the queue in id order and removed."""
        from commit_queue.operations import list_pending

        for commit in sample_commits:
            dlq.add(commit, RuntimeError("x"), attempts=5)

        requeued = dlq.requeue(queue_path)

        assert requeued == 3
        assert list_pending(queue_path) == sample_commits
        assert dlq.get_count() == 0

    def test_requeue_selected(self, dlq, queue_path, sample_commits):
        """Only the listed entries are requeued."""
        from commit_queue.operations import list_pending

        ids = [dlq.add(commit, RuntimeError("x"), attempts=5) for commit in sample_commits]

        requeued = dlq.requeue(queue_path, entry_ids=[ids[1]])

        assert requeued == 1
        assert list_pending(queue_path) == [sample_commits[1]]
        assert dlq.get_count() == 2

    def test_requeue_appends_after_pending(self, dlq, queue_path, make_commit):
        """Requeued commits go behind commits already waiting."""
        from commit_queue.operations import enqueue, list_pending

        waiting = make_commit(location='W1')
        enqueue(queue_path, waiting)
        dead = make_commit(location='D1')
        dlq.add(dead, RuntimeError("x"), attempts=5)

        dlq.requeue(queue_path)

        assert list_pending(queue_path) == [waiting, dead]
