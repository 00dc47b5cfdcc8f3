"""
Dead letter queue for commits the remote side will not accept.

Only used when the sync manager is configured with max_attempts; by
default every commit is retried forever. Entries live in a small SQLite
database next to the queue file so operators can inspect and requeue them.
"""

import sqlite3
import time
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, Optional

from commit_queue.models import Commit
from commit_queue.persistent import PathArg
from shared.log import create_logger
from validation.errors import PersistenceError, to_sync_error

log_trace, log_debug, log_info, log_warn, log_error = create_logger("DeadLetter")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS dead_letters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id TEXT NOT NULL,
    location TEXT NOT NULL,
    delta INTEGER NOT NULL,
    item_id INTEGER NOT NULL,
    error_code INTEGER NOT NULL,
    error_type TEXT NOT NULL,
    error_message TEXT,
    attempts INTEGER NOT NULL,
    failed_at REAL NOT NULL
)
"""


def dead_letter_path_for(queue_path: PathArg) -> Path:
    """Default dead letter database beside a queue file."""
    queue_path = Path(queue_path)
    return queue_path.with_name(queue_path.name + '.dead.db')


class DeadLetterQueue:
    """
    SQLite-backed store of undeliverable commits.

    Every method raises PersistenceError if the database cannot be used.

    Args:
        db_path: Database file (created on first use)
    """

    def __init__(self, db_path: PathArg):
        self.db_path = Path(db_path)
        with self._session("open") as conn:
            conn.execute(_SCHEMA)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_dead_letters_failed_at "
                "ON dead_letters (failed_at)"
            )
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self, action: str) -> Iterator[sqlite3.Connection]:
        """Connection that maps sqlite3 errors to PersistenceError."""
        try:
            with closing(self._connect()) as conn:
                yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot {action} dead letter store {self.db_path}: {e}") from e

    def add(self, commit: Commit, error: BaseException, attempts: int) -> int:
        """
        Record a commit that exhausted its delivery attempts.

        Args:
            commit: The undeliverable commit
            error: Last delivery error
            attempts: Number of failed submissions

        Returns:
            Row id of the dead letter entry
        """
        classified = to_sync_error(error)
        with self._session("write") as conn:
            cursor = conn.execute(
                "INSERT INTO dead_letters (device_id, location, delta, item_id, "
                "error_code, error_type, error_message, attempts, failed_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    commit.device_id,
                    commit.location,
                    commit.delta,
                    commit.item_id,
                    int(classified.code),
                    type(error).__name__,
                    str(error),
                    attempts,
                    time.time(),
                ),
            )
            conn.commit()
            entry_id = cursor.lastrowid

        log_warn(
            f"Dead-lettered {commit.describe()} after {attempts} attempts: "
            f"{type(error).__name__}: {error}"
        )
        return entry_id

    def get_count(self) -> int:
        """Number of dead letter entries."""
        with self._session("read") as conn:
            return conn.execute("SELECT COUNT(*) FROM dead_letters").fetchone()[0]

    def get_recent(self, limit: int = 10) -> list:
        """Most recent entries first, as dicts with a nested ``commit``."""
        with self._session("read") as conn:
            rows = conn.execute(
                "SELECT * FROM dead_letters ORDER BY failed_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_error_summary(self) -> dict:
        """Count of entries per error type."""
        with self._session("read") as conn:
            rows = conn.execute(
                "SELECT error_type, COUNT(*) FROM dead_letters "
                "GROUP BY error_type ORDER BY COUNT(*) DESC"
            ).fetchall()
        return {row[0]: row[1] for row in rows}

    def delete_older_than(self, days: int) -> int:
        """Remove entries older than ``days``. Returns number removed."""
        cutoff = time.time() - days * 86400
        with self._session("prune") as conn:
            cursor = conn.execute("DELETE FROM dead_letters WHERE failed_at < ?", (cutoff,))
            conn.commit()
            removed = cursor.rowcount
        if removed:
            log_info(f"Removed {removed} dead letters older than {days} days")
        return removed

    def requeue(self, queue_path: PathArg, entry_ids: Optional[list] = None) -> int:
        """
        Move dead letters back onto the tail of the commit queue.

        Each entry is enqueued before it is deleted, so a crash in between
        leaves a duplicate rather than a lost commit.

        Args:
            queue_path: Commit queue file
            entry_ids: Entries to requeue (default: all, oldest first)

        Returns:
            Number of commits requeued
        """
        from commit_queue.operations import enqueue

        requeued = 0
        with self._session("requeue from") as conn:
            if entry_ids is None:
                rows = conn.execute("SELECT * FROM dead_letters ORDER BY id").fetchall()
            else:
                placeholders = ",".join("?" for _ in entry_ids)
                rows = conn.execute(
                    f"SELECT * FROM dead_letters WHERE id IN ({placeholders}) ORDER BY id",
                    list(entry_ids),
                ).fetchall()

            for row in rows:
                entry = self._row_to_entry(row)
                enqueue(queue_path, entry['commit'])
                conn.execute("DELETE FROM dead_letters WHERE id = ?", (entry['id'],))
                conn.commit()
                requeued += 1

        if requeued:
            log_info(f"Requeued {requeued} dead letters onto {queue_path}")
        return requeued

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> dict:
        return {
            'id': row['id'],
            'commit': Commit(
                device_id=row['device_id'],
                location=row['location'],
                delta=row['delta'],
                item_id=row['item_id'],
            ),
            'error_code': row['error_code'],
            'error_type': row['error_type'],
            'error_message': row['error_message'],
            'attempts': row['attempts'],
            'failed_at': row['failed_at'],
        }
