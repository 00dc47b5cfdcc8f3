"""
Queue operations for the producer write path and the sync manager.

Stateless round trips through the queue file: each call loads, mutates and
saves under a per-path lock so producers and the manager in the same
process never lose each other's updates. There is no shared in-memory
queue; the file is the only shared state.
"""

import os
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Union

from commit_queue.models import Commit
from commit_queue.persistent import PathArg, PersistentQueue
from shared.log import create_logger
from validation.config import CorruptQueuePolicy

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Queue")

_locks: dict = {}
_locks_guard = threading.Lock()


def _lock_for(path: PathArg) -> threading.Lock:
    key = os.path.abspath(os.fspath(path))
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


@contextmanager
def queue_lock(path: PathArg) -> Iterator[None]:
    """
    Serialize load-mutate-save cycles on ``path`` within this process.

    Does not protect against other processes writing the same file; a
    queue file is owned by one process at a time.
    """
    lock = _lock_for(path)
    with lock:
        yield


def enqueue(
    path: PathArg,
    commit: Union[Commit, Mapping[str, Any]],
    on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
) -> Commit:
    """
    Append a commit to the queue file and persist it.

    Args:
        path: Queue file
        commit: Commit or mapping of commit fields (validated first)
        on_corrupt: Policy for an unparsable existing file

    Returns:
        The validated Commit, durable on disk

    Raises:
        InputValidationError: Invalid fields (nothing is written)
        PersistenceError: Queue file could not be read or saved

    Example:
        >>> enqueue('/data/commit_queue.json',
        ...         {'device_id': 'dev-1', 'location': 'A1', 'delta': -3, 'item_id': 42})
        Commit(device_id='dev-1', location='A1', delta=-3, item_id=42)
    """
    commit = Commit.from_fields(commit)
    with queue_lock(path):
        queue = PersistentQueue.load(path, on_corrupt=on_corrupt)
        queue.append(commit, path)
        backlog = len(queue)
    log_trace(f"Enqueued {commit.describe()} (backlog {backlog})")
    return commit


def queue_len(
    path: PathArg,
    on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
) -> int:
    """Number of commits currently persisted in the queue file."""
    with queue_lock(path):
        return len(PersistentQueue.load(path, on_corrupt=on_corrupt))


def peek_head(
    path: PathArg,
    on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
) -> Optional[Commit]:
    """Oldest pending commit, or None if the queue is empty."""
    with queue_lock(path):
        return PersistentQueue.load(path, on_corrupt=on_corrupt).peek()


def ack_head(
    path: PathArg,
    delivered: Commit,
    on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
) -> bool:
    """
    Remove the head commit after its delivery was confirmed.

    The head is only removed if it still equals ``delivered``. If the file
    was changed underneath us (head removed or replaced externally) the
    queue is left as is, so nothing undelivered is ever dropped.

    Returns:
        True if the head was removed

    Raises:
        PersistenceError: Queue file could not be read or saved
    """
    with queue_lock(path):
        queue = PersistentQueue.load(path, on_corrupt=on_corrupt)
        head = queue.peek()
        if head is None or head != delivered:
            log_warn(
                f"Queue head changed during delivery of {delivered.describe()}; "
                f"leaving queue untouched"
            )
            return False
        queue.pop_front(path)
    log_trace(f"Acknowledged {delivered.describe()}")
    return True


def list_pending(
    path: PathArg,
    on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
) -> list:
    """All pending commits in delivery order."""
    with queue_lock(path):
        return list(PersistentQueue.load(path, on_corrupt=on_corrupt))

