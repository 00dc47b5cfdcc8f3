"""
Durable FIFO of pending commits backed by a single JSON file.

File layout:
    {"version": 1, "items": [{"device_id": ..., "location": ..., "delta": ..., "item_id": ...}]}

Files written before versioning ({"items": [...]}) are read as version 1.
Every mutation rewrites the whole file through shared.atomic, so a crash
mid-save leaves either the old or the new queue on disk, never a mix.
"""

import json
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import pydantic

from commit_queue.models import Commit
from shared.atomic import atomic_write_text
from shared.log import create_logger
from validation.config import CorruptQueuePolicy
from validation.errors import QueueCorruptError, PersistenceError

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Queue")

FORMAT_VERSION = 1

PathArg = Union[str, Path]


def _parse_queue_document(raw: str) -> list:
    """
    Parse queue file text into a list of Commits.

    Raises:
        ValueError: Not JSON, wrong shape or unknown version
        pydantic.ValidationError: An item is not a valid Commit
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"queue document must be an object, got {type(data).__name__}")

    version = data.get('version', FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ValueError(f"unsupported queue format version {version!r}")

    items = data.get('items')
    if not isinstance(items, list):
        raise ValueError("queue document has no 'items' list")

    return [Commit.model_validate(item) for item in items]


class PersistentQueue:
    """
    In-memory view of the queue file.

    The file is the source of truth: callers load, mutate and save within
    one short cycle (see commit_queue.operations). If a save fails the
    in-memory queue is ahead of the file and ``dirty`` stays True until a
    later save succeeds.

    Usage:
        queue = PersistentQueue.load(path)
        queue.append(commit, path)
        head = queue.peek()
        queue.pop_front(path)
    """

    def __init__(self, items: Optional[Iterable[Commit]] = None):
        self.items: deque = deque(items or ())
        self.dirty = False

    @classmethod
    def load(
        cls,
        path: PathArg,
        on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
    ) -> 'PersistentQueue':
        """
        Load the queue from ``path``.

        Args:
            path: Queue file
            on_corrupt: EMPTY returns an empty queue for an unparsable file
                        (logged as a warning); RAISE raises QueueCorruptError

        Returns:
            PersistentQueue (empty if the file does not exist)

        Raises:
            PersistenceError: File exists but cannot be read
            QueueCorruptError: File unparsable and policy is RAISE
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            log_trace(f"No queue file at {path}, starting empty")
            return cls()
        except UnicodeDecodeError as e:
            return cls._corrupt(path, e, on_corrupt)
        except OSError as e:
            raise PersistenceError(f"cannot read queue file {path}: {e}") from e

        try:
            items = _parse_queue_document(raw)
        except (ValueError, pydantic.ValidationError) as e:
            return cls._corrupt(path, e, on_corrupt)

        log_trace(f"Loaded {len(items)} commits from {path}")
        return cls(items)

    @classmethod
    def _corrupt(cls, path: Path, error: Exception, on_corrupt: CorruptQueuePolicy) -> 'PersistentQueue':
        if CorruptQueuePolicy(on_corrupt) is CorruptQueuePolicy.RAISE:
            raise QueueCorruptError(f"queue file {path} is corrupt: {error}") from error
        log_warn(
            f"Queue file {path} is corrupt, treating as empty "
            f"(pending commits in it will NOT be delivered): {error}"
        )
        return cls()

    def to_document(self) -> str:
        """Serialize the queue to the file format."""
        return json.dumps(
            {'version': FORMAT_VERSION, 'items': [c.to_record() for c in self.items]},
            indent=2,
        )

    def save(self, path: PathArg) -> None:
        """
        Persist the full queue atomically.

        Raises:
            PersistenceError: Write or rename failed; ``path`` still
                holds its previous complete content
        """
        try:
            atomic_write_text(path, self.to_document())
        except OSError as e:
            self.dirty = True
            raise PersistenceError(f"cannot save queue file {path}: {e}") from e
        self.dirty = False
        log_trace(f"Saved {len(self.items)} commits to {path}")

    def append(self, commit: Commit, path: PathArg) -> None:
        """Add ``commit`` at the tail and save. Durable only if this returns."""
        self.items.append(commit)
        self.save(path)

    def pop_front(self, path: PathArg) -> Optional[Commit]:
        """
        Remove and return the head commit, then save.

        An empty queue is a no-op: returns None and does not touch the file.
        """
        if not self.items:
            return None
        commit = self.items.popleft()
        self.save(path)
        return commit

    def peek(self) -> Optional[Commit]:
        """Head commit without removing it."""
        return self.items[0] if self.items else None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Commit]:
        return iter(self.items)
