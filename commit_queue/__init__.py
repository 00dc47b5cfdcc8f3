"""
Durable commit queue.

Provides the file-backed FIFO of inventory commits awaiting delivery. Commits
survive process restarts, crashes and remote outages; the queue file is the
only durability mechanism.
"""

from commit_queue.models import Commit
from commit_queue.persistent import PersistentQueue
from commit_queue.dead_letter import DeadLetterQueue, dead_letter_path_for
from commit_queue.operations import (
    enqueue,
    queue_len,
    peek_head,
    ack_head,
    list_pending,
    queue_lock,
)

__all__ = [
    'Commit',
    'PersistentQueue',
    'DeadLetterQueue',
    'dead_letter_path_for',
    'enqueue',
    'queue_len',
    'peek_head',
    'ack_head',
    'list_pending',
    'queue_lock',
]
