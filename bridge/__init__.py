"""
Host application bridge.

Thin call surface for the app embedding sparkwms-sync. Nothing raises
across it: every call returns a CallResult with a stable error code.
"""

from bridge.result import CallResult
from bridge.handle import ApiHandle
from bridge.calls import (
    open_handle,
    close_handle,
    send_commit,
    check,
    export_overview,
    export_locations,
    export_items,
    queue_enqueue,
    queue_len,
    start_commit_manager,
    stop_commit_manager,
)

__all__ = [
    'CallResult',
    'ApiHandle',
    'open_handle',
    'close_handle',
    'send_commit',
    'check',
    'export_overview',
    'export_locations',
    'export_items',
    'queue_enqueue',
    'queue_len',
    'start_commit_manager',
    'stop_commit_manager',
]
