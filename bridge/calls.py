"""
Call surface exposed to the host application.

Every function returns a CallResult and never raises: failures are
reported as a stable error code plus message. Queue paths are always
explicit; there is no default queue file.

    open_handle / close_handle        remote handle lifecycle (paired 1:1)
    send_commit                       direct delivery, bypassing the queue
    check                             remote liveness
    export_overview/locations/items   CSV reports
    queue_enqueue / queue_len         durable queue write path
    start_commit_manager              background delivery loop
    stop_commit_manager               stop a loop started here
"""

import functools
import os
import threading
from typing import Any, Mapping, Optional

from bridge.handle import ApiHandle
from bridge.result import CallResult
from commit_queue import operations
from shared.log import create_logger
from validation.errors import InputValidationError

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Bridge")

# Managers started through this module, keyed by absolute queue path
_managers: dict = {}
_managers_lock = threading.Lock()


def _boundary(context: str, failure_value: Any = None):
    """Convert any exception raised by the wrapped call into a CallResult."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> CallResult:
            try:
                return CallResult.success(func(*args, **kwargs))
            except Exception as exc:
                result = CallResult.from_exception(exc, value=failure_value)
                log_debug(f"{context} failed with code {int(result.code)}: {result.message}")
                return result
        return wrapper
    return decorator


def _require_handle(handle: Optional[ApiHandle]) -> ApiHandle:
    if handle is None:
        raise InputValidationError("handle was null")
    if not isinstance(handle, ApiHandle):
        raise InputValidationError(f"expected ApiHandle, got {type(handle).__name__}")
    return handle


def _require_path(path, field: str = "queue path") -> str:
    if path is None or not str(path).strip():
        raise InputValidationError(f"{field} is required")
    return os.fspath(path)


def _path_key(path) -> str:
    return os.path.abspath(os.fspath(path))


@_boundary("open_handle")
def open_handle(
    connect_string: str,
    endpoint: Optional[str] = None,
    probe_timeout: float = 5.0,
    submit_timeout: float = 30.0,
) -> ApiHandle:
    """Create a handle bound to a remote endpoint (value: ApiHandle)."""
    return ApiHandle.open(
        connect_string,
        endpoint=endpoint,
        probe_timeout=probe_timeout,
        submit_timeout=submit_timeout,
    )


@_boundary("close_handle")
def close_handle(handle: ApiHandle) -> None:
    """Release a handle created by open_handle."""
    _require_handle(handle).close()


@_boundary("send_commit", failure_value=False)
def send_commit(handle: ApiHandle, commit: Mapping[str, Any]) -> bool:
    """Send a commit immediately without touching the queue (value: True)."""
    _require_handle(handle).send_commit(commit)
    return True


@_boundary("check", failure_value=False)
def check(handle: ApiHandle) -> bool:
    """Probe the remote side (value: reachable)."""
    return _require_handle(handle).check()


@_boundary("export_overview", failure_value=-1)
def export_overview(handle: ApiHandle, path) -> int:
    """Export the overview view to CSV (value: row count)."""
    return _require_handle(handle).export('overview', _require_path(path, "export path"))


@_boundary("export_locations", failure_value=-1)
def export_locations(handle: ApiHandle, path) -> int:
    """Export the locations view to CSV (value: row count)."""
    return _require_handle(handle).export('locations', _require_path(path, "export path"))


@_boundary("export_items", failure_value=-1)
def export_items(handle: ApiHandle, path) -> int:
    """Export the items table to CSV (value: row count)."""
    return _require_handle(handle).export('items', _require_path(path, "export path"))


@_boundary("queue_enqueue", failure_value=False)
def queue_enqueue(queue_path, commit: Mapping[str, Any]) -> bool:
    """
    Durably add a commit to the queue file (value: True).

    Wakes a manager started by start_commit_manager on the same path so it
    does not sit out the rest of its idle wait.
    """
    path = _require_path(queue_path)
    operations.enqueue(path, commit)
    with _managers_lock:
        manager = _managers.get(_path_key(path))
    if manager is not None:
        manager.wake()
    return True


@_boundary("queue_len", failure_value=-1)
def queue_len(queue_path) -> int:
    """Number of commits persisted in the queue file (value: int, -1 on failure)."""
    return operations.queue_len(_require_path(queue_path))


@_boundary("start_commit_manager")
def start_commit_manager(connect_string: str, queue_path, **options):
    """
    Start the delivery loop on a daemon thread (value: SyncManager).

    The loop runs until stop_commit_manager() or process exit. Extra
    keyword options are SyncSettings fields (idle_interval,
    backoff_interval, max_attempts, ...).

    Fails with a validation error if a manager is already running on the
    same queue file.
    """
    from validation.config import load_settings
    from worker.manager import SyncManager

    if not connect_string or not str(connect_string).strip():
        raise InputValidationError("connect_string was empty")
    path = _require_path(queue_path)

    settings = load_settings(queue_path=path, connect_string=connect_string, **options)
    key = _path_key(path)
    with _managers_lock:
        existing = _managers.get(key)
        if existing is not None and existing.running:
            raise InputValidationError(f"a commit manager is already running for {path}")
        if existing is not None and existing.alive:
            raise InputValidationError(
                f"the previous commit manager for {path} is still finishing a submission"
            )
        manager = SyncManager.from_settings(settings)
        _managers[key] = manager
    try:
        manager.start()
    except Exception:
        with _managers_lock:
            if _managers.get(key) is manager:
                del _managers[key]
        _close_gate(manager)
        raise
    return manager


@_boundary("stop_commit_manager", failure_value=False)
def stop_commit_manager(queue_path, timeout: float = 10.0) -> bool:
    """
    Stop a manager started here (value: True if one was registered).

    If its thread is still inside a submission when the timeout expires the
    manager stays registered, so start_commit_manager refuses the path until
    that thread has exited.
    """
    key = _path_key(_require_path(queue_path))
    with _managers_lock:
        manager = _managers.get(key)
    if manager is None:
        return False
    manager.stop(timeout=timeout)
    _close_gate(manager)
    with _managers_lock:
        if _managers.get(key) is manager and not manager.alive:
            del _managers[key]
    return True


def _close_gate(manager) -> None:
    close = getattr(manager.gate, 'close', None)
    if close is not None:
        close()
