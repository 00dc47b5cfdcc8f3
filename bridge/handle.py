"""
Handle that keeps a remote connection alive for host callers.

A handle is created once per remote endpoint and closed exactly once;
calls on a closed handle fail with a validation error instead of touching
a released client.
"""

from typing import Any, Mapping, Optional, Union

from commit_queue.models import Commit
from remote.client import SqlHttpClient
from remote.export import export_table_to_csv
from remote.gate import SqlHttpGate
from remote.health import check_gate_health
from shared.log import create_logger
from validation.errors import InputValidationError

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Bridge")


class ApiHandle:
    """
    Remote capabilities for one endpoint: direct send, health check, exports.

    Usage:
        handle = ApiHandle.open("postgresql://user:pw@host/db")
        try:
            handle.send_commit({'device_id': 'dev-1', 'location': 'A1',
                                'delta': 5, 'item_id': 42})
        finally:
            handle.close()
    """

    def __init__(self, client: SqlHttpClient, gate: SqlHttpGate):
        self._client = client
        self._gate = gate
        self._closed = False

    @classmethod
    def open(
        cls,
        connect_string: str,
        endpoint: Optional[str] = None,
        probe_timeout: float = 5.0,
        submit_timeout: float = 30.0,
    ) -> 'ApiHandle':
        """
        Connect a handle to the remote database.

        Raises:
            InputValidationError: Empty connection string
            ConfigError: Connection string is not a postgres URL
        """
        if not connect_string or not connect_string.strip():
            raise InputValidationError("connect_string was empty")
        client = SqlHttpClient(connect_string.strip(), endpoint=endpoint, timeout=submit_timeout)
        gate = SqlHttpGate(client, probe_timeout=probe_timeout, submit_timeout=submit_timeout)
        log_debug(f"Opened handle for {client.endpoint}")
        return cls(client, gate)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def gate(self) -> SqlHttpGate:
        self._require_open()
        return self._gate

    def close(self) -> None:
        """Release the connection. A handle can only be closed once."""
        self._require_open()
        self._closed = True
        self._client.close()
        log_debug("Closed handle")

    def _require_open(self) -> None:
        if self._closed:
            raise InputValidationError("handle was closed")

    def send_commit(self, commit: Union[Commit, Mapping[str, Any]]) -> Commit:
        """
        Deliver one commit immediately, bypassing the queue.

        Raises:
            InputValidationError: Invalid commit fields
            RemoteError: Delivery failed (nothing is queued for retry)
        """
        self._require_open()
        commit = Commit.from_fields(commit)
        self._gate.submit(commit)
        log_info(f"Sent {commit.describe()} directly")
        return commit

    def check(self) -> bool:
        """True if the remote side answers the liveness probe."""
        self._require_open()
        healthy, _ = check_gate_health(self._gate)
        return healthy

    def export(self, report: str, path) -> int:
        """Write one CSV report; returns the number of rows."""
        self._require_open()
        return export_table_to_csv(self._client, report, path)
