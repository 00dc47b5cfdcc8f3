"""
Sync gate: the two capabilities the sync manager needs from the remote side.

    probe()        -> bool   cheap liveness check, never mutates remote state
    submit(commit) -> None   apply one commit remotely; returns only once the
                             remote accepted it, raises on any failure

The manager never pops a commit unless submit() returned normally, so an
ambiguous outcome (timeout after the request was sent) is a failure and the
commit is retried: delivery is at-least-once.
"""

from typing import Optional, Protocol, runtime_checkable

from commit_queue.models import Commit
from remote.client import SqlHttpClient
from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Gate")

PROBE_SQL = "SELECT id FROM items LIMIT 1"
INSERT_COMMIT_SQL = (
    "INSERT INTO commits (device_id, location, delta, item_id) "
    "VALUES ($1, $2, $3, $4)"
)


@runtime_checkable
class SyncGate(Protocol):
    """Capability contract consumed by worker.manager.SyncManager."""

    def probe(self) -> bool:
        ...

    def submit(self, commit: Commit) -> None:
        ...


class SqlHttpGate:
    """
    SyncGate backed by the remote database's SQL-over-HTTP endpoint.

    Args:
        client: SqlHttpClient for the remote database
        probe_timeout: Timeout for probe() in seconds (default: 5.0)
        submit_timeout: Timeout for submit() in seconds (default: 30.0)
    """

    def __init__(
        self,
        client: SqlHttpClient,
        probe_timeout: float = 5.0,
        submit_timeout: float = 30.0,
    ):
        self.client = client
        self.probe_timeout = probe_timeout
        self.submit_timeout = submit_timeout

    @classmethod
    def connect(
        cls,
        connect_string: str,
        endpoint: Optional[str] = None,
        probe_timeout: float = 5.0,
        submit_timeout: float = 30.0,
    ) -> 'SqlHttpGate':
        """Build a gate with its own SqlHttpClient."""
        client = SqlHttpClient(connect_string, endpoint=endpoint, timeout=submit_timeout)
        return cls(client, probe_timeout=probe_timeout, submit_timeout=submit_timeout)

    def probe(self) -> bool:
        """True if a trivial read query succeeds within probe_timeout."""
        try:
            self.client.query(PROBE_SQL, timeout=self.probe_timeout)
        except Exception as e:
            log_debug(f"Probe failed: {type(e).__name__}: {e}")
            return False
        return True

    def submit(self, commit: Commit) -> None:
        """
        Insert one commit into the remote commits table.

        Raises:
            RemoteError: Network, auth or server failure (see SqlHttpClient.query)
        """
        self.client.query(
            INSERT_COMMIT_SQL,
            [commit.device_id, commit.location, commit.delta, commit.item_id],
            timeout=self.submit_timeout,
        )
        log_trace(f"Remote accepted {commit.describe()}")

    def close(self) -> None:
        self.client.close()
