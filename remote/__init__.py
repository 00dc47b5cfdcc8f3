"""
Remote side of the sync: the inventory database reached over HTTP.

Classes:
    SyncGate: Protocol of the two capabilities the manager needs (probe, submit)
    SqlHttpGate: SyncGate over the SQL-over-HTTP endpoint
    SqlHttpClient: httpx client for the endpoint with bounded timeouts

Functions:
    check_gate_health: Probe wrapper returning (healthy, latency_ms)
    export_overview_to_csv / export_locations_to_csv / export_items_to_csv:
        CSV reports of remote tables
"""

from remote.client import SqlHttpClient, sql_endpoint_for
from remote.gate import SyncGate, SqlHttpGate
from remote.health import check_gate_health
from remote.export import (
    export_overview_to_csv,
    export_locations_to_csv,
    export_items_to_csv,
    export_table_to_csv,
)

__all__ = [
    # Client
    'SqlHttpClient',
    'sql_endpoint_for',
    # Gate
    'SyncGate',
    'SqlHttpGate',
    # Health
    'check_gate_health',
    # Reports
    'export_overview_to_csv',
    'export_locations_to_csv',
    'export_items_to_csv',
    'export_table_to_csv',
]
