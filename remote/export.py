"""
CSV reports of remote inventory tables.

Each export runs one SELECT against the remote database and writes the
rows to a CSV file. The file is replaced atomically so a failed export
never leaves a half-written report behind.
"""

import csv
import io
import json
from pathlib import Path
from typing import Union

from remote.client import SqlHttpClient
from shared.atomic import atomic_write_text
from shared.log import create_logger
from validation.errors import InputValidationError, PersistenceError

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Export")

# Report name -> query
EXPORT_QUERIES = {
    'overview': "SELECT * FROM overview",
    'locations': "SELECT * FROM locations",
    'items': "SELECT * FROM items",
}


def _cell(value):
    """Flatten a JSON value for a CSV cell."""
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(',', ':'))
    if value is None:
        return ''
    return value


def rows_to_csv(rows: list) -> str:
    """
    Render row dicts as CSV text.

    Columns come from the first row in order; keys that only appear in
    later rows are appended. Empty input renders as an empty string.
    """
    if not rows:
        return ''

    columns = list(rows[0].keys())
    for row in rows[1:]:
        for key in row:
            if key not in columns:
                columns.append(key)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator='\n')
    writer.writeheader()
    for row in rows:
        writer.writerow({col: _cell(row.get(col)) for col in columns})
    return buffer.getvalue()


def export_table_to_csv(client: SqlHttpClient, report: str, path: Union[str, Path]) -> int:
    """
    Export one report to ``path``.

    Args:
        client: SqlHttpClient for the remote database
        report: One of EXPORT_QUERIES ("overview", "locations", "items")
        path: Destination CSV file

    Returns:
        Number of data rows written

    Raises:
        InputValidationError: Unknown report or empty path
        RemoteError: Query failed
        PersistenceError: CSV file could not be written
    """
    if report not in EXPORT_QUERIES:
        raise InputValidationError(
            f"unknown report '{report}' (expected one of {', '.join(EXPORT_QUERIES)})"
        )
    if not str(path).strip():
        raise InputValidationError("export path must not be empty")

    rows = client.query(EXPORT_QUERIES[report])
    try:
        atomic_write_text(path, rows_to_csv(rows))
    except OSError as e:
        raise PersistenceError(f"cannot write export {path}: {e}") from e

    log_info(f"Exported {len(rows)} {report} rows to {path}")
    return len(rows)


def export_overview_to_csv(client: SqlHttpClient, path: Union[str, Path]) -> int:
    """Current quantity per (location, item)."""
    return export_table_to_csv(client, 'overview', path)


def export_locations_to_csv(client: SqlHttpClient, path: Union[str, Path]) -> int:
    """Items stored at each location."""
    return export_table_to_csv(client, 'locations', path)


def export_items_to_csv(client: SqlHttpClient, path: Union[str, Path]) -> int:
    """Item catalog."""
    return export_table_to_csv(client, 'items', path)
