#!/usr/bin/env python3
"""
Command-line tool for the sparkwms commit queue.

Inspect the queue file, add commits, and deliver them by hand, e.g. when
the host app is not running or the background manager has been stopped.

Settings come from SPARKWMS_* environment variables; flags override them.

Usage:
    python process_queue.py --queue-path q.json enqueue --device-id dev-1 \\
        --location A1 --delta 5 --item-id 42
    python process_queue.py --queue-path q.json len
    python process_queue.py --queue-path q.json drain
    python process_queue.py --queue-path q.json export items items.csv
"""

import argparse
import json
import sys

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("CLI")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Manage the sparkwms commit queue')
    parser.add_argument('--queue-path', '-q', help='Queue file (or set SPARKWMS_QUEUE_PATH)')
    parser.add_argument('--connect-string', help='Remote database URL (or set SPARKWMS_CONNECT_STRING)')
    parser.add_argument('--log-level', help='trace, debug, info, warning or error')
    parser.add_argument('--plain-logs', action='store_true', help='Human-readable logs instead of JSON')

    sub = parser.add_subparsers(dest='command', required=True)

    enq = sub.add_parser('enqueue', help='Durably add one commit')
    enq.add_argument('--device-id', required=True)
    enq.add_argument('--location', required=True)
    enq.add_argument('--delta', type=int, required=True)
    enq.add_argument('--item-id', type=int, required=True)

    sub.add_parser('len', help='Print the number of pending commits')
    sub.add_parser('list', help='Print pending commits as JSON')
    sub.add_parser('check', help='Probe the remote database')

    drain = sub.add_parser('drain', help='Deliver pending commits until empty or blocked')
    drain.add_argument('--max', type=int, dest='max_commits', help='Stop after N commits')

    sub.add_parser('run', help='Run the sync manager in the foreground')

    export = sub.add_parser('export', help='Export a report to CSV')
    export.add_argument('report', choices=['overview', 'locations', 'items'])
    export.add_argument('path')

    dead = sub.add_parser('dead-letters', help='Inspect or requeue dead-lettered commits')
    dead.add_argument('--requeue', action='store_true', help='Move all entries back onto the queue')
    dead.add_argument('--purge-days', type=int, help='Delete entries older than N days')

    return parser


def _print_json(value):
    print(json.dumps(value, indent=2, default=str))


def cmd_enqueue(settings, args) -> int:
    from commit_queue.operations import enqueue

    commit = enqueue(
        settings.queue_path,
        {
            'device_id': args.device_id,
            'location': args.location,
            'delta': args.delta,
            'item_id': args.item_id,
        },
        on_corrupt=settings.corrupt_queue_policy,
    )
    log_info(f"Enqueued {commit.describe()}")
    return 0


def cmd_len(settings, args) -> int:
    from commit_queue.operations import queue_len

    print(queue_len(settings.queue_path, on_corrupt=settings.corrupt_queue_policy))
    return 0


def cmd_list(settings, args) -> int:
    from commit_queue.operations import list_pending

    pending = list_pending(settings.queue_path, on_corrupt=settings.corrupt_queue_policy)
    _print_json([commit.to_record() for commit in pending])
    return 0


def cmd_check(settings, args) -> int:
    from remote.gate import SqlHttpGate
    from remote.health import check_gate_health

    gate = SqlHttpGate.connect(
        settings.require_remote(),
        endpoint=settings.sql_endpoint,
        probe_timeout=settings.probe_timeout,
        submit_timeout=settings.submit_timeout,
    )
    try:
        healthy, latency_ms = check_gate_health(gate)
    finally:
        gate.close()

    if healthy:
        log_info(f"Remote reachable ({latency_ms:.0f}ms)")
        return 0
    log_error("Remote unreachable")
    return 1


def cmd_drain(settings, args) -> int:
    from commit_queue.operations import queue_len
    from worker.manager import ManagerState, SyncManager

    manager = SyncManager.from_settings(settings)
    try:
        removed = manager.drain(max_commits=args.max_commits)
    finally:
        manager.gate.close()

    remaining = queue_len(settings.queue_path, on_corrupt=settings.corrupt_queue_policy)
    log_info(f"Drain complete. Delivered: {manager.stats.delivered}, "
             f"dead-lettered: {manager.stats.dead_lettered}, remaining: {remaining}")
    _print_json(manager.stats.to_dict())

    if manager.last_state in (ManagerState.OFFLINE, ManagerState.FAILED):
        log_warn(f"Stopped early ({manager.last_state.value}) after {removed} commits")
        return 1
    return 0


def cmd_run(settings, args) -> int:
    from worker.manager import SyncManager

    manager = SyncManager.from_settings(settings)
    try:
        manager.run_forever()
    except KeyboardInterrupt:
        log_info("Interrupted, stopping")
        manager.stop()
    finally:
        manager.gate.close()
    return 0


def cmd_export(settings, args) -> int:
    from remote.client import SqlHttpClient
    from remote.export import export_table_to_csv

    with SqlHttpClient(
        settings.require_remote(),
        endpoint=settings.sql_endpoint,
        timeout=settings.submit_timeout,
    ) as client:
        rows = export_table_to_csv(client, args.report, args.path)
    log_info(f"Exported {rows} {args.report} rows to {args.path}")
    return 0


def cmd_dead_letters(settings, args) -> int:
    from commit_queue.dead_letter import DeadLetterQueue

    dlq = DeadLetterQueue(settings.resolved_dead_letter_path)

    if args.purge_days is not None:
        dlq.delete_older_than(args.purge_days)
    if args.requeue:
        requeued = dlq.requeue(settings.queue_path)
        log_info(f"Requeued {requeued} commits")

    entries = dlq.get_recent(limit=20)
    _print_json({
        'count': dlq.get_count(),
        'by_error': dlq.get_error_summary(),
        'recent': [
            dict(entry, commit=entry['commit'].to_record()) for entry in entries
        ],
    })
    return 0


COMMANDS = {
    'enqueue': cmd_enqueue,
    'len': cmd_len,
    'list': cmd_list,
    'check': cmd_check,
    'drain': cmd_drain,
    'run': cmd_run,
    'export': cmd_export,
    'dead-letters': cmd_dead_letters,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Import here to allow script to show help without dependencies
    from shared.logging_config import configure_logging
    from validation.errors import SyncError, to_sync_error
    from validation.config import load_settings

    try:
        settings = load_settings(
            queue_path=args.queue_path,
            connect_string=args.connect_string,
            log_level=args.log_level,
            json_logs=False if args.plain_logs else None,
        )
    except SyncError as e:
        configure_logging('info', json_output=False)
        log_error(str(e))
        return 1

    configure_logging(settings.log_level, json_output=settings.json_logs)

    try:
        return COMMANDS[args.command](settings, args)
    except SyncError as e:
        log_error(f"{args.command} failed (code {int(e.code)}): {e}")
        return 1
    except Exception as e:
        err = to_sync_error(e, args.command)
        log_error(f"{args.command} failed (code {int(err.code)}): {err}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
