"""
Background sync manager that drains the commit queue to the remote side.

One sequential loop, one commit in flight at most:
- Queue empty: wait idle_interval (cut short by wake())
- Remote unreachable (probe fails): wait backoff_interval, head untouched
- Submission fails: wait backoff_interval, retry the same head
- Submission succeeds: remove the head from the queue file, continue

A commit is removed only after submit() returned normally, and nothing
behind it is attempted until it is, so delivery is strictly FIFO and
at-least-once. Failures are retried forever with a fixed backoff unless
max_attempts is set, in which case the head moves to the dead letter queue.
"""

import json
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from commit_queue.models import Commit
from commit_queue.operations import ack_head, peek_head
from remote.health import check_gate_health
from shared.log import create_logger
from validation.config import CorruptQueuePolicy
from validation.errors import ConfigError, InputValidationError, PersistenceError, to_sync_error
from worker.stats import DeliveryStats

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Manager")

if TYPE_CHECKING:
    from commit_queue.dead_letter import DeadLetterQueue
    from remote.gate import SyncGate
    from validation.config import SyncSettings


class ManagerState(Enum):
    """Outcome of one manager step."""
    IDLE = "idle"                    # queue empty
    OFFLINE = "offline"              # probe failed, nothing attempted
    DELIVERED = "delivered"          # head submitted and removed
    FAILED = "failed"                # submit, queue I/O or ack failed
    DEAD_LETTERED = "dead_lettered"  # head gave up after max_attempts


class SyncManager:
    """
    Drains one queue file through one SyncGate.

    Runs in a daemon thread via start(), or on the caller's thread via
    run_forever() / drain(). The queue file is re-read on every step, so
    commits enqueued by producers are picked up without any shared state.
    """

    def __init__(
        self,
        gate: 'SyncGate',
        queue_path,
        idle_interval: float = 1.0,
        backoff_interval: float = 5.0,
        on_corrupt: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY,
        max_attempts: Optional[int] = None,
        dead_letter: Optional['DeadLetterQueue'] = None,
        summary_every: int = 50,
    ):
        """
        Initialize the sync manager.

        Args:
            gate: SyncGate used to probe and submit
            queue_path: Queue file to drain
            idle_interval: Seconds to wait when the queue is empty
            backoff_interval: Seconds to wait after a failed probe or submission
            on_corrupt: Policy for an unparsable queue file
            max_attempts: Failed submissions of one commit before it is
                dead-lettered (None = retry forever)
            dead_letter: DeadLetterQueue, required when max_attempts is set
            summary_every: Log a delivery summary every N deliveries
        """
        if max_attempts is not None and dead_letter is None:
            raise ConfigError("max_attempts requires a dead letter queue")

        self.gate = gate
        self.queue_path = Path(queue_path)
        self.idle_interval = idle_interval
        self.backoff_interval = backoff_interval
        self.on_corrupt = on_corrupt
        self.max_attempts = max_attempts
        self.dead_letter = dead_letter
        self.summary_every = summary_every

        self.thread: Optional[threading.Thread] = None
        # Set while no run is active
        self._stop_event = threading.Event()
        self._stop_event.set()
        self._wake_event = threading.Event()

        self._stats = DeliveryStats()
        self._head: Optional[Commit] = None
        self._attempts = 0
        self._offline = False
        self.last_state: Optional[ManagerState] = None

    @classmethod
    def from_settings(
        cls,
        settings: 'SyncSettings',
        gate: Optional['SyncGate'] = None,
    ) -> 'SyncManager':
        """
        Build a manager (and, unless given, its SqlHttpGate) from settings.

        Raises:
            ConfigError: No gate given and connect_string missing
        """
        if gate is None:
            from remote.gate import SqlHttpGate
            gate = SqlHttpGate.connect(
                settings.require_remote(),
                endpoint=settings.sql_endpoint,
                probe_timeout=settings.probe_timeout,
                submit_timeout=settings.submit_timeout,
            )

        dead_letter = None
        if settings.max_attempts is not None:
            from commit_queue.dead_letter import DeadLetterQueue
            dead_letter = DeadLetterQueue(settings.resolved_dead_letter_path)

        return cls(
            gate,
            settings.queue_path,
            idle_interval=settings.idle_interval,
            backoff_interval=settings.backoff_interval,
            on_corrupt=settings.corrupt_queue_policy,
            max_attempts=settings.max_attempts,
            dead_letter=dead_letter,
        )

    @property
    def stats(self) -> DeliveryStats:
        return self._stats

    @property
    def current_attempts(self) -> int:
        """Failed submissions of the current head so far."""
        return self._attempts

    @property
    def running(self) -> bool:
        """True between start()/run_forever() and stop()."""
        return not self._stop_event.is_set()

    @property
    def alive(self) -> bool:
        """True while a background loop thread exists, including one still
        finishing a submission after stop() timed out."""
        return self.thread is not None and self.thread.is_alive()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """
        Start the background loop thread.

        Raises:
            InputValidationError: A previous loop thread is still finishing
                a submission (stop() timed out)
        """
        if self.running:
            log_trace("Already running")
            return
        self._refuse_if_alive()

        self._log_dead_letter_status()

        stop_event = self._begin_run()
        self.thread = threading.Thread(
            target=self._run_loop,
            args=(stop_event,),
            name="sparkwms-commit-manager",
            daemon=True,
        )
        self.thread.start()
        log_info(f"Started (queue {self.queue_path})")

    def stop(self, timeout: float = 10.0):
        """Stop the loop at its next suspension point."""
        if not self.running:
            return

        log_trace("Stopping manager...")
        self._stop_event.set()
        self._wake_event.set()

        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                log_warn(f"Manager thread did not stop within {timeout}s (submission in flight)")

        log_trace("Manager stopped")

    def wake(self):
        """End an idle wait early, e.g. right after a producer enqueued."""
        self._wake_event.set()

    def run_forever(self):
        """Run the loop on the calling thread until stop() is called."""
        if self.running:
            log_trace("Already running")
            return
        self._refuse_if_alive()
        stop_event = self._begin_run()
        log_info(f"Running (queue {self.queue_path})")
        self._run_loop(stop_event)

    def _refuse_if_alive(self):
        if self.alive:
            raise InputValidationError(
                f"previous loop for {self.queue_path} is still finishing a submission"
            )

    def _begin_run(self) -> threading.Event:
        # Each run owns its stop event; a stopped run never sees a later start
        self._stop_event = threading.Event()
        self._wake_event.clear()
        return self._stop_event

    def drain(self, max_commits: Optional[int] = None) -> int:
        """
        Deliver commits on the calling thread until the queue is empty or a
        delivery cannot be made right now (remote offline or submit failed).

        Args:
            max_commits: Stop after removing this many commits

        Returns:
            Number of commits removed from the queue (delivered or dead-lettered)
        """
        removed = 0
        while max_commits is None or removed < max_commits:
            state = self.step()
            if state in (ManagerState.DELIVERED, ManagerState.DEAD_LETTERED):
                removed += 1
                continue
            break
        return removed

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def delay_for(self, state: ManagerState) -> float:
        """Seconds to wait after a step that ended in ``state``."""
        if state is ManagerState.IDLE:
            return self.idle_interval
        if state in (ManagerState.OFFLINE, ManagerState.FAILED):
            return self.backoff_interval
        return 0.0

    def step(self) -> ManagerState:
        """
        Run one iteration: read head, probe, submit, acknowledge.

        Never raises for remote or queue I/O failures; they are logged and
        reported as OFFLINE/FAILED so the caller applies the backoff.
        """
        try:
            head = peek_head(self.queue_path, on_corrupt=self.on_corrupt)
        except PersistenceError as e:
            log_error(f"Cannot read queue {self.queue_path}: {e}")
            return self._finish(ManagerState.FAILED)

        if head is None:
            self._head = None
            self._attempts = 0
            return self._finish(ManagerState.IDLE)

        if head != self._head:
            self._head = head
            self._attempts = 0

        healthy, latency_ms = check_gate_health(self.gate)
        if not healthy:
            self._stats.record_probe_failure()
            if not self._offline:
                self._offline = True
                log_warn(
                    f"Remote unreachable, holding {head.describe()}; "
                    f"probing every {self.backoff_interval:g}s"
                )
            return self._finish(ManagerState.OFFLINE)

        if self._offline:
            self._offline = False
            log_info(f"Remote reachable again ({latency_ms:.0f}ms), resuming delivery")

        start = time.perf_counter()
        try:
            self.gate.submit(head)
        except Exception as e:
            elapsed = time.perf_counter() - start
            return self._handle_submit_failure(head, e, elapsed)
        elapsed = time.perf_counter() - start

        self._stats.record_delivery(elapsed)
        try:
            removed = ack_head(self.queue_path, head, on_corrupt=self.on_corrupt)
        except PersistenceError as e:
            log_error(
                f"Delivered {head.describe()} but could not remove it from the queue; "
                f"it will be sent again: {e}"
            )
            return self._finish(ManagerState.FAILED)

        self._head = None
        self._attempts = 0

        if not removed:
            # Another writer changed the head between peek and ack
            self._stats.record_ack_mismatch()
            log_warn(
                f"Delivered {head.describe()} but the queue head changed on disk; "
                f"nothing was removed"
            )
            return self._finish(ManagerState.FAILED)

        log_debug(f"Delivered {head.describe()} in {elapsed * 1000:.0f}ms")

        if self.summary_every and self._stats.delivered % self.summary_every == 0:
            self._log_summary()

        return self._finish(ManagerState.DELIVERED)

    def _handle_submit_failure(self, head: Commit, error: Exception, elapsed: float) -> ManagerState:
        self._attempts += 1
        self._stats.record_failure(error, elapsed)
        classified = to_sync_error(error)
        log_warn(
            f"Delivery of {head.describe()} failed (attempt {self._attempts}, "
            f"code {int(classified.code)}): {type(error).__name__}: {error}"
        )

        if self.max_attempts is not None and self._attempts >= self.max_attempts:
            return self._move_to_dead_letter(head, error)

        return self._finish(ManagerState.FAILED)

    def _move_to_dead_letter(self, head: Commit, error: Exception) -> ManagerState:
        # Record first, then remove: a crash in between duplicates, never loses
        try:
            self.dead_letter.add(head, error, self._attempts)
            ack_head(self.queue_path, head, on_corrupt=self.on_corrupt)
        except PersistenceError as e:
            log_error(f"Cannot dead-letter {head.describe()}, will keep retrying: {e}")
            return self._finish(ManagerState.FAILED)

        self._stats.record_dead_letter()
        self._head = None
        self._attempts = 0
        return self._finish(ManagerState.DEAD_LETTERED)

    def _finish(self, state: ManagerState) -> ManagerState:
        self.last_state = state
        return state

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _run_loop(self, stop_event: threading.Event):
        """Main loop - runs until its run is stopped; never exits on delivery errors."""
        while not stop_event.is_set():
            try:
                state = self.step()
            except Exception as e:
                log_error(f"Unexpected error in sync loop: {type(e).__name__}: {e}")
                state = self._finish(ManagerState.FAILED)

            if stop_event.is_set():
                break
            self._wait(state, stop_event)

    def _wait(self, state: ManagerState, stop_event: threading.Event):
        delay = self.delay_for(state)
        if delay <= 0:
            return
        if state is ManagerState.IDLE:
            self._wake_event.wait(delay)
            self._wake_event.clear()
        else:
            stop_event.wait(delay)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _log_dead_letter_status(self):
        """Log dead letter status if entries are present."""
        if self.dead_letter is None:
            return
        count = self.dead_letter.get_count()
        if count > 0:
            log_warn(f"Dead letter queue contains {count} commits requiring review")
            for entry in self.dead_letter.get_recent(limit=5):
                log_debug(
                    f"Dead letter #{entry['id']}: {entry['commit'].describe()} - "
                    f"{entry['error_type']}: {(entry['error_message'] or '')[:80]}"
                )

    def _log_summary(self):
        """Log periodic delivery summary with JSON stats."""
        stats = self._stats
        log_info(
            f"Sync summary: {stats.delivered}/{stats.attempts} submissions succeeded "
            f"({stats.success_rate:.1f}%), avg {stats.avg_submit_time * 1000:.0f}ms"
        )
        log_info(f"Stats: {json.dumps(stats.to_dict())}")
