# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Scheduler loop driving periodic backup cycles."""


# type annotations
from __future__ import annotations
from typing import Optional, Callable, List

# standard libs
import time
import logging
from enum import Enum
from datetime import datetime
from threading import Thread, Lock, Event

# external libs
from cmdkit.config import ConfigurationError

# internal libs
from snapcycle.backup.record import SnapshotRecord, CoordinatorState
from snapcycle.backup.target import TargetRegistry, TargetDescriptor
from snapcycle.backup.executor import SnapshotExecutor
from snapcycle.backup.retention import RetentionManager, RetentionPolicy
from snapcycle.backup.exceptions import BackupError, SchedulerOverlapWarning

# public interface
__all__ = ['Scheduler', 'SchedulerState', 'load_registry', 'DEFAULT_INTERVAL', 'DEFAULT_GRACE', ]


# initialize module level logger
log = logging.getLogger(__name__)


DEFAULT_INTERVAL: float = 86_400  # 24 hours
DEFAULT_GRACE: float = 60


class SchedulerState(str, Enum):
    """Life-cycle of the scheduler."""
    IDLE = 'idle'
    RUNNING = 'running'
    DRAINING = 'draining'
    STOPPED = 'stopped'


class Scheduler:
    """
    Trigger a backup cycle every `interval` seconds.

    The first cycle starts immediately. Triggers are spaced from the previous
    trigger, not from the end of the previous cycle. A trigger that fires while
    a cycle is still running is skipped (not queued).

    Each cycle attempts every target in registration order and prunes old
    artifacts for targets that succeeded. On completion the coordinator state
    is replaced and passed to `on_cycle` (e.g., to publish health).
    """

    registry: TargetRegistry
    executor: SnapshotExecutor
    retention: RetentionManager
    interval: float
    grace: float
    on_cycle: Optional[Callable[[CoordinatorState], None]]

    _state: CoordinatorState
    _status: SchedulerState
    _cycle_thread: Optional[Thread] = None

    def __init__(self, registry: TargetRegistry, executor: SnapshotExecutor, retention: RetentionManager,
                 interval: float = DEFAULT_INTERVAL, grace: float = DEFAULT_GRACE,
                 on_cycle: Callable[[CoordinatorState], None] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 timer: Callable[[], float] = time.monotonic) -> None:
        """Initialize directly."""
        if interval <= 0:
            raise ConfigurationError(f'Schedule interval must be positive, given {interval}')
        if grace < 0:
            raise ConfigurationError(f'Shutdown grace period cannot be negative, given {grace}')
        self.registry = registry
        self.executor = executor
        self.retention = retention
        self.interval = float(interval)
        self.grace = float(grace)
        self.on_cycle = on_cycle
        self.clock = clock
        self.timer = timer
        self._state = CoordinatorState()
        self._status = SchedulerState.IDLE
        self._cycle_lock = Lock()
        self._drain_lock = Lock()
        self._stop = Event()
        self._abort = Event()
        self._serving = False
        self._count = 0

    @property
    def state(self) -> CoordinatorState:
        """Result of the most recently completed cycle."""
        return self._state

    @property
    def status(self) -> SchedulerState:
        return self._status

    @property
    def running(self) -> bool:
        """A cycle is in progress."""
        return self._cycle_lock.locked()

    def run_cycle(self) -> Optional[CoordinatorState]:
        """Run one cycle now (blocking). Returns None if a cycle is already running."""
        if not self._cycle_lock.acquire(blocking=False):
            log.warning(f'{SchedulerOverlapWarning.__name__}: previous cycle still running - trigger skipped')
            return None
        try:
            self._status = SchedulerState.RUNNING
            self._count += 1
            started_at = self.clock()
            log.info(f'Starting cycle {self._count} ({len(self.registry)} targets)')
            records = [self.attempt(target) for target in self.registry]
            state = CoordinatorState(started_at=started_at, finished_at=self.clock(), records=tuple(records))
            self._state = state
            failures = sum(1 for record in records if not record.succeeded)
            if failures:
                log.error(f'Finished cycle {self._count} with {failures} of {len(records)} targets failed')
            else:
                log.info(f'Finished cycle {self._count} ({len(records)} targets succeeded)')
            if self.on_cycle is not None:
                self.on_cycle(state)
            return state
        finally:
            self._status = SchedulerState.DRAINING if self._stop.is_set() else SchedulerState.IDLE
            self._cycle_lock.release()

    def attempt(self, target: TargetDescriptor) -> SnapshotRecord:
        """Snapshot and then prune a single target."""
        if self._abort.is_set():
            record = SnapshotRecord.start(target.name, self.clock())
            record.fail('Cycle aborted at shutdown', finished_at=self.clock())
            self.executor.log_record(record)
            return record
        record = self.executor.run(target)
        if record.succeeded:
            try:
                self.retention.prune(target)
            except (BackupError, OSError) as error:
                log.error(f'Pruning failed for \'{target.name}\': {error}')
        return record

    def trigger(self) -> bool:
        """Start a cycle in the background unless one is running."""
        if self.running or (self._cycle_thread is not None and self._cycle_thread.is_alive()):
            log.warning(f'{SchedulerOverlapWarning.__name__}: previous cycle still running - trigger skipped')
            return False
        self._cycle_thread = Thread(target=self.run_cycle, name=f'SnapshotCycle-{self._count + 1}')
        self._cycle_thread.start()
        return True

    def serve_forever(self) -> None:
        """Trigger cycles on schedule until `stop` is called, then drain."""
        self._serving = True
        log.info(f'Started scheduler (interval={self.interval:g}s, targets={len(self.registry)})')
        next_trigger = self.timer()
        try:
            while not self._stop.is_set():
                now = self.timer()
                if now >= next_trigger:
                    self.trigger()
                    next_trigger += self.interval
                    while next_trigger <= now:
                        log.warning(f'{SchedulerOverlapWarning.__name__}: missed trigger - skipped')
                        next_trigger += self.interval
                self._stop.wait(timeout=max(0.0, next_trigger - self.timer()))
        finally:
            self._serving = False
            self.drain(self.grace)

    def stop(self) -> None:
        """Request the loop to stop (returns immediately)."""
        if not self._stop.is_set():
            log.info('Stopping scheduler')
        self._stop.set()
        if self.running:
            self._status = SchedulerState.DRAINING

    def shutdown(self, grace: float = None) -> None:
        """Stop the loop and wait for any in-flight cycle (see `drain`)."""
        self.stop()
        if not self._serving:
            self.drain(self.grace if grace is None else grace)

    def drain(self, grace: float) -> None:
        """
        Wait up to `grace` seconds for the in-flight cycle to finish, then abort
        in-flight snapshots and mark remaining targets as failed.
        """
        with self._drain_lock:
            if self._status is SchedulerState.STOPPED:
                return
            thread = self._cycle_thread
            if thread is not None and thread.is_alive():
                log.info(f'Waiting up to {grace:g}s for in-flight cycle')
                thread.join(timeout=grace)
                if thread.is_alive():
                    log.error('Grace period expired - aborting in-flight cycle')
                    self._abort.set()
                    self.executor.abort()
                    thread.join(timeout=max(grace, 1.0))
                    if thread.is_alive():
                        log.critical('In-flight cycle did not stop after abort')
            self._status = SchedulerState.STOPPED
            log.info('Stopped scheduler')

    @classmethod
    def from_config(cls, config, registry: TargetRegistry = None,
                    on_cycle: Callable[[CoordinatorState], None] = None) -> Scheduler:
        """Build scheduler and its collaborators from full configuration."""
        policy = RetentionPolicy.from_config(config.retention)
        if registry is None:
            registry = load_registry(config)
        try:
            interval = float(config.schedule.interval)
            grace = float(config.schedule.grace)
        except (TypeError, ValueError) as error:
            raise ConfigurationError(f'Invalid schedule configuration: {error}') from error
        return cls(registry=registry,
                   executor=SnapshotExecutor.from_config(config.snapshot),
                   retention=RetentionManager(str(config.snapshot.sink), default_policy=policy),
                   interval=interval, grace=grace, on_cycle=on_cycle)

    def failed_targets(self) -> List[str]:
        """Names of targets that failed in the last completed cycle."""
        return [record.target for record in self._state.records if not record.succeeded]


def load_registry(config) -> TargetRegistry:
    """Build target registry from `[target.<name>]` tables with global `[retention]` defaults."""
    return TargetRegistry.from_config(config['target'] if 'target' in config else None,
                                      base_retention=RetentionPolicy.from_config(config.retention))
