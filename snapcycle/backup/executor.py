# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Run snapshot procedures and record their outcome."""


# type annotations
from __future__ import annotations
from typing import Dict, Callable

# standard libs
import os
import logging
from datetime import datetime
from threading import Lock

# external libs
from cmdkit.config import Namespace, ConfigurationError

# internal libs
from snapcycle.backup.record import SnapshotRecord, TIMESTAMP_FORMAT
from snapcycle.backup.target import TargetDescriptor
from snapcycle.backup.procedure import SnapshotProcedure
from snapcycle.backup.exceptions import SnapshotError

# public interface
__all__ = ['SnapshotExecutor', 'DEFAULT_TIMEOUT', 'PARTIAL_SUFFIX', ]


# initialize module level logger
log = logging.getLogger(__name__)


DEFAULT_TIMEOUT: float = 7_200  # 2 hours


# Artifacts are written under this suffix and renamed once complete
PARTIAL_SUFFIX = '.partial'


class SnapshotExecutor:
    """
    Run a target's snapshot procedure with a bounded timeout.

    Failures of any kind are returned as a FAILURE record, never raised.
    At most one attempt per target is in flight at a time.
    """

    sink: str
    timeout: float
    clock: Callable[[], datetime]

    _locks: Dict[str, Lock]
    _active: Dict[str, SnapshotProcedure]

    def __init__(self, sink: str, timeout: float = DEFAULT_TIMEOUT,
                 clock: Callable[[], datetime] = datetime.now) -> None:
        """Initialize directly."""
        if timeout <= 0:
            raise ConfigurationError(f'Snapshot timeout must be positive, given {timeout}')
        self.sink = sink
        self.timeout = float(timeout)
        self.clock = clock
        self._locks = {}
        self._active = {}
        self._guard = Lock()

    @classmethod
    def from_config(cls, section: Namespace) -> SnapshotExecutor:
        """Initialize from `[snapshot]` configuration section."""
        try:
            timeout = float(section.timeout)
        except (TypeError, ValueError) as error:
            raise ConfigurationError(f'Invalid snapshot timeout \'{section.timeout}\'') from error
        return cls(sink=str(section.sink), timeout=timeout)

    def _lock_for(self, name: str) -> Lock:
        with self._guard:
            return self._locks.setdefault(name, Lock())

    def in_flight(self, name: str) -> bool:
        """An attempt for target `name` is currently running."""
        return self._lock_for(name).locked()

    def target_dir(self, target: TargetDescriptor) -> str:
        return os.path.join(self.sink, target.name)

    def artifact_path(self, target: TargetDescriptor, started_at: datetime) -> str:
        """Path to artifact for an attempt on `target` started at `started_at`."""
        return os.path.join(self.target_dir(target), target.artifact_name(started_at.strftime(TIMESTAMP_FORMAT)))

    def run(self, target: TargetDescriptor) -> SnapshotRecord:
        """Attempt snapshot of `target` and return the finalized record."""
        lock = self._lock_for(target.name)
        if not lock.acquire(blocking=False):
            record = SnapshotRecord.start(target.name, self.clock())
            record.fail('Snapshot already in flight for this target', finished_at=self.clock())
            self.log_record(record)
            return record
        try:
            record = self._run(target)
        finally:
            lock.release()
        self.log_record(record)
        return record

    def _run(self, target: TargetDescriptor) -> SnapshotRecord:
        record = SnapshotRecord.start(target.name, self.clock())
        artifact = self.artifact_path(target, record.started_at)
        partial = artifact + PARTIAL_SUFFIX
        if os.path.exists(artifact):
            return record.fail(f'Artifact already exists ({artifact})', finished_at=self.clock())
        self.sweep_partial(target)
        log.info(f'Starting snapshot (target={target.name})')
        with self._guard:
            self._active[target.name] = target.procedure
        try:
            os.makedirs(os.path.dirname(artifact), exist_ok=True)
            target.procedure.execute(partial, timeout=self.timeout)
            if not os.path.exists(partial):
                return record.fail(f'No artifact written ({partial})', finished_at=self.clock())
            os.replace(partial, artifact)
        except SnapshotError as error:
            self._discard(partial)
            return record.fail(f'{error.__class__.__name__}: {error}', finished_at=self.clock())
        except Exception as error:
            self._discard(partial)
            return record.fail(f'SnapshotProcedureError: {error.__class__.__name__}: {error}',
                               finished_at=self.clock())
        finally:
            with self._guard:
                self._active.pop(target.name, None)
        return record.succeed(artifact, finished_at=self.clock())

    def sweep_partial(self, target: TargetDescriptor) -> None:
        """Remove partial artifacts left behind by earlier attempts on `target`."""
        dirpath = self.target_dir(target)
        try:
            filenames = os.listdir(dirpath)
        except FileNotFoundError:
            return
        pattern = target.artifact_regex
        for filename in filenames:
            if filename.endswith(PARTIAL_SUFFIX) and pattern.fullmatch(filename[:-len(PARTIAL_SUFFIX)]):
                log.warning(f'Removing stale partial artifact {filename} (target={target.name})')
                self._discard(os.path.join(dirpath, filename))

    @staticmethod
    def _discard(path: str) -> None:
        """Remove incomplete artifact if present."""
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as error:
            log.error(f'Failed to remove partial artifact {path}: {error}')

    @staticmethod
    def log_record(record: SnapshotRecord) -> None:
        """Write one structured line for a finalized `record`."""
        if record.succeeded:
            log.info(f'Snapshot finished: {record}')
        else:
            log.error(f'Snapshot failed: {record}')

    def abort(self) -> None:
        """Cancel all in-flight procedures."""
        with self._guard:
            active = dict(self._active)
        for name, procedure in active.items():
            log.warning(f'Aborting snapshot (target={name})')
            procedure.cancel()
