# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Health reporting for the backup coordinator."""


# type annotations
from __future__ import annotations
from typing import Callable, Optional

# standard libs
import os
import json
import logging
import tempfile
from datetime import datetime, timedelta

# internal libs
from snapcycle.core.typing import JsonDict
from snapcycle.backup.record import CoordinatorState

# public interface
__all__ = ['HealthReporter', 'load_state', 'STALE_FACTOR', ]


# initialize module level logger
log = logging.getLogger(__name__)


# Unhealthy if the last completed cycle started more than this many intervals ago
STALE_FACTOR: int = 2


def load_state(path: str) -> CoordinatorState:
    """Read published coordinator state from `path` (empty state if missing)."""
    try:
        with open(path, mode='r') as stream:
            data = json.load(stream)
    except FileNotFoundError:
        log.debug(f'No status file ({path})')
        return CoordinatorState()
    except (OSError, ValueError) as error:
        log.error(f'Failed to read status file {path}: {error}')
        return CoordinatorState()
    return CoordinatorState.from_dict(data)


class HealthReporter:
    """
    Decide whether the coordinator is healthy.

    Healthy means the most recent completed cycle has at least one record,
    every record is SUCCESS, and that cycle started less than two intervals ago
    (a stuck or dead scheduler becomes unhealthy).
    """

    source: Callable[[], CoordinatorState]
    interval: float
    statefile: Optional[str]
    clock: Callable[[], datetime]

    def __init__(self, source: Callable[[], CoordinatorState], interval: float,
                 statefile: str = None, clock: Callable[[], datetime] = datetime.now) -> None:
        """Initialize with `source` of current state and the schedule `interval` in seconds."""
        self.source = source
        self.interval = float(interval)
        self.statefile = statefile
        self.clock = clock

    @classmethod
    def from_file(cls, path: str, interval: float, clock: Callable[[], datetime] = datetime.now) -> HealthReporter:
        """Report on state published to `path` by another process."""
        return cls(lambda: load_state(path), interval=interval, statefile=None, clock=clock)

    @property
    def deadline(self) -> timedelta:
        return timedelta(seconds=STALE_FACTOR * self.interval)

    def is_healthy(self, now: datetime = None) -> bool:
        """Check health of the last completed cycle."""
        return self._is_healthy(self.source(), now or self.clock())

    def _is_healthy(self, state: CoordinatorState, now: datetime) -> bool:
        if not state.succeeded or state.started_at is None:
            return False
        return now - state.started_at < self.deadline

    def status(self, now: datetime = None) -> JsonDict:
        """Summary of health and the last completed cycle."""
        state = self.source()
        now = now or self.clock()
        age = None if state.started_at is None else (now - state.started_at).total_seconds()
        return {'healthy': self._is_healthy(state, now),
                'interval': self.interval,
                'age': age,
                **state.to_dict()}

    def publish(self, state: CoordinatorState) -> None:
        """Write `state` to the status file (atomically replaced)."""
        if self.statefile is None:
            return
        dirpath = os.path.dirname(os.path.abspath(self.statefile))
        try:
            os.makedirs(dirpath, exist_ok=True)
            fd, tmppath = tempfile.mkstemp(prefix='.status-', suffix='.json', dir=dirpath)
            with os.fdopen(fd, mode='w') as stream:
                json.dump(state.to_dict(), stream, indent=4)
            os.replace(tmppath, self.statefile)
        except OSError as error:
            log.error(f'Failed to write status file {self.statefile}: {error}')
        else:
            log.debug(f'Published status ({self.statefile})')

    @classmethod
    def attach(cls, scheduler, statefile: str = None) -> HealthReporter:
        """Report on `scheduler` state and publish each completed cycle to `statefile`."""
        reporter = cls(lambda: scheduler.state, interval=scheduler.interval,
                       statefile=statefile, clock=scheduler.clock)
        scheduler.on_cycle = reporter.publish
        return reporter
