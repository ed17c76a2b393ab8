# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Snapshot attempt records and coordinator state."""


# type annotations
from __future__ import annotations
from typing import Optional, Tuple, Dict, Any

# standard libs
from enum import Enum
from datetime import datetime, timedelta
from dataclasses import dataclass, field

# internal libs
from snapcycle.core.typing import JsonDict

# public interface
__all__ = ['Outcome', 'SnapshotRecord', 'CoordinatorState', 'TIMESTAMP_FORMAT', ]


# Embedded in artifact names, sortable as plain text
TIMESTAMP_FORMAT = '%Y%m%d-%H%M%S'


class Outcome(str, Enum):
    """Result of a single snapshot attempt."""
    SUCCESS = 'success'
    FAILURE = 'failure'


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return None if value is None else datetime.fromisoformat(value)


@dataclass
class SnapshotRecord:
    """
    Outcome of one snapshot attempt against one target.

    A record is created when the attempt starts and finalized exactly once when
    it completes. Records are not modified after finalization.
    """

    target: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcome: Optional[Outcome] = None
    artifact: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def start(cls, target: str, started_at: datetime = None) -> SnapshotRecord:
        """Open a new record for `target` starting now (or at `started_at`)."""
        return cls(target=target, started_at=started_at or datetime.now())

    @property
    def finalized(self) -> bool:
        """True after `succeed` or `fail` has been called."""
        return self.outcome is not None

    def _finalize(self, outcome: Outcome, artifact: str = None, error: str = None,
                  finished_at: datetime = None) -> SnapshotRecord:
        if self.finalized:
            raise RuntimeError(f'Snapshot record for \'{self.target}\' already finalized ({self.outcome.value})')
        self.finished_at = finished_at or datetime.now()
        self.outcome = outcome
        self.artifact = artifact
        self.error = error
        return self

    def succeed(self, artifact: str, finished_at: datetime = None) -> SnapshotRecord:
        """Finalize as SUCCESS with the path to the written `artifact`."""
        return self._finalize(Outcome.SUCCESS, artifact=artifact, finished_at=finished_at)

    def fail(self, error: str, finished_at: datetime = None) -> SnapshotRecord:
        """Finalize as FAILURE with `error` detail."""
        return self._finalize(Outcome.FAILURE, error=error, finished_at=finished_at)

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def duration(self) -> Optional[timedelta]:
        """Elapsed time of the attempt (None while in flight)."""
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def to_dict(self) -> JsonDict:
        """Export as JSON-compatible dictionary."""
        duration = self.duration
        return {
            'target': self.target,
            'started_at': _format_time(self.started_at),
            'finished_at': _format_time(self.finished_at),
            'outcome': None if self.outcome is None else self.outcome.value,
            'duration': None if duration is None else duration.total_seconds(),
            'artifact': self.artifact,
            'error': self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SnapshotRecord:
        """Rebuild from exported dictionary (see `to_dict`)."""
        outcome = data.get('outcome')
        return cls(target=data['target'],
                   started_at=_parse_time(data['started_at']),
                   finished_at=_parse_time(data.get('finished_at')),
                   outcome=None if outcome is None else Outcome(outcome),
                   artifact=data.get('artifact'),
                   error=data.get('error'))

    def __str__(self) -> str:
        duration = self.duration
        text = (f'target={self.target} outcome={"pending" if self.outcome is None else self.outcome.value} '
                f'started={self.started_at.strftime(TIMESTAMP_FORMAT)}')
        if duration is not None:
            text += f' duration={duration.total_seconds():.3f}s'
        if self.artifact:
            text += f' artifact={self.artifact}'
        if self.error:
            text += f' error="{self.error}"'
        return text


@dataclass(frozen=True)
class CoordinatorState:
    """Result of the most recently completed cycle."""

    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    records: Tuple[SnapshotRecord, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        """All records in the cycle are SUCCESS (and there is at least one)."""
        return bool(self.records) and all(record.succeeded for record in self.records)

    def to_dict(self) -> JsonDict:
        """Export as JSON-compatible dictionary."""
        return {
            'started_at': _format_time(self.started_at),
            'finished_at': _format_time(self.finished_at),
            'records': [record.to_dict() for record in self.records],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CoordinatorState:
        """Rebuild from exported dictionary (see `to_dict`)."""
        return cls(started_at=_parse_time(data.get('started_at')),
                   finished_at=_parse_time(data.get('finished_at')),
                   records=tuple(SnapshotRecord.from_dict(record) for record in data.get('records', [])))
