# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Retention policies and pruning of expired artifacts."""


# type annotations
from __future__ import annotations
from typing import TYPE_CHECKING, Optional, List, Tuple, Callable, Mapping, Any

# standard libs
import os
import logging
from datetime import datetime, timedelta
from dataclasses import dataclass

# external libs
from cmdkit.config import ConfigurationError

# internal libs
from snapcycle.backup.record import TIMESTAMP_FORMAT
from snapcycle.backup.exceptions import RetentionDeleteError

if TYPE_CHECKING:
    from snapcycle.backup.target import TargetDescriptor

# public interface
__all__ = ['RetentionPolicy', 'RetentionManager', 'PruneResult', ]


# initialize module level logger
log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    """Limits on artifact age and count (None means no limit)."""

    max_age: Optional[timedelta] = None
    max_count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_age is not None and self.max_age <= timedelta(0):
            raise ValueError(f'Retention max_age must be positive, given {self.max_age}')
        if self.max_count is not None and self.max_count < 1:
            raise ValueError(f'Retention max_count must be positive, given {self.max_count}')

    @property
    def unlimited(self) -> bool:
        """Nothing would ever be pruned."""
        return self.max_age is None and self.max_count is None

    def expired(self, rank: int, age: timedelta) -> bool:
        """An artifact at 1-based `rank` (newest first) with `age` violates this policy."""
        if self.max_count is not None and rank > self.max_count:
            return True
        if self.max_age is not None and age > self.max_age:
            return True
        return False

    @classmethod
    def from_config(cls, section: Mapping[str, Any], base: RetentionPolicy = None) -> RetentionPolicy:
        """
        Build from configuration `section` with `max_age` (seconds) and `max_count`.
        Zero disables a limit; fields missing from `section` are taken from `base`.
        """
        unexpected = set(section) - {'max_age', 'max_count'}
        if unexpected:
            raise ConfigurationError(f'Unexpected key \'{sorted(unexpected)[0]}\' in retention policy')
        base = base or cls()
        max_age, max_count = base.max_age, base.max_count
        try:
            if 'max_age' in section:
                seconds = float(section['max_age'])
                if seconds < 0:
                    raise ValueError(f'max_age cannot be negative ({seconds:g})')
                max_age = None if seconds == 0 else timedelta(seconds=seconds)
            if 'max_count' in section:
                count = int(section['max_count'])
                if count < 0:
                    raise ValueError(f'max_count cannot be negative ({count})')
                max_count = None if count == 0 else count
        except (TypeError, ValueError) as error:
            raise ConfigurationError(f'Invalid retention policy: {error}') from error
        return cls(max_age=max_age, max_count=max_count)


@dataclass(frozen=True)
class PruneResult:
    """Artifacts kept, deleted, or that could not be deleted."""

    target: str
    kept: Tuple[str, ...] = ()
    deleted: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()


class RetentionManager:
    """Delete artifacts in the sink that violate a retention policy."""

    sink: str
    default_policy: RetentionPolicy
    clock: Callable[[], datetime]

    def __init__(self, sink: str, default_policy: RetentionPolicy = None,
                 clock: Callable[[], datetime] = datetime.now) -> None:
        """Initialize directly."""
        self.sink = sink
        self.default_policy = default_policy or RetentionPolicy()
        self.clock = clock

    def target_dir(self, target: TargetDescriptor) -> str:
        return os.path.join(self.sink, target.name)

    def list_artifacts(self, target: TargetDescriptor) -> List[Tuple[datetime, str]]:
        """Timestamp and path of existing artifacts for `target`, newest first."""
        dirpath = self.target_dir(target)
        try:
            filenames = os.listdir(dirpath)
        except FileNotFoundError:
            return []
        pattern = target.artifact_regex
        artifacts = []
        for filename in filenames:
            match = pattern.fullmatch(filename)
            if not match:
                continue
            try:
                timestamp = datetime.strptime(match.group('timestamp'), TIMESTAMP_FORMAT)
            except ValueError:
                log.debug(f'Ignoring artifact with invalid timestamp ({filename})')
                continue
            artifacts.append((timestamp, os.path.join(dirpath, filename)))
        return sorted(artifacts, reverse=True)

    def prune(self, target: TargetDescriptor, policy: RetentionPolicy = None,
              now: datetime = None, dry_run: bool = False) -> PruneResult:
        """
        Delete artifacts for `target` that violate `policy`.

        The policy defaults to the target's own policy, then the manager's default.
        An artifact is deleted if it is older than `max_age` OR ranked beyond
        `max_count` (newest first). Failures to delete are logged and pruning
        continues with the remaining artifacts.
        """
        policy = policy or target.retention or self.default_policy
        now = now or self.clock()
        kept, deleted, failed = [], [], []
        for rank, (timestamp, filepath) in enumerate(self.list_artifacts(target), start=1):
            if not policy.expired(rank, now - timestamp):
                kept.append(filepath)
                continue
            if dry_run:
                log.info(f'Would delete {filepath} (target={target.name}, rank={rank})')
                deleted.append(filepath)
                continue
            try:
                self.delete(filepath)
            except RetentionDeleteError as error:
                log.error(f'{error.__class__.__name__}: {error}')
                failed.append(filepath)
            else:
                log.info(f'Deleted {filepath} (target={target.name}, rank={rank})')
                deleted.append(filepath)
        return PruneResult(target=target.name, kept=tuple(kept), deleted=tuple(deleted), failed=tuple(failed))

    @staticmethod
    def delete(filepath: str) -> None:
        """Remove a single artifact."""
        try:
            os.remove(filepath)
        except OSError as error:
            raise RetentionDeleteError(f'Failed to delete {filepath}: {error.strerror or error}') from error
