# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Exceptions raised within the backup coordinator."""


# public interface
__all__ = ['BackupError', 'DuplicateTargetError', 'SnapshotError', 'SnapshotTimeoutError',
           'SnapshotProcedureError', 'RetentionDeleteError', 'SchedulerOverlapWarning', ]


class BackupError(Exception):
    """Base class for backup coordinator errors."""


class DuplicateTargetError(BackupError):
    """A target with the same name is already registered."""


class SnapshotError(BackupError):
    """A snapshot attempt did not produce an artifact."""


class SnapshotTimeoutError(SnapshotError):
    """The snapshot procedure exceeded its allotted time."""


class SnapshotProcedureError(SnapshotError):
    """The snapshot procedure exited non-zero or failed with an I/O error."""


class RetentionDeleteError(BackupError):
    """An expired artifact could not be removed."""


class SchedulerOverlapWarning(UserWarning):
    """A trigger fired while the previous cycle was still running."""
