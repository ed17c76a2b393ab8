# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Scheduled backup coordinator: targets, snapshots, retention, scheduling, health."""


# internal libs
from .exceptions import (BackupError, DuplicateTargetError, SnapshotError, SnapshotTimeoutError,
                         SnapshotProcedureError, RetentionDeleteError, SchedulerOverlapWarning)
from .record import Outcome, SnapshotRecord, CoordinatorState, TIMESTAMP_FORMAT
from .procedure import SnapshotProcedure, CommandProcedure, FunctionProcedure, pg_dump, tar_archive
from .retention import RetentionPolicy, RetentionManager, PruneResult
from .target import SourceKind, TargetDescriptor, TargetRegistry
from .executor import SnapshotExecutor
from .scheduler import Scheduler, SchedulerState, load_registry
from .health import HealthReporter, load_state
