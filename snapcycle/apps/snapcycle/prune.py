# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Delete expired backup artifacts."""


# type annotations
from __future__ import annotations
from typing import List

# standard libs
import logging
from functools import partial

# external libs
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface, ArgumentError

# internal libs
from ...core.config import config, ConfigurationError
from ...core.exceptions import log_exception
from ...backup import RetentionManager, RetentionPolicy, load_registry, DuplicateTargetError

# public interface
__all__ = ['PruneApp', ]


PROGRAM = 'snapcycle prune'
USAGE = f"""\
usage: {PROGRAM} [-h] [TARGET [TARGET...]] [--dry-run]
{__doc__}\
"""

HELP = f"""\
{USAGE}

arguments:
TARGET                  Name of target (default: all targets).

options:
    --dry-run           Show what would be deleted.
-h, --help              Show this message and exit.

Artifacts older than `max_age` or beyond the newest `max_count`
are deleted (per-target policy or the global [retention] section).\
"""


# application logger
log = logging.getLogger('snapcycle')


class PruneApp(Application):
    """Application class for prune command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    names: List[str] = []
    interface.add_argument('names', nargs='*', default=names)

    dry_run: bool = False
    interface.add_argument('--dry-run', action='store_true')

    exceptions = {
        RuntimeError: partial(log_exception, logger=log.critical,
                              status=exit_status.runtime_error),
        ConfigurationError: partial(log_exception, logger=log.critical,
                                    status=exit_status.bad_config),
        DuplicateTargetError: partial(log_exception, logger=log.critical,
                                      status=exit_status.bad_config),
    }

    def run(self) -> None:
        """Business logic for `snapcycle prune`."""
        registry = load_registry(config)
        if self.names:
            try:
                registry = registry.select(self.names)
            except KeyError as error:
                raise ArgumentError(*error.args) from error
        manager = RetentionManager(str(config.snapshot.sink),
                                   default_policy=RetentionPolicy.from_config(config.retention))
        failed = 0
        for target in registry:
            result = manager.prune(target, dry_run=self.dry_run)
            action = 'would delete' if self.dry_run else 'deleted'
            print(f'{target.name}: kept {len(result.kept)}, {action} {len(result.deleted)}, '
                  f'failed {len(result.failed)}')
            for filepath in result.deleted:
                print(f'  - {filepath}')
            failed += len(result.failed)
        if failed:
            raise RuntimeError(f'Failed to delete {failed} artifact(s)')
