# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""List configured backup targets."""


# type annotations
from __future__ import annotations

# standard libs
import logging
from functools import partial

# external libs
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface
from rich.console import Console
from rich.table import Table

# internal libs
from ...core.config import config, ConfigurationError
from ...core.exceptions import log_exception
from ...backup import load_registry, DuplicateTargetError

# public interface
__all__ = ['TargetsApp', ]


PROGRAM = 'snapcycle targets'
USAGE = f"""\
usage: {PROGRAM} [-h] [--names]
{__doc__}\
"""

HELP = f"""\
{USAGE}

options:
    --names             Only print target names.
-h, --help              Show this message and exit.\
"""


# application logger
log = logging.getLogger('snapcycle')


class TargetsApp(Application):
    """Application class for targets command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    names_only: bool = False
    interface.add_argument('--names', action='store_true', dest='names_only')

    exceptions = {
        ConfigurationError: partial(log_exception, logger=log.critical,
                                    status=exit_status.bad_config),
        DuplicateTargetError: partial(log_exception, logger=log.critical,
                                      status=exit_status.bad_config),
    }

    def run(self) -> None:
        """Business logic for `snapcycle targets`."""
        registry = load_registry(config)
        if self.names_only:
            for target in registry:
                print(target.name)
            return
        table = Table(title=f'Targets (sink: {config.snapshot.sink})')
        for column in ('name', 'kind', 'pattern', 'retention', 'procedure'):
            table.add_column(column)
        for target in registry:
            retention = 'default'
            if target.retention is not None:
                retention = (f'max_age={target.retention.max_age or "-"} '
                             f'max_count={target.retention.max_count or "-"}')
            table.add_row(target.name, target.kind.value, target.pattern, retention, target.procedure.describe())
        Console().print(table)
