# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Run a backup cycle now."""


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
from ...core.logging import cli_setup
from ...core.exceptions import log_exception
from ...backup import Scheduler, HealthReporter, load_registry, DuplicateTargetError

# public interface
__all__ = ['RunApp', ]


PROGRAM = 'snapcycle run'
USAGE = f"""\
usage: {PROGRAM} [-h] [TARGET [TARGET...]] [--no-publish] [--debug | --verbose]
{__doc__}\
"""

HELP = f"""\
{USAGE}

arguments:
TARGET                  Name of target (default: all targets).

options:
    --no-publish        Do not update the health status file.
-d, --debug             Show debugging messages.
-v, --verbose           Show information messages.
-h, --help              Show this message and exit.

The status file is only updated when all targets are run.\
"""


# application logger
log = logging.getLogger('snapcycle')


class RunApp(Application):
    """Application class for run command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    names: List[str] = []
    interface.add_argument('names', nargs='*', default=names)

    no_publish: bool = False
    interface.add_argument('--no-publish', action='store_true')

    debug: bool = False
    verbose: bool = False
    logging_interface = interface.add_mutually_exclusive_group()
    logging_interface.add_argument('-d', '--debug', action='store_true')
    logging_interface.add_argument('-v', '--verbose', action='store_true')

    exceptions = {
        RuntimeError: partial(log_exception, logger=log.critical,
                              status=exit_status.runtime_error),
        ConfigurationError: partial(log_exception, logger=log.critical,
                                    status=exit_status.bad_config),
        DuplicateTargetError: partial(log_exception, logger=log.critical,
                                      status=exit_status.bad_config),
    }

    def run(self) -> None:
        """Business logic for `snapcycle run`."""
        registry = load_registry(config)
        if self.names:
            try:
                registry = registry.select(self.names)
            except KeyError as error:
                raise ArgumentError(*error.args) from error
        scheduler = Scheduler.from_config(config, registry=registry)
        if not self.names and not self.no_publish:
            HealthReporter.attach(scheduler, statefile=str(config.health.statefile))
        state = scheduler.run_cycle()
        for record in state.records:
            print(record)
        failed = scheduler.failed_targets()
        if failed:
            raise RuntimeError(f'Snapshot failed for {len(failed)} target(s): {", ".join(failed)}')

    def __enter__(self) -> RunApp:
        """Initialize resources."""
        cli_setup(self)
        return self

    def __exit__(self, *exc) -> None:
        """Release resources."""
