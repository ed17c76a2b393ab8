# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Run backup cycles on a fixed schedule."""


# type annotations
from __future__ import annotations

# standard libs
import os
import sys
import signal
import logging
import subprocess
from functools import partial

# external libs
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface, ArgumentError

# internal libs
from ...daemon import Daemon
from ...backup import Scheduler, HealthReporter, DuplicateTargetError
from ...core.config import config, ConfigurationError
from ...core.platform import default_path
from ...core.logging import cli_setup
from ...core.exceptions import log_exception, handle_exception
from ...__meta__ import __version__, __copyright__, __developer__, __contact__, __website__


PROGRAM = 'snapcycled'
USAGE = f"""\
usage: {PROGRAM} [-h] [-v] [--once | --daemon] [--debug | --verbose]
{__doc__}\
"""

EPILOG = f"""\
Documentation and issue tracking at:
{__website__}

Copyright {__copyright__}
{__developer__} <{__contact__}>\
"""

HELP = f"""\
{USAGE}

options:
    --once             Run a single cycle and exit (non-zero on failure).
    --daemon           Run in daemon mode.
-d, --debug            Show debugging messages.
    --verbose          Show information messages.
-h, --help             Show this message and exit.
-v, --version          Show the version and exit.

The first cycle starts immediately, then every `schedule.interval` seconds.
SIGINT or SIGTERM lets an in-flight cycle finish (up to `schedule.grace`
seconds) before exiting.

{EPILOG}\
"""


# initialize top-level daemon logger
log = logging.getLogger('snapcycled')


# logging setup for command-line interface
Application.log_critical = log.critical
Application.log_exception = log.exception


class SnapCycleDaemonApp(Application, Daemon):
    """Application class for the backup daemon, `snapcycled`."""

    interface = Interface(PROGRAM, USAGE, HELP)
    interface.add_argument('-v', '--version', version=__version__, action='version')

    once_mode: bool = False
    daemon_mode: bool = False
    mode_interface = interface.add_mutually_exclusive_group()
    mode_interface.add_argument('--once', action='store_true', dest='once_mode')
    mode_interface.add_argument('--daemon', action='store_true', dest='daemon_mode')

    debug: bool = False
    verbose: bool = False
    logging_interface = interface.add_mutually_exclusive_group()
    logging_interface.add_argument('-d', '--debug', action='store_true')
    logging_interface.add_argument('--verbose', action='store_true')

    exceptions = {
        RuntimeError: partial(log_exception, logger=log.critical,
                              status=exit_status.runtime_error),
        ConfigurationError: partial(log_exception, logger=log.critical,
                                    status=exit_status.bad_config),
        DuplicateTargetError: partial(log_exception, logger=log.critical,
                                      status=exit_status.bad_config),
        PermissionError: partial(handle_exception, log),
        FileNotFoundError: partial(handle_exception, log),
    }

    scheduler: Scheduler = None
    reporter: HealthReporter = None

    def run(self) -> None:
        """Start the backup scheduler."""
        if self.daemon_mode:
            self.run_daemon()
            return
        self.scheduler = Scheduler.from_config(config)
        self.reporter = HealthReporter.attach(self.scheduler, statefile=str(config.health.statefile))
        if self.once_mode:
            self.run_once()
        else:
            self.install_signal_handlers()
            self.scheduler.serve_forever()

    def run_once(self) -> None:
        """Run a single cycle, raise if any target failed."""
        self.scheduler.run_cycle()
        failed = self.scheduler.failed_targets()
        if failed:
            raise RuntimeError(f'Snapshot failed for {len(failed)} target(s): {", ".join(failed)}')

    def install_signal_handlers(self) -> None:
        """Stop scheduler on interrupt or termination."""
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, self.handle_signal)

    def handle_signal(self, signum: int, frame) -> None:  # noqa: unused frame
        """Request graceful shutdown of the scheduler."""
        log.info(f'Received {signal.Signals(signum).name} - draining')
        self.scheduler.stop()

    def run_daemon(self) -> None:
        """Run as a daemon."""
        # NOTE: A simple way of running as a daemon while also seamlessly redirecting
        #       all stderr is to subprocess with a redirect in normal mode
        self.daemonize()
        logpath = os.path.join(default_path.log, 'snapcycled.log')
        env = {**os.environ,
               'SNAPCYCLE_LOGGING_STYLE': 'system',
               'SNAPCYCLE_LOGGING_LEVEL': 'DEBUG' if config.logging.level.upper() == 'DEBUG' else 'INFO'}
        with open(logpath, mode='a') as logfile:
            subprocess.run([sys.executable, '-m', 'snapcycle.apps.snapcycled'], stderr=logfile, env=env)

    def __enter__(self) -> SnapCycleDaemonApp:
        """Initialize resources."""
        if self.daemon_mode and (self.debug or self.verbose):
            raise ArgumentError('Use `logging.level` configuration with --daemon')
        cli_setup(self)
        return self

    def __exit__(self, *exc) -> None:
        """Release resources."""
        if self.scheduler is not None and not self.once_mode:
            self.scheduler.shutdown()


def main() -> int:
    """Entry-point for `snapcycled` console application."""
    return SnapCycleDaemonApp.main(sys.argv[1:])
