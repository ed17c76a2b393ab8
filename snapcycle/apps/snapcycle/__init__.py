# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Entry-point for snapcycle command-line interface."""


# standard libs
import sys
import logging

# internal libs
from ...__meta__ import (__version__, __description__,
                         __copyright__, __developer__, __contact__,
                         __website__, __ascii_art__)
from . import targets, run, prune, health, config

# external libs
from cmdkit.app import Application, ApplicationGroup
from cmdkit.cli import Interface


PROGRAM = 'snapcycle'
USAGE = f"""\
usage: {PROGRAM} [-h] [-v] <command> [<args>...]
{__description__}\
"""

EPILOG = f"""\
Documentation and issue tracking at:
{__website__}

Copyright {__copyright__}
{__developer__} <{__contact__}>\
"""

HELP = f"""\
{USAGE}

commands:
targets                {targets.__doc__}
run                    {run.__doc__}
prune                  {prune.__doc__}
health                 {health.__doc__}
config                 {config.__doc__}

options:
-h, --help             Show this message and exit.
-v, --version          Show the version and exit.

Use the -h/--help flag with the above commands to
learn more about their usage.

{EPILOG}\
"""


# initialize application logger
log = logging.getLogger('snapcycle')


# logging setup for command-line interface
Application.log_critical = log.critical
Application.log_exception = log.exception


class SnapCycleApp(ApplicationGroup):
    """Top-level application class for snapcycle."""

    interface = Interface(PROGRAM, USAGE, HELP)
    interface.add_argument('command')
    interface.add_argument('-v', '--version', action='version', version=__version__)
    interface.add_argument('--ascii-art', action='version', version=__ascii_art__)

    command = None
    commands = {'targets': targets.TargetsApp,
                'run': run.RunApp,
                'prune': prune.PruneApp,
                'health': health.HealthApp,
                'config': config.ConfigApp,
                }


def main() -> int:
    """Entry-point for `snapcycle` console application."""
    return SnapCycleApp.main(sys.argv[1:])
