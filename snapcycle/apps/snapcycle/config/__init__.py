# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Manage configuration."""


# external libs
from cmdkit.app import ApplicationGroup
from cmdkit.cli import Interface

# internal libs
from . import get, set, which


PROGRAM = 'snapcycle config'
USAGE = f"""\
usage: {PROGRAM} [-h] <command> [<args>...]
{__doc__}\
"""

HELP = f"""\
{USAGE}

commands:
get                         {get.__doc__}
set                         {set.__doc__}
which                       {which.__doc__}

options:
-h, --help                  Show this message and exit.

files:
/etc/snapcycle.toml         System configuration.
~/.snapcycle/config.toml    User configuration.
./.snapcycle/config.toml    Local configuration.

Use the -h/--help flag with the above commands to
learn more about their usage.\
"""


class ConfigApp(ApplicationGroup):
    """Application class for config command group."""

    interface = Interface(PROGRAM, USAGE, HELP)
    interface.add_argument('command')

    command = None
    commands = {'get': get.GetConfigApp,
                'set': set.SetConfigApp,
                'which': which.WhichConfigApp, }
