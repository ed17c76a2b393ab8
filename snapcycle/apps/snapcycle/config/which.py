# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Show origin of configuration variable."""


# type annotations
from __future__ import annotations

# standard libs
import logging
from functools import partial

# external libs
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface

# internal libs
from ....core.config import config, blame
from ....core.exceptions import log_exception

# public interface
__all__ = ['WhichConfigApp', ]


PROGRAM = 'snapcycle config which'
USAGE = f"""\
usage: {PROGRAM} [-h] SECTION[...].VAR
{__doc__}\
"""

HELP = f"""\
{USAGE}

arguments:
SECTION[...].VAR        Path to variable.

options:
-h, --help              Show this message and exit.\
"""


# application logger
log = logging.getLogger('snapcycle')


class WhichConfigApp(Application):
    """Application class for config which command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    varpath: str = None
    interface.add_argument('varpath', metavar='VAR')

    exceptions = {
        RuntimeError: partial(log_exception, logger=log.critical,
                              status=exit_status.runtime_error),
    }

    def run(self) -> None:
        """Business logic for `config which`."""
        try:
            label = blame(config, *self.varpath.split('.'))
        except KeyError:
            label = None
        if label is None:
            raise RuntimeError(f'"{self.varpath}" not found')
        print(label)
