# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Set variable in configuration file."""


# type annotations
from __future__ import annotations

# standard libs
import logging
from functools import partial

# external libs
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface, ArgumentError

# internal libs
from ....core.config import update, ConfigurationError
from ....core.platform import site as default_site
from ....core.typing import coerce
from ....core.exceptions import log_exception

# public interface
__all__ = ['SetConfigApp', ]


PROGRAM = 'snapcycle config set'
USAGE = f"""\
usage: {PROGRAM} [-h] SECTION[...].VAR VALUE [--system | --user | --local]
{__doc__}\
"""

HELP = f"""\
{USAGE}

arguments:
SECTION[...].VAR        Path to variable.
VALUE                   Value to be set.

options:
    --system            Apply to system configuration.
    --user              Apply to user configuration.
    --local             Apply to local configuration.
-h, --help              Show this message and exit.

The previous file is kept as a timestamped backup.\
"""


# application logger
log = logging.getLogger('snapcycle')


class SetConfigApp(Application):
    """Application class for config set command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    varpath: str = None
    interface.add_argument('varpath', metavar='VAR')

    value: str = None
    interface.add_argument('value', type=coerce)

    local: bool = False
    user: bool = False
    system: bool = False
    site_interface = interface.add_mutually_exclusive_group()
    site_interface.add_argument('--local', action='store_true')
    site_interface.add_argument('--user', action='store_true')
    site_interface.add_argument('--system', action='store_true')

    exceptions = {
        RuntimeError: partial(log_exception, logger=log.critical,
                              status=exit_status.runtime_error),
        ConfigurationError: partial(log_exception, logger=log.critical,
                                    status=exit_status.bad_config),
    }

    def run(self) -> None:
        """Business logic for `config set`."""
        site = default_site
        for key in ('local', 'user', 'system'):
            if getattr(self, key) is True:
                site = key

        if '.' not in self.varpath:
            raise ArgumentError('missing section in variable path')

        section, *subsections, variable = self.varpath.split('.')
        partial_config = {section: {}}
        config_section = partial_config[section]
        for subsection in subsections:
            config_section = config_section.setdefault(subsection, {})

        config_section[variable] = self.value
        update(site, partial_config)
