# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Get variable from configuration."""


# type annotations
from __future__ import annotations
from typing import Any

# standard libs
import json
import logging
from functools import partial

# external libs
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface
from cmdkit.config import Namespace

# internal libs
from ....core.config import config, default, reload_file, ConfigurationError
from ....core.platform import path
from ....core.exceptions import log_exception

# public interface
__all__ = ['GetConfigApp', ]


PROGRAM = 'snapcycle config get'
USAGE = f"""\
usage: {PROGRAM} [-h] SECTION[...].VAR [--system | --user | --local]
{__doc__}\
"""

HELP = f"""\
{USAGE}

arguments:
SECTION[...].VAR          Path to variable ('.' for everything).

options:
    --system              Load from system configuration.
    --user                Load from user configuration.
    --local               Load from local configuration.
-h, --help                Show this message and exit.

Without a site option the merged runtime configuration is used
(defaults, files, and environment variables).\
"""


# application logger
log = logging.getLogger('snapcycle')


class GetConfigApp(Application):
    """Application class for config get command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    varpath: str = None
    interface.add_argument('varpath', metavar='VAR')

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
        """Business logic for `config get`."""
        source, label = config, 'configuration'
        for site in ('local', 'user', 'system'):
            if getattr(self, site) is True:
                label = path[site].config
                source = reload_file(label)
        if self.varpath == '.':
            self.print_result({key: source[key] for key in [*default, 'target'] if key in source})
            return
        if self.varpath.startswith('.') or self.varpath.endswith('.'):
            raise RuntimeError(f'Invalid variable path "{self.varpath}"')
        value = source
        subpath = ''
        for key in self.varpath.split('.'):
            subpath = key if not subpath else f'{subpath}.{key}'
            try:
                value = value[key]
            except (KeyError, TypeError) as error:
                raise RuntimeError(f'"{subpath}" not found in {label}') from error
        self.print_result(value)

    @staticmethod
    def print_result(value: Any) -> None:
        """Print value (sections as JSON)."""
        if isinstance(value, dict):
            print(json.dumps(Namespace(value).to_dict(), indent=4, default=str), flush=True)
        else:
            print(value, flush=True)
