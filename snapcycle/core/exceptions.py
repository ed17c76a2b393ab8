# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Common exceptions and error handling."""


# type annotations
from typing import Callable

# standard libs
import os
import sys
import datetime
import traceback
import logging

# external libs
from cmdkit.app import exit_status

# internal libs
from snapcycle.core.ansi import Ansi, colorize
from snapcycle.core.platform import default_path

# public interface
__all__ = ['log_exception', 'handle_exception', 'write_traceback', ]


# initialize module level logger
log = logging.getLogger(__name__)


def log_exception(exc: Exception, logger: Callable[[str], None], status: int) -> int:
    """Log the exception and exit with `status`."""
    logger(str(exc))
    return status


def write_traceback(exc: Exception, module: str = None) -> str:
    """
    Write formatted traceback of `exc` to a timestamped file in the log directory.
    A short message is printed to stderr (logging may not be configured yet).
    Returns the path to the new file.
    """
    time = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
    path = os.path.join(default_path.log, f'exception-{time}.log')
    with open(path, mode='w') as stream:
        print(''.join(traceback.format_exception(type(exc), exc, exc.__traceback__)), file=stream)
    msg = str(exc).replace('\n', ' - ')
    label = colorize('CRITICAL', Ansi.MAGENTA) if sys.stderr.isatty() else 'CRITICAL'
    print(f'{label} [{module or __name__}] {exc.__class__.__name__}: {msg}', file=sys.stderr)
    print(f'{label} [{module or __name__}] Exception traceback written to {path}', file=sys.stderr)
    return path


def handle_exception(logger: logging.Logger, exc: Exception) -> int:
    """Write exception to file and return exit code."""
    time = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
    path = os.path.join(default_path.log, f'exception-{time}.log')
    with open(path, mode='w') as stream:
        print(traceback.format_exc(), file=stream)
    msg = str(exc).replace('\n', ' - ')
    logger.critical(f'{exc.__class__.__name__}: {msg}')
    logger.critical(f'Exception traceback written to {path}')
    return exit_status.uncaught_exception
