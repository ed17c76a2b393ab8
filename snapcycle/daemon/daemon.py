# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Implementation of Unix double-fork method of daemonizing a process."""


# type annotations
from __future__ import annotations

# standard libs
import os
import abc
import sys
import atexit
import logging

# internal libs
from snapcycle.core.platform import default_path

# public interface
__all__ = ['Daemon', ]


# initialize module level logger
log = logging.getLogger(__name__)


class Daemon(abc.ABC):
    """Abstract base class for Daemon processes."""

    @property
    def pidfile(self) -> str:
        """Path to the snapcycle daemon pidfile."""
        return default_path.pidfile

    def read_pid(self) -> int:
        """Process ID from existing pidfile."""
        with open(self.pidfile, mode='r') as pidfile:
            return int(pidfile.read().strip())

    def daemonize(self) -> None:
        """Daemonize class. UNIX double fork mechanism."""

        if os.path.exists(self.pidfile):
            raise RuntimeError(f'already running (pid={self.read_pid()})')
        try:
            pid = os.fork()
            if pid > 0:
                sys.exit(0)  # exit first parent

        except OSError as error:
            raise RuntimeError(f'failed to create first fork: {error.args}.')

        # decouple from parent environment
        os.chdir('/')
        os.setsid()
        os.umask(0o077)

        # do second fork
        try:
            pid = os.fork()
            if pid > 0:
                sys.exit(0)  # exit second parent

        except OSError as error:
            raise RuntimeError(f'failed to create second fork: {error.args}.')

        # redirect standard file descriptors
        sys.stdout.flush()
        sys.stderr.flush()
        with open(os.devnull, 'r') as si, open(os.devnull, 'a+') as so, open(os.devnull, 'a+') as se:
            os.dup2(si.fileno(), sys.stdin.fileno())
            os.dup2(so.fileno(), sys.stdout.fileno())
            os.dup2(se.fileno(), sys.stderr.fileno())

        # automatically remove pidfile at exit
        atexit.register(self._remove_pidfile)

        # create lockfile
        with open(self.pidfile, mode='w') as pidfile:
            pidfile.write(str(os.getpid()))

    def _remove_pidfile(self) -> None:
        """Remove the process ID file."""
        try:
            os.remove(self.pidfile)
        except FileNotFoundError:
            log.warning(f'Pidfile does not exist ({self.pidfile})')
