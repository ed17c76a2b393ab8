# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Snapshot procedures (external commands or Python callables)."""


# type annotations
from __future__ import annotations
from typing import List, Dict, Callable, Optional, Sequence

# standard libs
import os
import abc
import shlex
import logging
from signal import SIGINT
from threading import Thread, Lock
from subprocess import Popen, PIPE, DEVNULL, TimeoutExpired

# internal libs
from snapcycle.backup.exceptions import SnapshotTimeoutError, SnapshotProcedureError

# public interface
__all__ = ['SnapshotProcedure', 'CommandProcedure', 'FunctionProcedure',
           'pg_dump', 'tar_archive', 'from_template', 'ARTIFACT', ]


# initialize module level logger
log = logging.getLogger(__name__)


# Placeholder substituted with the output path in command templates
ARTIFACT = '{artifact}'


# Seconds to wait after each escalation (interrupt, terminate) before the next
KILL_TIMEOUT: float = 4


# Characters of stderr kept in failure details
STDERR_TAIL: int = 400


class SnapshotProcedure(abc.ABC):
    """Produce a snapshot artifact at a given path."""

    @abc.abstractmethod
    def execute(self, artifact: str, timeout: float) -> None:
        """
        Write the snapshot to `artifact` within `timeout` seconds.

        Raises:
            SnapshotTimeoutError: `timeout` expired before completion.
            SnapshotProcedureError: The procedure failed.
        """

    def cancel(self) -> None:
        """Abort a running execution if possible."""

    @abc.abstractmethod
    def describe(self) -> str:
        """Short human readable form."""


class CommandProcedure(SnapshotProcedure):
    """
    Run an external command to produce the artifact.

    Occurrences of `{artifact}` in `argv` are replaced with the output path.
    If no argument contains the placeholder, standard output is written to
    the artifact instead (like `pg_dump ... > file`).

    Values in `environ` are passed to the child as-is. Names in `secrets` map a
    child variable to the name of a variable in *our* environment, which is
    resolved only at execution time (e.g., {'PGPASSWORD': 'POSTGRES_PASSWORD'}).
    """

    argv: List[str]
    environ: Dict[str, str]
    secrets: Dict[str, str]
    kill_timeout: float

    _process: Optional[Popen] = None
    _cancelled: bool = False

    def __init__(self, argv: Sequence[str], environ: Dict[str, str] = None,
                 secrets: Dict[str, str] = None, kill_timeout: float = KILL_TIMEOUT) -> None:
        """Initialize directly."""
        if not argv:
            raise ValueError('Empty command for snapshot procedure')
        self.argv = list(argv)
        self.environ = dict(environ or {})
        self.secrets = dict(secrets or {})
        self.kill_timeout = kill_timeout
        self._lock = Lock()

    @property
    def writes_stdout(self) -> bool:
        """True if the artifact is captured from standard output."""
        return not any(ARTIFACT in arg for arg in self.argv)

    def build_argv(self, artifact: str) -> List[str]:
        """Substitute `artifact` into command template."""
        return [arg.replace(ARTIFACT, artifact) for arg in self.argv]

    def build_env(self) -> Dict[str, str]:
        """Child process environment with secrets resolved."""
        env = {**os.environ, **self.environ}
        for name, source in self.secrets.items():
            value = os.getenv(source)
            if value is None:
                log.warning(f'Environment variable \'{source}\' not defined (needed for {name})')
            else:
                env[name] = value
        return env

    def execute(self, artifact: str, timeout: float) -> None:
        """Run command and wait at most `timeout` seconds."""
        argv = self.build_argv(artifact)
        log.debug(f'Running: {shlex.join(argv)}')
        stdout = None
        try:
            stdout = open(artifact, mode='wb') if self.writes_stdout else DEVNULL
            with self._lock:
                self._cancelled = False
                self._process = Popen(argv, stdout=stdout, stderr=PIPE, stdin=DEVNULL, env=self.build_env())
            try:
                _, stderr = self._process.communicate(timeout=timeout)
            except TimeoutExpired as error:
                self.kill()
                raise SnapshotTimeoutError(f'Command exceeded timeout of {timeout:g} seconds '
                                           f'({argv[0]})') from error
        except OSError as error:
            raise SnapshotProcedureError(f'Failed to run {argv[0]}: {error}') from error
        finally:
            if stdout is not None and stdout is not DEVNULL:
                stdout.close()
        status = self._process.returncode
        if self._cancelled:
            raise SnapshotProcedureError(f'Command cancelled ({argv[0]})')
        if status != 0:
            detail = stderr.decode(errors='replace').strip()[-STDERR_TAIL:]
            raise SnapshotProcedureError(f'Command exited with status {status} ({argv[0]})' +
                                         (f': {detail}' if detail else ''))

    def kill(self) -> None:
        """Stop the running process (interrupt, then terminate, then kill)."""
        with self._lock:
            process = self._process
        if process is None or process.poll() is not None:
            return
        try:
            log.debug(f'Interrupting process ({process.pid})')
            process.send_signal(SIGINT)
            process.wait(timeout=self.kill_timeout)
        except TimeoutExpired:
            log.error(f'Interrupt failed ({process.pid}) - terminating now')
            try:
                process.terminate()
                process.wait(timeout=self.kill_timeout)
            except TimeoutExpired:
                log.error(f'Terminate failed ({process.pid}) - killing now')
                process.kill()
                process.wait()

    def cancel(self) -> None:
        """Kill the running process."""
        self._cancelled = True
        self.kill()

    def describe(self) -> str:
        return shlex.join(self.argv)


class FunctionProcedure(SnapshotProcedure):
    """
    Call a Python function with the artifact path.

    The function runs in a separate thread so the timeout can be enforced.
    A thread cannot be killed; an expired call keeps running in the background
    and further executions are refused until it finishes.
    """

    function: Callable[[str], None]

    _thread: Optional[Thread] = None
    _error: Optional[BaseException] = None

    def __init__(self, function: Callable[[str], None]) -> None:
        """Initialize directly."""
        self.function = function

    @property
    def busy(self) -> bool:
        """A previous call is still running."""
        return self._thread is not None and self._thread.is_alive()

    def _call(self, artifact: str) -> None:
        try:
            self.function(artifact)
        except Exception as error:
            self._error = error

    def execute(self, artifact: str, timeout: float) -> None:
        """Call function and wait at most `timeout` seconds."""
        if self.busy:
            raise SnapshotProcedureError(f'Previous call to {self.describe()} still running')
        self._error = None
        self._thread = Thread(target=self._call, args=(artifact, ), daemon=True,
                              name=f'SnapshotFunction-{self.describe()}')
        self._thread.start()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            raise SnapshotTimeoutError(f'Function exceeded timeout of {timeout:g} seconds ({self.describe()})')
        if self._error is not None:
            raise SnapshotProcedureError(f'{self._error.__class__.__name__}: {self._error}') from self._error

    def describe(self) -> str:
        return getattr(self.function, '__name__', repr(self.function))


def pg_dump(database: str, host: str = None, port: int = None, user: str = None,
            password_env: str = 'PGPASSWORD', options: Sequence[str] = ('--format=custom', )) -> CommandProcedure:
    """Build procedure for dumping a PostgreSQL `database` with `pg_dump`."""
    argv = ['pg_dump', *options, '--file', ARTIFACT, '--no-password']
    if host:
        argv += ['--host', str(host)]
    if port:
        argv += ['--port', str(port)]
    if user:
        argv += ['--username', str(user)]
    argv.append(database)
    return CommandProcedure(argv, secrets={'PGPASSWORD': password_env})


def tar_archive(path: str) -> CommandProcedure:
    """Build procedure for a gzip compressed archive of the directory `path`."""
    return CommandProcedure(['tar', '--create', '--gzip', '--file', ARTIFACT, '--directory', path, '.'])


def from_template(command: str, password_env: str = None) -> CommandProcedure:
    """Build procedure from shell-like `command` template."""
    secrets = {'PGPASSWORD': password_env} if password_env else None
    return CommandProcedure(shlex.split(command), secrets=secrets)
