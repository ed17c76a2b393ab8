# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Check health of the backup daemon or serve health endpoint."""


# type annotations
from __future__ import annotations

# standard libs
import sys
import json
import logging
import subprocess
from functools import partial

# external libs
import requests
from cmdkit.app import Application, exit_status
from cmdkit.cli import Interface, ArgumentError

# internal libs
from ...core.ansi import Ansi, colorize
from ...core.config import config
from ...core.logging import HOSTNAME, cli_setup
from ...core.exceptions import log_exception
from ...backup import HealthReporter
from ...web.api import application as api

# public interface
__all__ = ['HealthApp', 'Unhealthy', ]


PROGRAM = 'snapcycle health'
USAGE = f"""\
usage: {PROGRAM} [-h] [--json] [--url URL]
       {PROGRAM} [-h] --serve [--bind ADDR] [--port INT] [--workers INT] [--dev]
{__doc__}\
"""

HELP = f"""\
{USAGE}

options:
    --json              Print status details as JSON.
    --url       URL     Query a running health service instead of the status file.
    --serve             Run the health web service.
-b, --bind      ADDR    Bind address (default: from `health.bind`).
-p, --port      INT     Port number (default: from `health.port`).
-w, --workers   INT     Number of concurrent workers.
    --dev               Run in development mode (Flask server).
-d, --debug             Show debugging messages.
-h, --help              Show this message and exit.

Exits with status 0 if healthy and 1 if not. The service responds
to GET /healthz with 200 or 503 and to GET /status with details.\
"""


# application logger
log = logging.getLogger('snapcycle')


# seconds to wait on remote health service
REQUEST_TIMEOUT: float = 5


class Unhealthy(Exception):
    """The last backup cycle failed or is too old."""


class HealthApp(Application):
    """Application class for health command."""

    interface = Interface(PROGRAM, USAGE, HELP)

    as_json: bool = False
    interface.add_argument('--json', action='store_true', dest='as_json')

    url: str = None
    interface.add_argument('--url', default=url)

    serve: bool = False
    interface.add_argument('--serve', action='store_true')

    bind: str = None
    interface.add_argument('-b', '--bind', default=bind)

    port: int = None
    interface.add_argument('-p', '--port', type=int, default=port)

    workers: int = None
    interface.add_argument('-w', '--workers', type=int, default=workers)

    dev_mode: bool = False
    interface.add_argument('--dev', action='store_true', dest='dev_mode')

    debug: bool = False
    interface.add_argument('-d', '--debug', action='store_true')

    exceptions = {
        Unhealthy: partial(log_exception, logger=log.error, status=1),
        requests.RequestException: partial(log_exception, logger=log.critical,
                                           status=exit_status.runtime_error),
    }

    def run(self) -> None:
        """Business logic for `snapcycle health`."""
        if self.serve:
            self.run_server()
        elif self.url:
            self.check_remote()
        else:
            self.check_local()

    def check_local(self) -> None:
        """Check the published status file."""
        reporter = HealthReporter.from_file(str(config.health.statefile), interval=float(config.schedule.interval))
        status = reporter.status()
        self.report(status)
        if not status['healthy']:
            raise Unhealthy(self.describe(status))

    def check_remote(self) -> None:
        """Query the `/status` endpoint of a running health service."""
        response = requests.get(self.url.rstrip('/') + '/status', timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        status = response.json()
        self.report(status)
        if not status['healthy']:
            raise Unhealthy(self.describe(status))

    def report(self, status: dict) -> None:
        """Print status to stdout."""
        if self.as_json:
            print(json.dumps(status, indent=4))
        elif sys.stdout.isatty():
            print(colorize('healthy', Ansi.GREEN) if status['healthy'] else colorize('unhealthy', Ansi.RED))
        else:
            print('healthy' if status['healthy'] else 'unhealthy')

    @staticmethod
    def describe(status: dict) -> str:
        """Reason for unhealthy `status`."""
        if not status.get('records'):
            return 'No completed backup cycle'
        failed = [record['target'] for record in status['records'] if record['outcome'] != 'success']
        if failed:
            return f'Snapshot failed for: {", ".join(failed)}'
        return f'Last cycle started {status["age"]:.0f} seconds ago (interval {status["interval"]:g})'

    def run_server(self) -> None:
        """Run the health web service."""
        bind = self.bind or str(config.health.bind)
        port = self.port or int(config.health.port)
        workers = self.workers or int(config.health.workers)
        if self.dev_mode:
            api.run(bind, port, debug=True)
            return
        log.info(f'Starting health service [{HOSTNAME}:{port}] with {workers} workers')
        cmd = ['gunicorn', '--bind', f'{bind}:{port}', '--workers', f'{workers}', 'snapcycle.web.api']
        subprocess.run(cmd, stdout=sys.stdout, stderr=sys.stderr)

    def __enter__(self) -> HealthApp:
        """Initialize resources."""
        if not self.serve and (self.bind or self.port or self.workers or self.dev_mode):
            raise ArgumentError('--bind, --port, --workers, and --dev require --serve')
        if self.serve and self.url:
            raise ArgumentError('--url cannot be used with --serve')
        cli_setup(self)
        return self

    def __exit__(self, *exc) -> None:
        """Release resources."""
