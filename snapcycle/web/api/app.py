# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Initialize Flask application instance."""


# type annotations
from __future__ import annotations

# standard libs
import logging

# external libs
from flask import Flask, Response, request

# internal libs
from .response import STATUS, json_response
from ...core.config import config
from ...backup.health import HealthReporter

# public interface
__all__ = ['application', 'get_reporter', ]


# initialize module level logger
log = logging.getLogger(__name__)


# flask application
application = Flask(__name__)


def get_reporter() -> HealthReporter:
    """Health reporter for this application (built from configuration on first use)."""
    if 'REPORTER' not in application.config:
        application.config['REPORTER'] = HealthReporter.from_file(str(config.health.statefile),
                                                                  interval=float(config.schedule.interval))
    return application.config['REPORTER']


@application.route('/healthz', methods=['GET', ])
def healthz() -> Response:
    """200 if the last cycle succeeded recently, otherwise 503."""
    if get_reporter().is_healthy():
        return json_response({'Status': 'Healthy'}, status=STATUS['OK'])
    else:
        return json_response({'Status': 'Unhealthy'}, status=STATUS['Service Unavailable'])


@application.route('/status', methods=['GET', ])
def status() -> Response:
    """Details of the last completed cycle."""
    return json_response(get_reporter().status())


@application.errorhandler(STATUS['Not Found'])
def not_found(error) -> Response:  # noqa: unused error object
    """Response to an invalid request."""
    return json_response({'Status': 'Error', 'Message': f'Not found: {request.path}'},
                         status=STATUS['Not Found'])


@application.errorhandler(STATUS['Method Not Allowed'])
def method_not_allowed(error) -> Response:  # noqa: unused error object
    """Response to an invalid request."""
    return json_response({'Status': 'Error', 'Message': f'Method not allowed: {request.method} {request.path}'},
                         status=STATUS['Method Not Allowed'])


@application.before_request
def before_request() -> None:
    """Log start of request."""
    log.debug(f'Request started: {request.method} {request.path}')


@application.after_request
def after_request(response: Response) -> Response:
    """Log end of request."""
    log.debug(f'Request finished: {request.method} {request.path} {response.status}')
    return response
