# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Response formatting for the health-check web service."""


# type annotations
from __future__ import annotations

# standard libs
import json

# external libs
from flask import Response

# internal libs
from ...core.typing import JsonDict

# public interface
__all__ = ['STATUS', 'json_response', ]


STATUS = {
    'OK':                            200,
    'Not Found':                     404,
    'Method Not Allowed':            405,
    'Internal Server Error':         500,
    'Service Unavailable':           503,
}


def json_response(data: JsonDict, status: int = STATUS['OK']) -> Response:
    """Format `data` as JSON response with `status`."""
    return Response(json.dumps(data), status=status, mimetype='application/json')
