# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""
Scheduled backup coordinator for containerized data services.

This package provides the snapshot executor, retention manager, scheduler
loop and health reporting used by the `snapcycle` and `snapcycled` programs.
"""


from .__meta__ import (__appname__, __version__, __authors__, __contact__, __license__,
                       __copyright__, __description__)


# NOTE: forced logging import triggers configuration and logging setup
from .core.config import config
from .core import logging


# NOTE: render uncaught exceptions with highlighting
import sys
if sys.stdout.isatty():
    from rich.traceback import install
    install()
