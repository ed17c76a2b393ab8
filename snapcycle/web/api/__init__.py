# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Health-check web service (`gunicorn snapcycle.web.api`)."""


# internal libs
from .app import application
