# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Allow `python -m snapcycle.apps.snapcycled` (used by daemon mode)."""


# standard libs
import sys

# internal libs
from . import main


sys.exit(main())
