# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Package metadata for snapcycle."""


__appname__     = 'snapcycle'
__version__     = '0.4.0'
__authors__     = ['SnapCycle Developers <maintainers@snapcycle.dev>', ]
__developer__   = 'SnapCycle Developers'
__contact__     = 'maintainers@snapcycle.dev'
__license__     = 'Apache License 2.0'
__website__     = 'https://github.com/snapcycle/snapcycle'
__copyright__   = 'SnapCycle Developers 2024'
__description__ = 'Scheduled backup coordinator for containerized data services.'
__keywords__    = 'backup snapshot retention scheduler postgres service'
__ascii_art__   = r"""
   _____                   ______           __
  / ___/____  ____ _____  / ____/_  _______/ /__
  \__ \/ __ \/ __ `/ __ \/ /   / / / / ___/ / _ \
 ___/ / / / / /_/ / /_/ / /___/ /_/ / /__/ /  __/
/____/_/ /_/\__,_/ .___/\____/\__, /\___/_/\___/
                /_/          /____/
"""
