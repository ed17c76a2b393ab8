# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Runtime files and folders for each configuration site."""


# standard libs
import os
import stat

# external libs
from cmdkit.config import Namespace

# public interface
__all__ = ['root', 'site', 'site_layout', 'path', 'default_path', 'check_private']


root = os.getuid() == 0
site = 'system' if root else 'user'


def site_layout(prefix: str, config: str, lib: str = None, log: str = None, run: str = None) -> Namespace:
    """
    Directories and files for one configuration site.

    Without explicit `lib`, `log`, and `run` directories they fall under `prefix`.
    Default artifact sink, status file, and pidfile are derived from these.
    """
    lib = lib or os.path.join(prefix, 'lib')
    log = log or os.path.join(prefix, 'log')
    run = run or os.path.join(prefix, 'run')
    return Namespace({
        'lib': lib, 'log': log, 'run': run, 'config': config,
        'sink': os.path.join(lib, 'backups'),
        'statefile': os.path.join(run, 'status.json'),
        'pidfile': os.path.join(run, 'snapcycled.pid'),
    })


_user_prefix = os.path.join(os.getenv('HOME', '/tmp'), '.snapcycle')
_local_prefix = os.path.join(os.getcwd(), '.snapcycle')
path = Namespace({
    'system': site_layout('/', '/etc/snapcycle.toml',
                          lib='/var/lib/snapcycle', log='/var/log/snapcycle', run='/var/run/snapcycle'),
    'user': site_layout(_user_prefix, os.path.join(_user_prefix, 'config.toml')),
    'local': site_layout(_local_prefix, os.path.join(_local_prefix, 'config.toml')),
})


# Only directories for the active site are created
default_path = path[site]
for _dirpath in (default_path.lib, default_path.run, default_path.log):
    os.makedirs(_dirpath, exist_ok=True)


def check_private(filepath: str) -> bool:
    """Check that `filepath` is readable and writable by its owner only."""
    return stat.filemode(os.stat(filepath).st_mode) == '-rw-------'
