# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""
Runtime configuration.

Files:
         /etc/snapcycle.toml    System
    ~/.snapcycle/config.toml    User
      .snapcycle/config.toml    Local

Environment variables (e.g., SNAPCYCLE_SCHEDULE_INTERVAL) override files.
"""


# type annotations
from __future__ import annotations
from typing import Optional, Protocol, Mapping

# standard libs
import os
import sys
import shutil
import logging
import functools
from datetime import datetime

# external libs
import tomlkit
from cmdkit.app import exit_status
from cmdkit.config import Namespace, Environ, Configuration, ConfigurationError

# internal libs
from snapcycle.core.platform import path, default_path, check_private
from snapcycle.core.exceptions import write_traceback

# public interface
__all__ = ['config', 'update', 'default', 'ConfigurationError', 'Namespace', 'blame',
           'load', 'reload', 'load_file', 'reload_file', 'load_env', 'reload_env',
           'DEFAULT_LOGGING_STYLE', 'DEFAULT_SINK', 'DEFAULT_STATEFILE', 'LOGGING_STYLES', ]

# partial logging (not yet configured - initialized afterward)
log = logging.getLogger(__name__)


DEFAULT_LOGGING_STYLE = 'default'
LOGGING_STYLES = {
    'default': {
        'datefmt': '%Y-%m-%d %H:%M:%S',
        'format': ('%(ansi_bold)s%(ansi_level)s%(levelname)8s%(ansi_reset)s %(ansi_faint)s[%(name)s]%(ansi_reset)s'
                   ' %(message)s'),
    },
    'system': {
        'datefmt': '%Y-%m-%d %H:%M:%S',
        'format': '%(asctime)s.%(msecs)03d %(hostname)s %(levelname)8s [%(app_id)s] [%(name)s] %(message)s',
    },
    'detailed': {
        'datefmt': '%Y-%m-%d %H:%M:%S',
        'format': ('%(ansi_faint)s%(asctime)s.%(msecs)03d %(hostname)s %(ansi_reset)s'
                   '%(ansi_level)s%(ansi_bold)s%(levelname)8s%(ansi_reset)s '
                   '%(ansi_faint)s[%(name)s]%(ansi_reset)s %(message)s'),
    }
}


# Artifacts are written here if `snapshot.sink` is not configured
DEFAULT_SINK = default_path.sink


# Shared state between the scheduler and health queries
DEFAULT_STATEFILE = default_path.statefile


# Environment variables and configuration files are automatically merged with defaults
default = Namespace({

    'logging': {
        'level': 'warning',
        # NOTE: If a 'style' is defined than other parameters can be overridden
        'style': DEFAULT_LOGGING_STYLE,
        **LOGGING_STYLES.get(DEFAULT_LOGGING_STYLE),
    },

    'schedule': {
        'interval': 86_400,  # Seconds between cycle starts
        'grace': 60,  # Seconds to wait on in-flight cycle at shutdown before aborting
    },

    'snapshot': {
        'timeout': 7_200,  # Seconds allowed for a single snapshot attempt
        'sink': DEFAULT_SINK,
    },

    'retention': {
        'max_age': 0,  # Seconds, zero means no age limit
        'max_count': 0,  # Zero means no count limit
    },

    'health': {
        'statefile': DEFAULT_STATEFILE,
        'bind': '0.0.0.0',
        'port': 8080,
        'workers': 1,
    },
})


def reload_file(filepath: str) -> Namespace:
    """Force reloading configuration file."""
    if not os.path.exists(filepath):
        return Namespace({})
    if not check_private(filepath):
        raise ConfigurationError(f'Non-private file permissions ({filepath})')
    try:
        return Namespace.from_toml(filepath)
    except Exception as err:
        raise ConfigurationError(f'(from file: {filepath}) {err.__class__.__name__}: {err}')


@functools.lru_cache(maxsize=None)
def load_file(filepath: str) -> Namespace:
    """Load configuration file."""
    return reload_file(filepath)


# Configuration keys that contain an underscore
COMPOUND_KEYS = ('max_age', 'max_count', 'password_env', )

# Fields of a `[target.<name>]` table (used to find target names in the environment)
TARGET_KEYS = {'kind', 'path', 'host', 'port', 'user', 'database', 'password_env',
               'pattern', 'command', 'retention', }


def _restore_keys(data: Mapping) -> dict:
    """
    Rejoin `COMPOUND_KEYS` split apart by environment expansion
    (e.g., `retention.max.count` becomes `retention.max_count`).
    """
    result = {key: _restore_keys(value) if isinstance(value, Mapping) else value
              for key, value in data.items()}
    for compound in COMPOUND_KEYS:
        first, second = compound.split('_', 1)
        inner = result.get(first)
        if isinstance(inner, dict) and second in inner and not isinstance(inner[second], dict):
            result[compound] = inner.pop(second)
            if not inner:
                result.pop(first)
    return result


def _join_target_names(section: Mapping, prefix: str = None) -> dict:
    """Rejoin target names containing underscores (e.g., `target.my.db.kind` as `target.my_db.kind`)."""
    targets = {}
    for key, value in section.items():
        name = key if prefix is None else f'{prefix}_{key}'
        if isinstance(value, dict) and value and not set(value) & TARGET_KEYS:
            targets.update(_join_target_names(value, prefix=name))
        else:
            targets[name] = value
    return targets


def reload_env() -> Namespace:
    """Force reloading environment variables and expanding hierarchy as namespace."""
    env = _restore_keys(Environ(prefix='SNAPCYCLE').expand())
    if isinstance(env.get('target'), dict):
        env['target'] = _join_target_names(env['target'])
    return Namespace(env)


@functools.lru_cache(maxsize=None)
def load_env() -> Namespace:
    """Load environment variables and expand hierarchy as namespace."""
    return reload_env()


def partial_load(**preload: Namespace) -> Configuration:
    """Load configuration from files and merge environment variables."""
    return Configuration(**{
        'default': default, **preload,
        'system': load_file(path.system.config),
        'user': load_file(path.user.config),
        'local': load_file(path.local.config),
        'env': load_env(),
    })


def partial_reload(**preload: Namespace) -> Configuration:
    """Force reload configuration from files and merge environment variables."""
    return Configuration(**{
        'default': default, **preload,
        'system': reload_file(path.system.config),
        'user': reload_file(path.user.config),
        'local': reload_file(path.local.config),
        'env': reload_env(),
    })


def blame(base: Configuration, *varpath: str) -> Optional[str]:
    """Construct filename or variable assignment string based on precedent of `varpath`."""
    source = base.which(*varpath)
    if not source:
        return None
    if source in ('system', 'user', 'local'):
        return f'from: {path.get(source).config}'
    elif source == 'env':
        return 'from: SNAPCYCLE_' + '_'.join([node.upper() for node in varpath])
    else:
        return f'from: <{source}>'


def get_logging_style(base: Configuration) -> str:
    """Get and check valid on `config.logging.style`."""
    style = base.logging.style
    label = blame(base, 'logging', 'style')
    if not isinstance(style, str):
        raise ConfigurationError(f'Expected string for `logging.style` ({label})')
    style = style.lower()
    if style in LOGGING_STYLES:
        return style
    else:
        raise ConfigurationError(f'Unrecognized `logging.style` \'{style}\' ({label})')


def build_preloads(base: Configuration) -> Namespace:
    """Build 'preload' namespace from base configuration."""
    return Namespace({'logging': LOGGING_STYLES.get(get_logging_style(base))})


class LoaderImpl(Protocol):
    """Loader interface for building configuration."""
    def __call__(self: LoaderImpl, **preloads: Namespace) -> Configuration: ...


def build_configuration(loader: LoaderImpl) -> Configuration:
    """Construct full configuration."""
    return loader(preload=build_preloads(base=loader()))


def load() -> Configuration:
    """Load configuration from files and merge environment variables."""
    return build_configuration(loader=partial_load)


def reload() -> Configuration:
    """Force reload configuration from files and merge environment variables."""
    return build_configuration(loader=partial_reload)


try:
    config = load()
except Exception as error:
    write_traceback(error, module=__name__)
    sys.exit(exit_status.bad_config)


DEFAULT_CONFIG_BODY = f"""\
# Default configuration created on {datetime.now()}
# Values are commented here for explanatory purposes

# [logging]
# level = '{default.logging.level}'
# style = '{default.logging.style}'

# [schedule]
# interval = {default.schedule.interval}  # Seconds between cycle starts
# grace = {default.schedule.grace}  # Seconds to wait on in-flight cycle at shutdown

# [snapshot]
# timeout = {default.snapshot.timeout}  # Seconds allowed for a single snapshot attempt
# sink = '{default.snapshot.sink}'

# [retention]
# max_age = {default.retention.max_age}  # Seconds (zero disables)
# max_count = {default.retention.max_count}  # Artifacts kept per target (zero disables)

# [health]
# statefile = '{default.health.statefile}'
# port = {default.health.port}

# [target.postgres]
# kind = 'relational_db'
# host = 'postgres'
# database = 'n8n'
# user = 'postgres'  # Or SNAPCYCLE_TARGET_POSTGRES_USER
# password_env = 'POSTGRES_PASSWORD'  # Name of environment variable holding password

# [target.chroma]
# kind = 'file_tree'
# path = '/chroma/chroma'
# retention = {{ max_count = 7 }}

"""


def init_default(scope: str) -> None:
    """Write default configuration to disk."""
    config_path = path[scope].config
    if not os.path.exists(config_path):
        with open(config_path, mode='w') as stream:
            stream.write(DEFAULT_CONFIG_BODY)
        os.chmod(config_path, 0o600)


def update(scope: str, partial: dict) -> None:
    """Extend the current configuration and commit it to disk."""
    config_path = path[scope].config

    os.makedirs(os.path.dirname(config_path), exist_ok=True)
    if os.path.exists(config_path):
        timestamp = datetime.now().strftime('%Y%m%d-%H%M%S')
        config_backup_path = os.path.join(os.path.dirname(config_path),
                                          f'.{os.path.basename(config_path)}.{timestamp}.backup')
        shutil.copy(config_path, config_backup_path)
        shutil.copystat(config_path, config_backup_path)
        log.debug(f'Created backup file ({config_backup_path})')
    else:
        init_default(scope)
    with open(config_path, mode='r') as stream:
        new_config = tomlkit.parse(stream.read())
    _inplace_update(new_config, partial)
    with open(config_path, mode='w') as stream:
        tomlkit.dump(new_config, stream)


# Re-implemented from `cmdkit.config.Namespace` (but works with `tomlkit`)
def _inplace_update(original: dict, partial: dict) -> dict:
    """
    Like normal `dict.update` but if values in both are mappable, descend
    a level deeper (recursive) and apply updates there instead.
    """
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(original.get(key), dict):
            original[key] = _inplace_update(original.get(key, {}), value)
        else:
            original[key] = value
    return original
