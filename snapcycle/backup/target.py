# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Backup target descriptors and the target registry."""


# type annotations
from __future__ import annotations
from typing import Dict, List, Iterable, Iterator, Optional, Mapping, Any, Pattern

# standard libs
import re
import logging
from enum import Enum
from dataclasses import dataclass

# external libs
from cmdkit.config import ConfigurationError

# internal libs
from snapcycle.backup.exceptions import DuplicateTargetError
from snapcycle.backup.retention import RetentionPolicy
from snapcycle.backup.procedure import SnapshotProcedure, pg_dump, tar_archive, from_template

# public interface
__all__ = ['SourceKind', 'TargetDescriptor', 'TargetRegistry', 'DEFAULT_PATTERN', ]


# initialize module level logger
log = logging.getLogger(__name__)


class SourceKind(str, Enum):
    """Kind of data source for a target."""
    RELATIONAL_DB = 'relational_db'
    FILE_TREE = 'file_tree'


DEFAULT_PATTERN: Dict[SourceKind, str] = {
    SourceKind.RELATIONAL_DB: '{name}_{timestamp}.dump',
    SourceKind.FILE_TREE: '{name}_{timestamp}.tar.gz',
}


# Target names become directory names in the sink
NAME_PATTERN = re.compile(r'[A-Za-z0-9][A-Za-z0-9_.-]*')


# Allowed fields for `[target.<name>]` configuration tables
TARGET_FIELDS = {
    SourceKind.RELATIONAL_DB: {'kind', 'pattern', 'command', 'retention',
                               'host', 'port', 'user', 'database', 'password_env'},
    SourceKind.FILE_TREE: {'kind', 'pattern', 'command', 'retention', 'path'},
}


@dataclass(frozen=True)
class TargetDescriptor:
    """A named data source and the procedure used to snapshot it."""

    name: str
    kind: SourceKind
    procedure: SnapshotProcedure
    pattern: str = None
    retention: Optional[RetentionPolicy] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not NAME_PATTERN.fullmatch(self.name):
            raise ValueError(f'Invalid target name \'{self.name}\'')
        object.__setattr__(self, 'kind', SourceKind(self.kind))
        if self.pattern is None:
            object.__setattr__(self, 'pattern', DEFAULT_PATTERN[self.kind])
        if self.pattern.count('{timestamp}') != 1:
            raise ValueError(f'Pattern for target \'{self.name}\' needs exactly one {{timestamp}} ({self.pattern})')
        if '/' in self.pattern:
            raise ValueError(f'Pattern for target \'{self.name}\' cannot contain \'/\' ({self.pattern})')

    def artifact_name(self, timestamp: str) -> str:
        """Filename of the artifact for the formatted `timestamp`."""
        return self.pattern.replace('{name}', self.name).replace('{timestamp}', timestamp)

    @property
    def artifact_regex(self) -> Pattern:
        """Regular expression matching artifact filenames, capturing 'timestamp'."""
        before, after = self.pattern.replace('{name}', self.name).split('{timestamp}')
        return re.compile(re.escape(before) + r'(?P<timestamp>\d{8}-\d{6})' + re.escape(after))

    @classmethod
    def from_config(cls, name: str, section: Mapping[str, Any],
                    base_retention: RetentionPolicy = None) -> TargetDescriptor:
        """Build descriptor from `[target.<name>]` configuration table."""
        if not isinstance(section, Mapping):
            raise ConfigurationError(f'Expected table for target \'{name}\'')
        if 'kind' not in section:
            raise ConfigurationError(f'Missing key \'kind\' for target \'{name}\'')
        try:
            kind = SourceKind(str(section['kind']).lower())
        except ValueError as error:
            raise ConfigurationError(f'Unknown kind \'{section["kind"]}\' for target \'{name}\'') from error
        for field in section:
            if field not in TARGET_FIELDS[kind]:
                raise ConfigurationError(f'Unexpected key \'{field}\' for target \'{name}\'')
        try:
            procedure = cls._procedure_from_config(name, kind, section)
            retention = None
            if 'retention' in section:
                retention = RetentionPolicy.from_config(section['retention'], base=base_retention)
            return cls(name=name, kind=kind, procedure=procedure,
                       pattern=section.get('pattern'), retention=retention)
        except ValueError as error:
            raise ConfigurationError(str(error)) from error

    @staticmethod
    def _procedure_from_config(name: str, kind: SourceKind, section: Mapping[str, Any]) -> SnapshotProcedure:
        if 'command' in section:
            return from_template(str(section['command']), password_env=section.get('password_env'))
        if kind is SourceKind.RELATIONAL_DB:
            if 'database' not in section:
                raise ConfigurationError(f'Missing key \'database\' for target \'{name}\'')
            port = section.get('port')
            try:
                port = None if port is None else int(port)
            except (TypeError, ValueError) as error:
                raise ConfigurationError(f'Invalid port \'{port}\' for target \'{name}\'') from error
            return pg_dump(str(section['database']), host=section.get('host'), port=port,
                           user=section.get('user'),
                           password_env=section.get('password_env', 'PGPASSWORD'))
        if 'path' not in section:
            raise ConfigurationError(f'Missing key \'path\' for target \'{name}\'')
        return tar_archive(str(section['path']))

    def __str__(self) -> str:
        return f'{self.name} ({self.kind.value}): {self.procedure.describe()}'


class TargetRegistry:
    """Ordered collection of uniquely named targets."""

    _targets: Dict[str, TargetDescriptor]

    def __init__(self, targets: Iterable[TargetDescriptor] = ()) -> None:
        """Initialize with optional `targets` (registered in order)."""
        self._targets = {}
        for target in targets:
            self.register(target)

    def register(self, target: TargetDescriptor) -> None:
        """Add `target`, names must be unique."""
        if target.name in self._targets:
            raise DuplicateTargetError(f'Target \'{target.name}\' already registered')
        self._targets[target.name] = target
        log.debug(f'Registered target {target}')

    def list(self) -> List[TargetDescriptor]:
        """All targets in registration order."""
        return list(self._targets.values())

    def get(self, name: str) -> TargetDescriptor:
        """Look up target by `name`."""
        try:
            return self._targets[name]
        except KeyError as error:
            raise KeyError(f'No target named \'{name}\'') from error

    def select(self, names: Iterable[str]) -> TargetRegistry:
        """New registry with only `names` (registration order kept)."""
        names = set(names)
        for name in names:
            self.get(name)
        return TargetRegistry(target for target in self._targets.values() if target.name in names)

    def __iter__(self) -> Iterator[TargetDescriptor]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, name: str) -> bool:
        return name in self._targets

    @classmethod
    def from_config(cls, section: Optional[Mapping[str, Any]],
                    base_retention: RetentionPolicy = None) -> TargetRegistry:
        """Build registry from the `[target]` configuration section."""
        if not section:
            raise ConfigurationError('No targets found in configuration')
        return cls(TargetDescriptor.from_config(name, params, base_retention=base_retention)
                   for name, params in section.items())
