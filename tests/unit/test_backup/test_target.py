# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for target descriptors and the registry."""


# standard libs
from datetime import datetime, timedelta

# external libs
import pytest
from hypothesis import given, strategies as st
from cmdkit.config import ConfigurationError

# internal libs
from snapcycle.backup import (TargetDescriptor, TargetRegistry, SourceKind, RetentionPolicy,
                              CommandProcedure, DuplicateTargetError)
from tests.unit.test_backup import make_target


@pytest.mark.unit
class TestTargetDescriptor:
    """Unit tests for TargetDescriptor."""

    def test_default_pattern(self) -> None:
        assert make_target('chroma').pattern == '{name}_{timestamp}.tar.gz'
        target = TargetDescriptor('postgres', 'relational_db', CommandProcedure(['true']))
        assert target.kind is SourceKind.RELATIONAL_DB
        assert target.pattern == '{name}_{timestamp}.dump'

    def test_artifact_name(self) -> None:
        assert make_target('chroma').artifact_name('20240101-030000') == 'chroma_20240101-030000.tar.gz'

    @pytest.mark.parametrize('name', ['', '../etc', 'a/b', '.hidden', 'with space'])
    def test_invalid_name(self, name: str) -> None:
        with pytest.raises(ValueError):
            make_target(name)

    @pytest.mark.parametrize('pattern', ['{name}.dump', '{timestamp}/{name}.dump', '{timestamp}{timestamp}'])
    def test_invalid_pattern(self, pattern: str) -> None:
        with pytest.raises(ValueError):
            make_target('postgres', pattern=pattern)

    @given(timestamp=st.datetimes(min_value=datetime(1970, 1, 1)).map(lambda dt: dt.strftime('%Y%m%d-%H%M%S')))
    def test_artifact_regex(self, timestamp: str) -> None:
        """Generated names are recognized by the artifact pattern."""
        target = make_target('db.main', pattern='backup-{name}-{timestamp}.sql.gz')
        match = target.artifact_regex.fullmatch(target.artifact_name(timestamp))
        assert match is not None
        assert match.group('timestamp') == timestamp

    def test_artifact_regex_rejects_others(self) -> None:
        regex = make_target('chroma').artifact_regex
        assert regex.fullmatch('chroma_20240101-030000.tar.gz.partial') is None
        assert regex.fullmatch('chromaX20240101-030000.tar.gz') is None
        assert regex.fullmatch('other_20240101-030000.tar.gz') is None

    def test_from_config_relational(self) -> None:
        target = TargetDescriptor.from_config('postgres', {'kind': 'relational_db', 'host': 'db', 'port': '5432',
                                                           'user': 'n8n', 'database': 'n8n',
                                                           'password_env': 'POSTGRES_PASSWORD'})
        assert target.kind is SourceKind.RELATIONAL_DB
        assert target.procedure.argv == ['pg_dump', '--format=custom', '--file', '{artifact}', '--no-password',
                                         '--host', 'db', '--port', '5432', '--username', 'n8n', 'n8n']
        assert target.procedure.secrets == {'PGPASSWORD': 'POSTGRES_PASSWORD'}
        assert target.retention is None

    def test_from_config_file_tree(self) -> None:
        target = TargetDescriptor.from_config('chroma', {'kind': 'file_tree', 'path': '/chroma/chroma',
                                                         'retention': {'max_count': 3}},
                                              base_retention=RetentionPolicy(max_age=timedelta(days=7)))
        assert target.procedure.argv == ['tar', '--create', '--gzip', '--file', '{artifact}',
                                         '--directory', '/chroma/chroma', '.']
        assert target.retention == RetentionPolicy(max_age=timedelta(days=7), max_count=3)

    def test_from_config_command(self) -> None:
        target = TargetDescriptor.from_config('redis', {'kind': 'file_tree', 'command': 'cp /data/dump.rdb {artifact}',
                                                        'pattern': '{name}-{timestamp}.rdb'})
        assert target.procedure.argv == ['cp', '/data/dump.rdb', '{artifact}']
        assert target.artifact_name('20240101-030000') == 'redis-20240101-030000.rdb'

    @pytest.mark.parametrize('section, message', [
        ({}, 'Missing key \'kind\' for target \'x\''),
        ({'kind': 'tape'}, 'Unknown kind \'tape\' for target \'x\''),
        ({'kind': 'file_tree', 'database': 'n8n'}, 'Unexpected key \'database\' for target \'x\''),
        ({'kind': 'file_tree'}, 'Missing key \'path\' for target \'x\''),
        ({'kind': 'relational_db'}, 'Missing key \'database\' for target \'x\''),
        ({'kind': 'relational_db', 'database': 'n8n', 'port': 'abc'}, 'Invalid port \'abc\' for target \'x\''),
    ])
    def test_from_config_invalid(self, section: dict, message: str) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            TargetDescriptor.from_config('x', section)
        assert str(exc_info.value) == message

    def test_from_config_invalid_pattern(self) -> None:
        with pytest.raises(ConfigurationError):
            TargetDescriptor.from_config('x', {'kind': 'file_tree', 'path': '/data', 'pattern': 'x.tar'})


@pytest.mark.unit
class TestTargetRegistry:
    """Unit tests for TargetRegistry."""

    def test_order(self) -> None:
        """Targets are listed in registration order."""
        registry = TargetRegistry([make_target('b'), make_target('a'), make_target('c')])
        assert [target.name for target in registry.list()] == ['b', 'a', 'c']
        assert len(registry) == 3
        assert 'a' in registry and 'd' not in registry

    def test_duplicate(self) -> None:
        registry = TargetRegistry([make_target('postgres')])
        with pytest.raises(DuplicateTargetError):
            registry.register(make_target('postgres'))
        assert len(registry) == 1

    def test_get(self) -> None:
        target = make_target('postgres')
        registry = TargetRegistry([target])
        assert registry.get('postgres') is target
        with pytest.raises(KeyError):
            registry.get('mysql')

    def test_select(self) -> None:
        registry = TargetRegistry([make_target('b'), make_target('a'), make_target('c')])
        assert [target.name for target in registry.select(['c', 'b'])] == ['b', 'c']
        with pytest.raises(KeyError):
            registry.select(['z'])

    def test_from_config(self) -> None:
        registry = TargetRegistry.from_config({
            'postgres': {'kind': 'relational_db', 'database': 'n8n'},
            'chroma': {'kind': 'file_tree', 'path': '/chroma/chroma'},
        })
        assert [target.name for target in registry] == ['postgres', 'chroma']

    def test_from_config_empty(self) -> None:
        with pytest.raises(ConfigurationError):
            TargetRegistry.from_config({})
        with pytest.raises(ConfigurationError):
            TargetRegistry.from_config(None)
