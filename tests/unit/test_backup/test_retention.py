# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for retention policies and pruning."""


# type annotations
from typing import List

# standard libs
import os
from datetime import datetime, timedelta

# external libs
import pytest
from hypothesis import given, settings, strategies as st, HealthCheck
from cmdkit.config import ConfigurationError

# internal libs
from snapcycle.backup import RetentionPolicy, RetentionManager, RetentionDeleteError
from tests.unit.test_backup import make_target


NOW = datetime(2024, 1, 10, 12, 0, 0)


def create_artifacts(sink: str, name: str, ages: List[timedelta]) -> List[str]:
    """Create empty artifacts for target `name` with the given ages (relative to NOW)."""
    dirpath = os.path.join(sink, name)
    os.makedirs(dirpath, exist_ok=True)
    paths = []
    for age in ages:
        path = os.path.join(dirpath, f'{name}_{(NOW - age).strftime("%Y%m%d-%H%M%S")}.tar.gz')
        open(path, mode='w').close()
        paths.append(path)
    return paths


@pytest.mark.unit
class TestRetentionPolicy:
    """Unit tests for RetentionPolicy."""

    def test_unlimited(self) -> None:
        policy = RetentionPolicy()
        assert policy.unlimited
        assert not policy.expired(1000, timedelta(days=1000))

    @pytest.mark.parametrize('options', [{'max_count': 0}, {'max_count': -1}, {'max_age': timedelta(0)}])
    def test_invalid(self, options: dict) -> None:
        with pytest.raises(ValueError):
            RetentionPolicy(**options)

    def test_expired(self) -> None:
        """Either limit alone is enough to expire an artifact."""
        policy = RetentionPolicy(max_age=timedelta(days=7), max_count=3)
        assert not policy.expired(3, timedelta(days=1))
        assert policy.expired(4, timedelta(days=1))
        assert policy.expired(1, timedelta(days=8))

    def test_from_config(self) -> None:
        assert RetentionPolicy.from_config({'max_age': 3600, 'max_count': 0}) == RetentionPolicy(
            max_age=timedelta(hours=1))
        base = RetentionPolicy(max_count=14)
        assert RetentionPolicy.from_config({}, base=base) == base
        assert RetentionPolicy.from_config({'max_count': 0}, base=base).unlimited

    @pytest.mark.parametrize('section', [{'max_age': -1}, {'max_count': 'many'}, {'keep': 3}])
    def test_from_config_invalid(self, section: dict) -> None:
        with pytest.raises(ConfigurationError):
            RetentionPolicy.from_config(section)


@pytest.mark.unit
class TestRetentionManager:
    """Unit tests for RetentionManager."""

    def test_list_missing(self, sink: str) -> None:
        assert RetentionManager(sink).list_artifacts(make_target('chroma')) == []

    def test_list_ignores_others(self, sink: str) -> None:
        """Only files matching the target's pattern are considered."""
        paths = create_artifacts(sink, 'chroma', [timedelta(days=2), timedelta(days=1)])
        for filename in ('notes.txt', 'chroma_20240101-000000.tar.gz.partial', 'chroma_20241399-000000.tar.gz'):
            open(os.path.join(sink, 'chroma', filename), mode='w').close()
        artifacts = RetentionManager(sink).list_artifacts(make_target('chroma'))
        assert [path for _, path in artifacts] == [paths[1], paths[0]]

    def test_max_count(self, sink: str) -> None:
        """With five artifacts and a limit of three, the newest three remain."""
        paths = create_artifacts(sink, 'chroma', [timedelta(days=day) for day in range(1, 6)])
        manager = RetentionManager(sink, default_policy=RetentionPolicy(max_count=3))
        result = manager.prune(make_target('chroma'), now=NOW)
        assert set(result.kept) == set(paths[:3])
        assert set(result.deleted) == set(paths[3:])
        assert sorted(os.listdir(os.path.join(sink, 'chroma'))) == sorted(os.path.basename(p) for p in paths[:3])

    def test_max_age(self, sink: str) -> None:
        paths = create_artifacts(sink, 'chroma', [timedelta(hours=1), timedelta(days=3), timedelta(days=10)])
        manager = RetentionManager(sink)
        policy = RetentionPolicy(max_age=timedelta(days=7))
        result = manager.prune(make_target('chroma'), policy=policy, now=NOW)
        assert result.deleted == (paths[2], )
        assert not os.path.exists(paths[2])

    def test_target_policy(self, sink: str) -> None:
        """Target policy takes precedence over the default."""
        create_artifacts(sink, 'chroma', [timedelta(days=day) for day in range(1, 4)])
        manager = RetentionManager(sink, default_policy=RetentionPolicy(max_count=1))
        result = manager.prune(make_target('chroma', retention=RetentionPolicy(max_count=2)), now=NOW)
        assert len(result.kept) == 2
        assert len(result.deleted) == 1

    def test_dry_run(self, sink: str) -> None:
        paths = create_artifacts(sink, 'chroma', [timedelta(days=day) for day in range(1, 4)])
        manager = RetentionManager(sink, default_policy=RetentionPolicy(max_count=1))
        result = manager.prune(make_target('chroma'), now=NOW, dry_run=True)
        assert len(result.deleted) == 2
        assert all(os.path.exists(path) for path in paths)

    def test_delete_failure(self, sink: str, monkeypatch) -> None:
        """Failure to delete one artifact does not stop the others."""
        paths = create_artifacts(sink, 'chroma', [timedelta(days=day) for day in range(1, 5)])
        original = RetentionManager.delete

        def delete(filepath: str) -> None:
            if filepath == paths[2]:
                raise RetentionDeleteError(f'Failed to delete {filepath}: Permission denied')
            original(filepath)

        monkeypatch.setattr(RetentionManager, 'delete', staticmethod(delete))
        manager = RetentionManager(sink, default_policy=RetentionPolicy(max_count=1))
        result = manager.prune(make_target('chroma'), now=NOW)
        assert result.failed == (paths[2], )
        assert set(result.deleted) == {paths[1], paths[3]}
        assert os.path.exists(paths[2])

    @settings(max_examples=25, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(count=st.integers(min_value=0, max_value=12), limit=st.integers(min_value=1, max_value=8))
    def test_newest_kept(self, tmp_path, count: int, limit: int) -> None:
        """The newest `limit` artifacts always survive a count-based prune."""
        sink = str(tmp_path / f'sink-{count}-{limit}')
        paths = create_artifacts(sink, 'chroma', [timedelta(hours=hour) for hour in range(count)])
        result = RetentionManager(sink, default_policy=RetentionPolicy(max_count=limit)).prune(
            make_target('chroma'), now=NOW)
        assert list(result.kept) == paths[:limit]
        assert len(result.deleted) == max(0, count - limit)
