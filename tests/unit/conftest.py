# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Fixtures for unit tests."""


# standard libs
import os

# external libs
import pytest

# internal libs
from tests.unit.test_backup import FakeClock


def pytest_configure(config) -> None:
    """Register custom markers."""
    config.addinivalue_line('markers', 'unit: fast tests without external services')


@pytest.fixture
def clock() -> FakeClock:
    """New fake clock for each test."""
    return FakeClock()


@pytest.fixture
def sink(tmp_path) -> str:
    """Empty backup sink directory."""
    path = str(tmp_path / 'backups')
    os.makedirs(path)
    return path
