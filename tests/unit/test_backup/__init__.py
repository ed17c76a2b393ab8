# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Helpers for backup unit tests."""


# type annotations
from __future__ import annotations

# standard libs
from datetime import datetime, timedelta

# internal libs
from snapcycle.backup import TargetDescriptor, SourceKind, FunctionProcedure, CommandProcedure


class FakeClock:
    """Deterministic clock advancing by `step` on every call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0),
                 step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now += self.step
        return value

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


def write_artifact(content: bytes = b'snapshot'):
    """Function writing `content` to the artifact path."""
    def snapshot(artifact: str) -> None:
        with open(artifact, mode='wb') as stream:
            stream.write(content)
    return snapshot


def failing_snapshot(artifact: str) -> None:  # noqa: unused artifact
    raise OSError('connection refused')


def make_target(name: str, function=None, **options) -> TargetDescriptor:
    """File-tree target backed by a Python function."""
    return TargetDescriptor(name=name, kind=SourceKind.FILE_TREE,
                            procedure=FunctionProcedure(function or write_artifact()), **options)


def command_target(name: str, *argv: str, **options) -> TargetDescriptor:
    """File-tree target backed by an external command."""
    return TargetDescriptor(name=name, kind=SourceKind.FILE_TREE,
                            procedure=CommandProcedure(list(argv), kill_timeout=1), **options)
