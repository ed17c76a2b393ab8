# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for snapshot executor."""


# standard libs
import os
import time
import threading
from datetime import timedelta

# external libs
import pytest
from cmdkit.config import ConfigurationError, Namespace

# internal libs
from snapcycle.backup import SnapshotExecutor, Outcome
from tests.unit.test_backup import FakeClock, make_target, command_target, failing_snapshot


@pytest.mark.unit
class TestSnapshotExecutor:
    """Unit tests for SnapshotExecutor."""

    def test_invalid_timeout(self, sink: str) -> None:
        with pytest.raises(ConfigurationError):
            SnapshotExecutor(sink, timeout=0)

    def test_from_config(self, sink: str) -> None:
        executor = SnapshotExecutor.from_config(Namespace({'sink': sink, 'timeout': '30'}))
        assert executor.sink == sink
        assert executor.timeout == 30

    def test_success(self, sink: str, clock: FakeClock) -> None:
        """Artifact is written under the target's directory with timestamped name."""
        executor = SnapshotExecutor(sink, clock=clock)
        record = executor.run(make_target('chroma'))
        assert record.outcome is Outcome.SUCCESS
        assert record.artifact == os.path.join(sink, 'chroma', 'chroma_20240101-120000.tar.gz')
        assert os.listdir(os.path.join(sink, 'chroma')) == ['chroma_20240101-120000.tar.gz']
        assert record.finished_at > record.started_at

    def test_failure(self, sink: str, clock: FakeClock) -> None:
        """Procedure errors become a failure record."""
        record = SnapshotExecutor(sink, clock=clock).run(make_target('postgres', failing_snapshot))
        assert record.outcome is Outcome.FAILURE
        assert record.artifact is None
        assert record.error == 'SnapshotProcedureError: OSError: connection refused'

    def test_failure_discards_partial(self, sink: str, clock: FakeClock) -> None:
        """Incomplete artifacts are not left in the sink."""
        target = command_target('postgres', 'sh', '-c', 'echo partial > "$0"; exit 1', '{artifact}')
        record = SnapshotExecutor(sink, clock=clock).run(target)
        assert record.outcome is Outcome.FAILURE
        assert os.listdir(os.path.join(sink, 'postgres')) == []

    def test_no_artifact(self, sink: str, clock: FakeClock) -> None:
        record = SnapshotExecutor(sink, clock=clock).run(make_target('noop', lambda artifact: None))
        assert record.outcome is Outcome.FAILURE
        assert record.error.startswith('No artifact written')

    def test_timeout(self, sink: str, clock: FakeClock) -> None:
        """Slow procedure fails within a bounded time."""
        executor = SnapshotExecutor(sink, timeout=0.2, clock=clock)
        start = time.monotonic()
        record = executor.run(command_target('slow', 'sleep', '30'))
        assert time.monotonic() - start < 5
        assert record.outcome is Outcome.FAILURE
        assert record.error.startswith('SnapshotTimeoutError')
        assert os.listdir(os.path.join(sink, 'slow')) == []

    def test_existing_artifact(self, sink: str) -> None:
        """Existing artifacts are never overwritten."""
        clock = FakeClock(step=timedelta(0))
        executor = SnapshotExecutor(sink, clock=clock)
        first = executor.run(make_target('chroma'))
        second = executor.run(make_target('chroma'))
        assert first.outcome is Outcome.SUCCESS
        assert second.outcome is Outcome.FAILURE
        assert second.error.startswith('Artifact already exists')

    def test_in_flight(self, sink: str, clock: FakeClock) -> None:
        """Only one attempt per target at a time."""
        started, release = threading.Event(), threading.Event()

        def snapshot(artifact: str) -> None:
            started.set()
            release.wait(10)
            with open(artifact, mode='w') as stream:
                stream.write('done')

        target = make_target('postgres', snapshot)
        executor = SnapshotExecutor(sink, clock=clock)
        results = []
        thread = threading.Thread(target=lambda: results.append(executor.run(target)))
        thread.start()
        assert started.wait(5)
        assert executor.in_flight('postgres')
        overlap = executor.run(target)
        release.set()
        thread.join(5)
        assert overlap.outcome is Outcome.FAILURE
        assert overlap.error == 'Snapshot already in flight for this target'
        assert results[0].outcome is Outcome.SUCCESS
        assert not executor.in_flight('postgres')

    def test_abort(self, sink: str, clock: FakeClock) -> None:
        """In-flight commands are cancelled."""
        executor = SnapshotExecutor(sink, timeout=30, clock=clock)
        target = command_target('slow', 'sleep', '30')
        results = []
        thread = threading.Thread(target=lambda: results.append(executor.run(target)))
        thread.start()
        deadline = time.monotonic() + 5
        while target.procedure._process is None and time.monotonic() < deadline:
            time.sleep(0.01)
        executor.abort()
        thread.join(5)
        assert not thread.is_alive()
        assert results[0].outcome is Outcome.FAILURE
        assert 'cancelled' in results[0].error

    def test_sweep_partial(self, sink: str, clock: FakeClock) -> None:
        """Stale partial artifacts of the target are removed, other files are kept."""
        dirpath = os.path.join(sink, 'chroma')
        os.makedirs(dirpath)
        for filename in ('chroma_20231231-000000.tar.gz.partial', 'notes.partial', 'other_20231231-000000.tar.gz.partial'):
            open(os.path.join(dirpath, filename), mode='w').close()
        record = SnapshotExecutor(sink, clock=clock).run(make_target('chroma'))
        assert record.outcome is Outcome.SUCCESS
        assert sorted(os.listdir(dirpath)) == ['chroma_20240101-120000.tar.gz', 'notes.partial',
                                               'other_20231231-000000.tar.gz.partial']

    def test_late_partial_after_timeout(self, sink: str, clock: FakeClock) -> None:
        """A timed out function writing after the fact does not leave a partial artifact behind."""
        release, written = threading.Event(), threading.Event()

        def snapshot(artifact: str) -> None:
            release.wait(10)
            with open(artifact, mode='w') as stream:
                stream.write('late')
            written.set()

        target = make_target('postgres', snapshot)
        executor = SnapshotExecutor(sink, timeout=0.1, clock=clock)
        assert executor.run(target).outcome is Outcome.FAILURE
        release.set()
        assert written.wait(5)
        target.procedure._thread.join(5)
        dirpath = os.path.join(sink, 'postgres')
        assert [name for name in os.listdir(dirpath) if name.endswith('.partial')] != []
        assert executor.run(target).outcome is Outcome.SUCCESS
        assert [name for name in os.listdir(dirpath) if name.endswith('.partial')] == []
