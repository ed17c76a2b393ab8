# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for health-check web service."""


# standard libs
from datetime import datetime, timedelta

# external libs
import pytest

# internal libs
from snapcycle.backup import HealthReporter, CoordinatorState, SnapshotRecord
from snapcycle.web.api import application


START = datetime(2024, 1, 1, 3, 0, 0)


def build_state(failed: bool) -> CoordinatorState:
    record = SnapshotRecord.start('postgres', START)
    if failed:
        record.fail('exit status 1', finished_at=START + timedelta(minutes=1))
    else:
        record.succeed('/backups/postgres/postgres_20240101-030000.dump', finished_at=START + timedelta(minutes=1))
    return CoordinatorState(START, START + timedelta(minutes=1), (record, ))


@pytest.fixture
def client_for():
    """Build test client serving the given coordinator state."""
    def build(state: CoordinatorState):
        application.config['REPORTER'] = HealthReporter(lambda: state, interval=3600,
                                                        clock=lambda: START + timedelta(minutes=5))
        return application.test_client()
    yield build
    application.config.pop('REPORTER', None)


@pytest.mark.unit
class TestHealthEndpoint:
    """Unit tests for /healthz and /status routes."""

    def test_healthy(self, client_for) -> None:
        response = client_for(build_state(failed=False)).get('/healthz')
        assert response.status_code == 200
        assert response.get_json() == {'Status': 'Healthy'}

    def test_unhealthy(self, client_for) -> None:
        response = client_for(build_state(failed=True)).get('/healthz')
        assert response.status_code == 503
        assert response.get_json() == {'Status': 'Unhealthy'}

    def test_no_cycle(self, client_for) -> None:
        assert client_for(CoordinatorState()).get('/healthz').status_code == 503

    def test_status(self, client_for) -> None:
        response = client_for(build_state(failed=True)).get('/status')
        assert response.status_code == 200
        data = response.get_json()
        assert data['healthy'] is False
        assert data['age'] == 300
        assert data['records'][0]['error'] == 'exit status 1'

    def test_not_found(self, client_for) -> None:
        response = client_for(CoordinatorState()).get('/backups')
        assert response.status_code == 404
        assert response.get_json() == {'Status': 'Error', 'Message': 'Not found: /backups'}

    def test_method_not_allowed(self, client_for) -> None:
        response = client_for(CoordinatorState()).post('/healthz')
        assert response.status_code == 405
