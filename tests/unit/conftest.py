"""Unit test fixtures: control-plane doubles and moto."""

import pytest
from fixtures.fakes import FakeAlarmAdmin, FakeClock, FakeResourceAdmin
from moto import mock_aws


@pytest.fixture
def alarm_admin() -> FakeAlarmAdmin:
    return FakeAlarmAdmin()


@pytest.fixture
def resource_admin() -> FakeResourceAdmin:
    return FakeResourceAdmin()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock Kinesis, CloudWatch and SNS for tests."""
    with mock_aws():
        yield
