"""
Pytest configuration and fixtures for Minerva Relay tests.
"""
import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from relay.config import Settings
from relay.main import create_app
from relay.services.auth import hash_password
from relay.state import TrackerState

USERNAME = "login"
PASSWORD = "1234"
CREDENTIALS = (USERNAME, PASSWORD)
WRONG_CREDENTIALS = (USERNAME, "4321")


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> Settings:
    """Settings for tests: known credential, no auth delay, plain HTTP."""
    values = dict(
        auth_username=USERNAME,
        auth_password_hash=hash_password(PASSWORD),
        auth_delay_min_s=0.0,
        auth_delay_max_s=0.0,
        tls_enabled=False,
        body_timeout_s=2.0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state(settings, clock):
    return TrackerState.from_settings(settings, clock=clock)


@pytest.fixture
def app(settings, state):
    return create_app(settings, state=state)


@pytest.fixture
def client(app):
    """Test client sending the valid credential."""
    client = TestClient(app)
    client.auth = CREDENTIALS
    return client


@pytest.fixture
def anon_client(app):
    """Test client without credentials."""
    return TestClient(app)
