"""Pytest configuration and shared fixtures."""

import pytest

from okx_sdk.auth import Credentials
from okx_sdk.config.defaults import StreamParams

from tests.helpers import FakeTransport


@pytest.fixture
def credentials() -> Credentials:
    """Sample API credentials for testing."""
    return Credentials(
        api_key="test-api-key-1234",
        api_secret="test-secret-value",
        passphrase="test-passphrase",
        is_simulated=True,
    )


@pytest.fixture
def fast_params() -> StreamParams:
    """Stream parameters with no backoff delay and short timeouts."""
    return StreamParams(
        backoff_initial_s=0.0,
        backoff_jitter=0.0,
        ping_interval_s=5.0,
        pong_timeout_s=1.0,
        login_timeout_s=1.0,
        queue_maxsize=100,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
