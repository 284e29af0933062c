"""
Pytest configuration and fixtures for the test suite.

The upstream Gemini API is never contacted: every test routes outbound calls
through an httpx.MockTransport backed by helpers.StubUpstream.
"""

import logging

import pytest

from helpers import TEST_API_KEY, StubUpstream
from solution_relay.config import RelayConfig

# Keep relay logs quiet unless a test asks for them
logging.getLogger("solution_relay").setLevel(logging.WARNING)


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(server_port=8080, gemini_api_key=TEST_API_KEY)


@pytest.fixture
def stub_upstream() -> StubUpstream:
    return StubUpstream()
