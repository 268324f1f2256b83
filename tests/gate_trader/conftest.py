"""
Shared fixtures for Gate Trader tests.
"""

import pytest

from gate_trader import (
    GateTrader,
    GateTraderConfig,
    MockClock,
    MockGateTransport,
)


TEST_API_KEY = "0123456789abcdef0123456789abcdef"
TEST_API_SECRET = "fedcba9876543210fedcba9876543210fedcba9876543210fedcba9876543210"


@pytest.fixture
def mock_transport():
    """In-memory exchange with BTC_USDT and ETH_USDT listed."""
    return MockGateTransport()


@pytest.fixture
def clock():
    return MockClock()


@pytest.fixture
def config():
    """Test configuration: no leverage cooldown."""
    return GateTraderConfig.for_testing()


@pytest.fixture
def trader(mock_transport, clock, config):
    """Trader wired to the mock exchange."""
    return GateTrader(
        TEST_API_KEY,
        TEST_API_SECRET,
        testnet=True,
        config=config,
        transport=mock_transport,
        clock=clock,
    )
