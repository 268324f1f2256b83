"""
Gate Trader - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the Gate.io futures adapter.

CRITICAL CONSTRAINTS:
- No retries
- Leverage changes honour the exchange cooldown
- Account caches never serve data older than their TTL

============================================================
ENVIRONMENT
============================================================
GATE_API_KEY            API key
GATE_API_SECRET         API secret
GATE_TESTNET            "1"/"true" to use the test network
GATE_SETTLE             Settlement currency (default: usdt)
GATE_CACHE_TTL_SECONDS  Balance/positions cache TTL
GATE_TIMEOUT_SECONDS    HTTP request timeout

A `.env` file in the working directory is loaded first.

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


GATE_REST_URL = "https://api.gateio.ws/api/v4"
GATE_TESTNET_URL = "https://api-testnet.gateapi.io/api/v4"

_TRUE_VALUES = {"1", "true", "yes", "on"}


# ============================================================
# ENDPOINT CONFIGURATION
# ============================================================

@dataclass
class EndpointConfig:
    """
    Exchange endpoint configuration.
    """

    rest_url: str = GATE_REST_URL
    """Production REST API base URL."""

    testnet_url: str = GATE_TESTNET_URL
    """Test network REST API base URL."""

    settle: str = "usdt"
    """Settlement currency."""

    def base_url(self, testnet: bool) -> str:
        """Select base URL."""
        return self.testnet_url if testnet else self.rest_url


# ============================================================
# CACHE CONFIGURATION
# ============================================================

@dataclass
class CacheConfig:
    """
    Account state cache configuration.

    Contract metadata never expires within a session.
    """

    balance_ttl_seconds: float = 15.0
    """Lifetime of a balance snapshot."""

    positions_ttl_seconds: float = 15.0
    """Lifetime of a positions snapshot."""


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration.
    """

    request_timeout_seconds: float = 30.0
    """Total timeout per HTTP request."""

    connect_timeout_seconds: float = 10.0
    """Connection timeout."""


# ============================================================
# ORDER CONFIGURATION
# ============================================================

@dataclass
class OrderConfig:
    """
    Order placement configuration.
    """

    leverage_cooldown_seconds: float = 3.0
    """Wait after a leverage change before trading."""

    trigger_expiration_seconds: int = 30 * 24 * 3600
    """Lifetime of stop-loss / take-profit trigger orders."""

    default_leverage: float = 10.0
    """Leverage reported when a position omits it."""

    trigger_price_decimals: int = 8
    """Decimal places used for trigger prices."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class GateTraderConfig:
    """
    Master configuration for the Gate.io adapter.
    """

    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    """Endpoint configuration."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    """Cache configuration."""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    """Timeout configuration."""

    order: OrderConfig = field(default_factory=OrderConfig)
    """Order configuration."""

    # Credentials (None = not loaded)
    api_key: Optional[str] = None
    api_secret: Optional[str] = None

    testnet: bool = False
    """Whether to use the test network."""

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "GateTraderConfig":
        """
        Create config from environment variables.

        Args:
            env_file: Optional path to a .env file

        Returns:
            GateTraderConfig
        """
        load_dotenv(env_file)

        config = cls(
            api_key=os.environ.get("GATE_API_KEY"),
            api_secret=os.environ.get("GATE_API_SECRET"),
            testnet=os.environ.get("GATE_TESTNET", "").strip().lower() in _TRUE_VALUES,
        )

        settle = os.environ.get("GATE_SETTLE")
        if settle:
            config.endpoint.settle = settle.strip().lower()

        ttl = os.environ.get("GATE_CACHE_TTL_SECONDS")
        if ttl:
            config.cache.balance_ttl_seconds = float(ttl)
            config.cache.positions_ttl_seconds = float(ttl)

        timeout = os.environ.get("GATE_TIMEOUT_SECONDS")
        if timeout:
            config.timeout.request_timeout_seconds = float(timeout)

        return config

    @classmethod
    def for_testing(cls) -> "GateTraderConfig":
        """Get configuration for testing."""
        return cls(
            testnet=True,
            order=OrderConfig(leverage_cooldown_seconds=0.0),
        )
