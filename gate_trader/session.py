"""
Gate Trader - Exchange Session.

Validates credentials once, selects the production or test endpoint and
builds the single authenticated transport shared by every component.
"""

import logging
from typing import Optional

from .config import GateTraderConfig
from .errors import CredentialError
from .logging_utils import AdapterLogger
from .metrics import AdapterMetrics
from .transport import FuturesTransport, GateFuturesTransport


logger = logging.getLogger(__name__)

# Characters of the API key allowed in logs
KEY_PREFIX_CHARS = 8


class ExchangeSession:
    """
    Authenticated session for one Gate.io account.

    Immutable after construction.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        testnet: bool = False,
        config: Optional[GateTraderConfig] = None,
        transport: Optional[FuturesTransport] = None,
        metrics: Optional[AdapterMetrics] = None,
    ):
        """
        Initialize session.

        Args:
            api_key: Gate.io API key
            secret_key: Gate.io secret key
            testnet: Use the test network
            config: Adapter configuration
            transport: Prebuilt transport (tests, dry runs)
            metrics: Metrics collector shared with the transport

        Raises:
            CredentialError: If either credential is empty after trimming
        """
        api_key = (api_key or "").strip()
        secret_key = (secret_key or "").strip()

        if not api_key:
            raise CredentialError("Gate.io API key must not be empty")
        if not secret_key:
            raise CredentialError("Gate.io secret key must not be empty")

        self._config = config or GateTraderConfig()
        self._api_key = api_key
        self._secret_key = secret_key
        self._testnet = testnet
        self._settle = self._config.endpoint.settle
        self._base_url = self._config.endpoint.base_url(testnet)
        self._metrics = metrics or AdapterMetrics("gate")
        self._logger = AdapterLogger("gate")

        if transport is None:
            transport = GateFuturesTransport(
                api_key=api_key,
                api_secret=secret_key,
                base_url=self._base_url,
                settle=self._settle,
                timeout=self._config.timeout,
                metrics=self._metrics,
                adapter_logger=self._logger,
            )
        self._transport = transport

        self._logger.info(
            f"Gate.io session ready (testnet={testnet}, "
            f"API key: {api_key[:KEY_PREFIX_CHARS]}...)"
        )

    @classmethod
    def from_config(
        cls,
        config: GateTraderConfig,
        transport: Optional[FuturesTransport] = None,
        metrics: Optional[AdapterMetrics] = None,
    ) -> "ExchangeSession":
        """Create session from a loaded configuration."""
        return cls(
            api_key=config.api_key,
            secret_key=config.api_secret,
            testnet=config.testnet,
            config=config,
            transport=transport,
            metrics=metrics,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ExchangeSession":
        """Create session from GATE_* environment variables."""
        return cls.from_config(GateTraderConfig.from_env(env_file))

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def testnet(self) -> bool:
        return self._testnet

    @property
    def settle(self) -> str:
        return self._settle

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def config(self) -> GateTraderConfig:
        return self._config

    @property
    def transport(self) -> FuturesTransport:
        return self._transport

    @property
    def metrics(self) -> AdapterMetrics:
        return self._metrics

    @property
    def adapter_logger(self) -> AdapterLogger:
        return self._logger

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def close(self) -> None:
        """Release the transport."""
        await self._transport.close()

    async def __aenter__(self) -> "ExchangeSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
