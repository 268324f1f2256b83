"""
Gate Trader - Controller Facade.

============================================================
PURPOSE
============================================================
The single object a trading controller talks to.

Wires one ExchangeSession, one ContractMetadataCache, one
AccountStateCache, one QuantityFormatter and one OrderExecutionEngine
together. Every component shares the session's transport and metrics.

USAGE:
    async with GateTrader.from_env() as trader:
        balance = await trader.get_balance()
        await trader.open_long("BTCUSDT", 2, leverage=5)

============================================================
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .cache import AccountStateCache, ContractMetadataCache
from .clock import ClockProtocol
from .config import GateTraderConfig
from .engine import OrderExecutionEngine
from .formatting import QuantityFormatter
from .session import ExchangeSession
from .transport import FuturesTransport
from .types import BalanceSnapshot, OrderResult, PositionSide, PositionSnapshot


logger = logging.getLogger(__name__)


class GateTrader:
    """
    Gate.io USDT futures trader.

    Safe for concurrent use by several asyncio tasks.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        testnet: bool = False,
        config: Optional[GateTraderConfig] = None,
        transport: Optional[FuturesTransport] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize trader.

        Args:
            api_key: Gate.io API key
            secret_key: Gate.io secret key
            testnet: Use the test network
            config: Adapter configuration
            transport: Prebuilt transport (tests, dry runs)
            clock: Time source for cache expiry

        Raises:
            CredentialError: If either credential is empty
        """
        self._config = config or GateTraderConfig()
        self._session = ExchangeSession(
            api_key,
            secret_key,
            testnet=testnet,
            config=self._config,
            transport=transport,
        )

        transport = self._session.transport
        metrics = self._session.metrics

        self._contracts = ContractMetadataCache(transport, metrics=metrics)
        self._account = AccountStateCache(
            transport,
            self._contracts,
            config=self._config.cache,
            clock=clock,
            metrics=metrics,
            default_leverage=self._config.order.default_leverage,
        )
        self._formatter = QuantityFormatter(self._contracts, metrics=metrics)
        self._engine = OrderExecutionEngine(
            transport,
            self._account,
            self._formatter,
            config=self._config.order,
            metrics=metrics,
            adapter_logger=self._session.adapter_logger,
        )

        logger.info(f"Gate.io trader initialized (testnet={testnet})")

    @classmethod
    def from_config(
        cls,
        config: GateTraderConfig,
        transport: Optional[FuturesTransport] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> "GateTrader":
        """Create trader from a loaded configuration."""
        return cls(
            api_key=config.api_key,
            secret_key=config.api_secret,
            testnet=config.testnet,
            config=config,
            transport=transport,
            clock=clock,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "GateTrader":
        """Create trader from GATE_* environment variables."""
        return cls.from_config(GateTraderConfig.from_env(env_file))

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def session(self) -> ExchangeSession:
        return self._session

    @property
    def account(self) -> AccountStateCache:
        return self._account

    @property
    def contracts(self) -> ContractMetadataCache:
        return self._contracts

    @property
    def engine(self) -> OrderExecutionEngine:
        return self._engine

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def get_balance(self) -> BalanceSnapshot:
        """Account balance (cached for the balance TTL)."""
        return await self._account.get_balance()

    async def get_positions(self) -> List[PositionSnapshot]:
        """Open positions (cached for the positions TTL)."""
        return await self._account.get_positions()

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def set_leverage(self, symbol: str, leverage: int) -> None:
        await self._engine.set_leverage(symbol, leverage)

    async def open_long(self, symbol: str, quantity: float, leverage: int) -> OrderResult:
        return await self._engine.open_long(symbol, quantity, leverage)

    async def open_short(self, symbol: str, quantity: float, leverage: int) -> OrderResult:
        return await self._engine.open_short(symbol, quantity, leverage)

    async def close_long(self, symbol: str, quantity: float = 0) -> OrderResult:
        return await self._engine.close_long(symbol, quantity)

    async def close_short(self, symbol: str, quantity: float = 0) -> OrderResult:
        return await self._engine.close_short(symbol, quantity)

    async def cancel_all_orders(self, symbol: str) -> None:
        await self._engine.cancel_all_orders(symbol)

    async def get_market_price(self, symbol: str) -> float:
        return await self._engine.get_market_price(symbol)

    async def set_stop_loss(
        self,
        symbol: str,
        position_side: Union[str, PositionSide],
        quantity: float,
        stop_price: float,
    ) -> OrderResult:
        return await self._engine.set_stop_loss(symbol, position_side, quantity, stop_price)

    async def set_take_profit(
        self,
        symbol: str,
        position_side: Union[str, PositionSide],
        quantity: float,
        take_profit_price: float,
    ) -> OrderResult:
        return await self._engine.set_take_profit(symbol, position_side, quantity, take_profit_price)

    async def format_quantity(self, symbol: str, quantity: float) -> str:
        """Quantity as the contract count string that would be submitted."""
        return await self._formatter.format(symbol, quantity)

    # --------------------------------------------------------
    # OBSERVABILITY
    # --------------------------------------------------------

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Adapter metrics summary."""
        return self._session.metrics.get_summary()

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def close(self) -> None:
        """Release the HTTP session."""
        await self._session.close()

    async def __aenter__(self) -> "GateTrader":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
