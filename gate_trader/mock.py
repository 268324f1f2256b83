"""
Gate Trader - Mock Futures Transport.

============================================================
PURPOSE
============================================================
In-memory stand-in for the Gate.io futures API, for tests and dry runs.

FEATURES:
- Account, contracts, positions and tickers state
- Market orders applied to positions immediately, limit orders left open
- Per-method error injection (one-shot or persistent)
- Call log for assertions

============================================================
"""

import asyncio
import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import GateAPIError
from .transport import FuturesTransport


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for the mock transport."""

    latency_ms: float = 0.0
    """Simulated latency per call."""

    initial_total: str = "1000"
    """Account total, unrealised PnL included."""

    initial_available: str = "1000"
    """Available balance."""

    contracts: Dict[str, Dict[str, Any]] = field(default_factory=lambda: {
        "BTC_USDT": {"name": "BTC_USDT", "order_size_min": 1, "order_size_max": 1000000,
                     "order_price_round": "0.1", "quanto_multiplier": "0.0001"},
        "ETH_USDT": {"name": "ETH_USDT", "order_size_min": 1, "order_size_max": 1000000,
                     "order_price_round": "0.01", "quanto_multiplier": "0.01"},
    })
    """Contract payloads by name."""

    default_price: str = "50000"
    """Ticker last price for contracts without an explicit price."""


# ============================================================
# MOCK TRANSPORT
# ============================================================

class MockGateTransport(FuturesTransport):
    """
    Mock Gate.io futures transport.

    Positions are stored as raw signed sizes, like the exchange does.
    """

    def __init__(self, config: Optional[MockConfig] = None):
        self._config = config or MockConfig()
        self._order_ids = itertools.count(1)
        self._init_state()

    def _init_state(self) -> None:
        self.account: Dict[str, Any] = {
            "total": self._config.initial_total,
            "unrealised_pnl": "0",
            "available": self._config.initial_available,
            "currency": "USDT",
        }
        self.contracts: Dict[str, Dict[str, Any]] = {
            name: dict(payload) for name, payload in self._config.contracts.items()
        }
        self.positions: Dict[str, Dict[str, Any]] = {}
        self.prices: Dict[str, str] = {}
        self.leverage: Dict[str, int] = {}
        self.open_orders: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

        self.orders: List[Dict[str, Any]] = []
        self.trigger_orders: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._errors: Dict[str, List[Tuple[GateAPIError, bool]]] = defaultdict(list)
        self.closed = False

    # --------------------------------------------------------
    # TEST CONTROLS
    # --------------------------------------------------------

    def set_account(self, total: str, unrealised_pnl: str = "0", available: Optional[str] = None) -> None:
        """Set the futures account payload."""
        self.account.update({
            "total": total,
            "unrealised_pnl": unrealised_pnl,
            "available": available if available is not None else total,
        })

    def set_position(self, contract: str, size: int, **fields: Any) -> None:
        """Set the raw signed position size of a contract."""
        payload = {
            "contract": contract,
            "size": size,
            "entry_price": "0",
            "mark_price": "0",
            "unrealised_pnl": "0",
            "leverage": "10",
            "liq_price": "0",
            "margin": "0",
        }
        payload.update(fields)
        self.positions[contract] = payload

    def set_price(self, contract: str, last: str) -> None:
        """Set ticker last price."""
        self.prices[contract] = last

    def add_contract(self, name: str, order_size_min: int = 1, **fields: Any) -> None:
        """Add a tradable contract."""
        payload = {"name": name, "order_size_min": order_size_min}
        payload.update(fields)
        self.contracts[name] = payload

    def inject_error(
        self,
        method: str,
        label: str,
        message: str = "",
        status: int = 400,
        persistent: bool = False,
    ) -> None:
        """
        Make the next call of `method` raise GateAPIError.

        A persistent error is raised on every call until `clear_errors`.
        """
        self._errors[method].append((GateAPIError(label, message, status), persistent))

    def clear_errors(self) -> None:
        self._errors.clear()

    def call_count(self, method: str) -> int:
        """Number of calls made to `method`."""
        return sum(1 for name, _ in self.calls if name == method)

    def reset(self) -> None:
        """Reset all state."""
        self._init_state()

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))

        if self._config.latency_ms > 0:
            await asyncio.sleep(self._config.latency_ms / 1000)

        queued = self._errors.get(method)
        if queued:
            error, persistent = queued[0]
            if not persistent:
                queued.pop(0)
            raise error

    def _apply_fill(self, contract: str, size: int, reduce_only: bool) -> None:
        current = int(self.positions.get(contract, {}).get("size", 0))

        if reduce_only:
            if current == 0 or (current > 0) == (size > 0):
                raise GateAPIError("REDUCE_ONLY_FAIL", "reduce-only order would increase position", 400)
            size = max(size, -current) if current > 0 else min(size, -current)

        new_size = current + size
        if new_size == 0:
            self.positions.pop(contract, None)
        elif contract in self.positions:
            self.positions[contract]["size"] = new_size
        else:
            self.set_position(
                contract,
                new_size,
                entry_price=self._price(contract),
                mark_price=self._price(contract),
                leverage=str(self.leverage.get(contract, 10)),
            )

    def _price(self, contract: str) -> str:
        return self.prices.get(contract, self._config.default_price)

    # --------------------------------------------------------
    # FUTURES TRANSPORT
    # --------------------------------------------------------

    async def list_futures_accounts(self) -> Dict[str, Any]:
        await self._enter("list_futures_accounts")
        return dict(self.account)

    async def list_futures_contracts(self) -> List[Dict[str, Any]]:
        await self._enter("list_futures_contracts")
        return [dict(payload) for payload in self.contracts.values()]

    async def get_futures_contract(self, contract: str) -> Dict[str, Any]:
        await self._enter("get_futures_contract", contract)
        if contract not in self.contracts:
            raise GateAPIError("CONTRACT_NOT_FOUND", f"contract {contract} not found", 400)
        return dict(self.contracts[contract])

    async def get_position(self, contract: str) -> Dict[str, Any]:
        await self._enter("get_position", contract)
        if contract not in self.positions:
            raise GateAPIError("POSITION_NOT_FOUND", "position not found", 400)
        return dict(self.positions[contract])

    async def list_positions(self) -> List[Dict[str, Any]]:
        await self._enter("list_positions")
        return [dict(payload) for payload in self.positions.values()]

    async def update_position_leverage(self, contract: str, leverage: int) -> Dict[str, Any]:
        await self._enter("update_position_leverage", contract, leverage)
        self.leverage[contract] = leverage
        if contract in self.positions:
            self.positions[contract]["leverage"] = str(leverage)
        return {"contract": contract, "leverage": str(leverage)}

    async def create_futures_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("create_futures_order", order)

        contract = order["contract"]
        if contract not in self.contracts:
            raise GateAPIError("CONTRACT_NOT_FOUND", f"contract {contract} not found", 400)
        if int(order["size"]) == 0:
            raise GateAPIError("INVALID_PARAM_VALUE", "size must not be zero", 400)

        price = str(order.get("price", "0"))
        resting = price != "0"
        if not resting:
            self._apply_fill(contract, int(order["size"]), bool(order.get("reduce_only")))

        response = {
            "id": next(self._order_ids),
            "contract": contract,
            "size": order["size"],
            "price": price,
            "tif": order.get("tif", "gtc"),
        }

        # Limit orders rest on the book until cancelled
        if resting:
            response.update(status="open", finish_as="")
            self.open_orders[contract].append(response)
        else:
            response.update(status="finished", finish_as="filled", fill_price=self._price(contract))

        self.orders.append(response)
        return dict(response)

    async def cancel_futures_orders(self, contract: str) -> List[Dict[str, Any]]:
        await self._enter("cancel_futures_orders", contract)
        cancelled = self.open_orders.pop(contract, [])
        return [dict(o, status="finished", finish_as="cancelled") for o in cancelled]

    async def create_price_triggered_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("create_price_triggered_order", order)
        order_id = next(self._order_ids)
        self.trigger_orders.append(dict(order, id=order_id))
        return {"id": order_id}

    async def list_futures_tickers(self, contract: str) -> List[Dict[str, Any]]:
        await self._enter("list_futures_tickers", contract)
        if contract not in self.contracts:
            return []
        return [{"contract": contract, "last": self._price(contract)}]

    async def close(self) -> None:
        self.closed = True
