"""
Gate Trader - Types.

============================================================
PURPOSE
============================================================
All type definitions for the Gate.io futures adapter.

CRITICAL PRINCIPLE:
    "The controller only ever sees canonical records."
    "Exchange payloads never leak past the adapter."

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


# ============================================================
# ORDER ENUMS
# ============================================================

class PositionSide(Enum):
    """Position side."""

    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value: Any) -> "PositionSide":
        """Accept 'LONG', 'long' or a PositionSide."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown position side: {value!r}")


class TimeInForce(Enum):
    """Time in force accepted by Gate futures orders."""

    GTC = "gtc"
    """Good till cancelled."""

    IOC = "ioc"
    """Immediate or cancel."""

    POC = "poc"
    """Pending or cancelled (post only)."""

    FOK = "fok"
    """Fill or kill."""


class TriggerRule(IntEnum):
    """Trigger condition of a price-triggered order."""

    GTE = 1
    """Fires when the reference price >= trigger price."""

    LTE = 2
    """Fires when the reference price <= trigger price."""


class TriggerPriceType(IntEnum):
    """Reference price watched by a trigger order."""

    LAST = 0
    MARK = 1
    INDEX = 2


class TriggerKind(Enum):
    """Conditional order purpose."""

    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"


# Market orders are sent with price "0"
MARKET_PRICE = "0"

# 30 days, in seconds
TRIGGER_EXPIRATION_SECONDS = 30 * 24 * 3600


# ============================================================
# ACCOUNT RECORDS
# ============================================================

@dataclass(frozen=True)
class BalanceSnapshot:
    """
    Futures account balance in settlement currency.

    Gate reports `total` as wallet balance plus unrealised PnL, so the
    wallet balance is derived: wallet_balance = total - unrealised_pnl.
    """

    wallet_balance: float
    """Wallet balance excluding unrealised PnL."""

    available_balance: float
    """Balance available for new positions."""

    unrealized_profit: float
    """Unrealised PnL across open positions."""

    @property
    def total_equity(self) -> float:
        """Wallet balance plus unrealised PnL, as reported by the exchange."""
        return self.wallet_balance + self.unrealized_profit

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "wallet_balance": self.wallet_balance,
            "available_balance": self.available_balance,
            "unrealized_profit": self.unrealized_profit,
            "total_equity": self.total_equity,
        }


@dataclass(frozen=True)
class PositionSnapshot:
    """One open futures position."""

    symbol: str
    """Canonical symbol (e.g., BTCUSDT)."""

    side: PositionSide
    """Position side, derived from the sign of the raw size."""

    quantity: float
    """Absolute position size in contracts."""

    entry_price: float = 0.0
    mark_price: float = 0.0
    unrealized_profit: float = 0.0
    leverage: float = 10.0
    liquidation_price: float = 0.0
    margin: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "mark_price": self.mark_price,
            "unrealized_profit": self.unrealized_profit,
            "leverage": self.leverage,
            "liquidation_price": self.liquidation_price,
            "margin": self.margin,
        }


# ============================================================
# CONTRACT METADATA
# ============================================================

@dataclass(frozen=True)
class ContractMetadata:
    """Trading rules for one futures contract."""

    contract_name: str
    """Exchange contract name (e.g., BTC_USDT)."""

    min_order_size: int = 1
    """Minimum order size in contracts."""

    precision: int = 0
    """Quantity precision. Always 0: Gate trades whole contracts."""

    price_precision: int = 8
    """Price decimal places derived from the order price tick."""


# ============================================================
# ORDER RECORDS
# ============================================================

@dataclass(frozen=True)
class OrderRequest:
    """
    Futures order as sent to the exchange.

    The sign of `size` is the direction: positive buys, negative sells.
    """

    contract: str
    size: int
    price: str = MARKET_PRICE
    tif: TimeInForce = TimeInForce.IOC
    reduce_only: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body expected by the exchange."""
        payload: Dict[str, Any] = {
            "contract": self.contract,
            "size": self.size,
            "price": self.price,
            "tif": self.tif.value,
        }
        if self.reduce_only:
            payload["reduce_only"] = True
        return payload


@dataclass(frozen=True)
class TriggerOrder:
    """Conditional reduce-only order used for stop-loss and take-profit."""

    initial: OrderRequest
    trigger_price: str
    rule: TriggerRule
    price_type: TriggerPriceType = TriggerPriceType.MARK
    expiration: int = TRIGGER_EXPIRATION_SECONDS

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body expected by the exchange."""
        return {
            "initial": self.initial.to_payload(),
            "trigger": {
                "strategy_type": 0,
                "price_type": int(self.price_type),
                "price": self.trigger_price,
                "rule": int(self.rule),
                "expiration": self.expiration,
            },
        }


@dataclass(frozen=True)
class OrderResult:
    """Outcome of an accepted order submission."""

    order_id: str
    symbol: str
    status: str
    raw_response: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "order_id": self.order_id,
            "symbol": self.symbol,
            "status": self.status,
        }


def parse_float(value: Any, default: float = 0.0) -> float:
    """Parse an exchange decimal string, returning `default` when empty or invalid."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_int(value: Any, default: int = 0) -> int:
    """Parse an exchange integer field."""
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def optional_float(value: Any) -> Optional[float]:
    """Parse a decimal string, returning None when it does not parse."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
