"""
Gate Trader - Gate.io USDT Futures Adapter.

============================================================
PURPOSE
============================================================
Lets a trading controller open, close and protect leveraged USDT futures
positions on Gate.io through canonical symbols (BTCUSDT) and normalized
balance / position records.

COMPONENTS:
- GateTrader: Controller-facing facade
- ExchangeSession: Credentials, endpoint and transport
- AccountStateCache / ContractMetadataCache: TTL and read-through caches
- QuantityFormatter: Contract-count formatting
- OrderExecutionEngine: Order lifecycle verbs
- MockGateTransport: In-memory exchange for tests and dry runs

ERROR HANDLING:
- GateTraderError and subclasses
- classify_error: One table for all exchange errors

============================================================
"""

# Facade
from .trader import GateTrader

# Components
from .session import ExchangeSession
from .cache import AccountStateCache, CacheEntry, ContractMetadataCache
from .formatting import QuantityFormatter, format_price, precision_from_step
from .engine import OrderExecutionEngine

# Transport
from .transport import FuturesTransport, GateFuturesTransport, sign_request
from .mock import MockConfig, MockGateTransport

# Configuration
from .config import (
    CacheConfig,
    EndpointConfig,
    GateTraderConfig,
    OrderConfig,
    TimeoutConfig,
)
from .clock import ClockProtocol, MockClock, SystemClock

# Types
from .types import (
    BalanceSnapshot,
    ContractMetadata,
    OrderRequest,
    OrderResult,
    PositionSide,
    PositionSnapshot,
    TimeInForce,
    TriggerKind,
    TriggerOrder,
    TriggerPriceType,
    TriggerRule,
)
from .symbols import to_contract, to_symbol

# Errors
from .errors import (
    AccountQueryError,
    AuthenticationError,
    CancelOrdersError,
    CredentialError,
    ErrorCategory,
    FormattingFallback,
    GateAPIError,
    GateTraderError,
    LeverageError,
    OrderError,
    PositionNotFoundError,
    PriceUnavailableError,
    ResourceAlreadyAbsent,
    TriggerOrderError,
    classify_error,
)

# Observability
from .metrics import AdapterMetrics, MetricType
from .logging_utils import AdapterLogger, mask_headers, mask_params, mask_value


__all__ = [
    # Facade
    "GateTrader",
    # Components
    "ExchangeSession",
    "AccountStateCache",
    "CacheEntry",
    "ContractMetadataCache",
    "QuantityFormatter",
    "format_price",
    "precision_from_step",
    "OrderExecutionEngine",
    # Transport
    "FuturesTransport",
    "GateFuturesTransport",
    "sign_request",
    "MockConfig",
    "MockGateTransport",
    # Configuration
    "CacheConfig",
    "EndpointConfig",
    "GateTraderConfig",
    "OrderConfig",
    "TimeoutConfig",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    # Types
    "BalanceSnapshot",
    "ContractMetadata",
    "OrderRequest",
    "OrderResult",
    "PositionSide",
    "PositionSnapshot",
    "TimeInForce",
    "TriggerKind",
    "TriggerOrder",
    "TriggerPriceType",
    "TriggerRule",
    "to_contract",
    "to_symbol",
    # Errors
    "AccountQueryError",
    "AuthenticationError",
    "CancelOrdersError",
    "CredentialError",
    "ErrorCategory",
    "FormattingFallback",
    "GateAPIError",
    "GateTraderError",
    "LeverageError",
    "OrderError",
    "PositionNotFoundError",
    "PriceUnavailableError",
    "ResourceAlreadyAbsent",
    "TriggerOrderError",
    "classify_error",
    # Observability
    "AdapterMetrics",
    "MetricType",
    "AdapterLogger",
    "mask_headers",
    "mask_params",
    "mask_value",
]
