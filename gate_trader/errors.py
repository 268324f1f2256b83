"""
Gate Trader - Error Handling and Classification.

============================================================
PURPOSE
============================================================
Standardized error handling for the Gate.io adapter with:
- One classification table for exchange (label, message) pairs
- A small exception taxonomy surfaced to the controller
- Original exchange label and message preserved on every error

============================================================
ERROR CATEGORIES
============================================================
1. AUTHENTICATION     - Key/secret/permission rejected
2. POSITION_NOT_FOUND - No position on the contract
3. ALREADY_ABSENT     - Nothing to do (leverage set, no orders)
4. RATE_LIMIT         - Too many requests
5. NETWORK / TIMEOUT  - Transport failures
6. INSUFFICIENT_FUNDS - Not enough margin
7. INVALID_ORDER      - Order validation failures
8. CONTRACT_NOT_FOUND - Unknown contract
9. EXCHANGE_ERROR     - Exchange internal errors
10. UNKNOWN           - Unclassified errors

No error is retried inside the adapter.

============================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Type


logger = logging.getLogger(__name__)


# ============================================================
# ERROR TAXONOMY
# ============================================================

class ErrorCategory(Enum):
    """Standardized error categories."""

    AUTHENTICATION = "AUTHENTICATION"
    POSITION_NOT_FOUND = "POSITION_NOT_FOUND"
    ALREADY_ABSENT = "ALREADY_ABSENT"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INVALID_ORDER = "INVALID_ORDER"
    CONTRACT_NOT_FOUND = "CONTRACT_NOT_FOUND"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    UNKNOWN = "UNKNOWN"


# ============================================================
# TRANSPORT ERROR
# ============================================================

class GateAPIError(Exception):
    """
    Structured error returned by the exchange.

    Gate answers failed requests with {"label": ..., "message": ...}.
    Transport failures use the synthetic labels NETWORK_ERROR and TIMEOUT.
    """

    def __init__(self, label: str, message: str = "", status: Optional[int] = None):
        self.label = label or ""
        self.message = message or ""
        self.status = status
        super().__init__(f"label: {self.label}, message: {self.message}")


NETWORK_ERROR_LABEL = "NETWORK_ERROR"
TIMEOUT_LABEL = "TIMEOUT"


def create_network_error(message: str, endpoint: str = None) -> GateAPIError:
    """Create network error."""
    detail = f"{endpoint}: {message}" if endpoint else message
    return GateAPIError(NETWORK_ERROR_LABEL, detail)


def create_timeout_error(timeout_seconds: float, endpoint: str = None) -> GateAPIError:
    """Create timeout error."""
    detail = f"Request timed out after {int(timeout_seconds * 1000)}ms"
    if endpoint:
        detail = f"{endpoint}: {detail}"
    return GateAPIError(TIMEOUT_LABEL, detail)


# ============================================================
# CLASSIFICATION TABLE
# ============================================================

@dataclass(frozen=True)
class ClassificationRule:
    """
    Maps an exchange error to a category.

    Every set field must match. `operation` limits the rule to one adapter
    operation, `substring` is matched case-sensitively against the message.
    """

    category: ErrorCategory
    label: Optional[str] = None
    substring: Optional[str] = None
    operation: Optional[str] = None

    def matches(self, error: GateAPIError, operation: Optional[str]) -> bool:
        if self.operation is not None and self.operation != operation:
            return False
        if self.label is not None and self.label != error.label:
            return False
        if self.substring is not None and self.substring not in error.message:
            return False
        return True


# Operation names used in rules and in raised errors
OP_GET_BALANCE = "get_balance"
OP_GET_POSITIONS = "get_positions"
OP_GET_CONTRACT = "get_contract"
OP_SET_LEVERAGE = "set_leverage"
OP_CANCEL_ALL = "cancel_all_orders"
OP_SUBMIT_ORDER = "submit_order"
OP_TRIGGER_ORDER = "trigger_order"
OP_MARKET_PRICE = "get_market_price"

# First match wins; operation-scoped rules come first.
CLASSIFICATION_TABLE: Tuple[ClassificationRule, ...] = (
    # Target leverage already in effect
    ClassificationRule(ErrorCategory.ALREADY_ABSENT, substring="No need to change", operation=OP_SET_LEVERAGE),
    ClassificationRule(ErrorCategory.ALREADY_ABSENT, substring="already", operation=OP_SET_LEVERAGE),

    # Nothing to cancel
    ClassificationRule(ErrorCategory.ALREADY_ABSENT, substring="not found", operation=OP_CANCEL_ALL),
    ClassificationRule(ErrorCategory.ALREADY_ABSENT, substring="empty", operation=OP_CANCEL_ALL),

    # Authentication
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="INVALID_KEY"),
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="INVALID_SIGNATURE"),
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="MISSING_REQUIRED_HEADER"),
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="REQUEST_EXPIRED"),
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="IP_FORBIDDEN"),
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="READ_ONLY"),
    ClassificationRule(ErrorCategory.AUTHENTICATION, label="FORBIDDEN"),

    # Position
    ClassificationRule(ErrorCategory.POSITION_NOT_FOUND, label="POSITION_NOT_FOUND"),

    # Rate limiting
    ClassificationRule(ErrorCategory.RATE_LIMIT, label="TOO_MANY_REQUESTS"),

    # Transport
    ClassificationRule(ErrorCategory.NETWORK, label=NETWORK_ERROR_LABEL),
    ClassificationRule(ErrorCategory.TIMEOUT, label=TIMEOUT_LABEL),

    # Funds
    ClassificationRule(ErrorCategory.INSUFFICIENT_FUNDS, label="INSUFFICIENT_AVAILABLE"),
    ClassificationRule(ErrorCategory.INSUFFICIENT_FUNDS, label="BALANCE_NOT_ENOUGH"),
    ClassificationRule(ErrorCategory.INSUFFICIENT_FUNDS, label="MARGIN_BALANCE_NOT_ENOUGH"),

    # Order validation
    ClassificationRule(ErrorCategory.INVALID_ORDER, label="INVALID_PARAM_VALUE"),
    ClassificationRule(ErrorCategory.INVALID_ORDER, label="INVALID_PROTOCOL"),
    ClassificationRule(ErrorCategory.INVALID_ORDER, label="ORDER_SIZE_TOO_SMALL"),
    ClassificationRule(ErrorCategory.INVALID_ORDER, label="REDUCE_ONLY_FAIL"),
    ClassificationRule(ErrorCategory.INVALID_ORDER, label="LIQUIDATE_IMMEDIATELY"),

    # Contract
    ClassificationRule(ErrorCategory.CONTRACT_NOT_FOUND, label="CONTRACT_NOT_FOUND"),

    # Exchange internal
    ClassificationRule(ErrorCategory.EXCHANGE_ERROR, label="SERVER_ERROR"),
    ClassificationRule(ErrorCategory.EXCHANGE_ERROR, label="INTERNAL"),
)


def classify_error(error: GateAPIError, operation: Optional[str] = None) -> ErrorCategory:
    """
    Classify an exchange error.

    Args:
        error: Error raised by the transport
        operation: Adapter operation that issued the call

    Returns:
        Error category
    """
    for rule in CLASSIFICATION_TABLE:
        if rule.matches(error, operation):
            return rule.category

    status = error.status
    if status == 429:
        return ErrorCategory.RATE_LIMIT
    if status in (401, 403):
        return ErrorCategory.AUTHENTICATION
    if status is not None and status >= 500:
        return ErrorCategory.EXCHANGE_ERROR
    return ErrorCategory.UNKNOWN


# ============================================================
# ADAPTER EXCEPTIONS
# ============================================================

class GateTraderError(Exception):
    """Base class for errors surfaced to the controller."""

    def __init__(
        self,
        message: str,
        label: str = "",
        exchange_message: str = "",
        operation: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
    ):
        self.label = label
        self.exchange_message = exchange_message
        self.operation = operation
        self.category = category
        super().__init__(message)


class CredentialError(GateTraderError):
    """API key or secret missing at construction time."""


class AuthenticationError(GateTraderError):
    """Exchange rejected the credentials or their permissions."""


class PositionNotFoundError(GateTraderError):
    """No open position where one is required."""


class ResourceAlreadyAbsent(GateTraderError):
    """Nothing to do. Normalized to success by the engine."""


class OrderError(GateTraderError):
    """Order submission rejected."""


class TriggerOrderError(GateTraderError):
    """Stop-loss / take-profit trigger order rejected."""


class LeverageError(GateTraderError):
    """Leverage update rejected."""


class CancelOrdersError(GateTraderError):
    """Bulk cancellation failed."""


class PriceUnavailableError(GateTraderError):
    """No usable ticker price."""


class AccountQueryError(GateTraderError):
    """Balance, position or contract query failed."""


AUTHENTICATION_GUIDANCE = (
    "Gate.io API key rejected, check: 1) the API key is correct "
    "2) the secret key is correct 3) the key has futures trading permission"
)


def wrap_api_error(
    error: GateAPIError,
    operation: str,
    explanation: str,
    error_class: Type[GateTraderError],
) -> GateTraderError:
    """
    Build the exception raised to the controller for an exchange error.

    Authentication failures become AuthenticationError with guidance,
    everything else becomes `error_class`. The exchange label and message
    are kept on the exception.
    """
    category = classify_error(error, operation)

    if category is ErrorCategory.AUTHENTICATION:
        error_class = AuthenticationError
        explanation = AUTHENTICATION_GUIDANCE
    elif category is ErrorCategory.ALREADY_ABSENT:
        error_class = ResourceAlreadyAbsent
    elif category is ErrorCategory.POSITION_NOT_FOUND and error_class is AccountQueryError:
        error_class = PositionNotFoundError

    wrapped = error_class(
        f"{explanation}: {error}",
        label=error.label,
        exchange_message=error.message,
        operation=operation,
        category=category,
    )
    wrapped.__cause__ = error
    return wrapped


class FormattingFallback:
    """
    Non-fatal condition: contract metadata was unavailable and the default
    whole-contract rounding was used instead. Logged, never raised.
    """

    def __init__(self, contract: str, cause: Exception):
        self.contract = contract
        self.cause = cause

    def __str__(self) -> str:
        return f"Contract {self.contract} metadata unavailable, using default precision: {self.cause}"
