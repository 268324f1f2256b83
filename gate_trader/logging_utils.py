"""
Gate Trader - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Secure logging for exchange operations with:
- Credential masking (API keys, secrets, signatures)
- Request/response sanitization
- Structured JSON log lines

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log the API secret
2. Log at most the first 8 characters of the API key
3. Mask the KEY / SIGN headers on every request
4. Log a hash of request bodies, not the bodies themselves

The adapter never configures handlers; the host application does.

============================================================
"""

import hashlib
import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "key",
    "sign",
    "authorization",
    "x-api-key",
    "api-key",
    "secret",
    "signature",
}

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "key",
    "apikey",
    "api_key",
    "secret",
    "secretkey",
    "secret_key",
    "api_secret",
    "signature",
    "sign",
    "token",
}

# Regex patterns for sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r'[a-f0-9]{128}', re.IGNORECASE), "***HMAC***"),  # SHA512 signatures
    (re.compile(r'[A-Za-z0-9]{32,}'), "***KEY***"),  # API keys (32+ chars)
]


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """
    Mask sensitive headers.

    Args:
        headers: Request headers

    Returns:
        Headers with sensitive values masked
    """
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Args:
        params: Request parameters

    Returns:
        Parameters with sensitive values masked
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        elif isinstance(value, str):
            masked_value = value
            for pattern, replacement in SENSITIVE_PATTERNS:
                masked_value = pattern.sub(replacement, masked_value)
            masked[key] = masked_value
        else:
            masked[key] = value
    return masked


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================
# LOG ENTRY STRUCTURES
# ============================================================

@dataclass
class RequestLogEntry:
    """Structured log entry for requests."""

    timestamp: str
    exchange_id: str
    operation: str
    method: str
    endpoint: str
    request_id: str

    # Request details (masked)
    headers: Dict[str, str] = None
    params: Dict[str, Any] = None
    body_hash: str = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


@dataclass
class ResponseLogEntry:
    """Structured log entry for responses."""

    timestamp: str
    exchange_id: str
    operation: str
    request_id: str

    status_code: int
    latency_ms: float
    success: bool

    # Error info (if applicable)
    error_label: str = None
    error_message: str = None

    # Response preview (truncated)
    response_preview: str = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


@dataclass
class OrderLogEntry:
    """Structured log entry for orders."""

    timestamp: str
    exchange_id: str
    operation: str  # open_long, close_short, stop_loss, ...

    symbol: str
    contract: str = None
    size: int = None
    price: str = None
    reduce_only: bool = None
    trigger_price: str = None

    # Result
    order_id: str = None
    status: str = None

    # Error info
    error_label: str = None
    error_message: str = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON logging."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


# ============================================================
# ADAPTER LOGGER
# ============================================================

class AdapterLogger:
    """
    Secure logger for exchange operations.

    Provides structured logging with automatic credential masking.
    """

    def __init__(self, exchange_id: str, logger_name: str = None):
        """
        Initialize adapter logger.

        Args:
            exchange_id: Exchange identifier
            logger_name: Logger name (default: gate_trader.<exchange_id>)
        """
        self._exchange_id = exchange_id
        self._logger = logging.getLogger(logger_name or f"gate_trader.{exchange_id}")

        # Request counter for unique IDs
        self._request_counter = 0

    def _generate_request_id(self) -> str:
        """Generate unique request ID."""
        self._request_counter += 1
        return f"{self._exchange_id}-{self._request_counter}"

    def _hash_body(self, body: Any) -> Optional[str]:
        """Create hash of request body."""
        if not body:
            return None

        if isinstance(body, (dict, list)):
            body_str = json.dumps(body, sort_keys=True)
        else:
            body_str = str(body)

        return hashlib.sha256(body_str.encode()).hexdigest()[:16]

    def log_request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        headers: Dict[str, str] = None,
        params: Dict[str, Any] = None,
        body: Any = None,
    ) -> str:
        """
        Log outgoing request.

        Returns:
            Request ID for correlation
        """
        request_id = self._generate_request_id()

        entry = RequestLogEntry(
            timestamp=_utc_now(),
            exchange_id=self._exchange_id,
            operation=operation,
            method=method,
            endpoint=endpoint,
            request_id=request_id,
            headers=mask_headers(headers) if headers else None,
            params=mask_params(params) if params else None,
            body_hash=self._hash_body(body),
        )

        self._logger.debug(f"REQUEST: {entry.to_json()}")
        return request_id

    def log_response(
        self,
        operation: str,
        request_id: str,
        status_code: int,
        latency_ms: float,
        success: bool,
        error_label: str = None,
        error_message: str = None,
        response_body: Any = None,
    ) -> None:
        """Log incoming response."""
        preview = None
        if response_body:
            if isinstance(response_body, (dict, list)):
                preview = json.dumps(response_body, default=str)[:200]
            else:
                preview = str(response_body)[:200]

        entry = ResponseLogEntry(
            timestamp=_utc_now(),
            exchange_id=self._exchange_id,
            operation=operation,
            request_id=request_id,
            status_code=status_code,
            latency_ms=round(latency_ms, 3),
            success=success,
            error_label=error_label,
            error_message=error_message[:200] if error_message else None,
            response_preview=preview,
        )

        if success:
            self._logger.debug(f"RESPONSE: {entry.to_json()}")
        else:
            self._logger.warning(f"RESPONSE_ERROR: {entry.to_json()}")

    def log_order(
        self,
        operation: str,
        symbol: str,
        contract: str = None,
        size: int = None,
        price: str = None,
        reduce_only: bool = None,
        trigger_price: str = None,
        order_id: str = None,
        status: str = None,
        error_label: str = None,
        error_message: str = None,
    ) -> None:
        """Log order operation."""
        entry = OrderLogEntry(
            timestamp=_utc_now(),
            exchange_id=self._exchange_id,
            operation=operation,
            symbol=symbol,
            contract=contract,
            size=size,
            price=price,
            reduce_only=reduce_only,
            trigger_price=trigger_price,
            order_id=order_id,
            status=status,
            error_label=error_label,
            error_message=error_message[:200] if error_message else None,
        )

        if error_label or error_message:
            self._logger.warning(f"ORDER_ERROR: {entry.to_json()}")
        else:
            self._logger.info(f"ORDER: {entry.to_json()}")

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._logger.info(f"[{self._exchange_id}] {message}", extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._logger.warning(f"[{self._exchange_id}] {message}", extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message."""
        self._logger.error(
            f"[{self._exchange_id}] {message}",
            exc_info=exc_info,
            extra=kwargs,
        )

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._logger.debug(f"[{self._exchange_id}] {message}", extra=kwargs)
