"""
Gate.io Futures REST Transport.

============================================================
PURPOSE
============================================================
Authenticated transport for the Gate.io API v4 futures endpoints.

EXCHANGE SPECIFICS:
- HMAC-SHA512 signing over method, path, query, body hash, timestamp
- Contract names use an underscore (BTC_USDT)
- Sizes are signed integer contract counts
- Errors come back as {"label": ..., "message": ...}

============================================================
API DOCUMENTATION
============================================================
https://www.gate.io/docs/developers/apiv4/

============================================================
"""

import asyncio
import hashlib
import hmac
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode, urlparse

import aiohttp

from .config import TimeoutConfig
from .errors import GateAPIError, create_network_error, create_timeout_error
from .logging_utils import AdapterLogger
from .metrics import AdapterMetrics


logger = logging.getLogger(__name__)


# ============================================================
# TRANSPORT INTERFACE
# ============================================================

class FuturesTransport(ABC):
    """
    Exchange operations consumed by the adapter.

    Every method returns the decoded JSON payload or raises GateAPIError.
    """

    @abstractmethod
    async def list_futures_accounts(self) -> Dict[str, Any]:
        """Futures account of the settlement currency."""
        pass

    @abstractmethod
    async def list_futures_contracts(self) -> List[Dict[str, Any]]:
        """All contracts of the settlement currency."""
        pass

    @abstractmethod
    async def get_futures_contract(self, contract: str) -> Dict[str, Any]:
        """Single contract."""
        pass

    @abstractmethod
    async def get_position(self, contract: str) -> Dict[str, Any]:
        """Position on one contract. Raises POSITION_NOT_FOUND when absent."""
        pass

    @abstractmethod
    async def list_positions(self) -> List[Dict[str, Any]]:
        """All positions of the account."""
        pass

    @abstractmethod
    async def update_position_leverage(self, contract: str, leverage: int) -> Dict[str, Any]:
        """Set leverage for one contract."""
        pass

    @abstractmethod
    async def create_futures_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        """Submit an order."""
        pass

    @abstractmethod
    async def cancel_futures_orders(self, contract: str) -> List[Dict[str, Any]]:
        """Cancel all open orders on one contract."""
        pass

    @abstractmethod
    async def create_price_triggered_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a price-triggered order."""
        pass

    @abstractmethod
    async def list_futures_tickers(self, contract: str) -> List[Dict[str, Any]]:
        """Tickers, filtered to one contract."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None


# ============================================================
# SIGNING
# ============================================================

def sign_request(
    secret: str,
    method: str,
    path: str,
    query_string: str,
    body: str,
    timestamp: str,
) -> str:
    """
    Create Gate.io API v4 request signature.

    SIGN = HEX(HMAC-SHA512(secret,
        METHOD \\n PATH \\n QUERY \\n HEX(SHA512(BODY)) \\n TIMESTAMP))

    Args:
        secret: API secret
        method: HTTP method
        path: Full request path including the /api/v4 prefix
        query_string: URL-encoded query string, without "?"
        body: Request body (JSON string, empty for GET/DELETE)
        timestamp: Unix timestamp in seconds, as sent in the header

    Returns:
        Hex encoded signature
    """
    hashed_body = hashlib.sha512((body or "").encode("utf-8")).hexdigest()
    message = f"{method.upper()}\n{path}\n{query_string}\n{hashed_body}\n{timestamp}"
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha512,
    ).hexdigest()


# ============================================================
# GATE FUTURES TRANSPORT
# ============================================================

class GateFuturesTransport(FuturesTransport):
    """
    aiohttp-based Gate.io futures transport.

    One instance is bound to one set of credentials and reused for every
    call. The HTTP session is created lazily on the first request.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        settle: str = "usdt",
        timeout: Optional[TimeoutConfig] = None,
        metrics: Optional[AdapterMetrics] = None,
        adapter_logger: Optional[AdapterLogger] = None,
    ):
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._path_prefix = urlparse(self._base_url).path
        self._settle = settle
        self._timeout = timeout or TimeoutConfig()

        self._session: Optional[aiohttp.ClientSession] = None

        self._metrics = metrics or AdapterMetrics("gate")
        self._logger = adapter_logger or AdapterLogger("gate")

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def settle(self) -> str:
        return self._settle

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=self._timeout.request_timeout_seconds,
                connect=self._timeout.connect_timeout_seconds,
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            self._logger.info("HTTP session closed")

    # --------------------------------------------------------
    # REQUEST HANDLING
    # --------------------------------------------------------

    def _build_headers(
        self,
        method: str,
        path: str,
        query_string: str,
        body: str,
    ) -> Dict[str, str]:
        timestamp = str(time.time())
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "KEY": self._api_key,
            "Timestamp": timestamp,
            "SIGN": sign_request(
                self._api_secret, method, path, query_string, body, timestamp
            ),
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Dict[str, Any] = None,
        body: Any = None,
        operation: str = None,
    ) -> Any:
        """
        Make signed request to the Gate.io API.

        Args:
            method: HTTP method
            endpoint: Endpoint path below the API prefix
            params: Query parameters
            body: JSON body
            operation: Name used in logs

        Returns:
            Decoded response payload
        """
        session = self._ensure_session()
        operation = operation or endpoint

        query_string = urlencode(params) if params else ""
        path = f"{self._path_prefix}{endpoint}"
        url = f"{self._base_url}{endpoint}"
        if query_string:
            url = f"{url}?{query_string}"

        body_str = json.dumps(body, separators=(",", ":")) if body is not None else ""
        headers = self._build_headers(method, path, query_string, body_str)

        request_id = self._logger.log_request(
            operation=operation,
            method=method,
            endpoint=endpoint,
            headers=headers,
            params=params,
            body=body,
        )

        start_time = time.time()

        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=body_str or None,
            ) as resp:
                return await self._handle_response(
                    resp, request_id, endpoint, operation, start_time
                )
        except asyncio.TimeoutError as e:
            latency_ms = (time.time() - start_time) * 1000
            error = create_timeout_error(self._timeout.request_timeout_seconds, endpoint)
            self._metrics.record_request(
                endpoint=endpoint,
                latency_ms=latency_ms,
                success=False,
                error_label=error.label,
            )
            raise error from e
        except aiohttp.ClientError as e:
            latency_ms = (time.time() - start_time) * 1000
            error = create_network_error(str(e), endpoint)
            self._metrics.record_request(
                endpoint=endpoint,
                latency_ms=latency_ms,
                success=False,
                error_label=error.label,
            )
            raise error from e

    async def _handle_response(
        self,
        response: aiohttp.ClientResponse,
        request_id: str,
        endpoint: str,
        operation: str,
        start_time: float,
    ) -> Any:
        """Decode a response, raising GateAPIError for failures."""
        latency_ms = (time.time() - start_time) * 1000

        text = await response.text()
        try:
            data = json.loads(text) if text else None
        except ValueError:
            data = None

        failed = response.status >= 400 or (isinstance(data, dict) and "label" in data)

        if failed:
            if isinstance(data, dict):
                label = data.get("label", "")
                message = data.get("message") or data.get("detail") or ""
            else:
                label = f"HTTP_{response.status}"
                message = text[:200]

            error = GateAPIError(label, message, response.status)

            self._metrics.record_request(
                endpoint=endpoint,
                latency_ms=latency_ms,
                success=False,
                status_code=response.status,
                error_label=label,
            )
            self._logger.log_response(
                operation=operation,
                request_id=request_id,
                status_code=response.status,
                latency_ms=latency_ms,
                success=False,
                error_label=label,
                error_message=message,
            )
            raise error

        self._metrics.record_request(
            endpoint=endpoint,
            latency_ms=latency_ms,
            success=True,
            status_code=response.status,
        )
        self._logger.log_response(
            operation=operation,
            request_id=request_id,
            status_code=response.status,
            latency_ms=latency_ms,
            success=True,
            response_body=data,
        )
        return data

    def _futures(self, suffix: str = "") -> str:
        return f"/futures/{self._settle}{suffix}"

    # --------------------------------------------------------
    # ACCOUNT
    # --------------------------------------------------------

    async def list_futures_accounts(self) -> Dict[str, Any]:
        return await self._request("GET", self._futures("/accounts"), operation="list_futures_accounts")

    # --------------------------------------------------------
    # CONTRACTS
    # --------------------------------------------------------

    async def list_futures_contracts(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", self._futures("/contracts"), operation="list_futures_contracts")
        return data or []

    async def get_futures_contract(self, contract: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            self._futures(f"/contracts/{quote(contract)}"),
            operation="get_futures_contract",
        )

    # --------------------------------------------------------
    # POSITIONS
    # --------------------------------------------------------

    async def get_position(self, contract: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            self._futures(f"/positions/{quote(contract)}"),
            operation="get_position",
        )

    async def list_positions(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", self._futures("/positions"), operation="list_positions")
        return data or []

    async def update_position_leverage(self, contract: str, leverage: int) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self._futures(f"/positions/{quote(contract)}/leverage"),
            params={"leverage": str(leverage)},
            operation="update_position_leverage",
        )

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def create_futures_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self._futures("/orders"),
            body=order,
            operation="create_futures_order",
        )

    async def cancel_futures_orders(self, contract: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "DELETE",
            self._futures("/orders"),
            params={"contract": contract},
            operation="cancel_futures_orders",
        )
        return data or []

    async def create_price_triggered_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self._futures("/price_orders"),
            body=order,
            operation="create_price_triggered_order",
        )

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def list_futures_tickers(self, contract: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            self._futures("/tickers"),
            params={"contract": contract},
            operation="list_futures_tickers",
        )
        return data or []
