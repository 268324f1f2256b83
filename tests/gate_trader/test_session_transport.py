"""
Session and Transport Tests.

============================================================
PURPOSE
============================================================
Tests for credential validation, endpoint selection, request signing
and response decoding.

TEST CATEGORIES:
- Session tests: Credentials, endpoints, key masking
- Signing tests: Gate API v4 signature
- Transport tests: URLs, headers, error decoding

============================================================
"""

import asyncio
import hashlib
import hmac
import json
import logging
from unittest.mock import MagicMock

import aiohttp
import pytest

from gate_trader import (
    CredentialError,
    ErrorCategory,
    ExchangeSession,
    GateAPIError,
    GateFuturesTransport,
    GateTraderConfig,
    MockGateTransport,
    classify_error,
    sign_request,
)
from gate_trader.config import GATE_REST_URL, GATE_TESTNET_URL
from gate_trader.metrics import AdapterMetrics

from .conftest import TEST_API_KEY, TEST_API_SECRET


# ============================================================
# SESSION TESTS
# ============================================================

class TestExchangeSession:
    """Tests for ExchangeSession."""

    @pytest.mark.parametrize("api_key,secret", [
        ("", TEST_API_SECRET),
        ("   ", TEST_API_SECRET),
        (TEST_API_KEY, ""),
        (TEST_API_KEY, " \t\n"),
        (None, TEST_API_SECRET),
    ])
    def test_empty_credentials_rejected(self, api_key, secret):
        """Test empty or whitespace credentials fail at construction."""
        with pytest.raises(CredentialError):
            ExchangeSession(api_key, secret, transport=MockGateTransport())

    def test_credentials_are_stripped(self):
        """Test stored key is already trimmed."""
        session = ExchangeSession(f"  {TEST_API_KEY}\n", f" {TEST_API_SECRET} ")

        assert session.api_key == TEST_API_KEY

    def test_production_endpoint(self):
        """Test default endpoint."""
        session = ExchangeSession(TEST_API_KEY, TEST_API_SECRET)

        assert session.base_url == GATE_REST_URL
        assert session.settle == "usdt"
        assert isinstance(session.transport, GateFuturesTransport)
        assert session.transport.base_url == GATE_REST_URL

    def test_testnet_endpoint(self):
        """Test testnet endpoint selection."""
        session = ExchangeSession(TEST_API_KEY, TEST_API_SECRET, testnet=True)

        assert session.testnet
        assert session.base_url == GATE_TESTNET_URL

    def test_injected_transport_is_used(self):
        """Test prebuilt transport is not replaced."""
        transport = MockGateTransport()
        session = ExchangeSession(TEST_API_KEY, TEST_API_SECRET, transport=transport)

        assert session.transport is transport

    def test_only_key_prefix_is_logged(self, caplog):
        """Test confirmation line masks the key and omits the secret."""
        caplog.set_level(logging.INFO)

        ExchangeSession(TEST_API_KEY, TEST_API_SECRET, transport=MockGateTransport())

        assert TEST_API_KEY[:8] in caplog.text
        assert TEST_API_KEY not in caplog.text
        assert TEST_API_SECRET not in caplog.text

    def test_short_key_prefix_is_logged(self, caplog):
        """Test a key shorter than the prefix is still identifiable in the log."""
        caplog.set_level(logging.INFO)

        ExchangeSession("abc123", TEST_API_SECRET, transport=MockGateTransport())

        assert "API key: abc123...)" in caplog.text
        assert TEST_API_SECRET not in caplog.text

    def test_from_env(self, monkeypatch):
        """Test loading credentials from the environment."""
        monkeypatch.setenv("GATE_API_KEY", TEST_API_KEY)
        monkeypatch.setenv("GATE_API_SECRET", TEST_API_SECRET)
        monkeypatch.setenv("GATE_TESTNET", "true")

        session = ExchangeSession.from_env()

        assert session.api_key == TEST_API_KEY
        assert session.base_url == GATE_TESTNET_URL

    def test_config_from_env_overrides(self, monkeypatch):
        """Test optional environment overrides."""
        monkeypatch.setenv("GATE_SETTLE", "BTC")
        monkeypatch.setenv("GATE_CACHE_TTL_SECONDS", "5")
        monkeypatch.setenv("GATE_TIMEOUT_SECONDS", "12.5")

        config = GateTraderConfig.from_env()

        assert config.endpoint.settle == "btc"
        assert config.cache.balance_ttl_seconds == 5.0
        assert config.cache.positions_ttl_seconds == 5.0
        assert config.timeout.request_timeout_seconds == 12.5

    @pytest.mark.asyncio
    async def test_context_manager_closes_transport(self):
        """Test async context manager releases the transport."""
        transport = MockGateTransport()

        async with ExchangeSession(TEST_API_KEY, TEST_API_SECRET, transport=transport):
            pass

        assert transport.closed


# ============================================================
# SIGNING TESTS
# ============================================================

class TestSigning:
    """Tests for sign_request."""

    def test_signature_matches_v4_scheme(self):
        """Test signature over method, path, query, body hash, timestamp."""
        body = '{"contract":"BTC_USDT","size":1}'
        body_hash = hashlib.sha512(body.encode()).hexdigest()
        message = f"POST\n/api/v4/futures/usdt/orders\n\n{body_hash}\n1700000000"
        expected = hmac.new(TEST_API_SECRET.encode(), message.encode(), hashlib.sha512).hexdigest()

        signature = sign_request(
            TEST_API_SECRET, "post", "/api/v4/futures/usdt/orders", "", body, "1700000000"
        )

        assert signature == expected
        assert len(signature) == 128

    def test_signature_covers_query(self):
        """Test query string changes the signature."""
        a = sign_request(TEST_API_SECRET, "GET", "/api/v4/futures/usdt/tickers", "contract=BTC_USDT", "", "1")
        b = sign_request(TEST_API_SECRET, "GET", "/api/v4/futures/usdt/tickers", "contract=ETH_USDT", "", "1")

        assert a != b


# ============================================================
# TRANSPORT TESTS
# ============================================================

class FakeResponse:
    """Minimal aiohttp response."""

    def __init__(self, status, payload):
        self.status = status
        self._text = payload if isinstance(payload, str) else json.dumps(payload)

    async def text(self):
        return self._text


class FakeRequest:
    """Async context manager returned by session.request()."""

    def __init__(self, response):
        self._response = response

    async def __aenter__(self):
        return self._response

    async def __aexit__(self, exc_type, exc, tb):
        return False


def make_transport(response=None, side_effect=None):
    metrics = AdapterMetrics("gate")
    transport = GateFuturesTransport(
        api_key=TEST_API_KEY,
        api_secret=TEST_API_SECRET,
        base_url=GATE_REST_URL,
        metrics=metrics,
    )
    session = MagicMock()
    session.closed = False
    if side_effect is not None:
        session.request = MagicMock(side_effect=side_effect)
    else:
        session.request = MagicMock(return_value=FakeRequest(response))
    transport._session = session
    return transport, session, metrics


class TestGateFuturesTransport:
    """Tests for GateFuturesTransport."""

    @pytest.mark.asyncio
    async def test_signed_get(self):
        """Test URL and auth headers of a GET request."""
        transport, session, _ = make_transport(FakeResponse(200, {"total": "100"}))

        data = await transport.list_futures_accounts()

        assert data == {"total": "100"}
        args, kwargs = session.request.call_args
        assert args == ("GET", f"{GATE_REST_URL}/futures/usdt/accounts")

        headers = kwargs["headers"]
        assert headers["KEY"] == TEST_API_KEY
        assert headers["SIGN"] == sign_request(
            TEST_API_SECRET, "GET", "/api/v4/futures/usdt/accounts", "", "", headers["Timestamp"]
        )
        assert kwargs["data"] is None

    @pytest.mark.asyncio
    async def test_query_is_signed(self):
        """Test leverage update sends and signs the query string."""
        transport, session, _ = make_transport(FakeResponse(200, {"leverage": "5"}))

        await transport.update_position_leverage("BTC_USDT", 5)

        args, kwargs = session.request.call_args
        assert args == ("POST", f"{GATE_REST_URL}/futures/usdt/positions/BTC_USDT/leverage?leverage=5")
        headers = kwargs["headers"]
        assert headers["SIGN"] == sign_request(
            TEST_API_SECRET,
            "POST",
            "/api/v4/futures/usdt/positions/BTC_USDT/leverage",
            "leverage=5",
            "",
            headers["Timestamp"],
        )

    @pytest.mark.asyncio
    async def test_body_is_compact_json(self):
        """Test order body is sent as signed compact JSON."""
        transport, session, _ = make_transport(FakeResponse(201, {"id": 42, "status": "finished"}))

        order = {"contract": "BTC_USDT", "size": 2, "price": "0", "tif": "ioc"}
        data = await transport.create_futures_order(order)

        assert data["id"] == 42
        _, kwargs = session.request.call_args
        assert kwargs["data"] == '{"contract":"BTC_USDT","size":2,"price":"0","tif":"ioc"}'
        assert kwargs["headers"]["SIGN"] == sign_request(
            TEST_API_SECRET,
            "POST",
            "/api/v4/futures/usdt/orders",
            "",
            kwargs["data"],
            kwargs["headers"]["Timestamp"],
        )

    @pytest.mark.asyncio
    async def test_error_payload_raises(self):
        """Test structured error response."""
        transport, _, metrics = make_transport(
            FakeResponse(400, {"label": "POSITION_NOT_FOUND", "message": "position not found"})
        )

        with pytest.raises(GateAPIError) as exc_info:
            await transport.get_position("BTC_USDT")

        assert exc_info.value.label == "POSITION_NOT_FOUND"
        assert exc_info.value.message == "position not found"
        assert exc_info.value.status == 400
        assert metrics.get_summary()["requests"]["failure"] == 1

    @pytest.mark.asyncio
    async def test_non_json_error(self):
        """Test error response without a JSON body."""
        transport, _, _ = make_transport(FakeResponse(502, "Bad Gateway"))

        with pytest.raises(GateAPIError) as exc_info:
            await transport.list_futures_contracts()

        assert exc_info.value.label == "HTTP_502"
        assert classify_error(exc_info.value) == ErrorCategory.EXCHANGE_ERROR

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test connection failure maps to NETWORK_ERROR."""
        transport, _, metrics = make_transport(side_effect=aiohttp.ClientConnectionError("reset"))

        with pytest.raises(GateAPIError) as exc_info:
            await transport.list_futures_tickers("BTC_USDT")

        assert classify_error(exc_info.value) == ErrorCategory.NETWORK
        assert metrics.get_summary()["errors"]["connection_errors"] == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test timeout maps to TIMEOUT."""
        transport, _, metrics = make_transport(side_effect=asyncio.TimeoutError())

        with pytest.raises(GateAPIError) as exc_info:
            await transport.list_futures_accounts()

        assert classify_error(exc_info.value) == ErrorCategory.TIMEOUT
        assert metrics.get_summary()["errors"]["timeouts"] == 1

    @pytest.mark.asyncio
    async def test_close(self):
        """Test closing releases the HTTP session."""
        transport, session, _ = make_transport(FakeResponse(200, {}))
        session.close = MagicMock(return_value=asyncio.sleep(0))

        await transport.close()

        session.close.assert_called_once()
        assert not transport.is_open


# ============================================================
# RUN TESTS
# ============================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
