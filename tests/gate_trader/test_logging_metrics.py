"""
Logging and Metrics Tests.

============================================================
PURPOSE
============================================================
Tests for credential masking, structured adapter logs and metrics.

============================================================
"""

import logging

import pytest

from gate_trader import (
    AdapterLogger,
    AdapterMetrics,
    MetricType,
    mask_headers,
    mask_params,
    mask_value,
)


# ============================================================
# MASKING TESTS
# ============================================================

class TestCredentialMasking:
    """Tests for credential masking."""

    def test_mask_value(self):
        """Test masking sensitive value."""
        api_key = "abc123def456ghi789"
        masked = mask_value(api_key, show_chars=8)

        assert masked == "abc123de...***"
        assert "ghi789" not in masked

    def test_mask_short_value(self):
        assert mask_value("abc", show_chars=4) == "***"
        assert mask_value("", show_chars=4) == "***"

    def test_mask_gate_headers(self):
        """Test KEY and SIGN headers are masked."""
        headers = {
            "Content-Type": "application/json",
            "KEY": "0123456789abcdef0123456789abcdef",
            "SIGN": "f" * 128,
            "Timestamp": "1700000000",
        }

        masked = mask_headers(headers)

        assert masked["Content-Type"] == "application/json"
        assert masked["Timestamp"] == "1700000000"
        assert "456789abcdef" not in masked["KEY"]
        assert "f" * 16 not in masked["SIGN"]

    def test_mask_params(self):
        """Test sensitive parameters are masked, others kept."""
        params = {
            "contract": "BTC_USDT",
            "api_secret": "my_secret_value",
            "leverage": "5",
        }

        masked = mask_params(params)

        assert masked["contract"] == "BTC_USDT"
        assert masked["leverage"] == "5"
        assert "secret_value" not in masked["api_secret"]


# ============================================================
# ADAPTER LOGGER TESTS
# ============================================================

class TestAdapterLogger:
    """Tests for AdapterLogger."""

    def test_log_request_masks_headers(self, caplog):
        """Test request log line never contains the raw key."""
        caplog.set_level(logging.DEBUG)
        adapter_logger = AdapterLogger("gate")

        request_id = adapter_logger.log_request(
            operation="create_futures_order",
            method="POST",
            endpoint="/futures/usdt/orders",
            headers={"KEY": "0123456789abcdef0123456789abcdef"},
            body={"contract": "BTC_USDT", "size": 1},
        )

        assert request_id == "gate-1"
        assert "0123456789abcdef0123456789abcdef" not in caplog.text
        assert "body_hash" in caplog.text

    def test_log_order_error_is_warning(self, caplog):
        """Test rejected orders log at WARNING."""
        caplog.set_level(logging.INFO)
        adapter_logger = AdapterLogger("gate")

        adapter_logger.log_order(
            operation="open_long",
            symbol="BTCUSDT",
            contract="BTC_USDT",
            size=2,
            error_label="INSUFFICIENT_AVAILABLE",
            error_message="balance not enough",
        )

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "ORDER_ERROR" in record.getMessage()
        assert "INSUFFICIENT_AVAILABLE" in record.getMessage()

    def test_log_order_success_is_info(self, caplog):
        caplog.set_level(logging.INFO)
        adapter_logger = AdapterLogger("gate")

        adapter_logger.log_order(operation="close_short", symbol="ETHUSDT", size=3, order_id="42")

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert '"order_id": "42"' in record.getMessage()


# ============================================================
# METRICS TESTS
# ============================================================

class TestAdapterMetrics:
    """Tests for AdapterMetrics."""

    def test_record_request(self):
        """Test recording request."""
        metrics = AdapterMetrics("gate")

        metrics.record_request(
            endpoint="/futures/usdt/accounts",
            latency_ms=150.0,
            success=True,
            status_code=200,
        )

        summary = metrics.get_summary()

        assert summary["requests"]["total"] == 1
        assert summary["requests"]["success"] == 1
        assert summary["latency"]["avg_ms"] == 150.0

    def test_record_rate_limit(self):
        """Test rate limit failures are counted."""
        metrics = AdapterMetrics("gate")

        metrics.record_request(
            endpoint="/futures/usdt/orders",
            latency_ms=100.0,
            success=False,
            status_code=429,
            error_label="TOO_MANY_REQUESTS",
        )

        summary = metrics.get_summary()

        assert summary["requests"]["failure"] == 1
        assert summary["errors"]["rate_limit_hits"] == 1
        assert summary["errors"]["by_label"]["TOO_MANY_REQUESTS"] == 1

    def test_record_orders(self):
        """Test recording order metrics."""
        metrics = AdapterMetrics("gate")

        metrics.record_order_submitted()
        metrics.record_order_rejected("REDUCE_ONLY_FAIL")
        metrics.record_order_canceled()
        metrics.record_trigger_order_submitted()

        orders = metrics.get_summary()["orders"]

        assert orders == {"submitted": 1, "rejected": 1, "canceled": 1, "triggers": 1}

    def test_cache_counters(self):
        metrics = AdapterMetrics("gate")

        metrics.record_cache_miss("positions")
        metrics.record_cache_hit("positions")
        metrics.record_cache_hit("positions")

        cache = metrics.get_summary()["cache"]
        assert cache["hits"] == {"positions": 2}
        assert cache["misses"] == {"positions": 1}

    def test_latency_by_endpoint(self):
        """Test latency tracking by endpoint."""
        metrics = AdapterMetrics("gate")

        metrics.record_request("/futures/usdt/orders", 100, True)
        metrics.record_request("/futures/usdt/orders", 200, True)
        metrics.record_request("/futures/usdt/accounts", 50, True)

        latency = metrics.get_latency_by_endpoint()

        assert latency["/futures/usdt/orders"]["count"] == 2
        assert latency["/futures/usdt/orders"]["avg_ms"] == 150.0
        assert "_all" not in latency

    def test_reset_metrics(self):
        """Test resetting metrics."""
        metrics = AdapterMetrics("gate")

        metrics.record_request("/futures/usdt/orders", 100, True)
        metrics.record_formatting_fallback()
        metrics.reset()

        summary = metrics.get_summary()

        assert summary["requests"]["total"] == 0
        assert summary["errors"]["formatting_fallbacks"] == 0
        assert MetricType.FORMATTING_FALLBACK.value == "formatting_fallback"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
