"""
Gate Trader - Metrics and Observability.

============================================================
PURPOSE
============================================================
Metrics collection for the adapter.

METRICS TRACKED:
- Request latency (by endpoint)
- Request success/failure rates
- Rate limit, timeout and network failures
- Orders submitted/rejected/canceled
- Cache hits and misses
- Formatting fallbacks

============================================================
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List


logger = logging.getLogger(__name__)


# ============================================================
# METRIC TYPES
# ============================================================

class MetricType(Enum):
    """Types of metrics."""

    REQUEST_SUCCESS = "request_success"
    REQUEST_FAILURE = "request_failure"
    ORDER_SUBMITTED = "order_submitted"
    ORDER_REJECTED = "order_rejected"
    ORDER_CANCELED = "order_canceled"
    TRIGGER_ORDER_SUBMITTED = "trigger_order_submitted"
    RATE_LIMIT_HIT = "rate_limit_hit"
    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    FORMATTING_FALLBACK = "formatting_fallback"


@dataclass
class LatencyStats:
    """Latency statistics."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        """Average latency in ms."""
        return self.total_ms / self.count if self.count > 0 else 0.0

    def record(self, latency_ms: float) -> None:
        """Record a latency measurement."""
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)


@dataclass
class CounterStats:
    """Counter statistics."""

    total: int = 0
    last_minute: int = 0

    _minute_counts: List[float] = field(default_factory=list)

    def increment(self) -> None:
        """Increment counter."""
        now = time.time()
        self.total += 1
        self._minute_counts.append(now)
        minute_ago = now - 60
        self._minute_counts = [t for t in self._minute_counts if t > minute_ago]
        self.last_minute = len(self._minute_counts)


# ============================================================
# ADAPTER METRICS
# ============================================================

class AdapterMetrics:
    """
    Metrics collector for the adapter.

    Mutated only from the event loop thread.
    """

    def __init__(self, exchange_id: str):
        """
        Initialize metrics.

        Args:
            exchange_id: Exchange identifier
        """
        self._exchange_id = exchange_id
        self._start_time = datetime.now(timezone.utc)

        # Latency by endpoint
        self._latency: Dict[str, LatencyStats] = defaultdict(LatencyStats)

        # Counters
        self._counters: Dict[MetricType, CounterStats] = {
            mt: CounterStats() for mt in MetricType
        }

        # Error tracking
        self._error_labels: Dict[str, int] = defaultdict(int)

        # Cache hits/misses by cache name
        self._cache_hits: Dict[str, int] = defaultdict(int)
        self._cache_misses: Dict[str, int] = defaultdict(int)

    # --------------------------------------------------------
    # RECORDING
    # --------------------------------------------------------

    def record_request(
        self,
        endpoint: str,
        latency_ms: float,
        success: bool,
        status_code: int = None,
        error_label: str = None,
    ) -> None:
        """
        Record a request.

        Args:
            endpoint: API endpoint
            latency_ms: Request latency in ms
            success: Whether request succeeded
            status_code: HTTP status code
            error_label: Exchange error label if failed
        """
        self._latency[endpoint].record(latency_ms)
        self._latency["_all"].record(latency_ms)

        if success:
            self._counters[MetricType.REQUEST_SUCCESS].increment()
            return

        self._counters[MetricType.REQUEST_FAILURE].increment()

        if error_label:
            self._error_labels[error_label] += 1
            label = error_label.upper()
            if "TOO_MANY" in label or "RATE" in label or status_code == 429:
                self._counters[MetricType.RATE_LIMIT_HIT].increment()
            elif "TIMEOUT" in label:
                self._counters[MetricType.TIMEOUT].increment()
            elif "NETWORK" in label:
                self._counters[MetricType.CONNECTION_ERROR].increment()

    def record_order_submitted(self) -> None:
        """Record order submission."""
        self._counters[MetricType.ORDER_SUBMITTED].increment()

    def record_order_rejected(self, error_label: str = None) -> None:
        """Record order rejection."""
        self._counters[MetricType.ORDER_REJECTED].increment()
        if error_label:
            self._error_labels[error_label] += 1

    def record_order_canceled(self) -> None:
        """Record bulk cancellation."""
        self._counters[MetricType.ORDER_CANCELED].increment()

    def record_trigger_order_submitted(self) -> None:
        """Record stop-loss / take-profit submission."""
        self._counters[MetricType.TRIGGER_ORDER_SUBMITTED].increment()

    def record_cache_hit(self, cache: str) -> None:
        """Record cache hit."""
        self._counters[MetricType.CACHE_HIT].increment()
        self._cache_hits[cache] += 1

    def record_cache_miss(self, cache: str) -> None:
        """Record cache miss (a refresh follows)."""
        self._counters[MetricType.CACHE_MISS].increment()
        self._cache_misses[cache] += 1

    def record_formatting_fallback(self) -> None:
        """Record a quantity formatted without contract metadata."""
        self._counters[MetricType.FORMATTING_FALLBACK].increment()

    # --------------------------------------------------------
    # REPORTING
    # --------------------------------------------------------

    def get_summary(self) -> Dict[str, Any]:
        """
        Get metrics summary.

        Returns:
            Dict with all metrics
        """
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()

        all_latency = self._latency.get("_all", LatencyStats())
        success = self._counters[MetricType.REQUEST_SUCCESS]
        failure = self._counters[MetricType.REQUEST_FAILURE]

        total_requests = success.total + failure.total
        success_rate = success.total / total_requests if total_requests > 0 else 1.0

        return {
            "exchange_id": self._exchange_id,
            "uptime_seconds": uptime,
            "requests": {
                "total": total_requests,
                "success": success.total,
                "failure": failure.total,
                "success_rate": success_rate,
                "last_minute": {
                    "success": success.last_minute,
                    "failure": failure.last_minute,
                },
            },
            "latency": {
                "avg_ms": all_latency.avg_ms,
                "min_ms": all_latency.min_ms if all_latency.min_ms != float("inf") else 0,
                "max_ms": all_latency.max_ms,
            },
            "orders": {
                "submitted": self._counters[MetricType.ORDER_SUBMITTED].total,
                "rejected": self._counters[MetricType.ORDER_REJECTED].total,
                "canceled": self._counters[MetricType.ORDER_CANCELED].total,
                "triggers": self._counters[MetricType.TRIGGER_ORDER_SUBMITTED].total,
            },
            "cache": {
                "hits": dict(self._cache_hits),
                "misses": dict(self._cache_misses),
            },
            "errors": {
                "rate_limit_hits": self._counters[MetricType.RATE_LIMIT_HIT].total,
                "timeouts": self._counters[MetricType.TIMEOUT].total,
                "connection_errors": self._counters[MetricType.CONNECTION_ERROR].total,
                "formatting_fallbacks": self._counters[MetricType.FORMATTING_FALLBACK].total,
                "by_label": dict(self._error_labels),
            },
        }

    def get_latency_by_endpoint(self) -> Dict[str, Dict[str, float]]:
        """Get latency stats by endpoint."""
        result = {}
        for endpoint, stats in self._latency.items():
            if endpoint != "_all":
                result[endpoint] = {
                    "count": stats.count,
                    "avg_ms": stats.avg_ms,
                    "min_ms": stats.min_ms if stats.min_ms != float("inf") else 0,
                    "max_ms": stats.max_ms,
                }
        return result

    def reset(self) -> None:
        """Reset all metrics."""
        self._start_time = datetime.now(timezone.utc)
        self._latency.clear()
        self._counters = {mt: CounterStats() for mt in MetricType}
        self._error_labels.clear()
        self._cache_hits.clear()
        self._cache_misses.clear()
