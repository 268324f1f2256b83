"""
Gate Trader - Clock.

Testable time source for cache expiry. Production code uses SystemClock;
tests drive MockClock by hand.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Optional


class ClockProtocol(ABC):
    """Abstract interface for the adapter clock."""

    @abstractmethod
    def timestamp(self) -> float:
        """Get current time in seconds."""
        pass


class SystemClock(ClockProtocol):
    """Production clock. Monotonic, so wall-clock jumps cannot revive stale entries."""

    def timestamp(self) -> float:
        return time.monotonic()


class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[float] = None):
        self._time = 1_000_000.0 if initial_time is None else initial_time
        self._lock = threading.Lock()

    def timestamp(self) -> float:
        with self._lock:
            return self._time

    def advance(self, seconds: float) -> None:
        """Advance time by `seconds`."""
        with self._lock:
            self._time += seconds
