"""
Gate Trader - Quantity and Price Formatting.

Gate futures trade whole contracts. Quantities are clamped up to the
contract minimum and rounded to the nearest integer before submission.
"""

import logging
import math
from typing import TYPE_CHECKING, Optional

from .errors import FormattingFallback, GateTraderError
from .metrics import AdapterMetrics
from .symbols import to_contract

if TYPE_CHECKING:
    from .cache import ContractMetadataCache


logger = logging.getLogger(__name__)

# Trigger price decimals when contract metadata is unavailable
PRICE_DECIMALS = 8


def precision_from_step(step: float) -> int:
    """
    Decimal places of a tick or step size.

    >>> precision_from_step(0.01)
    2
    >>> precision_from_step(1)
    0
    """
    if step == 0:
        return 0
    text = f"{step:.10f}".rstrip("0")
    if "." in text:
        return len(text) - text.index(".") - 1
    return 0


def round_half_up(value: float) -> float:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def format_price(price: float, decimals: int = PRICE_DECIMALS) -> str:
    """Render a price as a fixed-point decimal string."""
    return f"{price:.{decimals}f}"


class QuantityFormatter:
    """
    Converts controller quantities to exchange contract counts.

    Falls back to plain whole-number rounding when contract metadata
    cannot be fetched.
    """

    def __init__(
        self,
        contracts: "ContractMetadataCache",
        metrics: Optional[AdapterMetrics] = None,
    ):
        self._contracts = contracts
        self._metrics = metrics

    async def format(self, symbol: str, quantity: float) -> str:
        """
        Format a quantity for order submission.

        Args:
            symbol: Canonical symbol or contract name
            quantity: Desired quantity in contracts

        Returns:
            Integer contract count as a string
        """
        contract = to_contract(symbol)

        try:
            metadata = await self._contracts.get(contract)
        except GateTraderError as e:
            logger.warning(str(FormattingFallback(contract, e)))
            if self._metrics:
                self._metrics.record_formatting_fallback()
            return f"{quantity:.0f}"

        if quantity < metadata.min_order_size:
            quantity = float(metadata.min_order_size)

        quantity = round_half_up(quantity)
        return f"{quantity:.{metadata.precision}f}"

    async def format_trigger_price(self, symbol: str, price: float, fallback_decimals: int = PRICE_DECIMALS) -> str:
        """
        Render a trigger price at the contract's price tick precision.

        Uses `fallback_decimals` when contract metadata cannot be fetched.
        """
        contract = to_contract(symbol)

        try:
            metadata = await self._contracts.get(contract)
        except GateTraderError as e:
            logger.warning(str(FormattingFallback(contract, e)))
            if self._metrics:
                self._metrics.record_formatting_fallback()
            return format_price(price, fallback_decimals)

        return format_price(price, metadata.price_precision)

    async def to_contract_count(self, symbol: str, quantity: float) -> int:
        """Formatted quantity as an integer contract count."""
        text = await self.format(symbol, quantity)
        try:
            return int(text)
        except ValueError:
            return int(math.floor(quantity + 0.5))
