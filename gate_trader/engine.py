"""
Gate Trader - Order Execution Engine.

============================================================
PURPOSE
============================================================
Order lifecycle verbs on Gate.io USDT futures.

PER-SYMBOL SEQUENCE:
    cancel open orders (best effort)
    -> set leverage (idempotent)
    -> submit market IOC order

Nothing is tracked after the call returns. Multi-step operations are not
atomic; a failure midway leaves earlier steps in place.

============================================================
TRIGGER RULES
============================================================
                LONG    SHORT
STOP_LOSS       <=      >=
TAKE_PROFIT     >=      <=

Trigger orders reference the mark price and close the position with a
reduce-only market order.

============================================================
"""

import asyncio
import logging
from typing import Optional, Union

from .cache import AccountStateCache
from .config import OrderConfig
from .errors import (
    OP_CANCEL_ALL,
    OP_MARKET_PRICE,
    OP_SET_LEVERAGE,
    OP_SUBMIT_ORDER,
    OP_TRIGGER_ORDER,
    CancelOrdersError,
    ErrorCategory,
    GateAPIError,
    GateTraderError,
    LeverageError,
    OrderError,
    PositionNotFoundError,
    PriceUnavailableError,
    ResourceAlreadyAbsent,
    TriggerOrderError,
    wrap_api_error,
)
from .formatting import QuantityFormatter
from .logging_utils import AdapterLogger
from .metrics import AdapterMetrics
from .symbols import to_contract, to_symbol
from .transport import FuturesTransport
from .types import (
    OrderRequest,
    OrderResult,
    PositionSide,
    TriggerKind,
    TriggerOrder,
    TriggerPriceType,
    TriggerRule,
    optional_float,
)


logger = logging.getLogger(__name__)


TRIGGER_RULES = {
    (TriggerKind.STOP_LOSS, PositionSide.LONG): TriggerRule.LTE,
    (TriggerKind.STOP_LOSS, PositionSide.SHORT): TriggerRule.GTE,
    (TriggerKind.TAKE_PROFIT, PositionSide.LONG): TriggerRule.GTE,
    (TriggerKind.TAKE_PROFIT, PositionSide.SHORT): TriggerRule.LTE,
}


def trigger_rule(kind: TriggerKind, side: PositionSide) -> TriggerRule:
    """Trigger condition for a protective order on a position."""
    return TRIGGER_RULES[(kind, side)]


def closing_size(side: PositionSide, count: int) -> int:
    """Signed size that reduces a position: sell a long, buy a short."""
    return -count if side is PositionSide.LONG else count


class OrderExecutionEngine:
    """
    Places and manages orders for one account.

    Holds no per-order state; safe to call from concurrent tasks.
    """

    def __init__(
        self,
        transport: FuturesTransport,
        account: AccountStateCache,
        formatter: QuantityFormatter,
        config: Optional[OrderConfig] = None,
        metrics: Optional[AdapterMetrics] = None,
        adapter_logger: Optional[AdapterLogger] = None,
    ):
        self._transport = transport
        self._account = account
        self._formatter = formatter
        self._config = config or OrderConfig()
        self._metrics = metrics or AdapterMetrics("gate")
        self._logger = adapter_logger or AdapterLogger("gate")

    # --------------------------------------------------------
    # LEVERAGE
    # --------------------------------------------------------

    async def set_leverage(self, symbol: str, leverage: int) -> None:
        """
        Set leverage for a symbol.

        Leverage already at the target is success. After a real change the
        exchange needs a cooldown before orders are accepted; it is awaited
        here.

        Raises:
            LeverageError: If the exchange rejects the change
        """
        contract = to_contract(symbol)

        try:
            await self._transport.update_position_leverage(contract, int(leverage))
        except GateAPIError as e:
            error = wrap_api_error(e, OP_SET_LEVERAGE, f"Failed to set leverage for {symbol}", LeverageError)
            if isinstance(error, ResourceAlreadyAbsent):
                logger.info(f"{symbol} leverage already {leverage}x")
                return
            raise error

        logger.info(f"{symbol} leverage switched to {leverage}x")

        cooldown = self._config.leverage_cooldown_seconds
        if cooldown > 0:
            logger.info(f"Waiting {cooldown:.1f}s leverage cooldown")
            await asyncio.sleep(cooldown)

    # --------------------------------------------------------
    # OPEN
    # --------------------------------------------------------

    async def open_long(self, symbol: str, quantity: float, leverage: int) -> OrderResult:
        """Open or add to a long position with a market order."""
        return await self._open(symbol, PositionSide.LONG, quantity, leverage)

    async def open_short(self, symbol: str, quantity: float, leverage: int) -> OrderResult:
        """Open or add to a short position with a market order."""
        return await self._open(symbol, PositionSide.SHORT, quantity, leverage)

    async def _open(
        self,
        symbol: str,
        side: PositionSide,
        quantity: float,
        leverage: int,
    ) -> OrderResult:
        operation = f"open_{side.value}"
        contract = to_contract(symbol)

        # Stale protective orders from a previous position
        await self._cancel_best_effort(symbol)

        await self.set_leverage(symbol, leverage)

        count = await self._formatter.to_contract_count(symbol, quantity)
        size = count if side is PositionSide.LONG else -count

        order = OrderRequest(contract=contract, size=size)
        result = await self._submit(symbol, order, operation)

        logger.info(f"Opened {side.value} {symbol}: {count} contracts, leverage {leverage}x")
        await self._account.invalidate()
        return result

    # --------------------------------------------------------
    # CLOSE
    # --------------------------------------------------------

    async def close_long(self, symbol: str, quantity: float = 0) -> OrderResult:
        """
        Close a long position. Quantity 0 closes the whole position.

        Raises:
            PositionNotFoundError: If quantity is 0 and no long is open
            OrderError: If the exchange rejects the order
        """
        return await self._close(symbol, PositionSide.LONG, quantity)

    async def close_short(self, symbol: str, quantity: float = 0) -> OrderResult:
        """
        Close a short position. Quantity 0 closes the whole position.

        Raises:
            PositionNotFoundError: If quantity is 0 and no short is open
            OrderError: If the exchange rejects the order
        """
        return await self._close(symbol, PositionSide.SHORT, quantity)

    async def _close(self, symbol: str, side: PositionSide, quantity: float) -> OrderResult:
        operation = f"close_{side.value}"
        contract = to_contract(symbol)

        if quantity == 0:
            quantity = await self._open_quantity(symbol, side)
            if quantity == 0:
                raise PositionNotFoundError(
                    f"No {side.value} position found for {symbol}",
                    operation=operation,
                    category=ErrorCategory.POSITION_NOT_FOUND,
                )

        count = await self._formatter.to_contract_count(symbol, quantity)
        order = OrderRequest(
            contract=contract,
            size=closing_size(side, count),
            reduce_only=True,
        )
        result = await self._submit(symbol, order, operation)

        logger.info(f"Closed {side.value} {symbol}: {count} contracts")

        await self._cancel_best_effort(symbol)
        await self._account.invalidate()
        return result

    async def _open_quantity(self, symbol: str, side: PositionSide) -> float:
        canonical = to_symbol(to_contract(symbol))
        for position in await self._account.get_positions():
            if position.symbol == canonical and position.side is side:
                return position.quantity
        return 0.0

    # --------------------------------------------------------
    # CANCEL
    # --------------------------------------------------------

    async def cancel_all_orders(self, symbol: str) -> None:
        """
        Cancel every open order on a symbol, trigger orders excluded.

        No open orders is success.

        Raises:
            CancelOrdersError: If the exchange rejects the cancellation
        """
        contract = to_contract(symbol)

        try:
            await self._transport.cancel_futures_orders(contract)
        except GateAPIError as e:
            error = wrap_api_error(e, OP_CANCEL_ALL, f"Failed to cancel orders for {symbol}", CancelOrdersError)
            if isinstance(error, ResourceAlreadyAbsent):
                logger.debug(f"No open orders on {symbol}")
                return
            raise error

        self._metrics.record_order_canceled()
        logger.info(f"Cancelled all open orders on {symbol}")

    async def _cancel_best_effort(self, symbol: str) -> None:
        try:
            await self.cancel_all_orders(symbol)
        except GateTraderError as e:
            logger.warning(f"Failed to cancel open orders on {symbol}: {e}")

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def get_market_price(self, symbol: str) -> float:
        """
        Last traded price of a symbol.

        Raises:
            PriceUnavailableError: If no ticker or no parseable price
        """
        contract = to_contract(symbol)

        try:
            tickers = await self._transport.list_futures_tickers(contract)
        except GateAPIError as e:
            raise wrap_api_error(e, OP_MARKET_PRICE, f"Failed to fetch price for {symbol}", PriceUnavailableError)

        if not tickers:
            raise PriceUnavailableError(f"No ticker found for {symbol}", operation=OP_MARKET_PRICE)

        last = tickers[0].get("last")
        price = optional_float(last)
        if price is None:
            raise PriceUnavailableError(
                f"Invalid last price for {symbol}: {last!r}",
                operation=OP_MARKET_PRICE,
            )
        return price

    # --------------------------------------------------------
    # STOP LOSS / TAKE PROFIT
    # --------------------------------------------------------

    async def set_stop_loss(
        self,
        symbol: str,
        position_side: Union[str, PositionSide],
        quantity: float,
        stop_price: float,
    ) -> OrderResult:
        """Place a mark-price stop-loss that closes `quantity` of the position."""
        return await self._place_trigger(TriggerKind.STOP_LOSS, symbol, position_side, quantity, stop_price)

    async def set_take_profit(
        self,
        symbol: str,
        position_side: Union[str, PositionSide],
        quantity: float,
        take_profit_price: float,
    ) -> OrderResult:
        """Place a mark-price take-profit that closes `quantity` of the position."""
        return await self._place_trigger(TriggerKind.TAKE_PROFIT, symbol, position_side, quantity, take_profit_price)

    async def _place_trigger(
        self,
        kind: TriggerKind,
        symbol: str,
        position_side: Union[str, PositionSide],
        quantity: float,
        price: float,
    ) -> OrderResult:
        side = PositionSide.parse(position_side)
        contract = to_contract(symbol)

        count = await self._formatter.to_contract_count(symbol, quantity)
        trigger_price = await self._formatter.format_trigger_price(
            symbol, price, self._config.trigger_price_decimals
        )

        order = TriggerOrder(
            initial=OrderRequest(
                contract=contract,
                size=closing_size(side, count),
                reduce_only=True,
            ),
            trigger_price=trigger_price,
            rule=trigger_rule(kind, side),
            price_type=TriggerPriceType.MARK,
            expiration=self._config.trigger_expiration_seconds,
        )

        try:
            response = await self._transport.create_price_triggered_order(order.to_payload())
        except GateAPIError as e:
            self._metrics.record_order_rejected(e.label)
            self._logger.log_order(
                operation=kind.value,
                symbol=symbol,
                contract=contract,
                size=order.initial.size,
                reduce_only=True,
                trigger_price=trigger_price,
                error_label=e.label,
                error_message=e.message,
            )
            label = kind.value.replace("_", " ")
            raise wrap_api_error(e, OP_TRIGGER_ORDER, f"Failed to set {label} for {symbol}", TriggerOrderError)

        response = response or {}
        order_id = str(response.get("id", ""))

        self._metrics.record_trigger_order_submitted()
        self._logger.log_order(
            operation=kind.value,
            symbol=symbol,
            contract=contract,
            size=order.initial.size,
            reduce_only=True,
            trigger_price=trigger_price,
            order_id=order_id,
            status="open",
        )
        logger.info(f"{kind.value} set for {symbol} {side.value}: trigger {price:.4f}")

        return OrderResult(
            order_id=order_id,
            symbol=symbol,
            status=str(response.get("status", "open")),
            raw_response=response,
        )

    # --------------------------------------------------------
    # SUBMISSION
    # --------------------------------------------------------

    async def _submit(self, symbol: str, order: OrderRequest, operation: str) -> OrderResult:
        try:
            response = await self._transport.create_futures_order(order.to_payload())
        except GateAPIError as e:
            self._metrics.record_order_rejected(e.label)
            self._logger.log_order(
                operation=operation,
                symbol=symbol,
                contract=order.contract,
                size=order.size,
                price=order.price,
                reduce_only=order.reduce_only,
                error_label=e.label,
                error_message=e.message,
            )
            verb = operation.replace("_", " ")
            raise wrap_api_error(e, OP_SUBMIT_ORDER, f"Failed to {verb} {symbol}", OrderError)

        response = response or {}
        order_id = str(response.get("id", ""))
        status = str(response.get("status", ""))

        self._metrics.record_order_submitted()
        self._logger.log_order(
            operation=operation,
            symbol=symbol,
            contract=order.contract,
            size=order.size,
            price=order.price,
            reduce_only=order.reduce_only,
            order_id=order_id,
            status=status,
        )

        return OrderResult(
            order_id=order_id,
            symbol=symbol,
            status=status,
            raw_response=response,
        )
