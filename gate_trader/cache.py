"""
Gate Trader - Account State and Contract Metadata Caches.

============================================================
PURPOSE
============================================================
Owned by one adapter instance:

- AccountStateCache: balance and positions snapshots, each with its
  own TTL entry and its own lock.
- ContractMetadataCache: per-contract trading rules, read-through,
  never expires within a session.

============================================================
LOCKING
============================================================
A lock is held for the freshness check and for the write-back only.
The exchange call happens outside any lock, so concurrent misses may
each issue a refresh. Entries are replaced wholesale.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .clock import ClockProtocol, SystemClock
from .config import CacheConfig
from .errors import (
    OP_GET_BALANCE,
    OP_GET_CONTRACT,
    OP_GET_POSITIONS,
    AccountQueryError,
    ErrorCategory,
    GateAPIError,
    classify_error,
    wrap_api_error,
)
from .formatting import precision_from_step
from .metrics import AdapterMetrics
from .symbols import to_symbol
from .transport import FuturesTransport
from .types import (
    BalanceSnapshot,
    ContractMetadata,
    PositionSide,
    PositionSnapshot,
    parse_float,
    parse_int,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================
# CACHE ENTRY
# ============================================================

@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached value and the time it was fetched."""

    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_valid(self, now: float, ttl_seconds: float) -> bool:
        """Valid iff now - fetched_at < ttl."""
        return self.age(now) < ttl_seconds


# ============================================================
# PAYLOAD DECODING
# ============================================================

def balance_from_account(account: Dict[str, Any]) -> BalanceSnapshot:
    """
    Decompose a futures account payload.

    Gate's `total` already includes unrealised PnL.
    """
    total = parse_float(account.get("total"))
    unrealized = parse_float(account.get("unrealised_pnl"))
    available = parse_float(account.get("available"))

    return BalanceSnapshot(
        wallet_balance=total - unrealized,
        available_balance=available,
        unrealized_profit=unrealized,
    )


def position_from_payload(
    contract: str,
    position: Dict[str, Any],
    default_leverage: float = 10.0,
) -> Optional[PositionSnapshot]:
    """
    Convert a position payload. Returns None for a zero-size position.

    Negative size is a short of |size| contracts.
    """
    size = parse_int(position.get("size"))
    if size == 0:
        return None

    side = PositionSide.LONG if size > 0 else PositionSide.SHORT

    return PositionSnapshot(
        symbol=to_symbol(contract),
        side=side,
        quantity=float(abs(size)),
        entry_price=parse_float(position.get("entry_price")),
        mark_price=parse_float(position.get("mark_price")),
        unrealized_profit=parse_float(position.get("unrealised_pnl")),
        leverage=parse_float(position.get("leverage"), default_leverage),
        liquidation_price=parse_float(position.get("liq_price")),
        margin=parse_float(position.get("margin")),
    )


def contract_from_payload(payload: Dict[str, Any]) -> ContractMetadata:
    """Convert a contract payload to trading rules."""
    price_round = str(payload.get("order_price_round") or "")
    return ContractMetadata(
        contract_name=payload.get("name", ""),
        min_order_size=parse_int(payload.get("order_size_min"), 1),
        precision=0,
        price_precision=precision_from_step(parse_float(price_round)) if price_round else 8,
    )


# ============================================================
# CONTRACT METADATA CACHE
# ============================================================

class ContractMetadataCache:
    """
    Read-through cache of contract trading rules.

    Entries never expire; trading rules are static for a session.
    """

    def __init__(self, transport: FuturesTransport, metrics: Optional[AdapterMetrics] = None):
        self._transport = transport
        self._metrics = metrics
        self._entries: Dict[str, ContractMetadata] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, contract: str) -> bool:
        return contract in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, contract: str) -> ContractMetadata:
        """
        Get rules for a contract, fetching them on first access.

        Raises:
            AccountQueryError: If the contract query fails
        """
        async with self._lock:
            cached = self._entries.get(contract)
        if cached is not None:
            if self._metrics:
                self._metrics.record_cache_hit("contracts")
            return cached

        if self._metrics:
            self._metrics.record_cache_miss("contracts")

        try:
            payload = await self._transport.get_futures_contract(contract)
        except GateAPIError as e:
            raise wrap_api_error(
                e, OP_GET_CONTRACT, f"Failed to fetch contract {contract}", AccountQueryError
            )

        metadata = contract_from_payload(payload or {"name": contract})
        await self.put(metadata)
        return metadata

    async def put(self, metadata: ContractMetadata) -> None:
        """Store rules fetched elsewhere (position refresh)."""
        async with self._lock:
            self._entries[metadata.contract_name] = metadata


# ============================================================
# ACCOUNT STATE CACHE
# ============================================================

class AccountStateCache:
    """
    TTL cache of the balance snapshot and the positions snapshot.

    The two entries are independent: separate timestamps, separate locks.
    """

    def __init__(
        self,
        transport: FuturesTransport,
        contracts: ContractMetadataCache,
        config: Optional[CacheConfig] = None,
        clock: Optional[ClockProtocol] = None,
        metrics: Optional[AdapterMetrics] = None,
        default_leverage: float = 10.0,
    ):
        self._transport = transport
        self._contracts = contracts
        self._config = config or CacheConfig()
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._default_leverage = default_leverage

        self._balance: Optional[CacheEntry[BalanceSnapshot]] = None
        self._balance_lock = asyncio.Lock()
        self._balance_generation = 0

        self._positions: Optional[CacheEntry[List[PositionSnapshot]]] = None
        self._positions_lock = asyncio.Lock()
        self._positions_generation = 0

    # --------------------------------------------------------
    # BALANCE
    # --------------------------------------------------------

    async def get_balance(self) -> BalanceSnapshot:
        """
        Get account balance, from cache when fresh.

        Raises:
            AuthenticationError: If the exchange rejects the key
            AccountQueryError: For any other exchange failure
        """
        async with self._balance_lock:
            entry = self._balance
            now = self._clock.timestamp()
            if entry is not None and entry.is_valid(now, self._config.balance_ttl_seconds):
                logger.debug(f"Using cached balance ({entry.age(now):.1f}s old)")
                if self._metrics:
                    self._metrics.record_cache_hit("balance")
                return entry.value
            generation = self._balance_generation

        if self._metrics:
            self._metrics.record_cache_miss("balance")
        logger.info("Balance cache expired, fetching futures account")

        try:
            account = await self._transport.list_futures_accounts()
        except GateAPIError as e:
            logger.error(f"Futures account query failed: {e}")
            raise wrap_api_error(e, OP_GET_BALANCE, "Failed to fetch account info", AccountQueryError)

        balance = balance_from_account(account or {})

        logger.info(
            f"Gate.io account: equity={balance.total_equity:.2f} "
            f"(wallet {balance.wallet_balance:.2f} + unrealised {balance.unrealized_profit:.2f}), "
            f"available={balance.available_balance:.2f}"
        )

        async with self._balance_lock:
            if generation == self._balance_generation:
                self._balance = CacheEntry(balance, self._clock.timestamp())
            else:
                logger.debug("Balance invalidated during refresh, not caching result")

        return balance

    # --------------------------------------------------------
    # POSITIONS
    # --------------------------------------------------------

    async def get_positions(self) -> List[PositionSnapshot]:
        """
        Get all open positions, from cache when fresh.

        A contract whose position query fails is skipped; the refresh
        still succeeds with the remaining contracts.

        Raises:
            AuthenticationError: If the exchange rejects the key
            AccountQueryError: If the contract list cannot be fetched
        """
        async with self._positions_lock:
            entry = self._positions
            now = self._clock.timestamp()
            if entry is not None and entry.is_valid(now, self._config.positions_ttl_seconds):
                logger.debug(f"Using cached positions ({entry.age(now):.1f}s old)")
                if self._metrics:
                    self._metrics.record_cache_hit("positions")
                return list(entry.value)
            generation = self._positions_generation

        if self._metrics:
            self._metrics.record_cache_miss("positions")
        logger.info("Positions cache expired, fetching positions")

        try:
            contracts = await self._transport.list_futures_contracts()
        except GateAPIError as e:
            raise wrap_api_error(e, OP_GET_POSITIONS, "Failed to fetch contract list", AccountQueryError)

        positions: List[PositionSnapshot] = []
        for payload in contracts:
            name = payload.get("name", "")
            if not name:
                continue

            await self._contracts.put(contract_from_payload(payload))

            try:
                position = await self._transport.get_position(name)
            except GateAPIError as e:
                if classify_error(e, OP_GET_POSITIONS) is ErrorCategory.POSITION_NOT_FOUND:
                    continue
                logger.warning(f"Failed to fetch position for {name}: {e}")
                continue

            snapshot = position_from_payload(name, position or {}, self._default_leverage)
            if snapshot is not None:
                positions.append(snapshot)

        async with self._positions_lock:
            if generation == self._positions_generation:
                self._positions = CacheEntry(positions, self._clock.timestamp())
            else:
                logger.debug("Positions invalidated during refresh, not caching result")

        return list(positions)

    # --------------------------------------------------------
    # INVALIDATION
    # --------------------------------------------------------

    async def invalidate(self) -> None:
        """
        Drop both snapshots so the next read refreshes.

        Refreshes already in flight return their result to their caller but
        do not store it.
        """
        async with self._balance_lock:
            self._balance = None
            self._balance_generation += 1
        async with self._positions_lock:
            self._positions = None
            self._positions_generation += 1
