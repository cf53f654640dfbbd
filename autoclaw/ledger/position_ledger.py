"""
Position Ledger - per-wallet token balances and weighted average entry rates
"""
import asyncio
import logging
import weakref
from typing import Dict, Iterable, List, Optional, Tuple

from autoclaw.tokens import TokenRegistry, token_registry
from .models import Position
from .storage import PositionStore

logger = logging.getLogger(__name__)

# Balances below this are rounding residue and stored as zero
DUST_THRESHOLD = 1e-6


class PositionLedger:
    """
    Applies executed trades to stored positions.

    `rate` is destination tokens per unit of source currency (USD), so
    1/rate is the cost paid per token. Buys blend into a weighted average
    cost; sells reduce the balance (never below zero) and leave the average
    entry rate untouched.
    """

    def __init__(self, store: PositionStore, registry: TokenRegistry = token_registry):
        self.store = store
        self.registry = registry
        # Entries vanish once no coroutine holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, wallet_address: str, token_symbol: str) -> asyncio.Lock:
        key = (wallet_address.lower(), token_symbol)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def apply_trade(
        self,
        wallet_address: str,
        token_symbol: str,
        direction: str,
        amount_usd: float,
        rate: float,
        token_address: Optional[str] = None
    ) -> Position:
        """
        Update the (wallet, token) position after a trade

        Raises:
            ValueError: Unknown direction, negative amount or non-positive rate
            PersistenceConflict: The upsert failed
        """
        if direction not in ("buy", "sell"):
            raise ValueError(f"Unknown trade direction: {direction}")
        if amount_usd < 0:
            raise ValueError(f"Trade amount must be non-negative, got {amount_usd}")
        if rate <= 0:
            raise ValueError(f"Rate must be positive, got {rate}")

        if token_address is None:
            token = self.registry.get(token_symbol)
            token_address = token.address if token else ""

        async with self._lock_for(wallet_address, token_symbol):
            current = self.store.get_position(wallet_address, token_symbol)
            current_balance = current.balance if current else 0.0
            current_avg_rate = current.avg_entry_rate if current else 0.0

            tokens = amount_usd * rate
            if direction == "buy":
                new_balance = current_balance + tokens
                if new_balance > 0:
                    new_avg_rate = (current_balance * current_avg_rate + tokens * (1 / rate)) / new_balance
                else:
                    new_avg_rate = 1 / rate
            else:
                new_balance = max(0.0, current_balance - tokens)
                new_avg_rate = current_avg_rate

            if new_balance < DUST_THRESHOLD:
                new_balance = 0.0

            position = self.store.upsert_position(
                wallet_address,
                token_symbol,
                token_address,
                new_balance,
                new_avg_rate
            )

        logger.info(
            f"Position {wallet_address}/{token_symbol} {direction} ${amount_usd:.2f} @ {rate}: "
            f"balance {current_balance} -> {new_balance}"
        )
        return position

    async def get_positions(self, wallet_address: str) -> List[Position]:
        """Open positions (balance > 0) for a wallet"""
        return self.store.list_positions(wallet_address)

    @staticmethod
    def portfolio_value(positions: Iterable[Position], prices: Optional[Dict[str, float]] = None) -> float:
        """Sum of balance * USD price; tokens without a price count at 1.0"""
        prices = prices or {}
        return sum(p.balance * prices.get(p.token_symbol, 1.0) for p in positions)
