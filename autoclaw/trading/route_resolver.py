"""
Route Resolver - discovers Mento exchange pools and finds swap paths
Direct pools first, then a single hop through a hub token
"""
import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from web3 import Web3

from autoclaw.abis import BIPOOL_MANAGER_ABI
from autoclaw.errors import ChainError, NoRouteFound, QuoteUnavailable
from autoclaw.tokens import BIPOOL_MANAGER_ADDRESS, DEFAULT_HUB_TOKENS
from .models import ExchangePool, Hop, Route

logger = logging.getLogger(__name__)

ROUTE_CACHE_TTL = 5 * 60  # seconds

PairIndex = Dict[Tuple[str, str], str]


class RouteCache:
    """
    Pair -> exchange id index with a TTL.

    Owned by a RouteResolver instance; the clock is injectable so tests can
    fast-forward past the TTL.
    """

    def __init__(self, ttl_seconds: float = ROUTE_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._index: Optional[PairIndex] = None
        self._built_at = 0.0

    def get(self) -> Optional[PairIndex]:
        """Cached index, or None when missing or expired"""
        if self._index is None:
            return None
        if self.clock() - self._built_at >= self.ttl_seconds:
            return None
        return self._index

    def set(self, index: PairIndex):
        self._index = index
        self._built_at = self.clock()

    def clear(self):
        self._index = None
        self._built_at = 0.0


def build_pair_index(pools: List[ExchangePool]) -> PairIndex:
    """Register every pool under both (a, b) and (b, a)"""
    index: PairIndex = {}
    for pool in pools:
        if len(pool.assets) < 2:
            continue
        a0 = pool.assets[0].lower()
        a1 = pool.assets[1].lower()
        index[(a0, a1)] = pool.exchange_id
        index[(a1, a0)] = pool.exchange_id
    return index


class RouteResolver:
    """Resolves direct or 2-hop routes across the BiPoolManager pool registry"""

    def __init__(
        self,
        chain_client,
        hub_tokens: Optional[List[str]] = None,
        cache: Optional[RouteCache] = None,
        pool_manager_address: str = BIPOOL_MANAGER_ADDRESS
    ):
        self.chain = chain_client
        self.hub_tokens = list(hub_tokens) if hub_tokens is not None else list(DEFAULT_HUB_TOKENS)
        self.cache = cache if cache is not None else RouteCache()
        self.pool_manager_address = pool_manager_address
        self._rebuild_lock = asyncio.Lock()
        self.rebuild_count = 0

    async def fetch_pools(self) -> List[ExchangePool]:
        """Enumerate the pool registry on chain"""
        try:
            exchanges = await self.chain.read_contract(
                self.pool_manager_address,
                BIPOOL_MANAGER_ABI,
                "getExchanges"
            )
        except ChainError as e:
            raise QuoteUnavailable(f"Failed to load exchange pools: {e}") from e

        pools = []
        for exchange_id, assets in exchanges:
            if isinstance(exchange_id, (bytes, bytearray)):
                exchange_id = Web3.to_hex(exchange_id)
            pools.append(ExchangePool(exchange_id=exchange_id, assets=[str(a) for a in assets]))
        return pools

    async def get_pair_index(self) -> PairIndex:
        """Cached pair index; concurrent misses share a single rebuild"""
        index = self.cache.get()
        if index is not None:
            return index

        async with self._rebuild_lock:
            # Another caller may have rebuilt while we waited
            index = self.cache.get()
            if index is not None:
                return index

            pools = await self.fetch_pools()
            index = build_pair_index(pools)
            self.cache.set(index)
            self.rebuild_count += 1
            logger.info(f"Route cache rebuilt: {len(pools)} pools, {len(index)} directed pairs")
            return index

    async def resolve(self, token_in: str, token_out: str) -> Optional[Route]:
        """
        Find a route between two tokens

        Returns:
            Route of length 1 (direct) or 2 (via the first matching hub),
            or None when no route exists
        """
        index = await self.get_pair_index()
        in_addr = token_in.lower()
        out_addr = token_out.lower()

        direct = index.get((in_addr, out_addr))
        if direct:
            return Route(hops=[Hop(exchange_id=direct, token_in=token_in, token_out=token_out)])

        for hub in self.hub_tokens:
            hub_addr = hub.lower()
            if hub_addr in (in_addr, out_addr):
                continue
            to_hub = index.get((in_addr, hub_addr))
            hub_to_out = index.get((hub_addr, out_addr))
            if to_hub and hub_to_out:
                return Route(hops=[
                    Hop(exchange_id=to_hub, token_in=token_in, token_out=hub),
                    Hop(exchange_id=hub_to_out, token_in=hub, token_out=token_out),
                ])

        logger.debug(f"No route for {token_in} -> {token_out}")
        return None

    async def find_route(self, token_in: str, token_out: str) -> Route:
        """Like resolve(), but raises NoRouteFound instead of returning None"""
        route = await self.resolve(token_in, token_out)
        if route is None:
            raise NoRouteFound(token_in, token_out)
        return route

    def clear_cache(self):
        """Force the next lookup to rebuild from chain"""
        self.cache.clear()
