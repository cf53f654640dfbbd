import asyncio

import pytest
from pydantic import ValidationError

from autoclaw.errors import ChainRPCError, NoRouteFound, QuoteUnavailable
from autoclaw.trading import ExchangePool, Hop, Route, RouteCache, RouteResolver, build_pair_index
from conftest import BRLM, CELO, EURM, KESM, USDC, USDM, FakeChain, exchange_id


def test_pair_index_registers_both_directions():
    index = build_pair_index([
        ExchangePool(exchange_id=exchange_id(1), assets=[USDM, EURM]),
        ExchangePool(exchange_id=exchange_id(9), assets=[USDM]),
    ])
    assert index[(USDM.lower(), EURM.lower())] == exchange_id(1)
    assert index[(EURM.lower(), USDM.lower())] == exchange_id(1)
    assert len(index) == 2


@pytest.mark.asyncio
async def test_direct_route_is_preferred(resolver):
    route = await resolver.resolve(USDM, EURM)
    assert route.is_direct
    assert route.hops[0].exchange_id == exchange_id(1)
    assert route.token_in == USDM and route.token_out == EURM


@pytest.mark.asyncio
async def test_direct_route_reverse_direction(resolver):
    route = await resolver.resolve(EURM, USDM)
    assert len(route) == 1
    assert route.hops[0].exchange_id == exchange_id(1)


@pytest.mark.asyncio
async def test_two_hop_route_through_first_hub(resolver):
    route = await resolver.resolve(EURM, KESM)
    assert len(route) == 2
    assert route.hops[0].token_out == USDM
    assert route.hops[1].token_in == USDM
    assert route.hops[0].exchange_id == exchange_id(1)
    assert route.hops[1].exchange_id == exchange_id(2)


@pytest.mark.asyncio
async def test_hubs_are_tried_in_priority_order():
    # EURm -> BRLm works via CELO only, and also via USDm once that pool exists
    pools = [
        (exchange_id(4), [CELO, EURM]),
        (exchange_id(5), [CELO, BRLM]),
        (exchange_id(1), [USDM, EURM]),
        (exchange_id(6), [USDM, BRLM]),
    ]
    resolver = RouteResolver(FakeChain(pools=pools))
    route = await resolver.resolve(EURM, BRLM)
    assert route.hops[0].token_out == USDM

    resolver = RouteResolver(FakeChain(pools=pools[:2]))
    route = await resolver.resolve(EURM, BRLM)
    assert route.hops[0].token_out == CELO


@pytest.mark.asyncio
async def test_addresses_match_case_insensitively(resolver):
    route = await resolver.resolve(USDM.lower(), EURM.upper().replace("0X", "0x"))
    assert route is not None and route.is_direct


@pytest.mark.asyncio
async def test_no_route_is_distinct_from_a_quote(resolver):
    assert await resolver.resolve(KESM, BRLM) is None
    with pytest.raises(NoRouteFound) as exc:
        await resolver.find_route(KESM, BRLM)
    assert exc.value.token_in == KESM
    assert "No exchange route found" in str(exc.value)


@pytest.mark.asyncio
async def test_hub_equal_to_endpoint_is_skipped():
    resolver = RouteResolver(FakeChain(pools=[(exchange_id(2), [USDM, KESM])]))
    assert await resolver.resolve(USDC, USDM) is None


@pytest.mark.asyncio
async def test_cache_is_reused_within_ttl(chain, resolver, clock):
    await resolver.resolve(USDM, EURM)
    clock.advance(299)
    await resolver.resolve(USDM, KESM)
    assert chain.pool_reads == 1

    clock.advance(1)
    await resolver.resolve(USDM, KESM)
    assert chain.pool_reads == 2
    assert resolver.rebuild_count == 2


@pytest.mark.asyncio
async def test_clear_cache_forces_rebuild(chain, resolver):
    await resolver.resolve(USDM, EURM)
    resolver.clear_cache()
    await resolver.resolve(USDM, EURM)
    assert chain.pool_reads == 2


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_rebuild(chain, resolver):
    routes = await asyncio.gather(*[resolver.resolve(USDM, EURM) for _ in range(10)])
    assert all(r is not None for r in routes)
    assert chain.pool_reads == 1


@pytest.mark.asyncio
async def test_pool_registry_failure_is_not_no_route(chain, resolver):
    chain.pool_error = ChainRPCError("connection reset")
    with pytest.raises(QuoteUnavailable):
        await resolver.resolve(USDM, EURM)


def test_route_rejects_more_than_two_hops():
    hops = [
        Hop(exchange_id=exchange_id(1), token_in=EURM, token_out=USDM),
        Hop(exchange_id=exchange_id(2), token_in=USDM, token_out=KESM),
        Hop(exchange_id=exchange_id(3), token_in=KESM, token_out=USDC),
    ]
    with pytest.raises(ValidationError):
        Route(hops=hops)


def test_route_rejects_broken_chain_and_empty():
    with pytest.raises(ValidationError):
        Route(hops=[
            Hop(exchange_id=exchange_id(1), token_in=EURM, token_out=USDM),
            Hop(exchange_id=exchange_id(2), token_in=KESM, token_out=USDC),
        ])
    with pytest.raises(ValidationError):
        Route(hops=[])


def test_route_cache_expiry():
    now = [0.0]
    cache = RouteCache(ttl_seconds=10, clock=lambda: now[0])
    assert cache.get() is None
    cache.set({("a", "b"): "x"})
    now[0] = 9.9
    assert cache.get() == {("a", "b"): "x"}
    now[0] = 10
    assert cache.get() is None


@pytest.mark.asyncio
async def test_injected_cache_is_the_one_used(clock):
    chain = FakeChain(pools=[(exchange_id(1), [USDM, EURM])])
    cache = RouteCache(clock=clock)
    resolver = RouteResolver(chain, cache=cache)

    await resolver.resolve(USDM, EURM)
    assert resolver.cache is cache
    cache.clear()
    await resolver.resolve(USDM, EURM)
    assert chain.pool_reads == 2
