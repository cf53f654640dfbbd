import pytest

from autoclaw.errors import ChainTimeout, NoRouteFound, QuoteUnavailable, UnknownTokenError
from autoclaw.trading import compute_rate, to_human, to_raw
from conftest import BRLM, EURM, KESM, USDC, USDM, exchange_id

ONE = 10 ** 18


@pytest.mark.asyncio
async def test_direct_quote(quote_engine):
    quote = await quote_engine.quote(USDM, EURM, 100 * ONE)
    assert quote.amount_out == 92 * ONE
    assert quote.rate == pytest.approx(0.92)
    assert quote.route.is_direct
    assert quote.exchange_id == exchange_id(1)


@pytest.mark.asyncio
async def test_multi_hop_output_feeds_next_hop(chain, quote_engine):
    quote = await quote_engine.quote(EURM, KESM, 10 * ONE)

    first_out = 10 * ONE * 108 // 100
    assert len(chain.quote_calls) == 2
    assert chain.quote_calls[0][4] == 10 * ONE
    assert chain.quote_calls[1][4] == first_out
    assert quote.amount_out == first_out * 129
    assert quote.rate == pytest.approx(1.08 * 129)
    assert len(quote.route) == 2


@pytest.mark.asyncio
async def test_rate_uses_token_decimals(quote_engine):
    quote = await quote_engine.quote(USDC, USDM, 1_000_000)
    assert quote.amount_out == 999 * 10 ** 15
    assert quote.rate == pytest.approx(0.999)


@pytest.mark.asyncio
async def test_zero_amount_gives_zero_rate(quote_engine):
    quote = await quote_engine.quote(USDM, EURM, 0)
    assert quote.amount_out == 0
    assert quote.rate == 0.0


@pytest.mark.asyncio
async def test_no_route_raises_no_route_found(quote_engine):
    with pytest.raises(NoRouteFound):
        await quote_engine.quote(KESM, BRLM, ONE)


@pytest.mark.asyncio
async def test_router_failure_is_quote_unavailable(chain, quote_engine):
    chain.quote_error = ChainTimeout("getAmountOut timed out")
    with pytest.raises(QuoteUnavailable):
        await quote_engine.quote(USDM, EURM, ONE)


@pytest.mark.asyncio
async def test_unknown_token(quote_engine):
    with pytest.raises(UnknownTokenError):
        await quote_engine.quote("0x000000000000000000000000000000000000dEaD", USDM, ONE)


def test_unit_conversions():
    assert to_raw("1.5", 18) == 1_500_000_000_000_000_000
    assert to_raw(0.1, 6) == 100_000
    assert to_human(2_500_000, 6) == 2.5
    assert compute_rate(0, 18, 5, 18) == 0.0
    assert compute_rate(2 * ONE, 18, 3_000_000, 6) == pytest.approx(1.5)
