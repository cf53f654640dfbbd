import pytest
from eth_abi import decode

from autoclaw.errors import InsufficientBalance, SignerMismatch
from autoclaw.tokens import BROKER_ADDRESS, MAX_UINT256
from autoclaw.trading import TradeExecutor
from conftest import EURM, KESM, USDM, WALLET

ONE = 10 ** 18
SWAP_IN_TYPES = ["address", "bytes32", "address", "address", "uint256", "uint256"]


def swap_args(sent):
    return decode(SWAP_IN_TYPES, bytes.fromhex(sent["data"][10:]))


@pytest.fixture
def executor(chain, quote_engine):
    return TradeExecutor(chain, quote_engine)


@pytest.mark.asyncio
async def test_direct_swap_approves_then_swaps(chain, executor):
    result = await executor.execute_swap(WALLET, "USDm", "EURm", 100 * ONE)

    assert len(chain.sent) == 2
    approve, swap = chain.sent
    assert approve["to"] == USDM
    assert approve["data"].startswith("0x095ea7b3")
    assert swap["to"] == BROKER_ADDRESS

    _, _, _, _, amount_in, min_out = swap_args(swap)
    assert amount_in == 100 * ONE
    assert min_out == 92 * ONE * 9950 // 10000

    assert result.tx_hash == swap["hash"]
    assert result.tx_hashes == [swap["hash"]]
    assert result.approve_tx_hash == approve["hash"]
    assert result.amount_out == 92 * ONE
    assert result.rate == pytest.approx(0.92)


@pytest.mark.asyncio
async def test_sufficient_allowance_skips_approve(chain, executor):
    chain.allowance = MAX_UINT256
    result = await executor.execute_swap(WALLET, "USDm", "EURm", ONE)
    assert len(chain.sent) == 1
    assert result.approve_tx_hash is None


@pytest.mark.asyncio
async def test_approval_check_is_cached(chain, executor):
    await executor.execute_swap(WALLET, "USDm", "EURm", ONE)
    await executor.execute_swap(WALLET, "USDm", "EURm", ONE)
    assert chain.allowance_reads == 1


@pytest.mark.asyncio
async def test_second_hop_uses_realized_intermediate_amount(chain, executor):
    chain.allowance = MAX_UINT256
    # Wallet already holds 40 USDm; the first hop delivers 50 more
    chain.balances[(USDM.lower(), WALLET.lower())] = [40, 90]

    result = await executor.execute_swap(WALLET, "EURm", "KESm", 10 * ONE, slippage_pct=1)

    assert len(chain.sent) == 2
    first, second = (swap_args(s) for s in chain.sent)
    assert first[2].lower() == EURM.lower() and first[3].lower() == USDM.lower()
    assert first[4] == 10 * ONE
    assert first[5] == 1
    assert second[2].lower() == USDM.lower() and second[3].lower() == KESM.lower()
    assert second[4] == 50
    assert second[5] == (10 * ONE * 108 // 100) * 129 * 99 // 100
    assert result.tx_hashes == [s["hash"] for s in chain.sent]


@pytest.mark.asyncio
async def test_intermediate_hop_with_nothing_delivered_stops(chain, executor):
    chain.allowance = MAX_UINT256
    chain.balances[(USDM.lower(), WALLET.lower())] = [40, 40]

    with pytest.raises(InsufficientBalance):
        await executor.execute_swap(WALLET, "EURm", "KESm", ONE)
    assert len(chain.sent) == 1


@pytest.mark.asyncio
async def test_reverted_hop_stops_the_plan(chain, executor):
    from autoclaw.errors import ContractReverted

    chain.allowance = MAX_UINT256
    chain.reverted_hashes.add("0x" + f"{1:064x}")
    with pytest.raises(ContractReverted):
        await executor.execute_swap(WALLET, "EURm", "KESm", ONE)
    assert len(chain.sent) == 1


@pytest.mark.asyncio
async def test_buy_spends_usd_for_currency(chain, executor):
    chain.allowance = MAX_UINT256
    result = await executor.execute_trade(WALLET, "EURm", "buy", 100)
    assert (result.from_symbol, result.to_symbol) == ("USDm", "EURm")
    assert result.amount_in == 100 * ONE
    assert result.rate == pytest.approx(0.92)


@pytest.mark.asyncio
async def test_sell_converts_usd_worth_of_currency(chain, executor):
    chain.allowance = MAX_UINT256
    result = await executor.execute_trade(WALLET, "EURm", "sell", 100)
    assert (result.from_symbol, result.to_symbol) == ("EURm", "USDm")
    assert result.amount_in == 92 * ONE
    # Currency tokens per USD, same convention as buys
    assert result.rate == pytest.approx(0.92)


@pytest.mark.asyncio
async def test_unknown_direction(executor):
    with pytest.raises(ValueError):
        await executor.execute_trade(WALLET, "EURm", "hold", 100)


@pytest.mark.asyncio
async def test_signer_for_another_wallet_is_refused(chain, executor):
    chain.address = "0x9999999999999999999999999999999999999999"

    with pytest.raises(SignerMismatch) as exc:
        await executor.execute_swap(WALLET, "USDm", "EURm", ONE)

    assert exc.value.wallet_address == WALLET
    assert chain.sent == []
    assert chain.allowance_reads == 0


@pytest.mark.asyncio
async def test_signer_address_matches_case_insensitively(chain, executor):
    chain.address = WALLET.upper().replace("0X", "0x")
    result = await executor.execute_swap(WALLET, "USDm", "EURm", ONE)
    assert result.tx_hash == chain.sent[-1]["hash"]
