"""
Shared fixtures: an in-memory chain double and a SQLite in-memory ledger
"""
import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from autoclaw.errors import ContractReverted
from autoclaw.ledger import PositionStore, TimelineLogger
from autoclaw.tokens import CELO_ADDRESS, MENTO_TOKEN_ADDRESSES, USDC_CELO_ADDRESS, USDM_ADDRESS
from autoclaw.trading import QuoteEngine, RouteCache, RouteResolver

EURM = MENTO_TOKEN_ADDRESSES["EURm"]
KESM = MENTO_TOKEN_ADDRESSES["KESm"]
BRLM = MENTO_TOKEN_ADDRESSES["BRLm"]
USDM = USDM_ADDRESS
USDC = USDC_CELO_ADDRESS
CELO = CELO_ADDRESS

WALLET = "0x1111111111111111111111111111111111111111"
SERVER_WALLET = "0xABCDef1234567890abcdef1234567890ABCDEF12"


def exchange_id(n: int) -> str:
    return "0x" + f"{n:064x}"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeChain:
    """
    Stands in for ChainClient.

    pools:    [(exchange_id hex, [asset_a, asset_b])]
    rates:    {(token_in, token_out): (numerator, denominator)} applied to raw amounts
    balances: {(token, account): int | [int, ...] | Exception}; lists are consumed
              front to back and the last value repeats
    """

    def __init__(
        self,
        pools: Optional[List[Tuple[str, List[str]]]] = None,
        rates: Optional[Dict[Tuple[str, str], Tuple[int, int]]] = None,
        balances: Optional[Dict[Tuple[str, str], object]] = None,
        allowance: int = 0
    ):
        self.pools = pools or []
        self.rates = {(a.lower(), b.lower()): r for (a, b), r in (rates or {}).items()}
        self.balances = {(t.lower(), a.lower()): v for (t, a), v in (balances or {}).items()}
        self.allowance = allowance
        self.pool_error: Optional[Exception] = None
        self.quote_error: Optional[Exception] = None
        self.reverted_hashes: set = set()
        self.pool_reads = 0
        self.quote_calls: List[tuple] = []
        self.balance_reads: List[Tuple[str, str]] = []
        self.allowance_reads = 0
        self.sent: List[Dict[str, object]] = []

    async def read_contract(self, address, abi, function_name, args=()):
        if function_name == "getExchanges":
            self.pool_reads += 1
            await asyncio.sleep(0)
            if self.pool_error:
                raise self.pool_error
            return [(bytes.fromhex(eid[2:]), assets) for eid, assets in self.pools]
        if function_name == "getAmountOut":
            self.quote_calls.append(tuple(args))
            if self.quote_error:
                raise self.quote_error
            _, _, token_in, token_out, amount = args
            numerator, denominator = self.rates[(token_in.lower(), token_out.lower())]
            return amount * numerator // denominator
        raise AssertionError(f"Unexpected contract read: {function_name}")

    async def get_erc20_balance(self, token, account):
        key = (token.lower(), account.lower())
        self.balance_reads.append(key)
        value = self.balances.get(key, 0)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, list):
            return value.pop(0) if len(value) > 1 else value[0]
        return value

    async def get_allowance(self, token, owner, spender):
        self.allowance_reads += 1
        return self.allowance

    async def send_transaction(self, to, data, value=0):
        tx_hash = "0x" + f"{len(self.sent) + 1:064x}"
        self.sent.append({"to": to, "data": data, "hash": tx_hash})
        return tx_hash

    async def wait_for_receipt(self, tx_hash, timeout=120.0):
        if tx_hash in self.reverted_hashes:
            raise ContractReverted(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return {"status": 1, "transactionHash": tx_hash}


# Pools: USDm is the hub for every Mento stable; CELO pairs with EURm and BRLm
DEFAULT_POOLS = [
    (exchange_id(1), [USDM, EURM]),
    (exchange_id(2), [USDM, KESM]),
    (exchange_id(3), [USDC, USDM]),
    (exchange_id(4), [CELO, EURM]),
    (exchange_id(5), [CELO, BRLM]),
]

DEFAULT_RATES = {
    (USDM, EURM): (92, 100),
    (EURM, USDM): (108, 100),
    (USDM, KESM): (129, 1),
    (KESM, USDM): (1, 129),
    (USDC, USDM): (999 * 10 ** 12, 1000),
    (USDM, USDC): (1000, 1001 * 10 ** 12),
    (EURM, CELO): (2, 1),
    (CELO, BRLM): (3, 1),
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain():
    return FakeChain(pools=list(DEFAULT_POOLS), rates=dict(DEFAULT_RATES))


@pytest.fixture
def resolver(chain, clock):
    return RouteResolver(chain, cache=RouteCache(300, clock=clock))


@pytest.fixture
def quote_engine(chain, resolver):
    return QuoteEngine(chain, resolver)


@pytest.fixture
def store():
    return PositionStore.from_url("sqlite://")


@pytest.fixture
def timeline(store):
    return TimelineLogger(store)
