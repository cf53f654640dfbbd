"""
Swap Plan Builder - turns a route and quote into ordered Broker.swapIn calls
"""
import math
from typing import Dict, Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3

from autoclaw.abis import APPROVE_SIGNATURE, SWAP_IN_SIGNATURE
from autoclaw.tokens import BIPOOL_MANAGER_ADDRESS, BROKER_ADDRESS, MAX_UINT256
from .models import Hop, Route, SwapCall, SwapPlan

# Intermediate hops accept any positive output
INTERMEDIATE_MIN_OUT = 1

BPS_DENOMINATOR = 10_000


def apply_slippage(amount_out: int, slippage_pct: float) -> int:
    """
    Minimum acceptable output after slippage

    Args:
        amount_out: Expected output from a quote (raw units)
        slippage_pct: Tolerance in percent (0.5 means 0.5%)

    The guard value is computed in integer basis points so it never suffers
    float rounding.
    """
    if slippage_pct < 0:
        raise ValueError(f"Slippage must be non-negative, got {slippage_pct}")
    basis_points = min(int(math.floor(slippage_pct * 100)), BPS_DENOMINATOR)
    return (amount_out * (BPS_DENOMINATOR - basis_points)) // BPS_DENOMINATOR


def encode_swap_in(
    hop: Hop,
    amount_in: int,
    amount_out_min: int,
    exchange_provider: str = BIPOOL_MANAGER_ADDRESS
) -> str:
    """ABI-encode Broker.swapIn(exchangeProvider, exchangeId, tokenIn, tokenOut, amountIn, amountOutMin)"""
    selector = function_signature_to_4byte_selector(SWAP_IN_SIGNATURE)
    args = encode(
        ["address", "bytes32", "address", "address", "uint256", "uint256"],
        [
            Web3.to_checksum_address(exchange_provider),
            Web3.to_bytes(hexstr=hop.exchange_id),
            Web3.to_checksum_address(hop.token_in),
            Web3.to_checksum_address(hop.token_out),
            amount_in,
            amount_out_min,
        ]
    )
    return Web3.to_hex(selector + args)


def build_plan(
    route: Route,
    amount_in: int,
    min_amount_out: int,
    broker_address: str = BROKER_ADDRESS,
    exchange_provider: str = BIPOOL_MANAGER_ADDRESS
) -> SwapPlan:
    """
    One swapIn call per hop.

    Hop 0 spends `amount_in`. Later hops are built with amount_in 0 because
    the intermediate amount is only known once the previous hop settles; the
    executor fills in the realized balance. Only the last hop carries the
    caller's `min_amount_out`, earlier hops accept any positive output.
    """
    if route is None or not route.hops:
        raise ValueError("Empty route - cannot build swap plan")

    last_index = len(route.hops) - 1
    calls = []
    for i, hop in enumerate(route.hops):
        hop_amount_in = amount_in if i == 0 else 0
        hop_min_out = min_amount_out if i == last_index else INTERMEDIATE_MIN_OUT
        calls.append(SwapCall(
            hop_index=i,
            to=broker_address,
            data=encode_swap_in(hop, hop_amount_in, hop_min_out, exchange_provider),
            hop=hop,
            amount_in=hop_amount_in,
            amount_out_min=hop_min_out
        ))

    return SwapPlan(calls=calls, amount_in=amount_in, min_amount_out=min_amount_out)


def rebuild_call(
    call: SwapCall,
    amount_in: int,
    exchange_provider: str = BIPOOL_MANAGER_ADDRESS
) -> SwapCall:
    """Re-encode a planned call with the realized input amount"""
    return call.model_copy(update={
        "amount_in": amount_in,
        "data": encode_swap_in(call.hop, amount_in, call.amount_out_min, exchange_provider),
    })


def build_approve_tx(token: str, spender: str, amount: Optional[int] = None) -> Dict[str, str]:
    """Unsigned ERC-20 approve; defaults to an unlimited allowance"""
    selector = function_signature_to_4byte_selector(APPROVE_SIGNATURE)
    args = encode(
        ["address", "uint256"],
        [Web3.to_checksum_address(spender), MAX_UINT256 if amount is None else amount]
    )
    return {"to": token, "data": Web3.to_hex(selector + args)}
