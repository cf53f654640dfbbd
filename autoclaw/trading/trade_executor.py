"""
Trade Executor - quote, approve and execute a swap plan hop by hop
"""
import logging
from typing import Callable, List, Optional, Set, Tuple

from autoclaw.errors import InsufficientBalance, SignerMismatch
from autoclaw.tokens import BROKER_ADDRESS, USDM_ADDRESS, TokenRegistry, token_registry
from .models import SwapCall, TradeResult
from .quote_engine import QuoteEngine, to_raw
from .swap_plan import apply_slippage, build_approve_tx, build_plan, rebuild_call

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_PCT = 0.5


class TradeExecutor:
    """
    Executes swaps through the Mento Broker.

    Hops are submitted strictly in order: hop N+1 is only sent after hop N's
    receipt is confirmed, and its input is the amount of the intermediate
    token that hop N actually delivered.
    """

    def __init__(
        self,
        chain_client,
        quote_engine: QuoteEngine,
        registry: TokenRegistry = token_registry,
        signer_for: Optional[Callable[[str], object]] = None,
        broker_address: str = BROKER_ADDRESS,
        default_slippage_pct: float = DEFAULT_SLIPPAGE_PCT
    ):
        self.chain = chain_client
        self.quote_engine = quote_engine
        self.registry = registry
        self.signer_for = signer_for or (lambda wallet_address: chain_client)
        self.broker_address = broker_address
        self.default_slippage_pct = default_slippage_pct
        self._approved: Set[Tuple[str, str]] = set()

    async def ensure_allowance(self, signer, token: str, owner: str, amount: int) -> Optional[str]:
        """Approve the broker for `token` if the allowance is short; returns the approve tx hash"""
        key = (token.lower(), owner.lower())
        if key in self._approved:
            return None

        allowance = await self.chain.get_allowance(token, owner, self.broker_address)
        tx_hash = None
        if allowance < amount:
            approve_tx = build_approve_tx(token, self.broker_address)
            tx_hash = await signer.send_transaction(approve_tx["to"], approve_tx["data"])
            await signer.wait_for_receipt(tx_hash)
            logger.info(f"Approved broker for {token} (owner {owner}): {tx_hash}")
        self._approved.add(key)
        return tx_hash

    async def execute_swap(
        self,
        wallet_address: str,
        from_symbol: str,
        to_symbol: str,
        amount_in: int,
        slippage_pct: Optional[float] = None
    ) -> TradeResult:
        """
        Swap `amount_in` raw units of from_symbol into to_symbol

        Raises:
            NoRouteFound, QuoteUnavailable: from quoting
            SignerMismatch: the signer for `wallet_address` holds a different key
            InsufficientBalance: an intermediate hop delivered nothing
            ContractReverted: a hop or approval reverted on chain
        """
        token_in = self.registry.by_symbol(from_symbol)
        token_out = self.registry.by_symbol(to_symbol)
        slippage = self.default_slippage_pct if slippage_pct is None else slippage_pct
        signer = self.signer_for(wallet_address)
        signer_address = getattr(signer, "address", None)
        if signer_address and signer_address.lower() != wallet_address.lower():
            raise SignerMismatch(wallet_address, signer_address)

        quote = await self.quote_engine.quote(token_in.address, token_out.address, amount_in)
        amount_out_min = apply_slippage(quote.amount_out, slippage)
        plan = build_plan(quote.route, amount_in, amount_out_min, broker_address=self.broker_address)

        approve_hash = await self.ensure_allowance(signer, token_in.address, wallet_address, amount_in)

        tx_hashes: List[str] = []
        intermediate_before = {}
        for call in plan.calls[1:]:
            intermediate_before[call.hop_index] = await self.chain.get_erc20_balance(call.hop.token_in, wallet_address)

        for call in plan.calls:
            if call.hop_index > 0:
                call = await self._prepare_intermediate_hop(
                    signer, call, wallet_address, intermediate_before[call.hop_index]
                )
            tx_hash = await signer.send_transaction(call.to, call.data)
            await signer.wait_for_receipt(tx_hash)
            tx_hashes.append(tx_hash)
            logger.info(
                f"Hop {call.hop_index + 1}/{len(plan)} {call.hop.token_in} -> {call.hop.token_out} confirmed: {tx_hash}"
            )

        return TradeResult(
            tx_hash=tx_hashes[-1],
            tx_hashes=tx_hashes,
            amount_in=amount_in,
            amount_out=quote.amount_out,
            rate=quote.rate,
            from_symbol=token_in.symbol,
            to_symbol=token_out.symbol,
            approve_tx_hash=approve_hash
        )

    async def _prepare_intermediate_hop(self, signer, call: SwapCall, wallet_address: str, balance_before: int) -> SwapCall:
        """Use the amount the previous hop actually delivered as this hop's input"""
        balance_after = await self.chain.get_erc20_balance(call.hop.token_in, wallet_address)
        realized = balance_after - balance_before
        if realized <= 0:
            raise InsufficientBalance(call.hop.token_in, 1, max(realized, 0))
        await self.ensure_allowance(signer, call.hop.token_in, wallet_address, realized)
        return rebuild_call(call, realized)

    async def execute_trade(
        self,
        wallet_address: str,
        currency: str,
        direction: str,
        amount_usd: float,
        slippage_pct: Optional[float] = None
    ) -> TradeResult:
        """
        FX trade against USDm

        buy spends `amount_usd` USDm for `currency`; sell converts the amount
        of `currency` currently worth `amount_usd` back into USDm. The returned
        rate is always `currency` tokens per USD so the position ledger can
        use it for both directions.
        """
        usdm = self.registry.by_address(USDM_ADDRESS)
        target = self.registry.by_symbol(currency)
        usd_raw = to_raw(amount_usd, usdm.decimals)

        if direction == "buy":
            return await self.execute_swap(wallet_address, usdm.symbol, target.symbol, usd_raw, slippage_pct)
        if direction != "sell":
            raise ValueError(f"Unknown trade direction: {direction}")

        reference = await self.quote_engine.quote(usdm.address, target.address, usd_raw)
        result = await self.execute_swap(
            wallet_address, target.symbol, usdm.symbol, reference.amount_out, slippage_pct
        )
        return result.model_copy(update={"rate": reference.rate})
