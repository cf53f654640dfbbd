"""
Quote Engine - chains Broker.getAmountOut across route hops
"""
import logging
from decimal import Decimal

from web3 import Web3

from autoclaw.abis import BROKER_ABI
from autoclaw.errors import ChainError, QuoteUnavailable
from autoclaw.tokens import BIPOOL_MANAGER_ADDRESS, BROKER_ADDRESS, TokenRegistry, token_registry
from .models import Quote
from .route_resolver import RouteResolver

logger = logging.getLogger(__name__)


def to_human(amount: int, decimals: int) -> float:
    """Raw integer amount -> float in token units"""
    return float(Decimal(amount) / (Decimal(10) ** decimals))


def to_raw(amount, decimals: int) -> int:
    """Human amount (str, float or Decimal) -> raw integer units, truncated"""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def compute_rate(amount_in: int, decimals_in: int, amount_out: int, decimals_out: int) -> float:
    """Output per unit input in human units; 0 when the input is 0"""
    amount_in_human = to_human(amount_in, decimals_in)
    amount_out_human = to_human(amount_out, decimals_out)
    if amount_in_human <= 0:
        return 0.0
    return amount_out_human / amount_in_human


class QuoteEngine:
    """Produces exact multi-hop quotes from the Mento Broker"""

    def __init__(
        self,
        chain_client,
        resolver: RouteResolver,
        registry: TokenRegistry = token_registry,
        broker_address: str = BROKER_ADDRESS,
        exchange_provider: str = BIPOOL_MANAGER_ADDRESS
    ):
        self.chain = chain_client
        self.resolver = resolver
        self.registry = registry
        self.broker_address = broker_address
        self.exchange_provider = exchange_provider

    async def quote(self, token_in: str, token_out: str, amount_in: int) -> Quote:
        """
        Quote `amount_in` raw units of token_in into token_out

        Raises:
            NoRouteFound: no direct or hub route exists
            QuoteUnavailable: the router could not be read
        """
        decimals_in = self.registry.decimals_of(token_in)
        decimals_out = self.registry.decimals_of(token_out)

        route = await self.resolver.find_route(token_in, token_out)

        current_amount = amount_in
        for hop in route.hops:
            try:
                current_amount = await self.chain.read_contract(
                    self.broker_address,
                    BROKER_ABI,
                    "getAmountOut",
                    [
                        Web3.to_checksum_address(self.exchange_provider),
                        hop.exchange_id,
                        Web3.to_checksum_address(hop.token_in),
                        Web3.to_checksum_address(hop.token_out),
                        current_amount
                    ]
                )
            except ChainError as e:
                logger.warning(f"getAmountOut failed for hop {hop.token_in} -> {hop.token_out}: {e}")
                raise QuoteUnavailable(f"Quote failed for {token_in} -> {token_out}: {e}") from e

        rate = compute_rate(amount_in, decimals_in, current_amount, decimals_out)

        return Quote(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=int(current_amount),
            rate=rate,
            route=route,
            exchange_provider=self.exchange_provider,
            exchange_id=route.hops[0].exchange_id
        )
