"""
Funding Monitor - detects deposits into agent server wallets

Polls ERC-20 balances of every linked server wallet, diffs them against the
last observed value and records increases as funding events. Deposits of
convertible stablecoins are then swapped into USDm.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from autoclaw.errors import AutoclawError, PartialTokenCheckFailure, PersistenceConflict
from autoclaw.tokens import Token, TokenRegistry, token_registry
from .models import TimelineEventType
from .storage import MonitoredWallet, PositionStore
from .timeline import TimelineLogger

logger = logging.getLogger(__name__)

MONITORED_SYMBOLS = ["USDm", "USDC", "USDT"]
CONVERTIBLE_SYMBOLS = ["USDC", "USDT"]
CONVERSION_TARGET = "USDm"


class BalanceCache:
    """Last observed raw balance per (wallet, token); process memory only"""

    def __init__(self):
        self._balances: Dict[Tuple[str, str], int] = {}

    @staticmethod
    def _key(wallet_address: str, token_symbol: str) -> Tuple[str, str]:
        return (wallet_address.lower(), token_symbol)

    def get(self, wallet_address: str, token_symbol: str) -> Optional[int]:
        return self._balances.get(self._key(wallet_address, token_symbol))

    def set(self, wallet_address: str, token_symbol: str, balance: int):
        self._balances[self._key(wallet_address, token_symbol)] = balance

    def clear(self):
        self._balances.clear()

    def __len__(self) -> int:
        return len(self._balances)


@dataclass
class FundingEvent:
    wallet_address: str
    server_wallet_address: str
    token_symbol: str
    amount: float
    raw_amount: str


@dataclass
class ConversionOutcome:
    wallet_address: str
    token_symbol: str
    raw_amount: int
    success: bool
    tx_hash: Optional[str] = None
    amount_out: Optional[int] = None
    error: Optional[str] = None


@dataclass
class PollReport:
    """Per-item results of one poll; failures never cancel the batch"""
    events: List[FundingEvent] = field(default_factory=list)
    failures: List[PartialTokenCheckFailure] = field(default_factory=list)
    conversions: List[ConversionOutcome] = field(default_factory=list)
    wallets_checked: int = 0


class FundingMonitor:
    """
    Args:
        store: Source of monitored wallets
        chain_client: Anything with `get_erc20_balance(token, account)`
        timeline: Event sink
        converter: Optional trade executor used to convert USDC/USDT deposits
    """

    def __init__(
        self,
        store: PositionStore,
        chain_client,
        timeline: TimelineLogger,
        converter=None,
        registry: TokenRegistry = token_registry,
        cache: Optional[BalanceCache] = None,
        monitored_symbols: Optional[List[str]] = None,
        convertible_symbols: Optional[List[str]] = None
    ):
        self.store = store
        self.chain = chain_client
        self.timeline = timeline
        self.converter = converter
        self.registry = registry
        self.cache = cache if cache is not None else BalanceCache()
        self.tokens: List[Token] = [registry.by_symbol(s) for s in (monitored_symbols or MONITORED_SYMBOLS)]
        self.convertible = set(CONVERTIBLE_SYMBOLS if convertible_symbols is None else convertible_symbols)

    async def poll_once(self) -> PollReport:
        """Check every monitored token of every linked wallet once"""
        report = PollReport()
        try:
            wallets = self.store.list_monitored_wallets()
        except PersistenceConflict as e:
            logger.error(f"Funding poll skipped, could not load agent wallets: {e}")
            return report

        for wallet in wallets:
            report.wallets_checked += 1
            for token in self.tokens:
                try:
                    event = await self._check_token(wallet, token)
                except AutoclawError as e:
                    failure = PartialTokenCheckFailure(wallet.server_wallet_address, token.symbol, e)
                    logger.warning(str(failure))
                    report.failures.append(failure)
                    continue
                except Exception as e:
                    failure = PartialTokenCheckFailure(wallet.server_wallet_address, token.symbol, e)
                    logger.error(str(failure), exc_info=True)
                    report.failures.append(failure)
                    continue

                if event is None:
                    continue
                report.events.append(event)

                if self.converter is not None and token.symbol in self.convertible:
                    report.conversions.append(await self._convert(wallet, token, int(event.raw_amount)))

        if report.events or report.failures:
            logger.info(
                f"Funding poll: {report.wallets_checked} wallets, {len(report.events)} deposits, "
                f"{len(report.failures)} failed checks"
            )
        return report

    async def _check_token(self, wallet: MonitoredWallet, token: Token) -> Optional[FundingEvent]:
        server_address = wallet.server_wallet_address
        balance = await self.chain.get_erc20_balance(token.address, server_address)

        previous = self.cache.get(server_address, token.symbol)
        self.cache.set(server_address, token.symbol, balance)

        # First observation after start is a baseline, not a deposit
        if previous is None or balance <= previous:
            return None

        delta = balance - previous
        amount = delta / 10 ** token.decimals
        event = FundingEvent(
            wallet_address=wallet.wallet_address,
            server_wallet_address=server_address,
            token_symbol=token.symbol,
            amount=amount,
            raw_amount=str(delta)
        )
        await self.timeline.log(
            wallet.wallet_address,
            TimelineEventType.FUNDING,
            f"Received {amount:.2f} {token.symbol}",
            detail={"token": token.symbol, "amount": amount, "raw_amount": event.raw_amount}
        )
        logger.info(f"Deposit detected: {amount} {token.symbol} into {server_address}")
        return event

    async def _convert(self, wallet: MonitoredWallet, token: Token, raw_amount: int) -> ConversionOutcome:
        """Swap a stablecoin deposit into USDm; both outcomes land on the timeline"""
        amount = raw_amount / 10 ** token.decimals
        try:
            result = await self.converter.execute_swap(
                wallet.server_wallet_address, token.symbol, CONVERSION_TARGET, raw_amount
            )
        except Exception as e:
            logger.error(
                f"Auto-conversion of {amount} {token.symbol} for {wallet.wallet_address} failed: {e}",
                exc_info=not isinstance(e, AutoclawError)
            )
            await self.timeline.log(
                wallet.wallet_address,
                TimelineEventType.TRADE,
                f"Failed to convert {amount:.2f} {token.symbol} to {CONVERSION_TARGET}",
                detail={
                    "from": token.symbol,
                    "to": CONVERSION_TARGET,
                    "raw_amount": str(raw_amount),
                    "error": str(e),
                },
                currency=token.symbol,
                amount_usd=amount
            )
            return ConversionOutcome(
                wallet_address=wallet.wallet_address,
                token_symbol=token.symbol,
                raw_amount=raw_amount,
                success=False,
                error=str(e)
            )

        await self.timeline.log(
            wallet.wallet_address,
            TimelineEventType.TRADE,
            f"Converted {amount:.2f} {token.symbol} to {CONVERSION_TARGET}",
            detail={
                "from": token.symbol,
                "to": CONVERSION_TARGET,
                "raw_amount": str(raw_amount),
                "amount_out": str(result.amount_out),
                "rate": result.rate,
            },
            currency=token.symbol,
            amount_usd=amount,
            tx_hash=result.tx_hash
        )
        return ConversionOutcome(
            wallet_address=wallet.wallet_address,
            token_symbol=token.symbol,
            raw_amount=raw_amount,
            success=True,
            tx_hash=result.tx_hash,
            amount_out=result.amount_out
        )
