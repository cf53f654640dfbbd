"""
FX agent - runs one trade signal through guardrails, execution and the ledger
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from autoclaw.errors import GuardrailBlocked
from autoclaw.guardrails import (
    PositionSnapshot,
    TradeDirection,
    TradeRulesConfig,
    TradeSignal,
    calculate_trade_amount,
    check_trade_rules,
)
from autoclaw.ledger import MonitoredWallet, PositionLedger, PositionStore, TimelineEventType, TimelineLogger
from autoclaw.tokens import TokenRegistry, token_registry
from autoclaw.trading import TradeExecutor, TradeResult, to_human

logger = logging.getLogger(__name__)

# Stablecoins that count as buying power, each valued at $1
BUYING_POWER_SYMBOLS = ["USDm", "USDC", "USDT"]


class FxAgent:
    """
    signal -> size by confidence -> trade rules -> swap -> position update -> timeline

    Trades are sent from the linked server wallet; positions and timeline
    entries are kept under the owner's wallet address.
    """

    def __init__(
        self,
        executor: TradeExecutor,
        ledger: PositionLedger,
        store: PositionStore,
        timeline: TimelineLogger,
        chain_client=None,
        registry: TokenRegistry = token_registry
    ):
        self.executor = executor
        self.ledger = ledger
        self.store = store
        self.timeline = timeline
        self.chain = chain_client if chain_client is not None else getattr(executor, "chain", None)
        self.registry = registry

    def trades_today(self, wallet_address: str, now: Optional[datetime] = None) -> int:
        """Trade events since 00:00 UTC"""
        now = now or datetime.now(timezone.utc)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return len(self.store.list_timeline(wallet_address, TimelineEventType.TRADE.value, since=day_start))

    async def buying_power(self, wallet: MonitoredWallet) -> float:
        """USD value of the server wallet's stablecoins"""
        total = 0.0
        for symbol in BUYING_POWER_SYMBOLS:
            token = self.registry.by_symbol(symbol)
            raw = await self.chain.get_erc20_balance(token.address, wallet.server_wallet_address)
            total += to_human(raw, token.decimals)
        return total

    async def execute_signal(
        self,
        wallet: MonitoredWallet,
        signal: TradeSignal,
        config: TradeRulesConfig,
        prices: Optional[Dict[str, float]] = None
    ) -> Optional[TradeResult]:
        """
        Returns:
            TradeResult, or None when confidence is too low to size a trade

        Raises:
            GuardrailBlocked: a trade rule rejected the signal (also logged to the timeline)
        """
        prices = prices or {}
        positions = await self.ledger.get_positions(wallet.wallet_address)
        snapshots = [
            PositionSnapshot(token_symbol=p.token_symbol, balance=p.balance, avg_entry_rate=p.avg_entry_rate)
            for p in positions
        ]
        portfolio_value = PositionLedger.portfolio_value(positions, prices)

        buying_power = config.available_buying_power_usd
        if signal.direction == TradeDirection.BUY:
            if buying_power is None and self.chain is not None:
                buying_power = await self.buying_power(wallet)
            elif buying_power is None:
                logger.warning(f"Buying power unset and no chain client for {wallet.wallet_address}, buys are skipped")
            size_base = buying_power or 0.0
        else:
            held = next((p for p in snapshots if p.token_symbol == signal.currency), None)
            size_base = held.balance * prices.get(signal.currency, 1.0) if held else 0.0
        amount_usd = calculate_trade_amount(signal.confidence, size_base * config.max_trade_size_pct / 100)

        if amount_usd <= 0:
            logger.info(f"Skipping {signal.direction.value} {signal.currency}: confidence {signal.confidence}")
            return None

        check = check_trade_rules(
            signal,
            config,
            snapshots,
            portfolio_value,
            self.trades_today(wallet.wallet_address),
            amount_usd,
            prices,
            available_buying_power_usd=buying_power
        )
        if not check.passed:
            await self.timeline.log(
                wallet.wallet_address,
                TimelineEventType.GUARDRAIL,
                f"Blocked {signal.direction.value} {signal.currency}: {check.reason}",
                detail={"rule": check.rule_name, "reason": check.reason, "confidence": signal.confidence},
                currency=signal.currency,
                amount_usd=amount_usd,
                direction=signal.direction.value
            )
            raise GuardrailBlocked(check.rule_name, check.reason)

        result = await self.executor.execute_trade(
            wallet.server_wallet_address, signal.currency, signal.direction.value, amount_usd
        )
        await self.ledger.apply_trade(
            wallet.wallet_address, signal.currency, signal.direction.value, amount_usd, result.rate
        )

        verb = "Bought" if signal.direction == TradeDirection.BUY else "Sold"
        await self.timeline.log(
            wallet.wallet_address,
            TimelineEventType.TRADE,
            f"{verb} ${amount_usd:.2f} of {signal.currency}",
            detail={"rate": result.rate, "confidence": signal.confidence, "reasoning": signal.reasoning},
            currency=signal.currency,
            amount_usd=amount_usd,
            direction=signal.direction.value,
            tx_hash=result.tx_hash
        )
        return result
