"""
FX trade rules - user limits checked before a buy or sell is executed
"""
from typing import Dict, List, Optional

from .models import GuardrailCheck, PositionSnapshot, TradeDirection, TradeRulesConfig, TradeSignal


def _find_position(positions: List[PositionSnapshot], currency: str) -> Optional[PositionSnapshot]:
    return next((p for p in positions if p.token_symbol == currency), None)


def check_trade_rules(
    signal: TradeSignal,
    config: TradeRulesConfig,
    positions: List[PositionSnapshot],
    portfolio_value_usd: float,
    trades_today: int,
    trade_amount_usd: float,
    position_prices: Optional[Dict[str, float]] = None,
    available_buying_power_usd: Optional[float] = None
) -> GuardrailCheck:
    """
    Check a trading signal against the wallet's limits.
    Rules are checked in priority order; the first failure short-circuits.
    """
    prices = position_prices or {}
    currency = signal.currency
    price_usd = prices.get(currency, 1.0)
    position = _find_position(positions, currency)

    # 1. Currency must be allowed and not blocked
    if config.allowed_currencies and currency not in config.allowed_currencies:
        return GuardrailCheck.blocked("allowed_currencies", f"{currency} is not in allowed currencies")

    if currency in config.blocked_currencies:
        return GuardrailCheck.blocked("blocked_currencies", f"{currency} is blocked")

    # 2. Daily trade limit
    if trades_today >= config.daily_trade_limit:
        return GuardrailCheck.blocked(
            "daily_trade_limit",
            f"Daily trade limit reached ({trades_today} of {config.daily_trade_limit})"
        )

    # 3. Max trade size: % of buying power for buys, % of position value for sells
    pct = config.max_trade_size_pct
    if signal.direction == TradeDirection.BUY:
        if config.available_buying_power_usd is not None:
            base = config.available_buying_power_usd
        else:
            base = available_buying_power_usd or 0.0
        max_trade_usd = base * (pct / 100)
    else:
        position_value_usd = (position.balance if position else 0.0) * price_usd
        if position_value_usd <= 0 and trade_amount_usd > 0:
            return GuardrailCheck.blocked("max_trade_size", f"No position in {currency} to sell")
        max_trade_usd = position_value_usd * (pct / 100)

    if max_trade_usd > 0 and trade_amount_usd > max_trade_usd:
        return GuardrailCheck.blocked(
            "max_trade_size",
            f"Trade size ${trade_amount_usd:.2f} exceeds max {pct:g}% (${max_trade_usd:.2f})"
        )

    # 4. Max allocation per currency (buys only)
    if signal.direction == TradeDirection.BUY and portfolio_value_usd > 0:
        current_value_usd = (position.balance if position else 0.0) * price_usd
        post_trade_pct = (current_value_usd + trade_amount_usd) / (portfolio_value_usd + trade_amount_usd) * 100
        if post_trade_pct > config.max_allocation_pct:
            return GuardrailCheck.blocked(
                "max_allocation",
                f"Post-trade allocation {post_trade_pct:.1f}% exceeds max {config.max_allocation_pct:g}%"
            )

    # 5. Stop-loss (sells only)
    if signal.direction == TradeDirection.SELL and position and position.balance > 0 and position.avg_entry_rate > 0:
        loss_pct = (price_usd - position.avg_entry_rate) / position.avg_entry_rate * 100
        if loss_pct < -config.stop_loss_pct:
            return GuardrailCheck.blocked(
                "stop_loss",
                f"Loss {loss_pct:.1f}% exceeds stop-loss threshold {config.stop_loss_pct:g}%"
            )

    return GuardrailCheck.ok()


def calculate_trade_amount(confidence: float, max_trade_size_usd: float) -> float:
    """Higher confidence = larger trade; below 60 nothing is traded"""
    if confidence >= 90:
        return max_trade_size_usd
    if confidence >= 80:
        return max_trade_size_usd * 0.75
    if confidence >= 70:
        return max_trade_size_usd * 0.5
    if confidence >= 60:
        return max_trade_size_usd * 0.25
    return 0.0
