"""
Yield guardrails - policy checks for vault deposits and withdrawals

evaluate() is a pure function: given the same signal, config, positions,
portfolio value and clock reading it always returns the same result.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from autoclaw.errors import GuardrailBlocked
from .models import GuardrailCheck, GuardrailConfig, YieldAction, YieldPosition, YieldSignal

logger = logging.getLogger(__name__)


def _fmt(value: float) -> str:
    """Configured limits are shown without trailing zeros (5, 2.5)"""
    return f"{value:g}"


def _same_vault(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def _check_min_apr(signal: YieldSignal, config: GuardrailConfig) -> Optional[GuardrailCheck]:
    if signal.estimated_apr < config.min_apr_threshold:
        return GuardrailCheck.blocked(
            "min_apr_threshold",
            f"APR {signal.estimated_apr:.1f}% is below minimum {_fmt(config.min_apr_threshold)}%"
        )
    return None


def _check_max_single_vault(
    signal: YieldSignal,
    config: GuardrailConfig,
    positions: List[YieldPosition],
    portfolio_value: float
) -> Optional[GuardrailCheck]:
    # An empty portfolio cannot breach a concentration limit
    if portfolio_value <= 0:
        return None

    existing = sum(p.deposit_amount_usd for p in positions if _same_vault(p.vault_address, signal.vault_address))
    post_deposit = existing + signal.amount_usd
    # Cross-multiplied so the boundary compares exactly
    if post_deposit * 100 > config.max_single_vault_pct * portfolio_value:
        pct = post_deposit / portfolio_value * 100
        return GuardrailCheck.blocked(
            "max_single_vault",
            f"Post-deposit vault allocation {pct:.1f}% exceeds max {_fmt(config.max_single_vault_pct)}%"
        )
    return None


def _check_max_vault_count(
    signal: YieldSignal,
    config: GuardrailConfig,
    positions: List[YieldPosition]
) -> Optional[GuardrailCheck]:
    vaults = {p.vault_address.lower() for p in positions}
    if signal.vault_address.lower() not in vaults and len(vaults) >= config.max_vault_count:
        return GuardrailCheck.blocked(
            "max_vault_count",
            f"Already at max {config.max_vault_count} vaults ({len(vaults)} open)"
        )
    return None


def _check_min_hold_period(
    signal: YieldSignal,
    config: GuardrailConfig,
    positions: List[YieldPosition],
    now: datetime
) -> Optional[GuardrailCheck]:
    position = next((p for p in positions if _same_vault(p.vault_address, signal.vault_address)), None)
    if position is None:
        return None

    deposited_at = position.deposited_at
    if deposited_at.tzinfo is None:
        deposited_at = deposited_at.replace(tzinfo=timezone.utc)
    held = now - deposited_at
    if held < timedelta(days=config.min_hold_period_days):
        held_days = held.total_seconds() / 86400
        return GuardrailCheck.blocked(
            "min_hold_period",
            f"Held {held_days:.1f} days, minimum is {_fmt(config.min_hold_period_days)} days"
        )
    return None


def evaluate(
    signal: YieldSignal,
    config: GuardrailConfig,
    current_positions: List[YieldPosition],
    portfolio_value: float,
    now: Optional[datetime] = None
) -> GuardrailCheck:
    """
    Check a yield signal against the wallet's guardrails

    Rules run in priority order and the first failure wins:
        deposit:  min_apr_threshold, max_single_vault, max_vault_count
        withdraw: min_hold_period
        hold:     always passes

    Args:
        now: Evaluation time (UTC); defaults to the current time
    """
    if signal.action == YieldAction.HOLD:
        return GuardrailCheck.ok()

    if signal.action == YieldAction.DEPOSIT:
        result = (
            _check_min_apr(signal, config)
            or _check_max_single_vault(signal, config, current_positions, portfolio_value)
            or _check_max_vault_count(signal, config, current_positions)
        )
        return result or GuardrailCheck.ok()

    if signal.action == YieldAction.WITHDRAW:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return _check_min_hold_period(signal, config, current_positions, now) or GuardrailCheck.ok()

    raise ValueError(f"Unknown yield action: {signal.action}")


def evaluate_or_raise(
    signal: YieldSignal,
    config: GuardrailConfig,
    current_positions: List[YieldPosition],
    portfolio_value: float,
    now: Optional[datetime] = None
) -> GuardrailCheck:
    """evaluate(), raising GuardrailBlocked instead of returning a failed check"""
    result = evaluate(signal, config, current_positions, portfolio_value, now=now)
    if not result.passed:
        logger.info(f"Guardrail {result.rule_name} blocked {signal.action.value} into {signal.vault_address}: {result.reason}")
        raise GuardrailBlocked(result.rule_name, result.reason)
    return result
