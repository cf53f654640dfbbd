"""
Guardrail engine - policy checks run before any capital-moving action
"""
from .models import (
    RiskProfile,
    YieldAction,
    TradeDirection,
    GuardrailConfig,
    DEFAULT_YIELD_GUARDRAILS,
    YieldSignal,
    YieldPosition,
    GuardrailCheck,
    TradeSignal,
    TradeRulesConfig,
    PositionSnapshot
)
from .yield_guardrails import evaluate, evaluate_or_raise
from .trade_rules import check_trade_rules, calculate_trade_amount

__all__ = [
    "RiskProfile",
    "YieldAction",
    "TradeDirection",
    "GuardrailConfig",
    "DEFAULT_YIELD_GUARDRAILS",
    "YieldSignal",
    "YieldPosition",
    "GuardrailCheck",
    "TradeSignal",
    "TradeRulesConfig",
    "PositionSnapshot",
    "evaluate",
    "evaluate_or_raise",
    "check_trade_rules",
    "calculate_trade_amount",
]
