"""
Guardrail data models - signals, per-wallet limits and check results
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class RiskProfile(str, Enum):
    """User risk profile"""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class YieldAction(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    HOLD = "hold"


class TradeDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"


class GuardrailConfig(BaseModel):
    """Yield guardrails for one wallet"""
    min_apr_threshold: float = 5.0        # Don't enter vaults below X% APR
    max_single_vault_pct: float = 40.0    # Max allocation to any single vault (%)
    min_hold_period_days: float = 3.0     # Don't exit within N days of entry
    max_vault_count: int = 5              # Max concurrent vault positions
    max_il_tolerance_pct: float = 10.0
    min_tvl_usd: float = 50_000
    reward_claim_frequency_hrs: int = 168
    auto_compound: bool = False


DEFAULT_YIELD_GUARDRAILS: Dict[RiskProfile, GuardrailConfig] = {
    RiskProfile.CONSERVATIVE: GuardrailConfig(
        min_apr_threshold=8,
        max_single_vault_pct=25,
        min_hold_period_days=7,
        max_vault_count=3,
        max_il_tolerance_pct=5,
        min_tvl_usd=100_000,
        reward_claim_frequency_hrs=168,
        auto_compound=False,
    ),
    RiskProfile.MODERATE: GuardrailConfig(
        min_apr_threshold=5,
        max_single_vault_pct=40,
        min_hold_period_days=3,
        max_vault_count=5,
        max_il_tolerance_pct=10,
        min_tvl_usd=50_000,
        reward_claim_frequency_hrs=168,
        auto_compound=False,
    ),
    RiskProfile.AGGRESSIVE: GuardrailConfig(
        min_apr_threshold=3,
        max_single_vault_pct=60,
        min_hold_period_days=1,
        max_vault_count=8,
        max_il_tolerance_pct=20,
        min_tvl_usd=20_000,
        reward_claim_frequency_hrs=72,
        auto_compound=True,
    ),
}


class YieldSignal(BaseModel):
    """Proposed yield action from the signal source"""
    vault_address: str
    action: YieldAction
    amount_usd: float = 0.0
    estimated_apr: float = 0.0
    vault_name: str = ""
    allocation_pct: float = 0.0
    confidence: float = 0.0
    reasoning: str = ""
    risk_level: str = "medium"


class YieldPosition(BaseModel):
    """Existing vault position as seen by the guardrails"""
    vault_address: str
    deposit_amount_usd: float
    deposited_at: datetime


class GuardrailCheck(BaseModel):
    """Outcome of a guardrail evaluation"""
    passed: bool
    rule_name: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "GuardrailCheck":
        return cls(passed=True)

    @classmethod
    def blocked(cls, rule_name: str, reason: str) -> "GuardrailCheck":
        return cls(passed=False, rule_name=rule_name, reason=reason)


class TradeSignal(BaseModel):
    """Proposed fx trade"""
    currency: str
    direction: TradeDirection
    confidence: float = 0.0
    reasoning: str = ""


class TradeRulesConfig(BaseModel):
    """FX trading limits for one wallet"""
    max_trade_size_pct: float = 25.0     # % of buying power (buys) or position value (sells)
    max_allocation_pct: float = 50.0
    stop_loss_pct: float = 10.0
    daily_trade_limit: int = 10
    allowed_currencies: List[str] = Field(default_factory=list)
    blocked_currencies: List[str] = Field(default_factory=list)
    available_buying_power_usd: Optional[float] = None


class PositionSnapshot(BaseModel):
    """Token position as seen by the trade rules"""
    token_symbol: str
    balance: float
    avg_entry_rate: float = 0.0
