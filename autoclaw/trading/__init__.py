"""
Trading core - route discovery, quoting, swap planning and execution
"""
from .models import (
    ExchangePool,
    Hop,
    Route,
    Quote,
    SwapCall,
    SwapPlan,
    TradeResult
)
from .route_resolver import RouteCache, RouteResolver, build_pair_index
from .quote_engine import QuoteEngine, compute_rate, to_human, to_raw
from .swap_plan import apply_slippage, build_approve_tx, build_plan
from .trade_executor import TradeExecutor

__all__ = [
    "ExchangePool",
    "Hop",
    "Route",
    "Quote",
    "SwapCall",
    "SwapPlan",
    "TradeResult",
    "RouteCache",
    "RouteResolver",
    "build_pair_index",
    "QuoteEngine",
    "compute_rate",
    "to_human",
    "to_raw",
    "apply_slippage",
    "build_approve_tx",
    "build_plan",
    "TradeExecutor",
]
