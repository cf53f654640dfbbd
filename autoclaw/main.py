"""
FastAPI server for the autoclaw agent core
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from datetime import datetime
import logging

from autoclaw.chain_client import ChainClient
from autoclaw.config import Settings, settings, setup_logging
from autoclaw.errors import (
    ChainError,
    GuardrailBlocked,
    NoRouteFound,
    PersistenceConflict,
    QuoteUnavailable,
    UnknownTokenError,
)
from autoclaw.guardrails import (
    DEFAULT_YIELD_GUARDRAILS,
    GuardrailCheck,
    GuardrailConfig,
    RiskProfile,
    YieldPosition,
    YieldSignal,
    evaluate_or_raise,
)
from autoclaw.ledger import FundingMonitor, PositionLedger, PositionStore, TimelineLogger
from autoclaw.scheduler import AgentScheduler
from autoclaw.tokens import token_registry
from autoclaw.trading import QuoteEngine, RouteCache, RouteResolver, TradeExecutor, to_human, to_raw

logger = logging.getLogger(__name__)

app = FastAPI(title="Autoclaw Agent API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class Services:
    """Wired components shared by the request handlers"""
    chain_client: Any
    quote_engine: QuoteEngine
    store: PositionStore
    ledger: PositionLedger
    funding_monitor: FundingMonitor
    scheduler: Optional[AgentScheduler] = None
    executor: Optional[TradeExecutor] = None


def build_services(config: Settings = settings) -> Services:
    """Wire chain client, trading pipeline and ledger from settings"""
    chain_client = ChainClient(
        config.celo_rpc,
        private_key=config.executor_private_key,
        timeout=config.rpc_timeout_seconds
    )
    resolver = RouteResolver(chain_client, cache=RouteCache(config.route_cache_ttl_seconds))
    quote_engine = QuoteEngine(chain_client, resolver)

    executor = None
    if config.executor_private_key:
        executor = TradeExecutor(chain_client, quote_engine, default_slippage_pct=config.default_slippage_pct)
        # One key signs everything; swaps for any other server wallet raise SignerMismatch
        logger.info(f"Trade executor signs as {chain_client.address}")
    else:
        logger.warning("EXECUTOR_PRIVATE_KEY not set - trade execution and auto-conversion disabled")

    store = PositionStore.from_url(config.database_url)
    timeline = TimelineLogger(store)
    funding_monitor = FundingMonitor(store, chain_client, timeline, converter=executor)
    return Services(
        chain_client=chain_client,
        quote_engine=quote_engine,
        store=store,
        ledger=PositionLedger(store),
        funding_monitor=funding_monitor,
        scheduler=AgentScheduler(funding_monitor, config.funding_poll_interval_seconds),
        executor=executor
    )


services: Optional[Services] = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup"""
    global services
    if services is None:
        setup_logging(settings.log_level)
        services = build_services()
        if services.scheduler:
            services.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the agent tick loop"""
    if services and services.scheduler and services.scheduler.running:
        await services.scheduler.stop()


def _services() -> Services:
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services


# Request / response models

class QuoteRequest(BaseModel):
    token_in: str
    token_out: str
    amount: float = Field(..., ge=0, description="Human-readable amount of token_in")


class HopInfo(BaseModel):
    exchange_id: str
    token_in: str
    token_out: str


class QuoteResponse(BaseModel):
    token_in: str
    token_out: str
    amount_in: str
    amount_out: str
    amount_out_human: float
    rate: float
    route: List[HopInfo]
    exchange_id: str


class YieldCheckRequest(BaseModel):
    signal: YieldSignal
    config: Optional[GuardrailConfig] = None
    risk_profile: RiskProfile = RiskProfile.MODERATE
    positions: List[YieldPosition] = Field(default_factory=list)
    portfolio_value: float = 0.0


class PositionsResponse(BaseModel):
    wallet_address: str
    positions: List[Dict[str, Any]]
    portfolio_value: float


# Endpoints

@app.get("/health")
async def health():
    """Health check endpoint"""
    scheduler = services.scheduler if services else None
    return {
        "status": "healthy" if services else "starting",
        "timestamp": datetime.now().isoformat(),
        "scheduler": {
            "running": bool(scheduler and scheduler.running),
            "ticks": scheduler.tick_count if scheduler else 0,
        },
        "execution_enabled": bool(services and services.executor),
    }


@app.post("/api/quote", response_model=QuoteResponse)
async def get_quote(request: QuoteRequest):
    """Quote a swap through the Mento Broker"""
    svc = _services()
    try:
        token_in = token_registry.by_symbol(request.token_in)
        token_out = token_registry.by_symbol(request.token_out)
        quote = await svc.quote_engine.quote(
            token_in.address, token_out.address, to_raw(request.amount, token_in.decimals)
        )
    except UnknownTokenError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoRouteFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (QuoteUnavailable, ChainError) as e:
        logger.error(f"Quote {request.token_in} -> {request.token_out} failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return QuoteResponse(
        token_in=token_in.symbol,
        token_out=token_out.symbol,
        amount_in=str(quote.amount_in),
        amount_out=str(quote.amount_out),
        amount_out_human=to_human(quote.amount_out, token_out.decimals),
        rate=quote.rate,
        route=[HopInfo(**hop.model_dump()) for hop in quote.route.hops],
        exchange_id=quote.exchange_id
    )


@app.post("/api/guardrails/yield/check", response_model=GuardrailCheck)
async def check_yield_guardrails(request: YieldCheckRequest):
    """Evaluate a yield signal; a blocked signal returns 422 with the failing rule"""
    config = request.config or DEFAULT_YIELD_GUARDRAILS[request.risk_profile]
    try:
        return evaluate_or_raise(request.signal, config, request.positions, request.portfolio_value)
    except GuardrailBlocked as e:
        raise HTTPException(status_code=422, detail={"rule_name": e.rule_name, "reason": e.reason})


@app.get("/api/positions/{wallet_address}", response_model=PositionsResponse)
async def get_positions(wallet_address: str):
    """Open positions and portfolio value for a wallet"""
    svc = _services()
    try:
        positions = await svc.ledger.get_positions(wallet_address)
    except PersistenceConflict as e:
        raise HTTPException(status_code=503, detail=str(e))
    return PositionsResponse(
        wallet_address=wallet_address,
        positions=[p.to_dict() for p in positions],
        portfolio_value=PositionLedger.portfolio_value(positions)
    )


@app.post("/api/funding/poll")
async def poll_funding():
    """Run one funding poll immediately"""
    svc = _services()
    report = await svc.funding_monitor.poll_once()
    return {
        "events": [
            {
                "wallet_address": e.wallet_address,
                "server_wallet_address": e.server_wallet_address,
                "token": e.token_symbol,
                "amount": e.amount,
                "raw_amount": e.raw_amount,
            }
            for e in report.events
        ],
        "failures": [
            {"wallet": f.wallet, "token": f.token_symbol, "error": str(f.cause)}
            for f in report.failures
        ],
        "conversions": [
            {
                "wallet_address": c.wallet_address,
                "token": c.token_symbol,
                "raw_amount": str(c.raw_amount),
                "success": c.success,
                "tx_hash": c.tx_hash,
                "error": c.error,
            }
            for c in report.conversions
        ],
        "wallets_checked": report.wallets_checked,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
