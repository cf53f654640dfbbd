"""
Runtime configuration - environment variables loaded from .env
"""
import os
import logging
from typing import Optional
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseModel):
    """Settings for the trading core, read once from the environment"""
    celo_rpc: str = "https://forno.celo.org"
    database_url: str = "sqlite:///./autoclaw_data.db"
    executor_private_key: Optional[str] = None
    rpc_timeout_seconds: float = 15.0
    route_cache_ttl_seconds: float = 300.0
    funding_poll_interval_seconds: int = 60
    default_slippage_pct: float = 0.5
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from environment variables, falling back to defaults"""
    return Settings(
        celo_rpc=os.getenv("CELO_RPC", "https://forno.celo.org"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./autoclaw_data.db"),
        executor_private_key=os.getenv("EXECUTOR_PRIVATE_KEY") or None,
        rpc_timeout_seconds=float(os.getenv("RPC_TIMEOUT_SECONDS", 15)),
        route_cache_ttl_seconds=float(os.getenv("ROUTE_CACHE_TTL_SECONDS", 300)),
        funding_poll_interval_seconds=int(os.getenv("FUNDING_POLL_INTERVAL_SECONDS", 60)),
        default_slippage_pct=float(os.getenv("DEFAULT_SLIPPAGE_PCT", 0.5)),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def setup_logging(level: Optional[str] = None):
    """Configure root logging for the agent process"""
    logging.basicConfig(
        level=getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


settings = load_settings()
