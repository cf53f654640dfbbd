"""
Ledger - positions, funding detection and the agent activity timeline
"""
from .models import Base, Position, AgentConfig, TimelineEvent, TimelineEventType
from .storage import PositionStore, MonitoredWallet, create_db_engine, init_db
from .timeline import TimelineLogger
from .position_ledger import PositionLedger
from .funding_monitor import BalanceCache, FundingMonitor, FundingEvent, ConversionOutcome, PollReport

__all__ = [
    "Base",
    "Position",
    "AgentConfig",
    "TimelineEvent",
    "TimelineEventType",
    "PositionStore",
    "MonitoredWallet",
    "create_db_engine",
    "init_db",
    "TimelineLogger",
    "PositionLedger",
    "BalanceCache",
    "FundingMonitor",
    "FundingEvent",
    "ConversionOutcome",
    "PollReport",
]
