"""
Database models for agent positions, agent configs and the activity timeline
"""
from sqlalchemy import Column, String, Integer, Float, DateTime, Text, Boolean, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any

Base = declarative_base()

POSITION_UNIQUE_KEY = "uq_agent_positions_wallet_token"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimelineEventType(str, Enum):
    """Timeline event types"""
    TRADE = "trade"
    ANALYSIS = "analysis"
    FUNDING = "funding"
    GUARDRAIL = "guardrail"
    SYSTEM = "system"


class Position(Base):
    """Token balance held by an agent wallet, with its weighted average entry rate"""
    __tablename__ = 'agent_positions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(42), nullable=False, index=True)
    token_symbol = Column(String(16), nullable=False)
    token_address = Column(String(42), nullable=False, default='')
    balance = Column(Float, nullable=False, default=0.0)
    avg_entry_rate = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('wallet_address', 'token_symbol', name=POSITION_UNIQUE_KEY),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_address": self.wallet_address,
            "token_symbol": self.token_symbol,
            "token_address": self.token_address,
            "balance": self.balance,
            "avg_entry_rate": self.avg_entry_rate,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }


class AgentConfig(Base):
    """Per-user agent settings; server_wallet_address links the trading sub-account"""
    __tablename__ = 'agent_configs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(42), unique=True, nullable=False, index=True)
    server_wallet_address = Column(String(42), nullable=True)
    server_wallet_id = Column(String(128), nullable=True)
    agent_type = Column(String(16), nullable=True)  # null means "fx"
    active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TimelineEvent(Base):
    """Agent activity feed entry"""
    __tablename__ = 'agent_timeline'

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(42), nullable=False, index=True)
    event_type = Column(String(16), nullable=False)
    summary = Column(Text, nullable=False)
    detail = Column(JSON, nullable=True)
    currency = Column(String(16), nullable=True)
    amount_usd = Column(Float, nullable=True)
    direction = Column(String(8), nullable=True)
    tx_hash = Column(String(66), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_timeline_wallet_type', 'wallet_address', 'event_type'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "wallet_address": self.wallet_address,
            "event_type": self.event_type,
            "summary": self.summary,
            "detail": self.detail or {},
            "currency": self.currency,
            "amount_usd": self.amount_usd,
            "direction": self.direction,
            "tx_hash": self.tx_hash,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
