"""
Persistence service for positions, agent configs and timeline events
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from autoclaw.config import settings
from autoclaw.errors import PersistenceConflict
from .models import AgentConfig, Base, Position, TimelineEvent, utcnow

logger = logging.getLogger(__name__)

DEFAULT_AGENT_TYPE = "fx"


class MonitoredWallet(BaseModel):
    """Agent wallet with a linked trading sub-account"""
    wallet_address: str
    server_wallet_address: str
    server_wallet_id: Optional[str] = None
    agent_type: str = DEFAULT_AGENT_TYPE


def create_db_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Engine for DATABASE_URL; in-memory SQLite shares one connection across sessions"""
    url = database_url or settings.database_url
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


def init_db(engine: Engine):
    """Create all ledger tables"""
    Base.metadata.create_all(engine)
    logger.info(f"Ledger tables ready on {engine.url.render_as_string(hide_password=True)}")


def _norm(wallet_address: str) -> str:
    return wallet_address.lower()


class PositionStore:
    """
    SQLAlchemy-backed store.

    Every public method opens its own short session. Database failures are
    rolled back and re-raised as PersistenceConflict.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: Optional[str] = None) -> "PositionStore":
        engine = create_db_engine(database_url)
        init_db(engine)
        return cls(engine)

    # Positions

    def get_position(self, wallet_address: str, token_symbol: str) -> Optional[Position]:
        try:
            with self.Session() as session:
                return session.execute(
                    select(Position).where(
                        Position.wallet_address == _norm(wallet_address),
                        Position.token_symbol == token_symbol
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to read position {wallet_address}/{token_symbol}: {e}") from e

    def list_positions(self, wallet_address: str, include_empty: bool = False) -> List[Position]:
        try:
            with self.Session() as session:
                query = select(Position).where(Position.wallet_address == _norm(wallet_address))
                if not include_empty:
                    query = query.where(Position.balance > 0)
                return list(session.execute(query.order_by(Position.token_symbol)).scalars())
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to list positions for {wallet_address}: {e}") from e

    def upsert_position(
        self,
        wallet_address: str,
        token_symbol: str,
        token_address: str,
        balance: float,
        avg_entry_rate: float
    ) -> Position:
        """
        INSERT ... ON CONFLICT (wallet_address, token_symbol) DO UPDATE

        Dialects without ON CONFLICT support fall back to select-then-write
        inside one transaction.
        """
        values = {
            "wallet_address": _norm(wallet_address),
            "token_symbol": token_symbol,
            "token_address": token_address,
            "balance": balance,
            "avg_entry_rate": avg_entry_rate,
            "updated_at": utcnow(),
        }
        try:
            with self.Session() as session:
                insert = self._dialect_insert()
                if insert is not None:
                    stmt = insert(Position).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["wallet_address", "token_symbol"],
                        set_={
                            "token_address": stmt.excluded.token_address,
                            "balance": stmt.excluded.balance,
                            "avg_entry_rate": stmt.excluded.avg_entry_rate,
                            "updated_at": stmt.excluded.updated_at,
                        }
                    )
                    session.execute(stmt)
                else:
                    existing = session.execute(
                        select(Position).where(
                            Position.wallet_address == values["wallet_address"],
                            Position.token_symbol == token_symbol
                        ).with_for_update()
                    ).scalar_one_or_none()
                    if existing is None:
                        session.add(Position(**values))
                    else:
                        for key, value in values.items():
                            setattr(existing, key, value)
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to upsert position {wallet_address}/{token_symbol}: {e}") from e

        return self.get_position(wallet_address, token_symbol)

    def _dialect_insert(self):
        name = self.engine.dialect.name
        if name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
            return insert
        if name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
            return insert
        return None

    # Agent configs

    def add_agent_config(
        self,
        wallet_address: str,
        server_wallet_address: Optional[str] = None,
        server_wallet_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        active: bool = True
    ) -> AgentConfig:
        config = AgentConfig(
            wallet_address=_norm(wallet_address),
            server_wallet_address=server_wallet_address,
            server_wallet_id=server_wallet_id,
            agent_type=agent_type,
            active=active
        )
        try:
            with self.Session() as session:
                session.add(config)
                session.commit()
                return config
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to save agent config for {wallet_address}: {e}") from e

    def list_monitored_wallets(self) -> List[MonitoredWallet]:
        """Agent configs with a linked server wallet; agent_type defaults to fx"""
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(AgentConfig)
                    .where(AgentConfig.server_wallet_address.is_not(None))
                    .order_by(AgentConfig.id)
                ).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to list agent configs: {e}") from e

        return [
            MonitoredWallet(
                wallet_address=row.wallet_address,
                server_wallet_address=row.server_wallet_address,
                server_wallet_id=row.server_wallet_id,
                agent_type=row.agent_type or DEFAULT_AGENT_TYPE
            )
            for row in rows
        ]

    # Timeline

    def insert_timeline(
        self,
        wallet_address: str,
        event_type: str,
        summary: str,
        detail: Optional[Dict[str, Any]] = None,
        currency: Optional[str] = None,
        amount_usd: Optional[float] = None,
        direction: Optional[str] = None,
        tx_hash: Optional[str] = None
    ) -> TimelineEvent:
        event = TimelineEvent(
            wallet_address=_norm(wallet_address),
            event_type=event_type,
            summary=summary,
            detail=detail or {},
            currency=currency,
            amount_usd=amount_usd,
            direction=direction,
            tx_hash=tx_hash
        )
        try:
            with self.Session() as session:
                session.add(event)
                session.commit()
                return event
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to insert timeline event for {wallet_address}: {e}") from e

    def list_timeline(
        self,
        wallet_address: str,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None
    ) -> List[TimelineEvent]:
        try:
            with self.Session() as session:
                query = select(TimelineEvent).where(TimelineEvent.wallet_address == _norm(wallet_address))
                if event_type:
                    query = query.where(TimelineEvent.event_type == event_type)
                if since is not None:
                    query = query.where(TimelineEvent.created_at >= since)
                return list(session.execute(query.order_by(TimelineEvent.id)).scalars())
        except SQLAlchemyError as e:
            raise PersistenceConflict(f"Failed to list timeline for {wallet_address}: {e}") from e
