"""
Timeline sink - records agent activity without ever failing the caller
"""
import logging
from typing import Any, Dict, Optional

from autoclaw.errors import PersistenceConflict
from .models import TimelineEvent, TimelineEventType
from .storage import PositionStore

logger = logging.getLogger(__name__)


class TimelineLogger:
    """Fire-and-forget writer for agent_timeline"""

    def __init__(self, store: PositionStore):
        self.store = store

    async def log(
        self,
        wallet_address: str,
        event_type: str,
        summary: str,
        detail: Optional[Dict[str, Any]] = None,
        currency: Optional[str] = None,
        amount_usd: Optional[float] = None,
        direction: Optional[str] = None,
        tx_hash: Optional[str] = None
    ) -> Optional[TimelineEvent]:
        """
        Insert an event. A failed write is logged and None is returned, so a
        completed trade or deposit is never rolled back by its audit entry.
        """
        if isinstance(event_type, TimelineEventType):
            event_type = event_type.value
        try:
            return self.store.insert_timeline(
                wallet_address,
                event_type,
                summary,
                detail=detail,
                currency=currency,
                amount_usd=amount_usd,
                direction=direction,
                tx_hash=tx_hash
            )
        except PersistenceConflict as e:
            logger.error(f"Failed to log {event_type} timeline event for {wallet_address}: {e}")
            return None
