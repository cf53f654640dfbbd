"""
Agent tick scheduler - runs the funding poll on a fixed interval
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from autoclaw.ledger.funding_monitor import FundingMonitor, PollReport

logger = logging.getLogger(__name__)


class AgentScheduler:
    """Background loop that calls FundingMonitor.poll_once every tick"""

    def __init__(self, funding_monitor: FundingMonitor, interval_seconds: float = 60):
        self.funding_monitor = funding_monitor
        self.interval_seconds = interval_seconds
        self.running = False
        self.tick_count = 0
        self.last_tick_at: Optional[datetime] = None
        self.last_report: Optional[PollReport] = None
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> PollReport:
        """Run one agent tick"""
        report = await self.funding_monitor.poll_once()
        self.tick_count += 1
        self.last_tick_at = datetime.now(timezone.utc)
        self.last_report = report
        return report

    def start(self):
        """Start the scheduler background task"""
        if self.running:
            return
        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Agent scheduler started (every {self.interval_seconds}s)")

    async def stop(self):
        """Stop the scheduler and wait for the loop to exit"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Agent scheduler stopped")

    async def _loop(self):
        while self.running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in agent tick: {e}", exc_info=True)
            await asyncio.sleep(self.interval_seconds)
