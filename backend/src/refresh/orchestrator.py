"""
Refresh Orchestrator - Coordinates the periodic jobs.

Three loops run side by side: match ingestion (which rescores affected days),
the lineup lock sweep and the match retention purge.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from config import Config
from database.supabase_client import SupabaseClient
from opendota_api.client import OpenDotaAPIClient
from refresh.leaderboard import DayAggregator
from refresh.lineups import LineupService
from refresh.match_cache import MatchCache
from refresh.matches import MatchDataRefresher
from refresh.players import PlayerNameResolver
from utils.lock_gate import retention_cutoff

logger = logging.getLogger(__name__)


class RefreshOrchestrator:
    """Orchestrates all refresh operations."""

    def __init__(self, config: Config):
        self.config = config
        self.api_client: Optional[OpenDotaAPIClient] = None
        self.db_client: Optional[SupabaseClient] = None
        self.aggregator: Optional[DayAggregator] = None
        self.match_refresher: Optional[MatchDataRefresher] = None
        self.lineup_service: Optional[LineupService] = None
        self.running = False

    async def initialize(
        self,
        api_client: Optional[OpenDotaAPIClient] = None,
        db_client: Optional[SupabaseClient] = None
    ):
        """Initialize orchestrator and clients."""
        logger.info("Orchestrator starting")

        self.api_client = api_client or OpenDotaAPIClient(self.config)
        self.db_client = db_client or SupabaseClient(self.config)
        self.aggregator = DayAggregator(
            self.db_client, PlayerNameResolver(self.api_client, self.db_client)
        )
        self.match_refresher = MatchDataRefresher(
            self.api_client,
            self.db_client,
            self.config,
            match_cache=MatchCache(self.db_client),
            aggregator=self.aggregator,
        )
        self.lineup_service = LineupService(self.db_client)

        logger.info("Orchestrator ready", extra={
            "tournaments": self.config.tournament_ids,
        })

    async def shutdown(self):
        """Shutdown orchestrator gracefully."""
        logger.info("Orchestrator shutting down")
        self.running = False

        if self.api_client:
            await self.api_client.close()

        logger.info("Orchestrator stopped")

    async def run_ingest_cycle(self) -> Dict[str, Any]:
        """One ingestion pass over every configured tournament."""
        return await self.match_refresher.ingest(self.config.tournament_ids)

    async def run_lock_sweep(self, now: Optional[datetime] = None) -> int:
        """
        Lock due lineups, then rescore each day the sweep changed.

        Boards built before the sweep left these lineups out.

        Returns:
            Number of lineups locked
        """
        locked_days = self.lineup_service.lock_due_lineups(now=now)

        for tid, date_key in sorted(locked_days):
            try:
                await self.aggregator.score_day(tid, date_key)
            except Exception as e:
                logger.warning("Rescore after lock failed", extra={
                    "tid": tid,
                    "date_key": date_key,
                    "error": str(e),
                }, exc_info=True)

        return sum(locked_days.values())

    def run_retention(self, now: Optional[datetime] = None) -> int:
        """Delete cached matches whose day is older than the retention window."""
        cutoff = retention_cutoff(self.config.retention_days, now)
        deleted = self.db_client.delete_matches_before(cutoff)
        logger.info("Match retention purge", extra={
            "cutoff_date_key": cutoff,
            "deleted": deleted,
        })
        return deleted

    async def _run_ingest_loop(self):
        while self.running:
            try:
                await self.run_ingest_cycle()
            except Exception as e:
                logger.error("Ingest cycle failed", extra={"error": str(e)}, exc_info=True)
            await asyncio.sleep(self.config.ingest_interval)

    async def _run_lock_loop(self):
        while self.running:
            try:
                await self.run_lock_sweep()
            except Exception as e:
                logger.error("Lock sweep failed", extra={"error": str(e)}, exc_info=True)
            await asyncio.sleep(self.config.lock_sweep_interval)

    async def _run_retention_loop(self):
        while self.running:
            try:
                self.run_retention()
            except Exception as e:
                logger.error("Retention purge failed", extra={"error": str(e)}, exc_info=True)
            await asyncio.sleep(self.config.retention_interval)

    async def run(self):
        """Run ingest, lock sweep and retention loops in parallel."""
        logger.info("Refresh loops started (ingest + lock sweep + retention)")
        self.running = True
        try:
            await asyncio.gather(
                self._run_ingest_loop(),
                self._run_lock_loop(),
                self._run_retention_loop(),
            )
        except asyncio.CancelledError:
            logger.info("Refresh loops cancelled")
        finally:
            self.running = False
