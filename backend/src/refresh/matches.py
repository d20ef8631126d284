"""
Match ingestion.

Pulls each configured league's match list, decides which matches are worth fetching,
caches the detail and rescores every tournament day that gained a complete match.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from config import Config
from database.models import TournamentConfig
from database.supabase_client import SupabaseClient
from opendota_api.client import OpenDotaAPIClient, OpenDotaAPIError
from opendota_api.schemas import LeagueMatch
from refresh.match_cache import MatchCache

logger = logging.getLogger(__name__)

DayKey = Tuple[str, str]


class MatchDataRefresher:
    """Handles match ingestion for configured tournaments."""

    def __init__(
        self,
        api_client: OpenDotaAPIClient,
        db_client: SupabaseClient,
        config: Config,
        match_cache: Optional[MatchCache] = None,
        aggregator=None,
    ):
        self.api_client = api_client
        self.db_client = db_client
        self.config = config
        self.match_cache = match_cache or MatchCache(db_client)
        self.aggregator = aggregator

    def _should_fetch(self, summary: LeagueMatch, now: float) -> bool:
        """
        Freshness guard, applied before any detail fetch.

        - cached and complete: never refetch
        - cached but pending: wait until the newer of the cached and reported start
          is at least FRESH_INCOMPLETE_MINUTES old
        - not cached: wait until the reported start is at least FRESH_UNCACHED_MINUTES old
        """
        cached = self.match_cache.get(summary.match_id)

        if cached is not None:
            if cached.complete:
                return False
            started = max(cached.start_time or 0, summary.start_time or 0)
            return now - started >= self.config.fresh_incomplete_minutes * 60

        return now - (summary.start_time or 0) >= self.config.fresh_uncached_minutes * 60

    def _candidates(self, matches: Iterable[LeagueMatch], now: float) -> List[LeagueMatch]:
        """Finished matches inside the look-back window, newest first."""
        oldest = now - self.config.retention_days * 86400
        finished = [
            m for m in matches
            if m.radiant_win is not None and (m.start_time or 0) >= oldest
        ]
        return sorted(finished, key=lambda m: (m.start_time or 0, m.match_id), reverse=True)

    async def refresh_league(
        self,
        tid: str,
        league_id: int,
        now: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Ingest one league.

        Args:
            tid: Tournament the league belongs to
            league_id: OpenDota league ID
            now: Unix time used by the freshness guard (defaults to the clock)

        Returns:
            Dict with fetched/skipped/failed counts and the set of newly completed days
        """
        if now is None:
            now = time.time()

        stats: Dict[str, Any] = {"fetched": 0, "skipped": 0, "failed": 0, "completed_days": set()}

        league_matches = await self.api_client.get_league_matches(league_id)
        for summary in self._candidates(league_matches, now):
            try:
                if not self._should_fetch(summary, now):
                    stats["skipped"] += 1
                    continue

                detail = await self.api_client.get_match(summary.match_id)
                result = self.match_cache.upsert(tid, detail)
                stats["fetched"] += 1

                if result.newly_complete:
                    stats["completed_days"].add((tid, result.match.date_key))

            except Exception as e:
                stats["failed"] += 1
                logger.warning("Match ingest failed, will retry next run", extra={
                    "tid": tid,
                    "league_id": league_id,
                    "match_id": summary.match_id,
                    "error": str(e),
                })

        return stats

    async def refresh_tournament(self, tid: str, now: Optional[float] = None) -> Dict[str, Any]:
        """Ingest every league of one tournament, isolating league failures."""
        totals: Dict[str, Any] = {"fetched": 0, "skipped": 0, "failed": 0, "completed_days": set()}

        row = self.db_client.get_tournament(tid)
        if not row:
            logger.warning("Unknown tournament, skipping", extra={"tid": tid})
            return totals
        tournament = TournamentConfig.model_validate(row)

        for league_id in tournament.league_ids:
            try:
                stats = await self.refresh_league(tid, league_id, now=now)
            except OpenDotaAPIError as e:
                totals["failed"] += 1
                logger.warning("League list fetch failed", extra={
                    "tid": tid,
                    "league_id": league_id,
                    "error": str(e),
                })
                continue
            except Exception as e:
                totals["failed"] += 1
                logger.error("League ingest failed", extra={
                    "tid": tid,
                    "league_id": league_id,
                    "error": str(e),
                }, exc_info=True)
                continue

            for key in ("fetched", "skipped", "failed"):
                totals[key] += stats[key]
            totals["completed_days"] |= stats["completed_days"]

        return totals

    async def ingest(
        self,
        tournament_ids: Optional[List[str]] = None,
        now: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        One poller run: ingest every tournament, then rescore each newly completed day once.

        Returns:
            Summary dict: fetched, skipped, failed, completed_days (sorted list of
            (tid, date_key)) and rescored (days whose leaderboard was rebuilt)
        """
        if tournament_ids is None:
            tournament_ids = self.config.tournament_ids

        fetched = skipped = failed = 0
        completed_days: Set[DayKey] = set()

        for tid in tournament_ids:
            try:
                stats = await self.refresh_tournament(tid, now=now)
            except Exception as e:
                logger.error("Tournament ingest failed", extra={
                    "tid": tid,
                    "error": str(e),
                }, exc_info=True)
                continue
            fetched += stats["fetched"]
            skipped += stats["skipped"]
            failed += stats["failed"]
            completed_days |= stats["completed_days"]

        rescored: List[DayKey] = []
        if self.aggregator is not None:
            for tid, date_key in sorted(completed_days):
                try:
                    await self.aggregator.score_day(tid, date_key)
                    rescored.append((tid, date_key))
                except Exception as e:
                    logger.error("Day aggregation failed", extra={
                        "tid": tid,
                        "date_key": date_key,
                        "error": str(e),
                    }, exc_info=True)

        summary = {
            "fetched": fetched,
            "skipped": skipped,
            "failed": failed,
            "completed_days": sorted(completed_days),
            "rescored": rescored,
        }
        logger.info("Ingest cycle complete", extra={
            "fetched": fetched,
            "skipped": skipped,
            "failed": failed,
            "newly_completed_days": len(completed_days),
            "rescored": len(rescored),
        })
        return summary
