"""
Day aggregation.

Scores every locked lineup of a tournament day against that day's complete matches
and replaces the day's leaderboard in one write.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from database.models import LeaderboardEntry, Lineup, Match, TournamentConfig
from database.supabase_client import SupabaseClient
from opendota_api.schemas import SIDES
from refresh.players import PlayerNameResolver
from scoring.rulebook import DEFAULT_RULEBOOK, Rulebook, score_player, score_team_side
from scoring.sweeps import SeriesSweep, detect_sweeps, sweep_bonuses

logger = logging.getLogger(__name__)

POINTS_PRECISION = 2


@dataclass
class DayTotals:
    """Per-player and per-team points summed over one day's matches."""
    player_points: Dict[int, float] = field(default_factory=lambda: defaultdict(float))
    team_points: Dict[int, float] = field(default_factory=lambda: defaultdict(float))
    player_names: Dict[int, str] = field(default_factory=dict)
    team_names: Dict[int, str] = field(default_factory=dict)


def _round(points: float) -> float:
    return round(points, POINTS_PRECISION)


def tally_matches(matches: Iterable[Match], rulebook: Rulebook = DEFAULT_RULEBOOK) -> DayTotals:
    """Score every player row and both team sides of every match."""
    totals = DayTotals()

    for match in matches:
        winner = match.winning_side

        for row in match.players:
            # Anonymous rows cannot be matched to a roster
            if row.account_id is None:
                continue
            totals.player_points[row.account_id] += score_player(
                row, match.duration, row.side == winner, rulebook
            )
            if row.display_name:
                totals.player_names.setdefault(row.account_id, row.display_name)

        for side in SIDES:
            team_id = match.team_id_for(side)
            if team_id is None:
                continue
            totals.team_points[team_id] += score_team_side(
                side,
                match.structure_status,
                match.objectives,
                side == winner,
                players=match.players,
                rulebook=rulebook,
            )
            name = match.team_name_for(side)
            if name:
                totals.team_names.setdefault(team_id, name)

    return totals


def score_lineup(
    lineup: Lineup,
    totals: DayTotals,
    sweeps: List[SeriesSweep],
    rulebook: Rulebook = DEFAULT_RULEBOOK,
    names: Optional[Dict[int, str]] = None,
) -> Tuple[float, Dict[str, Any]]:
    """
    Total and roster breakdown for one lineup.

    The captain multiplier applies to the captain's match points only; every sweep
    bonus, the captain's included, is added unmultiplied.
    """
    names = names or {}
    team_sweep, player_sweep = sweep_bonuses(
        sweeps, lineup.player_ids, lineup.team_card, rulebook
    )

    def player_entry(pid: int) -> Dict[str, Any]:
        return {
            "player_id": pid,
            "name": names.get(pid, str(pid)),
            "points": _round(totals.player_points.get(pid, 0.0)),
            "sweep": _round(player_sweep.get(pid, 0.0)),
        }

    captain_base = totals.player_points.get(lineup.captain, 0.0)
    captain_final = captain_base * rulebook.captain_multiplier
    captain = {
        "player_id": lineup.captain,
        "name": names.get(lineup.captain, str(lineup.captain)),
        "base": _round(captain_base),
        "multiplier": rulebook.captain_multiplier,
        "final": _round(captain_final),
        "sweep": _round(player_sweep.get(lineup.captain, 0.0)),
    }
    cores = [player_entry(pid) for pid in lineup.cores]
    supports = [player_entry(pid) for pid in lineup.supports]
    team_points = totals.team_points.get(lineup.team_card, 0.0)
    team = {
        "team_id": lineup.team_card,
        "name": totals.team_names.get(lineup.team_card, str(lineup.team_card)),
        "points": _round(team_points),
        "sweep": _round(team_sweep),
    }

    total = captain_final + player_sweep.get(lineup.captain, 0.0)
    for pid in [*lineup.cores, *lineup.supports]:
        total += totals.player_points.get(pid, 0.0) + player_sweep.get(pid, 0.0)
    total += team_points + team_sweep

    breakdown = {
        "captain": captain,
        "cores": cores,
        "supports": supports,
        "team": team,
    }
    return _round(total), breakdown


def rank_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Total points descending, then owner id ascending."""
    return sorted(entries, key=lambda e: (-e.total_points, e.owner_id))


class DayAggregator:
    """Builds and publishes one tournament day's leaderboard."""

    def __init__(
        self,
        db_client: SupabaseClient,
        name_resolver: Optional[PlayerNameResolver] = None
    ):
        self.db_client = db_client
        self.name_resolver = name_resolver or PlayerNameResolver(None, db_client)
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        # Runs holding or waiting on each day lock
        self._lock_users: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def _day_lock(self, tid: str, date_key: str):
        """Serialize runs for one day; the lock is dropped once nobody holds or awaits it."""
        key = (tid, date_key)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _rulebook(self, tid: str) -> Rulebook:
        row = self.db_client.get_tournament(tid)
        if not row:
            logger.warning("Tournament config missing, using default rulebook", extra={"tid": tid})
            return DEFAULT_RULEBOOK
        return TournamentConfig.model_validate(row).rulebook

    async def _resolve_names(self, lineups: List[Lineup], totals: DayTotals) -> Dict[int, str]:
        names: Dict[int, str] = {}
        for lineup in lineups:
            for pid in lineup.player_ids:
                if pid not in names:
                    names[pid] = await self.name_resolver.resolve(
                        pid, totals.player_names.get(pid)
                    )
        return names

    async def score_day(self, tid: str, date_key: str) -> List[LeaderboardEntry]:
        """
        Rebuild and replace the leaderboard for (tid, date_key).

        Only complete matches and locked lineups are read. Lineups are never written.
        Runs for the same day are serialized within this process.

        Returns:
            Ranked leaderboard entries
        """
        async with self._day_lock(tid, date_key):
            rulebook = self._rulebook(tid)
            matches = [
                Match.model_validate(row)
                for row in self.db_client.get_matches_for_day(tid, date_key, complete_only=True)
            ]
            lineups = [
                Lineup.model_validate(row)
                for row in self.db_client.get_lineups_for_day(tid, date_key, locked=True)
            ]

            totals = tally_matches(matches, rulebook)
            sweeps = detect_sweeps(matches)
            names = await self._resolve_names(lineups, totals)

            entries = []
            for lineup in lineups:
                total, breakdown = score_lineup(lineup, totals, sweeps, rulebook, names)
                entries.append(LeaderboardEntry(
                    owner_id=lineup.owner_id,
                    display_name=self.db_client.get_profile_name(lineup.owner_id) or lineup.owner_id,
                    total_points=total,
                    roster_breakdown=breakdown,
                ))

            ranked = rank_entries(entries)
            self.db_client.upsert_leaderboard(
                tid, date_key, [e.model_dump(mode="json") for e in ranked]
            )

        logger.info("Leaderboard rebuilt", extra={
            "tid": tid,
            "date_key": date_key,
            "matches": len(matches),
            "lineups": len(lineups),
            "sweeps": len(sweeps),
        })
        return ranked

    def get_leaderboard(self, tid: str, date_key: str) -> List[LeaderboardEntry]:
        row = self.db_client.get_leaderboard(tid, date_key)
        if not row:
            return []
        return [LeaderboardEntry.model_validate(e) for e in row.get("entries") or []]
