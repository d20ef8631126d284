"""Tests for the orchestrator's periodic jobs."""

import asyncio
from datetime import datetime, timezone

from conftest import DAY_KEY, DAY_START, make_match_payload
from opendota_api.schemas import LeagueMatch, MatchDetail
from refresh.lineups import LineupService
from refresh.match_cache import MatchCache
from refresh.orchestrator import RefreshOrchestrator


class NoMatches:

    async def get_league_matches(self, league_id):
        return []

    async def close(self):
        self.closed = True


class OneMatch(NoMatches):
    """League 555 with a single finished match."""

    def __init__(self, start_time):
        self.payload = make_match_payload(9001, start_time=start_time)

    async def get_league_matches(self, league_id):
        return [LeagueMatch(match_id=9001, start_time=self.payload["start_time"], radiant_win=True)]

    async def get_match(self, match_id):
        return MatchDetail.model_validate(self.payload)

    async def get_player(self, account_id):
        return {}


def orchestrator(config, db, api_client=None):
    orch = RefreshOrchestrator(config)
    asyncio.run(orch.initialize(api_client=api_client or NoMatches(), db_client=db))
    return orch


def test_retention_purges_old_days(config, db):
    cache = MatchCache(db)
    for match_id, days_ago in ((1, 0), (2, 2), (3, 3)):
        cache.upsert("T", MatchDetail.model_validate(
            make_match_payload(match_id, start_time=DAY_START - days_ago * 86400)
        ))

    now = datetime(2025, 9, 11, 12, tzinfo=timezone.utc)
    assert orchestrator(config, db).run_retention(now) == 1
    assert sorted(db.matches) == [1, 2]


def test_lock_sweep(config, db):
    db.lineups[("T", DAY_KEY, "alice")] = {
        "tid": "T", "date_key": DAY_KEY, "owner_id": "alice", "captain": 1,
        "cores": [2, 3, 4], "supports": [5, 6], "team_card": 1, "locked": False,
    }
    now = datetime(2025, 9, 11, 9, tzinfo=timezone.utc)
    assert asyncio.run(orchestrator(config, db).run_lock_sweep(now)) == 1
    assert db.lineups[("T", DAY_KEY, "alice")]["locked"] is True


def test_ingest_cycle_and_shutdown(config, db):
    orch = orchestrator(config, db)
    summary = asyncio.run(orch.run_ingest_cycle())
    assert summary["fetched"] == 0
    asyncio.run(orch.shutdown())
    assert orch.api_client.closed is True
    assert orch.running is False


def test_lock_sweep_rescores_days_scored_while_open(config, db):
    LineupService(db).submit_lineup(
        "alice", "T", DAY_KEY, captain=101, cores=[102, 103, 104], supports=[105, 201],
        team_card=1, now=datetime(2025, 9, 11, 7, tzinfo=timezone.utc),
    )
    orch = orchestrator(config, db, api_client=OneMatch(DAY_START + 8 * 3600 + 50 * 60))

    summary = asyncio.run(orch.match_refresher.ingest(["T"], now=DAY_START + 10 * 3600))
    assert summary["rescored"] == [("T", DAY_KEY)]
    assert db.leaderboards[("T", DAY_KEY)]["entries"] == []

    assert asyncio.run(orch.run_lock_sweep(datetime(2025, 9, 11, 10, tzinfo=timezone.utc))) == 1
    entries = db.leaderboards[("T", DAY_KEY)]["entries"]
    assert [e["owner_id"] for e in entries] == ["alice"]
    assert entries[0]["total_points"] > 0


def test_lock_sweep_without_changes_does_not_rescore(config, db):
    orch = orchestrator(config, db)
    assert asyncio.run(orch.run_lock_sweep(datetime(2025, 9, 11, 10, tzinfo=timezone.utc))) == 0
    assert db.leaderboard_writes == 0
