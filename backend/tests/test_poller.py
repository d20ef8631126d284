"""Tests for match ingestion: candidate filtering, freshness guard, failure isolation."""

import asyncio

from conftest import DAY_START, make_match_payload, make_players
from opendota_api.client import OpenDotaAPIError
from opendota_api.schemas import LeagueMatch, MatchDetail
from refresh.match_cache import MatchCache
from refresh.matches import MatchDataRefresher

NOW = DAY_START + 20 * 3600
MINUTE = 60


class FakeOpenDota:

    def __init__(self):
        self.leagues = {}
        self.details = {}
        self.failing_leagues = set()
        self.failing_matches = set()
        self.fetched = []

    def add(self, league_id, match_id, start_time, radiant_win=True, **detail):
        self.leagues.setdefault(league_id, []).append(LeagueMatch(
            match_id=match_id, start_time=start_time, radiant_win=radiant_win,
        ))
        self.details[match_id] = make_match_payload(match_id, start_time=start_time, **detail)

    async def get_league_matches(self, league_id):
        if league_id in self.failing_leagues:
            raise OpenDotaAPIError("league list unavailable")
        return list(self.leagues.get(league_id, []))

    async def get_match(self, match_id):
        self.fetched.append(match_id)
        if match_id in self.failing_matches:
            raise OpenDotaAPIError("detail unavailable")
        return MatchDetail.model_validate(self.details[match_id])


class FakeAggregator:

    def __init__(self, failing=()):
        self.calls = []
        self.failing = set(failing)

    async def score_day(self, tid, date_key):
        self.calls.append((tid, date_key))
        if (tid, date_key) in self.failing:
            raise RuntimeError("boom")
        return []


def ingest(api, db, config, aggregator=None):
    refresher = MatchDataRefresher(api, db, config, aggregator=aggregator)
    return asyncio.run(refresher.ingest(["T"], now=NOW))


def cache(db, match_id, start_time, complete):
    players = make_players() if complete else make_players()[:5]
    MatchCache(db).upsert("T", MatchDetail.model_validate(
        make_match_payload(match_id, start_time=start_time, players=players)
    ))


class TestCandidates:

    def test_newest_first_and_only_finished(self, db, config):
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3 * 3600)
        api.add(555, 2, NOW - 1 * 3600)
        api.add(555, 3, NOW - 2 * 3600, radiant_win=None)
        ingest(api, db, config)
        assert api.fetched == [2, 1]

    def test_outside_look_back_is_ignored(self, db, config):
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3 * 86400)
        summary = ingest(api, db, config)
        assert api.fetched == []
        assert summary["fetched"] == 0


class TestFreshnessGuard:

    def test_uncached_too_fresh_is_skipped(self, db, config):
        api = FakeOpenDota()
        api.add(555, 1, NOW - 9 * MINUTE)
        api.add(555, 2, NOW - 10 * MINUTE)
        ingest(api, db, config)
        assert api.fetched == [2]

    def test_cached_complete_is_never_refetched(self, db, config):
        cache(db, 1, NOW - 3600, complete=True)
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3600)
        summary = ingest(api, db, config)
        assert api.fetched == []
        assert summary["skipped"] == 1

    def test_cached_pending_waits_fifteen_minutes(self, db, config):
        cache(db, 1, NOW - 14 * MINUTE, complete=False)
        cache(db, 2, NOW - 16 * MINUTE, complete=False)
        api = FakeOpenDota()
        api.add(555, 1, NOW - 14 * MINUTE)
        api.add(555, 2, NOW - 16 * MINUTE)
        ingest(api, db, config)
        assert api.fetched == [2]

    def test_cached_pending_uses_newer_start(self, db, config):
        """An old cached start does not override a fresh reported start."""
        cache(db, 1, NOW - 3600, complete=False)
        api = FakeOpenDota()
        api.add(555, 1, NOW - 5 * MINUTE)
        ingest(api, db, config)
        assert api.fetched == []


class TestRescoreTrigger:

    def test_one_rescore_per_newly_completed_day(self, db, config):
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3600)
        api.add(555, 2, NOW - 7200)
        api.add(555, 3, NOW - 86400 + 600)
        aggregator = FakeAggregator()
        summary = ingest(api, db, config, aggregator)
        assert aggregator.calls == [("T", "20250910"), ("T", "20250911")]
        assert summary["rescored"] == aggregator.calls

    def test_no_rescore_without_new_completion(self, db, config):
        cache(db, 1, NOW - 3600, complete=True)
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3600)
        api.add(555, 2, NOW - 7200, players=make_players()[:8])
        aggregator = FakeAggregator()
        ingest(api, db, config, aggregator)
        assert aggregator.calls == []
        assert db.matches[2]["complete"] is False


class TestFailureIsolation:

    def test_failing_match_does_not_stop_the_run(self, db, config):
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3600)
        api.add(555, 2, NOW - 7200)
        api.failing_matches.add(1)
        summary = ingest(api, db, config)
        assert summary["failed"] == 1
        assert 2 in db.matches and 1 not in db.matches

    def test_failing_league_does_not_stop_other_leagues(self, db, config):
        db.tournaments["T"]["league_ids"] = [555, 666]
        api = FakeOpenDota()
        api.failing_leagues.add(555)
        api.add(666, 9, NOW - 3600)
        summary = ingest(api, db, config)
        assert summary["failed"] == 1
        assert 9 in db.matches

    def test_failing_day_does_not_block_other_days(self, db, config):
        api = FakeOpenDota()
        api.add(555, 1, NOW - 3600)
        api.add(555, 2, NOW - 86400 + 600)
        aggregator = FakeAggregator(failing={("T", "20250910")})
        summary = ingest(api, db, config, aggregator)
        assert len(aggregator.calls) == 2
        assert summary["rescored"] == [("T", "20250911")]

    def test_unknown_tournament_is_skipped(self, db, config):
        refresher = MatchDataRefresher(FakeOpenDota(), db, config)
        summary = asyncio.run(refresher.ingest(["missing", "T"], now=NOW))
        assert summary["fetched"] == 0
