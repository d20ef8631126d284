"""Shared fixtures: an in-memory SupabaseClient and OpenDota payload builders."""

import copy
from typing import Any, Dict, List, Optional

import pytest

from config import Config

# 2025-09-11 00:00:00 UTC
DAY_START = 1757548800
DAY_KEY = "20250911"

RADIANT_IDS = [101, 102, 103, 104, 105]
DIRE_IDS = [201, 202, 203, 204, 205]


def make_config(**overrides) -> Config:
    values = dict(
        supabase_url="http://localhost:54321",
        supabase_key="test-key",
        opendota_api_base_url="https://opendota.test/api",
        opendota_api_key=None,
        min_request_interval=0.0,
        max_retries=2,
        retry_backoff_base=0.0,
        max_retry_delay=0,
        tournament_ids=["T"],
    )
    values.update(overrides)
    return Config(**values)


class FakeSupabase:
    """In-memory stand-in for SupabaseClient with the same domain methods."""

    def __init__(self):
        self.config = make_config()
        self.tournaments: Dict[str, Dict[str, Any]] = {}
        self.matches: Dict[int, Dict[str, Any]] = {}
        self.lineups: Dict[tuple, Dict[str, Any]] = {}
        self.leaderboards: Dict[tuple, Dict[str, Any]] = {}
        self.players: Dict[int, Dict[str, Any]] = {}
        self.profiles: Dict[str, str] = {}
        self.admins: set = set()
        self.tokens: Dict[str, str] = {}
        self.leaderboard_writes = 0

    def get_tournament(self, tid):
        return copy.deepcopy(self.tournaments.get(tid))

    def get_match(self, match_id):
        return copy.deepcopy(self.matches.get(match_id))

    def upsert_match(self, match_data):
        self.matches[match_data["match_id"]] = copy.deepcopy(match_data)
        return [match_data]

    def get_matches_for_day(self, tid, date_key, complete_only=True):
        rows = [
            m for m in self.matches.values()
            if m["tid"] == tid and m["date_key"] == date_key
            and (m["complete"] or not complete_only)
        ]
        return copy.deepcopy(sorted(rows, key=lambda m: m["match_id"]))

    def delete_matches_before(self, date_key):
        doomed = [mid for mid, m in self.matches.items() if m["date_key"] < date_key]
        for mid in doomed:
            del self.matches[mid]
        return len(doomed)

    def upsert_lineup(self, lineup_data):
        key = (lineup_data["tid"], lineup_data["date_key"], lineup_data["owner_id"])
        self.lineups[key] = copy.deepcopy(lineup_data)
        return [lineup_data]

    def get_lineups_for_day(self, tid, date_key, locked=None):
        return copy.deepcopy([
            row for (t, d, _), row in self.lineups.items()
            if t == tid and d == date_key and (locked is None or row["locked"] == locked)
        ])

    def get_unlocked_lineup_days(self):
        days = {(row["tid"], row["date_key"]) for row in self.lineups.values() if not row["locked"]}
        return [{"tid": t, "date_key": d} for t, d in sorted(days)]

    def lock_lineups(self, tid, date_key):
        count = 0
        for (t, d, _), row in self.lineups.items():
            if t == tid and d == date_key and not row["locked"]:
                row["locked"] = True
                count += 1
        return count

    def upsert_leaderboard(self, tid, date_key, entries):
        self.leaderboard_writes += 1
        self.leaderboards[(tid, date_key)] = {
            "tid": tid,
            "date_key": date_key,
            "entries": copy.deepcopy(entries),
        }

    def get_leaderboard(self, tid, date_key):
        return copy.deepcopy(self.leaderboards.get((tid, date_key)))

    def get_player(self, account_id):
        return copy.deepcopy(self.players.get(account_id))

    def upsert_player(self, player_data):
        self.players[player_data["account_id"]] = dict(player_data)

    def get_profile_name(self, user_id):
        return self.profiles.get(user_id)

    def is_admin(self, user_id):
        return user_id in self.admins

    def get_user_id(self, access_token):
        return self.tokens.get(access_token)


def make_player(account_id: Optional[int], slot: int, **stats) -> Dict[str, Any]:
    row = {"account_id": account_id, "player_slot": slot}
    row.update(stats)
    return row


def make_players(
    radiant_ids: List[int] = RADIANT_IDS,
    dire_ids: List[int] = DIRE_IDS,
    stats: Optional[Dict[int, Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    stats = stats or {}
    rows = [make_player(pid, i, **stats.get(pid, {})) for i, pid in enumerate(radiant_ids)]
    rows += [make_player(pid, 128 + i, **stats.get(pid, {})) for i, pid in enumerate(dire_ids)]
    return rows


def make_match_payload(
    match_id: int,
    radiant_win: bool = True,
    duration: int = 2000,
    start_time: int = DAY_START + 14 * 3600,
    series_id: Optional[int] = None,
    series_type: int = 0,
    radiant_team=(1, "Team A"),
    dire_team=(2, "Team B"),
    players: Optional[List[Dict[str, Any]]] = None,
    objectives: Optional[List[Dict[str, Any]]] = None,
    **extra,
) -> Dict[str, Any]:
    """A /matches/{id} payload with every structure still standing and no objectives."""
    payload = {
        "match_id": match_id,
        "start_time": start_time,
        "duration": duration,
        "radiant_win": radiant_win,
        "series_id": series_id,
        "series_type": series_type,
        "radiant_team": {"team_id": radiant_team[0], "name": radiant_team[1]},
        "dire_team": {"team_id": dire_team[0], "name": dire_team[1]},
        "tower_status_radiant": 2047,
        "tower_status_dire": 2047,
        "barracks_status_radiant": 63,
        "barracks_status_dire": 63,
        "objectives": objectives or [],
        "players": make_players() if players is None else players,
    }
    payload.update(extra)
    return payload


def make_tournament(tid: str = "T", **overrides) -> Dict[str, Any]:
    row = {
        "tid": tid,
        "name": "Test Invitational",
        "league_ids": [555],
        "lock_hour_utc": 8,
        "roles": {"cores": 3, "supports": 2},
        "rulebook": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.tournaments["T"] = make_tournament()
    return fake
