"""Tests for player display-name resolution."""

import asyncio

from opendota_api.client import OpenDotaAPIError
from refresh.players import PlayerNameResolver


class StubProfiles:

    def __init__(self, profiles=None, fail=False):
        self.profiles = profiles or {}
        self.fail = fail
        self.calls = []

    async def get_player(self, account_id):
        self.calls.append(account_id)
        if self.fail:
            raise OpenDotaAPIError("down")
        return self.profiles.get(account_id, {})


def resolve(resolver, account_id, match_name=None):
    return asyncio.run(resolver.resolve(account_id, match_name))


def test_match_row_name_wins(db):
    api = StubProfiles({7: {"profile": {"personaname": "Profile"}}})
    assert resolve(PlayerNameResolver(api, db), 7, "Row Name") == "Row Name"
    assert api.calls == []


def test_cache_before_provider(db):
    db.players[7] = {"account_id": 7, "name": "Cached"}
    api = StubProfiles({7: {"profile": {"personaname": "Profile"}}})
    assert resolve(PlayerNameResolver(api, db), 7) == "Cached"
    assert api.calls == []


def test_provider_name_is_written_back(db):
    api = StubProfiles({7: {"profile": {"personaname": "Ceb"}}})
    resolver = PlayerNameResolver(api, db)
    assert resolve(resolver, 7) == "Ceb"
    assert db.players[7] == {"account_id": 7, "name": "Ceb"}
    assert resolve(resolver, 7) == "Ceb"
    assert api.calls == [7]


def test_profile_name_fallback(db):
    api = StubProfiles({7: {"profile": {"personaname": None, "name": "Pro Name"}}})
    assert resolve(PlayerNameResolver(api, db), 7) == "Pro Name"


def test_falls_back_to_id(db):
    assert resolve(PlayerNameResolver(StubProfiles(), db), 7) == "7"
    assert resolve(PlayerNameResolver(StubProfiles(fail=True), db), 8) == "8"
    assert resolve(PlayerNameResolver(None, db), 9) == "9"
