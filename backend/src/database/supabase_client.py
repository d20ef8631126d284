"""
Supabase client for database operations.

Tables:
    tournaments   tid -> league ids, lock hour, role counts, rulebook
    matches       match_id -> cached match record
    lineups       (tid, date_key, owner_id) -> picks and lock flags
    leaderboards  (tid, date_key) -> ordered entries, replaced as one row
    players       account_id -> resolved display name
    profiles      user_id -> display name
    admins        user_id
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import create_client, Client

from config import Config

logger = logging.getLogger(__name__)

MATCH_COLUMNS = [
    "match_id", "tid", "date_key", "start_time", "duration", "radiant_win",
    "series_id", "series_type", "radiant_team_id", "dire_team_id",
    "radiant_name", "dire_name", "tower_status_radiant", "tower_status_dire",
    "barracks_status_radiant", "barracks_status_dire", "objectives", "players",
    "complete",
]


class SupabaseClient:
    """Client for interacting with Supabase database."""

    def __init__(self, config: Config):
        self.config = config
        self.client: Optional[Client] = None
        self._initialize_client()

    def _initialize_client(self):
        """Initialize Supabase client."""
        if not self.config.supabase_url or not self.config.supabase_key:
            raise ValueError("Supabase URL and key are required")

        # Service key bypasses row level security for the writer paths
        key = self.config.supabase_service_key or self.config.supabase_key

        self.client = create_client(
            self.config.supabase_url,
            key
        )

        logger.info("Initialized Supabase client", extra={
            "url": self.config.supabase_url,
            "using_service_key": bool(self.config.supabase_service_key)
        })

    def _select_columns(self, columns: List[str]) -> str:
        """Format column list for SELECT statement."""
        return ", ".join(columns)

    @staticmethod
    def _single(result) -> Optional[Dict[str, Any]]:
        # maybe_single() returns None instead of an empty response on some client versions
        return result.data if result is not None else None

    # Tournaments

    def get_tournament(self, tid: str) -> Optional[Dict[str, Any]]:
        result = self.client.table("tournaments").select("*").eq(
            "tid", tid
        ).maybe_single().execute()
        return self._single(result)

    # Matches

    def get_match(self, match_id: int) -> Optional[Dict[str, Any]]:
        """Get one cached match record by id."""
        result = self.client.table("matches").select(
            self._select_columns(MATCH_COLUMNS)
        ).eq("match_id", match_id).maybe_single().execute()
        return self._single(result)

    def upsert_match(self, match_data: Dict[str, Any]):
        """
        Upsert a cached match record.

        Args:
            match_data: Full match record (the merge happens in the match cache)
        """
        result = self.client.table("matches").upsert(
            match_data,
            on_conflict="match_id"
        ).execute()

        return result.data

    def get_matches_for_day(
        self,
        tid: str,
        date_key: str,
        complete_only: bool = True
    ) -> List[Dict[str, Any]]:
        """
        Get the cached matches for one tournament day.

        Args:
            tid: Tournament id
            date_key: YYYYMMDD day key
            complete_only: Only return matches flagged complete

        Returns:
            List of match dictionaries
        """
        query = self.client.table("matches").select(
            self._select_columns(MATCH_COLUMNS)
        ).eq("tid", tid).eq("date_key", date_key)

        if complete_only:
            query = query.eq("complete", True)

        result = query.order("match_id").execute()
        return result.data or []

    def delete_matches_before(self, date_key: str) -> int:
        """Delete cached matches older than `date_key`. Returns the number removed."""
        result = self.client.table("matches").delete().lt(
            "date_key", date_key
        ).execute()
        return len(result.data or [])

    # Lineups

    def upsert_lineup(self, lineup_data: Dict[str, Any]):
        """
        Upsert a lineup.

        Args:
            lineup_data: Lineup dictionary keyed by (tid, date_key, owner_id)
        """
        result = self.client.table("lineups").upsert(
            lineup_data,
            on_conflict="tid,date_key,owner_id"
        ).execute()

        return result.data

    def get_lineups_for_day(
        self,
        tid: str,
        date_key: str,
        locked: Optional[bool] = None
    ) -> List[Dict[str, Any]]:
        query = self.client.table("lineups").select("*").eq(
            "tid", tid
        ).eq("date_key", date_key)

        if locked is not None:
            query = query.eq("locked", locked)

        result = query.execute()
        return result.data or []

    def get_unlocked_lineup_days(self) -> List[Dict[str, str]]:
        """Distinct (tid, date_key) pairs that still have open lineups."""
        result = self.client.table("lineups").select("tid, date_key").eq(
            "locked", False
        ).execute()

        seen = {}
        for row in result.data or []:
            seen[(row["tid"], row["date_key"])] = {"tid": row["tid"], "date_key": row["date_key"]}
        return list(seen.values())

    def lock_lineups(self, tid: str, date_key: str) -> int:
        """
        Flip every open lineup of a day to locked.

        Only rows with locked = false are touched, so running this again is a no-op
        and it can never unlock anything.

        Returns:
            Number of lineups locked
        """
        result = self.client.table("lineups").update({
            "locked": True,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("tid", tid).eq("date_key", date_key).eq("locked", False).execute()
        return len(result.data or [])

    # Leaderboards

    def upsert_leaderboard(self, tid: str, date_key: str, entries: List[Dict[str, Any]]):
        """
        Replace the leaderboard of one tournament day.

        The whole ordered list is one row, so readers never see a partial board.
        """
        result = self.client.table("leaderboards").upsert({
            "tid": tid,
            "date_key": date_key,
            "entries": entries,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, on_conflict="tid,date_key").execute()

        return result.data

    def get_leaderboard(self, tid: str, date_key: str) -> Optional[Dict[str, Any]]:
        result = self.client.table("leaderboards").select(
            "tid, date_key, entries, updated_at"
        ).eq("tid", tid).eq("date_key", date_key).maybe_single().execute()
        return self._single(result)

    # Players

    def get_player(self, account_id: int) -> Optional[Dict[str, Any]]:
        result = self.client.table("players").select(
            "account_id, name"
        ).eq("account_id", account_id).maybe_single().execute()
        return self._single(result)

    def upsert_player(self, player_data: Dict[str, Any]):
        """
        Upsert a player display name.

        Args:
            player_data: {"account_id": ..., "name": ...}
        """
        result = self.client.table("players").upsert(
            player_data,
            on_conflict="account_id"
        ).execute()

        return result.data

    # Users

    def get_profile_name(self, user_id: str) -> Optional[str]:
        result = self.client.table("profiles").select(
            "user_id, display_name"
        ).eq("user_id", user_id).maybe_single().execute()
        row = self._single(result)
        return row.get("display_name") if row else None

    def is_admin(self, user_id: str) -> bool:
        result = self.client.table("admins").select("user_id").eq(
            "user_id", user_id
        ).maybe_single().execute()
        return bool(self._single(result))

    def get_user_id(self, access_token: str) -> Optional[str]:
        """Resolve a Supabase auth access token to a user id, or None if invalid."""
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            logger.warning("Access token rejected", extra={"error": str(e)})
            return None
        user = getattr(response, "user", None)
        return getattr(user, "id", None) if user else None
