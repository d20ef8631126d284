"""
Lineup store: submission with shape and lock checks, and the lock sweep.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from database.models import Lineup, TournamentConfig
from database.supabase_client import SupabaseClient
from utils.lock_gate import is_locked, is_valid_date_key

logger = logging.getLogger(__name__)


class LineupError(Exception):
    """Base exception for lineup submission and admin operations."""
    status_code = 400


class AuthRequiredError(LineupError):
    """Caller is not signed in."""
    status_code = 401


class InvalidArgumentError(LineupError):
    """Malformed submission input."""
    status_code = 400


class PreconditionFailedError(LineupError):
    """Lineups for the day are locked."""
    status_code = 412


class PermissionDeniedError(LineupError):
    """Caller is not allowed to do this."""
    status_code = 403


class NotFoundError(LineupError):
    status_code = 404


def _player_id(value: Any, slot: str) -> int:
    # bool is an int subclass; a true/false pick is never a player id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(f"{slot} must be a positive integer player id")
    return value


class LineupService:
    """Handles lineup submission and locking."""

    def __init__(self, db_client: SupabaseClient):
        self.db_client = db_client

    def _tournament(self, tid: str) -> TournamentConfig:
        row = self.db_client.get_tournament(tid)
        if not row:
            raise NotFoundError(f"Unknown tournament {tid!r}")
        return TournamentConfig.model_validate(row)

    def _validate_shape(
        self,
        tournament: TournamentConfig,
        captain: Any,
        cores: Any,
        supports: Any,
        team_card: Any,
    ) -> Dict[str, Any]:
        if not isinstance(cores, list) or not isinstance(supports, list):
            raise InvalidArgumentError("cores and supports must be lists")
        if len(cores) != tournament.roles.cores:
            raise InvalidArgumentError(
                f"Expected {tournament.roles.cores} cores, got {len(cores)}"
            )
        if len(supports) != tournament.roles.supports:
            raise InvalidArgumentError(
                f"Expected {tournament.roles.supports} supports, got {len(supports)}"
            )

        picks = {
            "captain": _player_id(captain, "captain"),
            "cores": [_player_id(p, "core") for p in cores],
            "supports": [_player_id(p, "support") for p in supports],
            "team_card": _player_id(team_card, "team_card"),
        }

        roster = [picks["captain"], *picks["cores"], *picks["supports"]]
        if len(set(roster)) != len(roster):
            raise InvalidArgumentError("A player can fill only one roster slot")

        return picks

    def submit_lineup(
        self,
        user_id: Optional[str],
        tid: str,
        date_key: str,
        captain: Any,
        cores: Any,
        supports: Any,
        team_card: Any,
        admin_override: bool = False,
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create or overwrite a lineup.

        Managers write their own lineup until the day locks. An admin may write any
        owner's lineup, and with admin_override may write after the lock; such a
        write stays locked and is flagged admin_override.

        Returns:
            {"ok": True, "locked": <stored lock flag>}

        Raises:
            AuthRequiredError: no caller
            InvalidArgumentError: bad day key or roster shape
            NotFoundError: unknown tournament
            PreconditionFailedError: day is locked and no override was given
            PermissionDeniedError: override or foreign owner without admin rights
        """
        if not user_id:
            raise AuthRequiredError("Sign in to submit a lineup")
        if not is_valid_date_key(date_key):
            raise InvalidArgumentError("date_key must be 8 digits (YYYYMMDD)")

        tournament = self._tournament(tid)
        picks = self._validate_shape(tournament, captain, cores, supports, team_card)

        owner_id = owner_id or user_id
        needs_admin = admin_override or owner_id != user_id
        if needs_admin and not self.db_client.is_admin(user_id):
            raise PermissionDeniedError("Admin rights required")

        locked = is_locked(date_key, tournament.lock_hour_utc, now)
        if locked and not admin_override:
            raise PreconditionFailedError(f"Lineups for {date_key} are locked")

        lineup = Lineup(
            tid=tid,
            date_key=date_key,
            owner_id=owner_id,
            locked=locked,
            admin_override=bool(admin_override and locked),
            updated_at=(now or datetime.now(timezone.utc)).isoformat(),
            **picks,
        )
        self.db_client.upsert_lineup(lineup.model_dump(mode="json"))

        logger.info("Lineup saved", extra={
            "tid": tid,
            "date_key": date_key,
            "owner_id": owner_id,
            "state": lineup.state.value,
            "admin_override": lineup.admin_override,
        })
        return {"ok": True, "locked": lineup.locked}

    def get_lineups(self, tid: str, date_key: str, locked: Optional[bool] = None) -> List[Lineup]:
        return [
            Lineup.model_validate(row)
            for row in self.db_client.get_lineups_for_day(tid, date_key, locked=locked)
        ]

    def lock_due_lineups(self, now: Optional[datetime] = None) -> Dict[Tuple[str, str], int]:
        """
        Flip open lineups to locked for every day whose lock instant has passed.

        Idempotent; never unlocks.

        Returns:
            {(tid, date_key): lineups locked} for the days this sweep changed
        """
        locked_days: Dict[Tuple[str, str], int] = {}
        tournaments: Dict[str, Optional[TournamentConfig]] = {}

        for day in self.db_client.get_unlocked_lineup_days():
            tid, date_key = day["tid"], day["date_key"]
            try:
                if tid not in tournaments:
                    row = self.db_client.get_tournament(tid)
                    tournaments[tid] = TournamentConfig.model_validate(row) if row else None
                tournament = tournaments[tid]
                if tournament is None or not is_valid_date_key(date_key):
                    continue
                if not is_locked(date_key, tournament.lock_hour_utc, now):
                    continue
                count = self.db_client.lock_lineups(tid, date_key)
                if count:
                    locked_days[(tid, date_key)] = count
                logger.info("Locked lineups", extra={
                    "tid": tid,
                    "date_key": date_key,
                    "count": count,
                })
            except Exception as e:
                logger.warning("Lock sweep failed for day", extra={
                    "tid": tid,
                    "date_key": date_key,
                    "error": str(e),
                })

        return locked_days
