"""
Match cache.

One record per provider match id. Writes are merges: fields the new payload does not
carry keep their stored values. The `complete` flag is derived on every write and is
monotonic; a complete record is never replaced by a less complete one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from database.models import Match, is_complete
from database.supabase_client import SupabaseClient
from opendota_api.schemas import MatchDetail
from utils.lock_gate import date_key_for

logger = logging.getLogger(__name__)

# Zero is how the provider reports "not known yet" for these
_ZERO_IS_UNKNOWN = ("start_time", "duration")


@dataclass
class UpsertResult:
    match: Match
    newly_complete: bool
    written: bool


class MatchCache:
    """Idempotent store of cached matches."""

    def __init__(self, db_client: SupabaseClient):
        self.db_client = db_client

    def get(self, match_id: int) -> Optional[Match]:
        row = self.db_client.get_match(match_id)
        return Match.model_validate(row) if row else None

    @staticmethod
    def project(tid: str, detail: MatchDetail, existing: Optional[Match] = None) -> Match:
        """
        Merge provider telemetry over an existing record and derive date_key and complete.

        Only fields present in the payload with a non-null value overwrite stored ones.
        """
        incoming: Dict[str, Any] = {
            name: getattr(detail, name)
            for name in detail.model_fields_set
            if getattr(detail, name) is not None
        }
        for name in _ZERO_IS_UNKNOWN:
            if incoming.get(name) == 0:
                incoming.pop(name)

        merged: Dict[str, Any] = existing.model_dump() if existing else {}
        merged.update(incoming)
        merged["match_id"] = detail.match_id
        merged["tid"] = tid
        merged["date_key"] = date_key_for(merged.get("start_time") or 0)
        merged["complete"] = is_complete(merged.get("players"), merged.get("duration"))

        return Match.model_validate(merged)

    def upsert(self, tid: str, detail: MatchDetail) -> UpsertResult:
        """
        Merge a fetched match into the cache.

        Returns:
            UpsertResult; newly_complete is True only when this write moved the record
            from absent or pending to complete.
        """
        existing = self.get(detail.match_id)
        match = self.project(tid, detail, existing)

        if existing is not None and existing.complete and not match.complete:
            logger.warning("Ignoring less complete payload for cached match", extra={
                "match_id": detail.match_id,
                "players": len(match.players),
                "duration": match.duration,
            })
            return UpsertResult(match=existing, newly_complete=False, written=False)

        self.db_client.upsert_match(match.model_dump(mode="json"))

        newly_complete = match.complete and (existing is None or not existing.complete)
        logger.debug("Cached match", extra={
            "match_id": match.match_id,
            "tid": tid,
            "date_key": match.date_key,
            "state": match.state.value,
            "newly_complete": newly_complete,
        })
        return UpsertResult(match=match, newly_complete=newly_complete, written=True)
