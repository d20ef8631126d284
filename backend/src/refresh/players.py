"""
Player display-name resolution.
"""

import logging
from typing import Dict, Optional

from database.supabase_client import SupabaseClient
from opendota_api.client import OpenDotaAPIClient, OpenDotaAPIError

logger = logging.getLogger(__name__)


class PlayerNameResolver:
    """
    Resolves a player id to a display name.

    Order: the name carried on a match row, the players cache table, the provider
    profile (written back to the cache), and finally the id itself.
    """

    def __init__(
        self,
        api_client: Optional[OpenDotaAPIClient],
        db_client: SupabaseClient
    ):
        self.api_client = api_client
        self.db_client = db_client
        self._names: Dict[int, str] = {}

    async def resolve(self, account_id: int, match_name: Optional[str] = None) -> str:
        if match_name:
            return match_name
        if account_id in self._names:
            return self._names[account_id]

        name = self._from_cache(account_id)
        if not name:
            name = await self._from_provider(account_id)
        if not name:
            return str(account_id)

        self._names[account_id] = name
        return name

    def _from_cache(self, account_id: int) -> Optional[str]:
        try:
            row = self.db_client.get_player(account_id)
        except Exception as e:
            logger.warning("Player cache read failed", extra={
                "account_id": account_id,
                "error": str(e),
            })
            return None
        return (row or {}).get("name") or None

    async def _from_provider(self, account_id: int) -> Optional[str]:
        if self.api_client is None:
            return None
        try:
            data = await self.api_client.get_player(account_id)
        except OpenDotaAPIError as e:
            logger.warning("Player profile fetch failed", extra={
                "account_id": account_id,
                "error": str(e),
            })
            return None

        profile = data.get("profile") or {}
        name = profile.get("personaname") or profile.get("name") or data.get("name")
        if not name:
            return None

        try:
            self.db_client.upsert_player({"account_id": account_id, "name": name})
        except Exception as e:
            logger.warning("Player cache write failed", extra={
                "account_id": account_id,
                "error": str(e),
            })
        return name
