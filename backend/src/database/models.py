"""
Stored records: cached matches, lineups, leaderboard entries and tournament settings.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from opendota_api.schemas import DIRE, RADIANT, ObjectiveEvent, PlayerRow
from scoring.rulebook import DEFAULT_RULEBOOK, Rulebook, StructureStatus

COMPLETE_PLAYER_COUNT = 10


class MatchState(Enum):
    """Match completeness. Pending -> Complete only; never back."""
    PENDING = "pending"
    COMPLETE = "complete"


class LineupState(Enum):
    """Lineup editability. Open -> Locked only; admins may still write a locked lineup."""
    OPEN = "open"
    LOCKED = "locked"


class Match(BaseModel):
    """One cached match, keyed by match_id."""

    model_config = ConfigDict(extra="ignore")

    match_id: int
    tid: str
    date_key: str
    start_time: int = 0
    duration: int = 0
    radiant_win: Optional[bool] = None
    series_id: Optional[int] = None
    series_type: int = 0
    radiant_team_id: Optional[int] = None
    dire_team_id: Optional[int] = None
    radiant_name: Optional[str] = None
    dire_name: Optional[str] = None
    tower_status_radiant: int = 0
    tower_status_dire: int = 0
    barracks_status_radiant: int = 0
    barracks_status_dire: int = 0
    objectives: List[ObjectiveEvent] = Field(default_factory=list)
    players: List[PlayerRow] = Field(default_factory=list)
    complete: bool = False

    @field_validator(
        "tower_status_radiant", "tower_status_dire",
        "barracks_status_radiant", "barracks_status_dire",
        mode="before",
    )
    @classmethod
    def unknown_status_is_zero(cls, v):
        return 0 if v is None else v

    @property
    def state(self) -> MatchState:
        return MatchState.COMPLETE if self.complete else MatchState.PENDING

    @property
    def series_key(self) -> Tuple[str, int]:
        """Games without a series id form their own one-game series."""
        if self.series_id:
            return ("series", self.series_id)
        return ("match", self.match_id)

    @property
    def structure_status(self) -> StructureStatus:
        return StructureStatus(
            tower_radiant=self.tower_status_radiant,
            tower_dire=self.tower_status_dire,
            barracks_radiant=self.barracks_status_radiant,
            barracks_dire=self.barracks_status_dire,
        )

    @property
    def winning_side(self) -> Optional[str]:
        if self.radiant_win is None:
            return None
        return RADIANT if self.radiant_win else DIRE

    def team_id_for(self, side: str) -> Optional[int]:
        return self.radiant_team_id if side == RADIANT else self.dire_team_id

    def team_name_for(self, side: str) -> Optional[str]:
        return self.radiant_name if side == RADIANT else self.dire_name


def is_complete(players: List[Any], duration: Optional[int]) -> bool:
    """A match can be scored once it reports all ten players and a positive duration."""
    return len(players or []) == COMPLETE_PLAYER_COUNT and (duration or 0) > 0


class RoleCounts(BaseModel):
    cores: int = Field(3, ge=0, le=10)
    supports: int = Field(2, ge=0, le=10)


class TournamentConfig(BaseModel):
    """Per-tournament settings from the tournaments table."""

    model_config = ConfigDict(extra="ignore")

    tid: str
    name: Optional[str] = None
    league_ids: List[int] = Field(default_factory=list)
    lock_hour_utc: int = Field(12, ge=0, le=23)
    roles: RoleCounts = Field(default_factory=RoleCounts)
    rulebook: Rulebook = DEFAULT_RULEBOOK

    @field_validator("roles", "rulebook", "league_ids", "lock_hour_utc", mode="before")
    @classmethod
    def null_column_uses_default(cls, v, info):
        if v is not None:
            return v
        return cls.model_fields[info.field_name].get_default(call_default_factory=True)


class Lineup(BaseModel):
    """One manager's picks for one tournament day."""

    model_config = ConfigDict(extra="ignore")

    tid: str
    date_key: str
    owner_id: str
    captain: int
    cores: List[int] = Field(default_factory=list)
    supports: List[int] = Field(default_factory=list)
    team_card: int
    locked: bool = False
    admin_override: bool = False
    updated_at: Optional[str] = None

    @property
    def state(self) -> LineupState:
        return LineupState.LOCKED if self.locked else LineupState.OPEN

    @property
    def player_ids(self) -> List[int]:
        return [self.captain, *self.cores, *self.supports]


class LeaderboardEntry(BaseModel):
    owner_id: str
    display_name: str
    total_points: float
    roster_breakdown: Dict[str, Union[Dict[str, Any], List[Dict[str, Any]]]] = Field(default_factory=dict)
