"""
Ingress schemas for OpenDota payloads.

Everything the provider sends is validated here before it reaches the match cache
or the scoring code. Malformed player rows and objective events are dropped
individually; a malformed match is rejected as a whole.
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

RADIANT = "radiant"
DIRE = "dire"
SIDES = (RADIANT, DIRE)

ROSHAN_KILL = "CHAT_MESSAGE_ROSHAN_KILL"
FIRST_BLOOD = "CHAT_MESSAGE_FIRSTBLOOD"

# Objective events carry the Dota team number: 2 = radiant, 3 = dire
_TEAM_NUMBER_SIDE = {2: RADIANT, 3: DIRE}


def side_for_slot(player_slot: int) -> str:
    """Player slots below 128 are radiant, 128 and above are dire."""
    return RADIANT if player_slot < 128 else DIRE


class PlayerRow(BaseModel):
    """One player's stat line in a match."""

    model_config = ConfigDict(extra="ignore")

    account_id: Optional[int] = None
    player_slot: int = Field(..., ge=0, le=255)
    kills: int = Field(0, ge=0)
    deaths: int = Field(0, ge=0)
    assists: int = Field(0, ge=0)
    last_hits: int = Field(0, ge=0)
    denies: int = Field(0, ge=0)
    obs_placed: int = Field(0, ge=0)
    sen_placed: int = Field(0, ge=0)
    camps_stacked: int = Field(0, ge=0)
    roshan_kills: int = Field(0, ge=0)
    name: Optional[str] = None
    personaname: Optional[str] = None

    @field_validator(
        "kills", "deaths", "assists", "last_hits", "denies",
        "obs_placed", "sen_placed", "camps_stacked", "roshan_kills",
        mode="before",
    )
    @classmethod
    def none_counts_as_zero(cls, v):
        """Unparsed matches report missing counters as null."""
        return 0 if v is None else v

    @field_validator("account_id", mode="before")
    @classmethod
    def anonymous_account_is_none(cls, v):
        return None if v in (None, 0) else v

    @property
    def side(self) -> str:
        return side_for_slot(self.player_slot)

    @property
    def wards_placed(self) -> int:
        return self.obs_placed + self.sen_placed

    @property
    def display_name(self) -> Optional[str]:
        """Pro matches usually carry a name straight on the player row."""
        return self.name or self.personaname or None


class ObjectiveEvent(BaseModel):
    """Timestamped objective event (roshan kill, first blood, ...)."""

    model_config = ConfigDict(extra="ignore")

    type: str
    time: int = 0
    player_slot: Optional[int] = Field(None, ge=0, le=255)
    team: Optional[int] = None

    @property
    def side(self) -> Optional[str]:
        """Side owning the event; the player slot wins over the team number."""
        if self.player_slot is not None:
            return side_for_slot(self.player_slot)
        return _TEAM_NUMBER_SIDE.get(self.team)


def _validate_each(model: type, rows: Any, label: str) -> list:
    """Validate list items one at a time, dropping the ones that fail."""
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise ValueError(f"{label} must be a list")
    valid = []
    for index, raw in enumerate(rows):
        if isinstance(raw, model):
            valid.append(raw)
            continue
        try:
            valid.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Dropping malformed {label} row", extra={
                "index": index,
                "error": str(e),
            })
    return valid


class LeagueMatch(BaseModel):
    """Summary row from /leagues/{league_id}/matches."""

    model_config = ConfigDict(extra="ignore")

    match_id: int = Field(..., gt=0)
    start_time: int = 0
    radiant_win: Optional[bool] = None
    series_id: Optional[int] = None
    series_type: Optional[int] = None


class MatchDetail(BaseModel):
    """Full telemetry from /matches/{match_id}."""

    model_config = ConfigDict(extra="ignore")

    match_id: int = Field(..., gt=0)
    start_time: int = 0
    duration: int = Field(0, ge=0)
    radiant_win: Optional[bool] = None
    series_id: Optional[int] = None
    series_type: int = 0
    radiant_team_id: Optional[int] = None
    dire_team_id: Optional[int] = None
    radiant_name: Optional[str] = None
    dire_name: Optional[str] = None
    # Null until the match is parsed; the cache keeps the stored bitmask
    tower_status_radiant: Optional[int] = Field(None, ge=0)
    tower_status_dire: Optional[int] = Field(None, ge=0)
    barracks_status_radiant: Optional[int] = Field(None, ge=0)
    barracks_status_dire: Optional[int] = Field(None, ge=0)
    objectives: List[ObjectiveEvent] = Field(default_factory=list)
    players: List[PlayerRow] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def flatten_team_objects(cls, data: Any) -> Any:
        """Lift team id/name out of the nested radiant_team / dire_team objects."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for side in SIDES:
            team = data.get(f"{side}_team")
            if not isinstance(team, dict):
                continue
            if data.get(f"{side}_team_id") is None and team.get("team_id") is not None:
                data[f"{side}_team_id"] = team["team_id"]
            if not data.get(f"{side}_name"):
                name = team.get("name") or team.get("tag")
                if name:
                    data[f"{side}_name"] = name
        return data

    @field_validator("series_id", mode="before")
    @classmethod
    def zero_series_is_none(cls, v):
        return None if v in (None, 0) else v

    @field_validator(
        "start_time", "duration", "series_type",
        mode="before",
    )
    @classmethod
    def none_counts_as_zero(cls, v):
        return 0 if v is None else v

    @field_validator("objectives", mode="before")
    @classmethod
    def drop_malformed_objectives(cls, v):
        return _validate_each(ObjectiveEvent, v, "objective")

    @field_validator("players", mode="before")
    @classmethod
    def drop_malformed_players(cls, v):
        return _validate_each(PlayerRow, v, "player")
