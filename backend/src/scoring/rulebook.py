"""
Scoring rulebook.

Converts one match's telemetry into a player's points or a team side's points.
Every function here is pure and total: absent stats count as zero and nothing raises.
The rulebook itself is an immutable value handed to every call, so tournaments can
carry their own weights.
"""

from typing import Iterable, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from opendota_api.schemas import (
    FIRST_BLOOD,
    RADIANT,
    ROSHAN_KILL,
    ObjectiveEvent,
    PlayerRow,
)

TOWER_COUNT = 11
BARRACKS_COUNT = 6


class Rulebook(BaseModel):
    """Point weights and bonuses for one tournament."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Player
    kill: float = 3.0
    assist: float = 2.0
    death: float = -1.0
    last_hit: float = 0.02
    deny: float = 0.02
    ward_placed: float = 0.2
    camp_stacked: float = 0.5
    win_bonus: float = 15.0
    fast_win_bonus: float = 15.0
    fast_win_seconds: int = Field(1500, gt=0)  # strictly under this duration
    combo_threshold: int = Field(20, ge=0)  # kills + assists >= threshold
    combo_bonus: float = 2.0

    # Team side
    tower: float = 1.0
    barracks: float = 1.0
    roshan: float = 3.0
    first_blood: float = 2.0
    team_win: float = 2.0

    # Series sweeps
    team_sweep_bonus: float = 15.0
    player_sweep_bonus: float = 15.0

    # Applied to the captain's raw match points only, never to sweep bonuses
    captain_multiplier: float = 1.5


DEFAULT_RULEBOOK = Rulebook()


class StructureStatus(NamedTuple):
    """Tower and barracks bitmasks; a set bit means the structure is still standing."""
    tower_radiant: int = 0
    tower_dire: int = 0
    barracks_radiant: int = 0
    barracks_dire: int = 0


def popcount(n: int, bits: int) -> int:
    """Count set bits among the lowest `bits` bits."""
    return bin(n & ((1 << bits) - 1)).count("1")


def towers_destroyed_by(side: str, status: StructureStatus) -> int:
    opponent = status.tower_dire if side == RADIANT else status.tower_radiant
    return TOWER_COUNT - popcount(opponent, TOWER_COUNT)


def barracks_destroyed_by(side: str, status: StructureStatus) -> int:
    opponent = status.barracks_dire if side == RADIANT else status.barracks_radiant
    return BARRACKS_COUNT - popcount(opponent, BARRACKS_COUNT)


def roshans_for_side(
    side: str,
    objectives: Iterable[ObjectiveEvent],
    players: Optional[Iterable[PlayerRow]] = None,
) -> int:
    """
    Roshan kills credited to a side.

    Roshan-kill objective events are the preferred signal. Only when the record has
    none at all does this fall back to the per-player roshan_kills counters.
    """
    kills = [o for o in objectives if o.type == ROSHAN_KILL]
    if kills:
        return sum(1 for o in kills if o.side == side)
    return sum(p.roshan_kills for p in (players or ()) if p.side == side)


def first_blood_side(objectives: Iterable[ObjectiveEvent]) -> Optional[str]:
    """Side owning the earliest first-blood event, if any."""
    events = sorted(
        (o for o in objectives if o.type == FIRST_BLOOD),
        key=lambda o: o.time,
    )
    for event in events:
        if event.side is not None:
            return event.side
    return None


def score_player(
    stats: PlayerRow,
    match_duration: int,
    won: bool,
    rulebook: Rulebook = DEFAULT_RULEBOOK,
) -> float:
    """
    Score one player's stat line for one match.

    Scoring (default rulebook):
        - Kills: 3 | Assists: 2 | Deaths: -1
        - Last hits / denies: 0.02 each
        - Wards placed (observer + sentry): 0.2 each
        - Camps stacked: 0.5 each
        - Win: +15, and another +15 if the match lasted under 25 minutes
        - Kills + assists of 20 or more: +2
    """
    points = 0.0
    points += stats.kills * rulebook.kill
    points += stats.assists * rulebook.assist
    points += stats.deaths * rulebook.death
    points += stats.last_hits * rulebook.last_hit
    points += stats.denies * rulebook.deny
    points += stats.wards_placed * rulebook.ward_placed
    points += stats.camps_stacked * rulebook.camp_stacked

    if won:
        points += rulebook.win_bonus
        if (match_duration or 0) < rulebook.fast_win_seconds:
            points += rulebook.fast_win_bonus

    if stats.kills + stats.assists >= rulebook.combo_threshold:
        points += rulebook.combo_bonus

    return points


def score_team_side(
    side: str,
    status: StructureStatus,
    objectives: Iterable[ObjectiveEvent],
    won: bool,
    players: Optional[Iterable[PlayerRow]] = None,
    rulebook: Rulebook = DEFAULT_RULEBOOK,
) -> float:
    """
    Score one side of one match for the team card.

    Scoring (default rulebook):
        - Towers destroyed: 1 each (11 minus the opponent's standing towers)
        - Barracks destroyed: 1 each (6 minus the opponent's standing barracks)
        - Roshan kills: 3 each
        - First blood: +2
        - Win: +2
    """
    objectives = list(objectives)

    points = 0.0
    points += towers_destroyed_by(side, status) * rulebook.tower
    points += barracks_destroyed_by(side, status) * rulebook.barracks
    points += roshans_for_side(side, objectives, players) * rulebook.roshan
    if first_blood_side(objectives) == side:
        points += rulebook.first_blood
    if won:
        points += rulebook.team_win

    return points
