"""
Series sweep detection.

A sweep is a best-of-N series won without dropping a game: 2-0 in a Bo3
(series_type 1) or 3-0 in a Bo5 (series_type 2). Sweeps award a flat bonus to
the sweeping team card and to every roster player who played for that team in
the series.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Hashable, Iterable, List, Optional, Tuple

from database.models import Match
from opendota_api.schemas import SIDES
from scoring.rulebook import DEFAULT_RULEBOOK, Rulebook

# series_type -> wins needed to take the series
SERIES_WIN_THRESHOLD = {
    1: 2,  # Bo3
    2: 3,  # Bo5
}


@dataclass(frozen=True)
class SeriesSweep:
    """One swept series and who gets credit for it."""
    series_key: Tuple[str, int]
    team_id: Optional[int]
    team_name: Optional[str]
    wins: int
    player_ids: FrozenSet[int]


def _team_key(match: Match, side: str) -> Hashable:
    """Team id when known; otherwise fall back to the side name."""
    team_id = match.team_id_for(side)
    return team_id if team_id is not None else side


def group_by_series(matches: Iterable[Match]) -> Dict[Tuple[str, int], List[Match]]:
    """Group matches by series, each group in start order."""
    series: Dict[Tuple[str, int], List[Match]] = defaultdict(list)
    for match in sorted(matches, key=lambda m: (m.start_time, m.match_id)):
        series[match.series_key].append(match)
    return dict(series)


def detect_sweeps(matches: Iterable[Match]) -> List[SeriesSweep]:
    """Find every swept series among one day's matches."""
    sweeps: List[SeriesSweep] = []

    for series_key, games in sorted(group_by_series(matches).items()):
        threshold = SERIES_WIN_THRESHOLD.get(games[0].series_type)
        if threshold is None:
            continue

        wins: Dict[Hashable, int] = defaultdict(int)
        for game in games:
            for side in SIDES:
                wins.setdefault(_team_key(game, side), 0)
            if game.winning_side is not None:
                wins[_team_key(game, game.winning_side)] += 1

        for team_key, team_wins in wins.items():
            others = [w for k, w in wins.items() if k != team_key]
            if team_wins >= threshold and all(w == 0 for w in others):
                sweeps.append(_build_sweep(series_key, team_key, team_wins, games))
                break

    return sweeps


def _build_sweep(series_key, team_key, wins: int, games: List[Match]) -> SeriesSweep:
    player_ids = set()
    team_name = None
    for game in games:
        side = next(
            (s for s in SIDES if _team_key(game, s) == team_key),
            None,
        )
        if side is None:
            continue
        team_name = team_name or game.team_name_for(side)
        player_ids.update(
            p.account_id for p in game.players
            if p.side == side and p.account_id is not None
        )
    return SeriesSweep(
        series_key=series_key,
        team_id=team_key if isinstance(team_key, int) else None,
        team_name=team_name,
        wins=wins,
        player_ids=frozenset(player_ids),
    )


def sweep_bonuses(
    sweeps: Iterable[SeriesSweep],
    player_ids: Iterable[int],
    team_card: Optional[int],
    rulebook: Rulebook = DEFAULT_RULEBOOK,
) -> Tuple[float, Dict[int, float]]:
    """
    Sweep bonuses for one lineup.

    Returns (team card bonus, {player id: bonus}). Each swept series pays the team
    card once if it is the sweeping team, and each rostered player once if they
    played at least one game of the series for the sweeping team. Bonuses from
    several swept series add up.
    """
    roster = list(dict.fromkeys(player_ids))
    team_bonus = 0.0
    player_bonus: Dict[int, float] = {pid: 0.0 for pid in roster}

    for sweep in sweeps:
        if team_card is not None and sweep.team_id == team_card:
            team_bonus += rulebook.team_sweep_bonus
        for pid in roster:
            if pid in sweep.player_ids:
                player_bonus[pid] += rulebook.player_sweep_bonus

    return team_bonus, player_bonus
