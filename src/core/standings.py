"""
League standings for the round-robin phase of a tournament.
"""
from typing import Dict, Iterable, List, Optional

from core.models import Match, StandingRow, Team

DEFAULT_WIN_POINTS = 3
DRAW_POINTS = 1


def standings_sort_key(row: StandingRow):
    """Key for ranking rows: points, differential and points-for descending,
    then team name ascending ignoring case. The exact name and the team id
    break any remaining tie so no two teams ever rank equal."""
    return (
        -row.points,
        -row.point_differential,
        -row.points_for,
        row.team_name.casefold(),
        row.team_name,
        str(row.team_id),
    )


def compare_standings(a: StandingRow, b: StandingRow) -> int:
    """Return -1 if a ranks above b, 1 if below, 0 only for the same team."""
    key_a, key_b = standings_sort_key(a), standings_sort_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def sort_standings(rows: Iterable[StandingRow]) -> List[StandingRow]:
    """Return rows ranked best to worst."""
    return sorted(rows, key=standings_sort_key)


def _round_robin_results(tournament_id, matches: Iterable[Match]) -> List[Match]:
    return [
        m for m in matches
        if m.tournament_id == tournament_id and m.status == 'completed' and not m.stage
    ]


def calculate_standings(tournament_id, matches: Iterable[Match], teams: Iterable[Team],
                        roster: Optional[Iterable] = None,
                        win_points: int = DEFAULT_WIN_POINTS) -> List[StandingRow]:
    """
    Calculate the league table for a tournament's round-robin phase.

    Only completed matches without a knockout stage count. A team is listed if
    it appears in one of those matches or in ``roster`` (the tournament's
    registered team ids). A completed match with no score, or a score with no
    sets, is skipped.

    Returns a new list of StandingRow, ranked with standings_sort_key.
    """
    teams_by_id: Dict = {t.id: t for t in teams}
    results = _round_robin_results(tournament_id, matches)

    team_ids = []
    for m in results:
        team_ids.extend([m.team1_id, m.team2_id])
    team_ids.extend(roster or [])

    table: Dict = {}
    for team_id in team_ids:
        team = teams_by_id.get(team_id)
        if team is None or team_id in table:
            continue
        table[team_id] = StandingRow(team_id, team.name, team.logo_url)

    for m in results:
        score = m.score
        if score is None or not score.sets:
            continue
        row1 = table.get(m.team1_id)
        row2 = table.get(m.team2_id)
        if row1 is None or row2 is None:
            continue

        t1_points = score.team1_total_points
        t2_points = score.team2_total_points

        row1.games_played += 1
        row2.games_played += 1
        row1.points_for += t1_points
        row1.points_against += t2_points
        row2.points_for += t2_points
        row2.points_against += t1_points

        if score.team1_score > score.team2_score:
            row1.wins += 1
            row2.losses += 1
            row1.points += win_points
        elif score.team2_score > score.team1_score:
            row2.wins += 1
            row1.losses += 1
            row2.points += win_points
        else:
            row1.draws += 1
            row2.draws += 1
            row1.points += DRAW_POINTS
            row2.points += DRAW_POINTS

    return sort_standings(table.values())
