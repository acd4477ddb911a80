"""
Set and match result derivation for volleyball scores.
"""
from typing import List, Optional, Tuple

from core.errors import ValidationError
from core.models import Score, SetScore, SET_WINNERS


def set_winner(set_score: SetScore) -> Optional[int]:
    """Return 0 if team1 took the set, 1 if team2 did, None if undecided.

    An explicit winner flag wins over the points (two teams can finish level
    on points when the set was decided on service rules).
    """
    if set_score.winner == 'team1':
        return 0
    if set_score.winner == 'team2':
        return 1
    if set_score.team1_points > set_score.team2_points:
        return 0
    if set_score.team2_points > set_score.team1_points:
        return 1
    return None


def count_sets(sets: List[SetScore]) -> Tuple[int, int]:
    """Count sets won per side."""
    wins = [0, 0]
    for set_score in sets:
        idx = set_winner(set_score)
        if idx is not None:
            wins[idx] += 1
    return wins[0], wins[1]


def build_score(sets: List[SetScore], team1_label: str = 'T1', team2_label: str = 'T2') -> Score:
    """Build a Score from set results, e.g. 'ABC 2 - 1 XYZ'."""
    t1, t2 = count_sets(sets)
    message = f"{team1_label or 'T1'} {t1} - {t2} {team2_label or 'T2'}"
    return Score(t1, t2, sets, message)


def parse_sets(raw) -> List[SetScore]:
    """Validate set scores from a request payload.

    Accepts a list of ``{'team1_points': n, 'team2_points': n, 'winner': ...}``
    dicts or ``[n, n]`` pairs. Raises ValidationError on anything else.
    """
    if not isinstance(raw, list):
        raise ValidationError('sets must be a list')

    sets = []
    for i, item in enumerate(raw, start=1):
        winner = None
        if isinstance(item, dict):
            a, b = item.get('team1_points'), item.get('team2_points')
            winner = item.get('winner') or None
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            a, b = item
        else:
            raise ValidationError(f'Set {i}: expected two scores')

        if isinstance(a, bool) or isinstance(b, bool) or not isinstance(a, int) or not isinstance(b, int):
            raise ValidationError(f'Set {i}: scores must be whole numbers')
        if a < 0 or b < 0:
            raise ValidationError(f'Set {i}: scores cannot be negative')
        if winner is not None and winner not in SET_WINNERS:
            raise ValidationError(f"Set {i}: winner must be 'team1' or 'team2'")
        sets.append(SetScore(a, b, winner))
    return sets
