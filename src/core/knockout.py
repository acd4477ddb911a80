"""
Knockout seeding from round-robin standings, and the phase transition that
goes with it.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from core.errors import PersistenceError, ValidationError
from core.models import Match, StandingRow, Tournament, PHASE_KNOCKOUT, PHASE_ROUND_ROBIN
from core.standings import DEFAULT_WIN_POINTS, calculate_standings

logger = logging.getLogger(__name__)

MIN_KNOCKOUT_TEAMS = 4
QUARTER_FINAL_TEAMS = 8
DEFAULT_KNOCKOUT_GROUND = 'TBD'


def get_stage_name(teams_in_round: int) -> str:
    """Stage tag for a knockout round with the given number of teams."""
    if teams_in_round == 2:
        return 'final'
    elif teams_in_round == 4:
        return 'semi-final'
    elif teams_in_round == 8:
        return 'quarter-final'
    raise ValueError(f'No knockout stage for {teams_in_round} teams')


def bracket_order(bracket_size: int) -> List[int]:
    """
    Standard bracket order, so that if the higher seeds keep winning they
    meet as late as possible.

    For 8 teams: [1, 8, 4, 5, 2, 7, 3, 6] -> 1v8, 4v5, 2v7, 3v6
    For 4 teams: [1, 4, 2, 3] -> 1v4, 2v3
    """
    if bracket_size == 2:
        return [1, 2]

    half_size = bracket_size // 2
    upper_half = bracket_order(half_size)
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])
    return result


def knockout_bracket_size(num_teams: int) -> int:
    """Number of teams that enter the first knockout round."""
    if num_teams >= QUARTER_FINAL_TEAMS:
        return QUARTER_FINAL_TEAMS
    if num_teams >= MIN_KNOCKOUT_TEAMS:
        return MIN_KNOCKOUT_TEAMS
    raise ValidationError(
        f'Not enough teams for a knockout stage: need at least {MIN_KNOCKOUT_TEAMS}, have {num_teams}'
    )


def default_start_time(now: Optional[datetime] = None, hour: int = 18) -> datetime:
    """Placeholder kick-off: the next day at the given hour."""
    now = now or datetime.now()
    return (now + timedelta(days=1)).replace(hour=hour, minute=0, second=0, microsecond=0)


def seed_knockout(tournament_id, standings: List[StandingRow], start_time: Optional[datetime] = None,
                  ground: str = DEFAULT_KNOCKOUT_GROUND) -> List[Match]:
    """
    Create the first knockout round from standings ranked best to worst.

    8 or more teams seed quarter-finals (1v8, 4v5, 2v7, 3v6); 4 to 7 teams seed
    semi-finals (1v4, 2v3). Teams ranked below the bracket size are left out.
    The matches are unsaved (no id), upcoming and unscored; their date and
    ground are placeholders for an admin to edit.

    Raises ValidationError with fewer than 4 teams.
    """
    size = knockout_bracket_size(len(standings))
    stage = get_stage_name(size)
    when = (start_time or default_start_time()).isoformat(timespec='minutes')

    order = bracket_order(size)
    matches = []
    for i in range(0, len(order), 2):
        top = standings[order[i] - 1]
        bottom = standings[order[i + 1] - 1]
        matches.append(Match(
            id=None,
            tournament_id=tournament_id,
            team1_id=top.team_id,
            team2_id=bottom.team_id,
            date_time=when,
            ground=ground,
            status='upcoming',
            stage=stage,
        ))
    return matches


def check_can_advance(tournament: Tournament, standings: List[StandingRow], existing_matches=None):
    """Raise ValidationError unless the tournament can move to its knockout phase."""
    if tournament.phase != PHASE_ROUND_ROBIN:
        raise ValidationError(f'Tournament "{tournament.name}" is already in the {tournament.phase} phase')
    if any(m.stage for m in existing_matches or []):
        raise ValidationError(f'Tournament "{tournament.name}" already has knockout fixtures')
    knockout_bracket_size(len(standings))


def advance_to_knockout(store, tournament_id, win_points: int = DEFAULT_WIN_POINTS,
                        start_time: Optional[datetime] = None,
                        ground: str = DEFAULT_KNOCKOUT_GROUND) -> List[Match]:
    """
    Seed the knockout round for a tournament and move it to the knockout phase.

    Runs under the store lock and re-reads the tournament inside it, so two
    concurrent calls can't both seed. If the phase update fails after the
    matches were written, those matches are removed again before the error
    is re-raised.

    Returns the inserted matches (with ids).
    """
    with store.locked():
        tournament = store.get_tournament(tournament_id)
        if tournament is None:
            raise ValidationError(f'Tournament {tournament_id} not found')

        matches = store.list_matches(tournament_id)
        standings = calculate_standings(tournament_id, matches, store.list_teams(),
                                        roster=tournament.team_ids, win_points=win_points)
        check_can_advance(tournament, standings, matches)

        new_matches = seed_knockout(tournament_id, standings, start_time=start_time, ground=ground)
        inserted = store.insert_matches(new_matches)
        try:
            store.update_tournament_phase(tournament_id, PHASE_KNOCKOUT)
        except PersistenceError:
            logger.error('Phase update failed for tournament %s; removing %d seeded matches',
                         tournament_id, len(inserted))
            store.delete_matches([m.id for m in inserted])
            raise

    logger.info('Tournament %s advanced to knockout with %d %s matches',
                tournament_id, len(inserted), inserted[0].stage)
    return inserted
