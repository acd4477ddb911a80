from datetime import timedelta

from core.errors import ValidationError
from core.models import Match

DEFAULT_FIXTURE_GROUND = 'Main Court'


def round_robin_rounds(team_ids):
    """Split a single round robin into rounds where no team plays twice.

    Uses the circle method: one team stays fixed while the others rotate.
    With an odd number of teams one team sits out each round.
    """
    teams = list(team_ids)
    if len(teams) < 2:
        return []
    if len(teams) % 2:
        teams.append(None)

    n = len(teams)
    rounds = []
    for _ in range(n - 1):
        pairs = []
        for i in range(n // 2):
            home, away = teams[i], teams[n - 1 - i]
            if home is not None and away is not None:
                pairs.append((home, away))
        rounds.append(pairs)
        teams = [teams[0], teams[-1]] + teams[1:-1]
    return rounds


def generate_round_robin_fixtures(tournament_id, team_ids, first_date, ground=DEFAULT_FIXTURE_GROUND,
                                  days_between_rounds=1, existing_matches=None):
    """Build upcoming fixtures so every pair of teams meets once.

    Pairs that already have a round-robin fixture in ``existing_matches`` are
    skipped. Each round is scheduled ``days_between_rounds`` after the last,
    starting at ``first_date``.
    """
    team_ids = list(dict.fromkeys(team_ids))
    if len(team_ids) < 2:
        raise ValidationError('A round robin needs at least 2 teams')

    already_scheduled = set()
    for m in existing_matches or []:
        if m.tournament_id == tournament_id and not m.stage:
            already_scheduled.add(frozenset((m.team1_id, m.team2_id)))

    fixtures = []
    for round_no, pairs in enumerate(round_robin_rounds(team_ids)):
        when = first_date + timedelta(days=round_no * days_between_rounds)
        for team1_id, team2_id in pairs:
            if frozenset((team1_id, team2_id)) in already_scheduled:
                continue
            fixtures.append(Match(
                id=None,
                tournament_id=tournament_id,
                team1_id=team1_id,
                team2_id=team2_id,
                date_time=when.isoformat(timespec='minutes'),
                ground=ground,
                status='upcoming',
            ))
    return fixtures
