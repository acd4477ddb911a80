from core.errors import ValidationError

DIVISIONS = ('Division 1', 'Division 2')
MATCH_STATUSES = ('upcoming', 'live', 'completed')
KNOCKOUT_STAGES = ('quarter-final', 'semi-final', 'final')
PHASE_ROUND_ROBIN = 'round-robin'
PHASE_KNOCKOUT = 'knockout'
PHASES = (PHASE_ROUND_ROBIN, PHASE_KNOCKOUT)
SET_WINNERS = ('team1', 'team2')


def _to_int(value, default=None):
    """Coerce a stored value to int, returning default when it can't be read."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class Team:
    def __init__(self, id, name, short_name='', division='Division 1', logo_url='', club_id=None,
                 captain=None):
        self.id = id
        self.name = name
        self.short_name = short_name
        self.division = division
        self.logo_url = logo_url
        self.club_id = club_id
        self.captain = captain  # username of the captain managing this team's players

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'short_name': self.short_name,
            'division': self.division,
            'logo_url': self.logo_url,
            'club_id': self.club_id,
            'captain': self.captain,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id'),
            name=data.get('name') or '',
            short_name=data.get('short_name', ''),
            division=data.get('division', 'Division 1'),
            logo_url=data.get('logo_url', '') or '',
            club_id=data.get('club_id'),
            captain=data.get('captain'),
        )

    def __repr__(self):
        return f"Team(id={self.id}, name={self.name}, division={self.division})"


class Tournament:
    def __init__(self, id, name, division='Division 1', phase=PHASE_ROUND_ROBIN, team_ids=None):
        self.id = id
        self.name = name
        self.division = division
        self.phase = phase
        self.team_ids = list(team_ids) if team_ids else []

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'division': self.division,
            'phase': self.phase,
            'team_ids': list(self.team_ids),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id'),
            name=data.get('name') or '',
            division=data.get('division', 'Division 1'),
            phase=data.get('phase') or PHASE_ROUND_ROBIN,
            team_ids=data.get('team_ids') or [],
        )

    def __repr__(self):
        return f"Tournament(id={self.id}, name={self.name}, phase={self.phase})"


class SetScore:
    def __init__(self, team1_points, team2_points, winner=None):
        self.team1_points = team1_points
        self.team2_points = team2_points
        self.winner = winner  # 'team1' / 'team2' overrides the points comparison

    def to_dict(self):
        data = {'team1_points': self.team1_points, 'team2_points': self.team2_points}
        if self.winner:
            data['winner'] = self.winner
        return data

    @classmethod
    def from_dict(cls, data):
        """Parse a stored set. Returns None if the set can't be read."""
        if not isinstance(data, dict):
            return None
        t1 = _to_int(data.get('team1_points'))
        t2 = _to_int(data.get('team2_points'))
        if t1 is None or t2 is None:
            return None
        winner = data.get('winner')
        return cls(t1, t2, winner if winner in SET_WINNERS else None)

    def __repr__(self):
        return f"SetScore({self.team1_points}-{self.team2_points}, winner={self.winner})"


class Score:
    def __init__(self, team1_score, team2_score, sets=None, result_message=''):
        self.team1_score = team1_score
        self.team2_score = team2_score
        self.sets = list(sets) if sets else []
        self.result_message = result_message

    @property
    def team1_total_points(self):
        return sum(s.team1_points for s in self.sets)

    @property
    def team2_total_points(self):
        return sum(s.team2_points for s in self.sets)

    def to_dict(self):
        return {
            'team1_score': self.team1_score,
            'team2_score': self.team2_score,
            'sets': [s.to_dict() for s in self.sets],
            'result_message': self.result_message,
        }

    @classmethod
    def from_dict(cls, data):
        """Parse a stored score leniently.

        Unreadable sets are dropped. Missing set counts are derived from the
        sets. Anything that isn't a dict yields None.
        """
        if not isinstance(data, dict):
            return None
        raw_sets = data.get('sets') or []
        if not isinstance(raw_sets, list):
            raw_sets = []
        sets = [s for s in (SetScore.from_dict(item) for item in raw_sets) if s is not None]

        t1 = _to_int(data.get('team1_score'))
        t2 = _to_int(data.get('team2_score'))
        if t1 is None or t2 is None:
            # Imported here to avoid a models <-> scoring cycle
            from core.scoring import count_sets
            t1, t2 = count_sets(sets)
        return cls(t1, t2, sets, data.get('result_message') or '')

    def __repr__(self):
        return f"Score({self.team1_score}-{self.team2_score}, sets={len(self.sets)})"


class Match:
    def __init__(self, id, tournament_id, team1_id, team2_id, date_time='', ground='',
                 status='upcoming', stage=None, score=None, referee=None, man_of_the_match_id=None):
        if team1_id == team2_id:
            raise ValidationError(f'A match needs two different teams (got {team1_id} twice)')
        self.id = id
        self.tournament_id = tournament_id
        self.team1_id = team1_id
        self.team2_id = team2_id
        self.date_time = date_time
        self.ground = ground
        self.status = status
        self.stage = stage
        self.score = score
        self.referee = referee
        self.man_of_the_match_id = man_of_the_match_id

    @property
    def is_knockout(self):
        return bool(self.stage)

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'team1_id': self.team1_id,
            'team2_id': self.team2_id,
            'date_time': self.date_time,
            'ground': self.ground,
            'status': self.status,
            'stage': self.stage,
            'score': self.score.to_dict() if self.score else None,
            'referee': self.referee,
            'man_of_the_match_id': self.man_of_the_match_id,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id'),
            tournament_id=data.get('tournament_id'),
            team1_id=data.get('team1_id'),
            team2_id=data.get('team2_id'),
            date_time=data.get('date_time', '') or '',
            ground=data.get('ground', '') or '',
            status=data.get('status', 'upcoming'),
            stage=data.get('stage') or None,
            score=Score.from_dict(data.get('score')),
            referee=data.get('referee'),
            man_of_the_match_id=data.get('man_of_the_match_id'),
        )

    def __repr__(self):
        return (f"Match(id={self.id}, tournament={self.tournament_id}, "
                f"{self.team1_id} vs {self.team2_id}, status={self.status}, stage={self.stage})")


class StandingRow:
    def __init__(self, team_id, team_name, logo_url=''):
        self.team_id = team_id
        self.team_name = team_name
        self.logo_url = logo_url
        self.games_played = 0
        self.wins = 0
        self.draws = 0
        self.losses = 0
        self.points_for = 0
        self.points_against = 0
        self.points = 0

    @property
    def point_differential(self):
        return self.points_for - self.points_against

    def to_dict(self):
        return {
            'team_id': self.team_id,
            'team_name': self.team_name,
            'logo_url': self.logo_url,
            'games_played': self.games_played,
            'wins': self.wins,
            'draws': self.draws,
            'losses': self.losses,
            'points_for': self.points_for,
            'points_against': self.points_against,
            'point_differential': self.point_differential,
            'points': self.points,
        }

    def __repr__(self):
        return (f"StandingRow(team={self.team_name}, points={self.points}, "
                f"W{self.wins}/D{self.draws}/L{self.losses}, diff={self.point_differential})")
