"""
Unit tests for the data models (Team, Tournament, SetScore, Score, Match, StandingRow).
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.errors import ValidationError
from core.models import Team, Tournament, SetScore, Score, Match, StandingRow


class TestTeam:
    """Tests for the Team model."""

    def test_team_round_trips_through_dict(self):
        team = Team(id=3, name="Net Ninjas", short_name="NIN", division="Division 2", club_id=7)
        again = Team.from_dict(team.to_dict())
        assert again.name == "Net Ninjas"
        assert again.short_name == "NIN"
        assert again.division == "Division 2"
        assert again.club_id == 7

    def test_missing_name_becomes_empty_string(self):
        """A stored team with a null name still yields a usable string."""
        team = Team.from_dict({'id': 1, 'name': None})
        assert team.name == ''

    def test_team_repr(self):
        repr_str = repr(Team(id=1, name="Test Team"))
        assert "Test Team" in repr_str


class TestTournament:
    """Tests for the Tournament model."""

    def test_defaults_to_round_robin(self):
        tournament = Tournament.from_dict({'id': 1, 'name': 'Cup'})
        assert tournament.phase == 'round-robin'
        assert tournament.team_ids == []

    def test_team_ids_are_copied(self):
        ids = [1, 2]
        tournament = Tournament(id=1, name='Cup', team_ids=ids)
        ids.append(3)
        assert tournament.team_ids == [1, 2]


class TestScore:
    """Tests for SetScore and Score parsing."""

    def test_set_with_non_numeric_points_is_unreadable(self):
        assert SetScore.from_dict({'team1_points': 'x', 'team2_points': 20}) is None

    def test_invalid_winner_flag_is_dropped(self):
        s = SetScore.from_dict({'team1_points': 25, 'team2_points': 20, 'winner': 'both'})
        assert s.winner is None

    def test_score_derives_set_counts_when_missing(self):
        score = Score.from_dict({'sets': [
            {'team1_points': 25, 'team2_points': 20},
            {'team1_points': 18, 'team2_points': 25},
            {'team1_points': 15, 'team2_points': 9},
        ]})
        assert (score.team1_score, score.team2_score) == (2, 1)

    def test_score_total_points(self):
        score = Score(2, 1, [SetScore(25, 23), SetScore(22, 25), SetScore(15, 10)])
        assert score.team1_total_points == 62
        assert score.team2_total_points == 58

    def test_non_dict_score_is_none(self):
        assert Score.from_dict('2-1') is None

    def test_unreadable_sets_are_skipped(self):
        score = Score.from_dict({'team1_score': 1, 'team2_score': 0,
                                 'sets': [{'team1_points': 25, 'team2_points': 10}, 'junk']})
        assert len(score.sets) == 1


class TestMatch:
    """Tests for the Match model."""

    def test_same_team_twice_is_rejected(self):
        with pytest.raises(ValidationError):
            Match(id=1, tournament_id=1, team1_id=4, team2_id=4)

    def test_is_knockout_follows_stage(self):
        assert not Match(id=1, tournament_id=1, team1_id=1, team2_id=2).is_knockout
        assert Match(id=2, tournament_id=1, team1_id=1, team2_id=2, stage='final').is_knockout

    def test_round_trip_keeps_score(self):
        match = Match(id=1, tournament_id=1, team1_id=1, team2_id=2, status='completed',
                      score=Score(1, 0, [SetScore(25, 20)], 'A 1 - 0 B'))
        again = Match.from_dict(match.to_dict())
        assert again.score.team1_score == 1
        assert again.score.sets[0].team2_points == 20
        assert again.score.result_message == 'A 1 - 0 B'

    def test_empty_stage_reads_as_none(self):
        match = Match.from_dict({'id': 1, 'tournament_id': 1, 'team1_id': 1, 'team2_id': 2, 'stage': ''})
        assert match.stage is None


class TestStandingRow:
    """Tests for the StandingRow model."""

    def test_point_differential_is_derived(self):
        row = StandingRow(1, 'Aces')
        row.points_for = 62
        row.points_against = 58
        assert row.point_differential == 4
        assert row.to_dict()['point_differential'] == 4

    def test_new_row_is_zeroed(self):
        row = StandingRow(1, 'Aces')
        assert (row.games_played, row.wins, row.draws, row.losses, row.points) == (0, 0, 0, 0, 0)
