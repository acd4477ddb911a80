"""
Tests for knockout seeding and the round-robin to knockout transition.
"""
import pytest
import sys
import os
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.errors import PersistenceError, ValidationError
from core.models import StandingRow, Tournament
from core.knockout import (bracket_order, get_stage_name, knockout_bracket_size, default_start_time,
                           seed_knockout, check_can_advance, advance_to_knockout)


def _ranked(n):
    """n standing rows, ranked 1..n with team ids 101..100+n."""
    return [StandingRow(100 + i, f'Team {i}') for i in range(1, n + 1)]


def _pairs(matches):
    return [(m.team1_id - 100, m.team2_id - 100) for m in matches]


class TestBracketOrder:

    def test_four_team_order(self):
        assert bracket_order(4) == [1, 4, 2, 3]

    def test_eight_team_order(self):
        assert bracket_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]

    def test_stage_names(self):
        assert get_stage_name(8) == 'quarter-final'
        assert get_stage_name(4) == 'semi-final'
        assert get_stage_name(2) == 'final'
        with pytest.raises(ValueError):
            get_stage_name(6)

    @pytest.mark.parametrize('teams, size', [(4, 4), (5, 4), (7, 4), (8, 8), (12, 8)])
    def test_bracket_size(self, teams, size):
        assert knockout_bracket_size(teams) == size


class TestSeedKnockout:

    def test_eight_teams_make_quarter_finals(self):
        matches = seed_knockout(1, _ranked(8))
        assert _pairs(matches) == [(1, 8), (4, 5), (2, 7), (3, 6)]
        assert {m.stage for m in matches} == {'quarter-final'}

    def test_more_than_eight_drops_the_rest(self):
        matches = seed_knockout(1, _ranked(10))
        seeded = {t for pair in _pairs(matches) for t in pair}
        assert seeded == set(range(1, 9))

    def test_five_teams_make_semi_finals(self):
        matches = seed_knockout(1, _ranked(5))
        assert _pairs(matches) == [(1, 4), (2, 3)]
        assert {m.stage for m in matches} == {'semi-final'}

    def test_three_teams_is_rejected(self):
        with pytest.raises(ValidationError, match='need at least 4, have 3'):
            seed_knockout(1, _ranked(3))

    def test_matches_are_unsaved_placeholders(self):
        start = datetime(2026, 6, 1, 18, 0)
        matches = seed_knockout(7, _ranked(4), start_time=start, ground='Hall B')
        for m in matches:
            assert m.id is None
            assert m.tournament_id == 7
            assert m.status == 'upcoming'
            assert m.score is None
            assert m.date_time == '2026-06-01T18:00'
            assert m.ground == 'Hall B'

    def test_default_start_time_is_next_day(self):
        now = datetime(2026, 3, 31, 9, 45, 12)
        assert default_start_time(now) == datetime(2026, 4, 1, 18, 0)
        assert default_start_time(now, hour=20).hour == 20


class TestCheckCanAdvance:

    def test_already_knockout(self):
        tournament = Tournament(id=1, name='Cup', phase='knockout')
        with pytest.raises(ValidationError, match='already in the knockout phase'):
            check_can_advance(tournament, _ranked(8))

    def test_existing_stage_matches(self, make_result):
        tournament = Tournament(id=1, name='Cup')
        existing = [make_result(1, 2, [], stage='semi-final', status='upcoming')]
        with pytest.raises(ValidationError, match='already has knockout fixtures'):
            check_can_advance(tournament, _ranked(8), existing)

    def test_ok_with_enough_teams(self):
        check_can_advance(Tournament(id=1, name='Cup'), _ranked(4))


class TestAdvanceToKnockout:
    """The seeding write and phase change against a real store."""

    def _play(self, store, tournament_id, results):
        """Store completed matches; results are (team1, team2, [(a, b), ...])."""
        from core.models import Match, SetScore
        from core.scoring import build_score
        store.insert_matches([
            Match(id=None, tournament_id=tournament_id, team1_id=t1, team2_id=t2,
                  date_time='2026-05-01T18:00', status='completed',
                  score=build_score([SetScore(a, b) for a, b in sets]))
            for t1, t2, sets in results
        ])

    def test_advance_seeds_by_standings(self, store, league):
        # Team 8 beats everyone, team 7 beats all but 8, and so on.
        results = []
        for winner in range(8, 0, -1):
            for loser in range(winner - 1, 0, -1):
                results.append((winner, loser, [(25, 15), (25, 15)]))
        self._play(store, league['id'], results)

        inserted = advance_to_knockout(store, league['id'], start_time=datetime(2026, 7, 1, 18, 0))

        assert [(m.team1_id, m.team2_id) for m in inserted] == [(8, 1), (5, 4), (7, 2), (6, 3)]
        assert all(m.id is not None for m in inserted)
        assert store.get_tournament(league['id']).phase == 'knockout'
        assert len([m for m in store.list_matches(league['id']) if m.stage]) == 4

    def test_roster_without_results_still_seeds(self, store, league):
        """With no results, ranking falls back to name order."""
        inserted = advance_to_knockout(store, league['id'])
        assert [(m.team1_id, m.team2_id) for m in inserted] == [(1, 8), (4, 5), (2, 7), (3, 6)]

    def test_second_advance_is_rejected(self, store, league):
        advance_to_knockout(store, league['id'])
        with pytest.raises(ValidationError):
            advance_to_knockout(store, league['id'])
        assert len(store.list_matches(league['id'])) == 4

    def test_too_few_teams_writes_nothing(self, store, league):
        store.update_record('tournaments', league['id'], {'team_ids': [1, 2, 3]})
        with pytest.raises(ValidationError, match='have 3'):
            advance_to_knockout(store, league['id'])
        assert store.list_matches(league['id']) == []
        assert store.get_tournament(league['id']).phase == 'round-robin'

    def test_missing_tournament(self, store):
        with pytest.raises(ValidationError, match='not found'):
            advance_to_knockout(store, 42)

    def test_failed_phase_update_removes_seeded_matches(self, store, league, monkeypatch):
        def broken_update(tournament_id, phase):
            raise PersistenceError('disk full')
        monkeypatch.setattr(store, 'update_tournament_phase', broken_update)

        with pytest.raises(PersistenceError):
            advance_to_knockout(store, league['id'])
        assert store.list_matches(league['id']) == []
        assert store.get_tournament(league['id']).phase == 'round-robin'
