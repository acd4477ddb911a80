"""
Tests for the league table: accumulation of results and tie-break ordering.
"""
import pytest
import sys
import os
import random

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.models import StandingRow, Team
from core.standings import calculate_standings, compare_standings, sort_standings


def _row(team_id, name, points=0, points_for=0, points_against=0):
    row = StandingRow(team_id, name)
    row.points = points
    row.points_for = points_for
    row.points_against = points_against
    return row


class TestCalculateStandings:
    """Accumulating completed round-robin results into rows."""

    def test_single_three_set_win(self, sample_teams, make_result):
        """25-23, 22-25, 15-10: three points and +4 for the winner."""
        match = make_result(1, 2, [(25, 23), (22, 25), (15, 10)])
        rows = {r.team_id: r for r in calculate_standings(1, [match], sample_teams)}

        winner, loser = rows[1], rows[2]
        assert (winner.games_played, winner.wins, winner.losses, winner.points) == (1, 1, 0, 3)
        assert (winner.points_for, winner.points_against, winner.point_differential) == (62, 58, 4)
        assert (loser.wins, loser.losses, loser.points, loser.point_differential) == (0, 1, 0, -4)

    def test_only_teams_in_results_without_roster(self, sample_teams, make_result):
        rows = calculate_standings(1, [make_result(1, 2, [(25, 10)])], sample_teams)
        assert {r.team_id for r in rows} == {1, 2}

    def test_roster_teams_appear_with_zero_rows(self, sample_teams, make_result):
        rows = calculate_standings(1, [make_result(1, 2, [(25, 10)])], sample_teams, roster=[1, 2, 3, 4])
        by_id = {r.team_id: r for r in rows}
        assert set(by_id) == {1, 2, 3, 4}
        assert by_id[3].games_played == 0
        assert by_id[3].points == 0

    def test_ignores_other_tournaments_knockouts_and_unfinished(self, sample_teams, make_result):
        matches = [
            make_result(1, 2, [(25, 10)], tournament_id=2),
            make_result(1, 2, [(25, 10)], stage='semi-final'),
            make_result(1, 2, [(25, 10)], status='live'),
            make_result(3, 4, [(25, 10)]),
        ]
        rows = calculate_standings(1, matches, sample_teams)
        assert {r.team_id for r in rows} == {3, 4}

    def test_completed_without_sets_is_skipped(self, sample_teams, make_result):
        match = make_result(1, 2, [])
        rows = {r.team_id: r for r in calculate_standings(1, [match], sample_teams)}
        assert rows[1].games_played == 0
        assert rows[2].games_played == 0

    def test_level_sets_count_as_draw(self, sample_teams, make_result):
        match = make_result(1, 2, [(25, 20), (20, 25)])
        rows = {r.team_id: r for r in calculate_standings(1, [match], sample_teams)}
        assert rows[1].draws == rows[2].draws == 1
        assert rows[1].points == rows[2].points == 1

    def test_flagged_set_winner_decides_level_set(self, sample_teams):
        """A set level on points counts for the side flagged as its winner."""
        from core.models import Match, SetScore
        from core.scoring import build_score
        sets = [SetScore(25, 20), SetScore(20, 25), SetScore(15, 15, winner='team2')]
        match = Match(id=1, tournament_id=1, team1_id=1, team2_id=2, status='completed',
                      score=build_score(sets))
        rows = {r.team_id: r for r in calculate_standings(1, [match], sample_teams, win_points=2)}

        assert (rows[2].wins, rows[2].points) == (1, 2)
        assert (rows[1].losses, rows[1].points) == (1, 0)
        assert rows[1].draws == rows[2].draws == 0
        assert rows[1].point_differential == rows[2].point_differential == 0

    def test_configurable_win_points(self, sample_teams, make_result):
        rows = calculate_standings(1, [make_result(1, 2, [(25, 10)])], sample_teams, win_points=2)
        assert rows[0].points == 2

    def test_unknown_team_ids_are_ignored(self, sample_teams, make_result):
        rows = calculate_standings(1, [make_result(1, 99, [(25, 10)])], sample_teams, roster=[1])
        assert [r.team_id for r in rows] == [1]
        assert rows[0].games_played == 0

    def test_wins_balance_losses(self, sample_teams, make_result):
        """Every decided match adds one win and one loss."""
        rng = random.Random(42)
        matches = []
        for i in range(1, 9):
            for j in range(i + 1, 9):
                sets = [(rng.randint(10, 25), rng.randint(10, 25)) for _ in range(3)]
                matches.append(make_result(i, j, sets))
        rows = calculate_standings(1, matches, sample_teams)
        assert sum(r.wins for r in rows) == sum(r.losses for r in rows)
        assert sum(r.points_for for r in rows) == sum(r.points_against for r in rows)
        assert sum(r.games_played for r in rows) == 2 * len(matches)


class TestTieBreaks:
    """Ordering of rows: points, differential, points-for, name."""

    def test_points_first(self):
        rows = sort_standings([_row(1, 'A', points=3), _row(2, 'B', points=6)])
        assert [r.team_id for r in rows] == [2, 1]

    def test_differential_breaks_points_tie(self):
        rows = sort_standings([
            _row(1, 'A', points=3, points_for=50, points_against=50),
            _row(2, 'B', points=3, points_for=50, points_against=40),
        ])
        assert [r.team_id for r in rows] == [2, 1]

    def test_points_for_breaks_differential_tie(self):
        rows = sort_standings([
            _row(1, 'A', points=3, points_for=50, points_against=45),
            _row(2, 'B', points=3, points_for=60, points_against=55),
        ])
        assert [r.team_id for r in rows] == [2, 1]

    def test_name_is_last_resort_and_ignores_case(self):
        rows = sort_standings([_row(1, 'bravo'), _row(2, 'Alpha'), _row(3, 'charlie')])
        assert [r.team_name for r in rows] == ['Alpha', 'bravo', 'charlie']

    def test_compare_is_consistent(self):
        a = _row(1, 'A', points=6)
        b = _row(2, 'B', points=3)
        assert compare_standings(a, b) == -1
        assert compare_standings(b, a) == 1
        assert compare_standings(a, a) == 0

    def test_identical_names_still_ordered(self):
        a, b = _row(1, 'Same'), _row(2, 'Same')
        assert compare_standings(a, b) == -compare_standings(b, a) != 0

    def test_sort_is_idempotent_and_input_order_free(self):
        rows = [_row(i, f'Team {i % 3}', points=i % 4, points_for=i * 7 % 11) for i in range(12)]
        once = sort_standings(rows)
        shuffled = list(rows)
        random.Random(7).shuffle(shuffled)
        assert sort_standings(once) == once
        assert [r.team_id for r in sort_standings(shuffled)] == [r.team_id for r in once]

    def test_sort_returns_new_list(self):
        rows = [_row(1, 'B'), _row(2, 'A')]
        result = sort_standings(rows)
        assert result is not rows
        assert [r.team_id for r in rows] == [1, 2]
