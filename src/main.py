# Command-line entry point for league administration

import argparse
import os
import sys
from datetime import datetime

from core.errors import LeagueError
from core.knockout import advance_to_knockout, default_start_time
from core.standings import DEFAULT_WIN_POINTS, calculate_standings
from generate_fixtures import generate_round_robin_fixtures
from league_store import LeagueStore


def default_data_dir():
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)
    return os.environ.get('LEAGUE_DATA_DIR', os.path.join(base_dir, 'data'))


def print_standings(store, tournament_id, win_points=DEFAULT_WIN_POINTS):
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        print(f"Tournament {tournament_id} not found")
        return 1

    standings = calculate_standings(tournament.id, store.list_matches(tournament.id), store.list_teams(),
                                    roster=tournament.team_ids, win_points=win_points)
    print(f"\n--- {tournament.name} ({tournament.division}, {tournament.phase}) ---")
    if not standings:
        print("No teams yet.")
        return 0
    print(f"{'#':>3}  {'Team':<24} {'P':>3} {'W':>3} {'D':>3} {'L':>3} {'PF':>5} {'PA':>5} {'Diff':>5} {'Pts':>4}")
    for position, row in enumerate(standings, start=1):
        print(f"{position:>3}  {row.team_name:<24} {row.games_played:>3} {row.wins:>3} {row.draws:>3} "
              f"{row.losses:>3} {row.points_for:>5} {row.points_against:>5} "
              f"{row.point_differential:>+5} {row.points:>4}")
    return 0


def print_fixtures(store, matches):
    teams = {t.id: t for t in store.list_teams()}
    for m in matches:
        team1 = teams.get(m.team1_id)
        team2 = teams.get(m.team2_id)
        stage = f" [{m.stage}]" if m.stage else ""
        print(f"  {m.date_time}{stage}: {team1.name if team1 else m.team1_id} vs "
              f"{team2.name if team2 else m.team2_id} @ {m.ground}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Volleyball league administration')
    parser.add_argument('--data-dir', default=None, help='League data directory (default: LEAGUE_DATA_DIR or ./data)')
    sub = parser.add_subparsers(dest='command', required=True)

    p_standings = sub.add_parser('standings', help='Print the league table for a tournament')
    p_standings.add_argument('tournament_id', type=int)
    p_standings.add_argument('--win-points', type=int, default=None,
                             help='Points per win (default: win_points in settings.yaml)')

    p_rr = sub.add_parser('round-robin', help='Create missing round-robin fixtures for a tournament')
    p_rr.add_argument('tournament_id', type=int)
    p_rr.add_argument('--first-date', help='First round, e.g. 2026-05-01T18:00 (default: tomorrow at knockout_start_hour)')
    p_rr.add_argument('--days-between-rounds', type=int, default=7)

    p_adv = sub.add_parser('advance', help='Seed the knockout round from current standings')
    p_adv.add_argument('tournament_id', type=int)
    p_adv.add_argument('--win-points', type=int, default=None,
                       help='Points per win (default: win_points in settings.yaml)')

    p_admin = sub.add_parser('create-admin', help='Create an admin login')
    p_admin.add_argument('username')
    p_admin.add_argument('password')

    args = parser.parse_args(argv)
    data_dir = args.data_dir or default_data_dir()

    if args.command == 'create-admin':
        os.environ['LEAGUE_DATA_DIR'] = data_dir
        import app as app_module
        app_module.USERS_FILE = os.path.join(data_dir, 'users.yaml')
        ok, message = app_module.create_user(args.username, args.password, role='admin')
        print(message)
        return 0 if ok else 1

    store = LeagueStore(data_dir)
    settings = store.load_settings()
    win_points = getattr(args, 'win_points', None) or settings['win_points']
    try:
        if args.command == 'standings':
            return print_standings(store, args.tournament_id, win_points)

        if args.command == 'round-robin':
            tournament = store.get_tournament(args.tournament_id)
            if tournament is None:
                print(f"Tournament {args.tournament_id} not found")
                return 1
            first_date = (datetime.fromisoformat(args.first_date) if args.first_date
                          else default_start_time(hour=settings['knockout_start_hour']))
            with store.locked():
                fixtures = generate_round_robin_fixtures(
                    tournament.id, tournament.team_ids, first_date,
                    ground=settings['fixture_ground'],
                    days_between_rounds=args.days_between_rounds,
                    existing_matches=store.list_matches(tournament.id),
                )
                inserted = store.insert_matches(fixtures) if fixtures else []
            print(f"\n--- Created {len(inserted)} fixtures ---")
            print_fixtures(store, inserted)
            return 0

        if args.command == 'advance':
            inserted = advance_to_knockout(
                store, args.tournament_id,
                win_points=win_points,
                start_time=default_start_time(hour=settings['knockout_start_hour']),
                ground=settings['knockout_ground'],
            )
            print(f"\n--- Knockout seeded: {len(inserted)} {inserted[0].stage} matches ---")
            print_fixtures(store, inserted)
            return 0
    except (LeagueError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
