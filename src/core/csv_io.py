"""
CSV bulk import and export of teams, players and standings.

Import is an upsert keyed by name: names are resolved to ids once, up front,
and everything after that works on ids.
"""
import csv
import io
from typing import Dict, Iterable, List, Tuple

from core.errors import ValidationError
from core.models import DIVISIONS

TEAM_COLUMNS = ['name', 'shortName', 'division', 'logoUrl']
TEAM_REQUIRED = ['name', 'shortName', 'division']
PLAYER_COLUMNS = ['name', 'teamName', 'role', 'photoUrl', 'matches', 'aces', 'kills', 'blocks']
PLAYER_REQUIRED = ['name', 'teamName', 'role']
PLAYER_STATS = ['matches', 'aces', 'kills', 'blocks']
STANDINGS_COLUMNS = ['position', 'team', 'played', 'wins', 'draws', 'losses',
                     'points_for', 'points_against', 'point_differential', 'points']


def _name_key(name) -> str:
    return str(name or '').strip().casefold()


def _read_rows(text: str, required: List[str]) -> List[Dict[str, str]]:
    """Parse CSV text with a header row, checking required columns per row.

    Row numbers in errors count the header as row 1.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip('\ufeff')))
    if not reader.fieldnames:
        raise ValidationError('CSV file is empty')
    header = [h.strip() for h in reader.fieldnames]
    missing = [c for c in required if c not in header]
    if missing:
        raise ValidationError(f'CSV is missing required columns: {", ".join(missing)}')

    rows = []
    for line_no, raw in enumerate(reader, start=2):
        row = {(k or '').strip(): (v or '').strip() for k, v in raw.items() if isinstance(v, str)}
        if not any(row.values()):
            continue
        for col in required:
            if not row.get(col):
                raise ValidationError(f"Validation failed at CSV row {line_no}. Column '{col}' cannot be empty.")
        row['_row'] = line_no
        rows.append(row)
    return rows


def read_team_rows(text: str) -> List[Dict[str, str]]:
    rows = _read_rows(text, TEAM_REQUIRED)
    for row in rows:
        if row['division'] not in DIVISIONS:
            raise ValidationError(
                f"Validation failed at CSV row {row['_row']}. Division must be exactly "
                f"'{DIVISIONS[0]}' or '{DIVISIONS[1]}'."
            )
    return rows


def read_player_rows(text: str) -> List[Dict[str, str]]:
    rows = _read_rows(text, PLAYER_REQUIRED)
    for row in rows:
        for stat in PLAYER_STATS:
            value = row.get(stat, '')
            if value and not value.isdigit():
                raise ValidationError(
                    f"Validation failed at CSV row {row['_row']}. Column '{stat}' must be a whole number."
                )
    return rows


def build_name_index(records: Iterable[dict]) -> Dict[str, int]:
    """Map trimmed, case-folded names to record ids."""
    index = {}
    for record in records:
        key = _name_key(record.get('name'))
        if key and key not in index:
            index[key] = record['id']
    return index


def upsert_teams(store, rows: List[Dict[str, str]]) -> Tuple[int, int]:
    """Create or update teams by name. Returns (created, updated)."""
    created = updated = 0
    with store.locked():
        index = build_name_index(store.list_records('teams'))
        for row in rows:
            fields = {
                'name': row['name'],
                'short_name': row['shortName'],
                'division': row['division'],
            }
            if row.get('logoUrl'):
                fields['logo_url'] = row['logoUrl']
            team_id = index.get(_name_key(row['name']))
            if team_id is not None:
                store.update_record('teams', team_id, fields)
                updated += 1
            else:
                fields.setdefault('logo_url', '')
                fields['club_id'] = None
                record = store.insert_record('teams', fields)
                index[_name_key(row['name'])] = record['id']
                created += 1
    return created, updated


def upsert_players(store, rows: List[Dict[str, str]]) -> Tuple[int, int]:
    """Create or update players by name. Each row's teamName must be a known team.

    Returns (created, updated).
    """
    created = updated = 0
    with store.locked():
        team_index = build_name_index(store.list_records('teams'))
        for row in rows:
            if _name_key(row['teamName']) not in team_index:
                raise ValidationError(
                    f"Validation failed at CSV row {row['_row']}. Team '{row['teamName']}' does not exist."
                )

        player_index = build_name_index(store.list_records('players'))
        for row in rows:
            fields = {
                'name': row['name'],
                'team_id': team_index[_name_key(row['teamName'])],
                'role': row['role'],
                'stats': {stat: int(row.get(stat) or 0) for stat in PLAYER_STATS},
            }
            if row.get('photoUrl'):
                fields['photo_url'] = row['photoUrl']
            player_id = player_index.get(_name_key(row['name']))
            if player_id is not None:
                store.update_record('players', player_id, fields)
                updated += 1
            else:
                fields.setdefault('photo_url', '')
                record = store.insert_record('players', fields)
                player_index[_name_key(row['name'])] = record['id']
                created += 1
    return created, updated


def _write_csv(fieldnames: List[str], rows: Iterable[dict]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=fieldnames)
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()


def export_teams_csv(teams: Iterable[dict]) -> str:
    """Teams in the import format."""
    return _write_csv(TEAM_COLUMNS, (
        {
            'name': t.get('name', ''),
            'shortName': t.get('short_name', ''),
            'division': t.get('division', ''),
            'logoUrl': t.get('logo_url') or '',
        }
        for t in teams
    ))


def export_players_csv(players: Iterable[dict], teams: Iterable[dict]) -> str:
    """Players in the import format, with their team resolved to a name."""
    team_names = {t['id']: t.get('name', '') for t in teams}
    rows = []
    for p in players:
        stats = p.get('stats') or {}
        row = {
            'name': p.get('name', ''),
            'teamName': team_names.get(p.get('team_id'), 'N/A'),
            'role': p.get('role', ''),
            'photoUrl': p.get('photo_url') or '',
        }
        for stat in PLAYER_STATS:
            row[stat] = stats.get(stat, 0)
        rows.append(row)
    return _write_csv(PLAYER_COLUMNS, rows)


def export_standings_csv(standings) -> str:
    """A ranked league table, one row per StandingRow."""
    return _write_csv(STANDINGS_COLUMNS, (
        {
            'position': position,
            'team': row.team_name,
            'played': row.games_played,
            'wins': row.wins,
            'draws': row.draws,
            'losses': row.losses,
            'points_for': row.points_for,
            'points_against': row.points_against,
            'point_differential': row.point_differential,
            'points': row.points,
        }
        for position, row in enumerate(standings, start=1)
    ))
