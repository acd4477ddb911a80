"""
Flask web application for the volleyball league.
"""
import os
import re
import logging
import yaml
from datetime import datetime, timedelta
from functools import wraps
from flask import Flask, request, jsonify, redirect, url_for, Response, session, g, abort
from filelock import FileLock, Timeout
from core.errors import ValidationError, PersistenceError
from core.models import DIVISIONS, MATCH_STATUSES, KNOCKOUT_STAGES, PHASE_ROUND_ROBIN, Match
from core.scoring import build_score, parse_sets
from core.standings import calculate_standings
from core.knockout import advance_to_knockout, default_start_time, DEFAULT_KNOCKOUT_GROUND
from core.csv_io import (read_team_rows, read_player_rows, upsert_teams, upsert_players,
                         export_teams_csv, export_players_csv, export_standings_csv)
from generate_fixtures import generate_round_robin_fixtures, DEFAULT_FIXTURE_GROUND
from league_store import LeagueStore, write_yaml_atomic

app = Flask(__name__)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('LEAGUE_DATA_DIR', os.path.join(BASE_DIR, 'data'))

app.secret_key = _get_or_create_secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)

USERS_FILE = os.path.join(DATA_DIR, 'users.yaml')
USER_ROLES = ('admin', 'captain')
PLAYER_ROLES = ('Setter', 'Outside Hitter', 'Middle Blocker', 'Opposite Hitter', 'Libero')
NOTICE_LEVELS = ('info', 'warning', 'urgent')

# Collections edited through the generic record routes.
# required: fields that must be non-empty on create; defaults: optional fields.
RECORD_SCHEMAS = {
    'players': {
        'required': ['name', 'team_id', 'role'],
        'defaults': {'photo_url': '', 'stats': {'matches': 0, 'aces': 0, 'kills': 0, 'blocks': 0}},
    },
    'clubs': {
        'required': ['name'],
        'defaults': {'logo_url': '', 'description': ''},
    },
    'sponsors': {
        'required': ['name'],
        'defaults': {'logo_url': '', 'website': ''},
    },
    'notices': {
        'required': ['title', 'message'],
        'defaults': {'level': 'info', 'active': True, 'expires_at': None},
    },
    'transfers': {
        'required': ['player_id'],
        'defaults': {'from_team_id': None, 'to_team_id': None, 'transfer_date': None, 'note': ''},
    },
    'awards': {
        'required': ['title'],
        'defaults': {'player_id': None, 'team_id': None, 'season': '', 'description': ''},
    },
}


def get_store() -> LeagueStore:
    """Return the data store for the current request."""
    if 'store' not in g:
        g.store = LeagueStore(DATA_DIR)
    return g.store


def _users_lock() -> FileLock:
    """Lock guarding read-modify-write of the user registry."""
    return FileLock(USERS_FILE + '.lock', timeout=10)


def load_users() -> list:
    """Load user registry from YAML."""
    if not os.path.exists(USERS_FILE):
        return []
    try:
        with open(USERS_FILE, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data.get('users', []) if data else []
    except Exception as e:
        app.logger.warning(f'Failed to parse {USERS_FILE}: {e}')
        return []


def save_users(users: list):
    """Save user registry to YAML. Callers hold _users_lock()."""
    write_yaml_atomic(USERS_FILE, {'users': users})


def create_user(username: str, password: str, role: str = 'admin') -> tuple:
    """Create a new user. Returns (success, message)."""
    from werkzeug.security import generate_password_hash
    username = username.lower().strip()
    if not re.match(r'^[a-z0-9][a-z0-9-]*$', username) or len(username) < 2:
        return False, 'Username must be at least 2 characters: letters, numbers, hyphens.'
    if len(password) < 8:
        return False, 'Password must be at least 8 characters.'
    if role not in USER_ROLES:
        return False, f'Role must be one of: {", ".join(USER_ROLES)}.'
    try:
        with _users_lock():
            users = load_users()
            if any(u['username'] == username for u in users):
                return False, 'Username already taken.'
            users.append({
                'username': username,
                'password_hash': generate_password_hash(password),
                'role': role,
                'created': datetime.now().isoformat()
            })
            save_users(users)
    except Timeout:
        app.logger.warning(f'Timed out waiting for {USERS_FILE}.lock')
        return False, 'User registry is busy, please try again.'
    return True, 'Account created successfully.'


def authenticate_user(username: str, password: str):
    """Check username/password. Returns the user record, or None."""
    from werkzeug.security import check_password_hash
    for u in load_users():
        if u['username'] == username.lower().strip():
            if check_password_hash(u['password_hash'], password):
                return u
            return None
    return None


def login_required(f):
    """Reject the request unless a user is logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'error': 'Login required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Reject the request unless the logged-in user is an admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'error': 'Login required'}), 401
        if session.get('role') != 'admin':
            return jsonify({'error': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated_function


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(PersistenceError)
def handle_persistence_error(e):
    app.logger.error(f'Data store error on {request.path}: {e}')
    return jsonify({'error': 'Could not access league data. Please try again.'}), 500


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object')
    return data


def _require_record(collection, record_id):
    record = get_store().get_record(collection, record_id)
    if record is None:
        abort(404)
    return record


def _require_tournament(tournament_id):
    tournament = get_store().get_tournament(tournament_id)
    if tournament is None:
        abort(404)
    return tournament


def _check_team_ids(team_ids):
    """Raise ValidationError unless every id is an existing team."""
    if not isinstance(team_ids, list):
        raise ValidationError('team_ids must be a list')
    known = {t.id for t in get_store().list_teams()}
    unknown = [t for t in team_ids if t not in known]
    if unknown:
        raise ValidationError(f'Unknown team ids: {unknown}')


def _match_dict(match: Match, teams_by_id: dict) -> dict:
    data = match.to_dict()
    team1 = teams_by_id.get(match.team1_id)
    team2 = teams_by_id.get(match.team2_id)
    data['team1_name'] = team1.name if team1 else None
    data['team2_name'] = team2.name if team2 else None
    return data


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


def _uploaded_text() -> str:
    """CSV text from a multipart 'file' field or the raw request body."""
    upload = request.files.get('file')
    if upload is not None:
        return upload.read().decode('utf-8-sig')
    return request.get_data(as_text=True)


# Auth

@app.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or request.form
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    user = authenticate_user(username, password)
    if user is None:
        return jsonify({'error': 'Invalid username or password'}), 401
    session.permanent = True
    session['user'] = user['username']
    session['role'] = user.get('role', 'captain')
    app.logger.info(f'User {user["username"]} logged in')
    return jsonify({'success': True, 'user': user['username'], 'role': session['role']})


@app.route('/logout')
def logout():
    session.pop('user', None)
    session.pop('role', None)
    return redirect(url_for('index'))


@app.route('/')
def index():
    """League overview: tournaments by division, live and next fixtures."""
    store = get_store()
    settings = store.load_settings()
    teams_by_id = {t.id: t for t in store.list_teams()}
    matches = sorted(store.list_matches(), key=lambda m: m.date_time or '')
    tournaments = store.list_tournaments()
    return jsonify({
        'league_name': settings['league_name'],
        'divisions': {
            division: [t.to_dict() for t in tournaments if t.division == division]
            for division in DIVISIONS
        },
        'live': [_match_dict(m, teams_by_id) for m in matches if m.status == 'live'],
        'upcoming': [_match_dict(m, teams_by_id) for m in matches if m.status == 'upcoming'][:10],
    })


@app.route('/api/settings', methods=['GET'])
def api_get_settings():
    return jsonify(get_store().load_settings())


@app.route('/api/settings', methods=['POST'])
@admin_required
def api_update_settings():
    data = _json_body()
    store = get_store()
    with store.locked():
        settings = store.load_settings()
        if 'league_name' in data:
            settings['league_name'] = str(data['league_name']).strip() or settings['league_name']
        if 'win_points' in data:
            if data['win_points'] not in (2, 3):
                raise ValidationError('win_points must be 2 or 3')
            settings['win_points'] = data['win_points']
        if 'knockout_ground' in data:
            settings['knockout_ground'] = str(data['knockout_ground']).strip() or DEFAULT_KNOCKOUT_GROUND
        if 'fixture_ground' in data:
            settings['fixture_ground'] = str(data['fixture_ground']).strip() or DEFAULT_FIXTURE_GROUND
        if 'knockout_start_hour' in data:
            hour = data['knockout_start_hour']
            if not isinstance(hour, int) or not 0 <= hour <= 23:
                raise ValidationError('knockout_start_hour must be between 0 and 23')
            settings['knockout_start_hour'] = hour
        store.save_settings(settings)
    return jsonify({'success': True, 'settings': settings})


# Tournaments

def _validate_tournament_fields(data, partial=False):
    fields = {}
    if 'name' in data or not partial:
        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError('Tournament name is required')
        fields['name'] = name
    if 'division' in data or not partial:
        if data.get('division') not in DIVISIONS:
            raise ValidationError(f'Division must be one of: {", ".join(DIVISIONS)}')
        fields['division'] = data['division']
    if 'team_ids' in data:
        _check_team_ids(data['team_ids'])
        fields['team_ids'] = list(dict.fromkeys(data['team_ids']))
    return fields


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    division = request.args.get('division')
    tournaments = get_store().list_tournaments()
    if division:
        tournaments = [t for t in tournaments if t.division == division]
    return jsonify([t.to_dict() for t in sorted(tournaments, key=lambda t: t.name.casefold())])


@app.route('/api/tournaments', methods=['POST'])
@admin_required
def api_create_tournament():
    fields = _validate_tournament_fields(_json_body())
    fields.setdefault('team_ids', [])
    fields['phase'] = PHASE_ROUND_ROBIN
    record = get_store().insert_record('tournaments', fields)
    app.logger.info(f'Tournament "{record["name"]}" created')
    return jsonify(record), 201


@app.route('/api/tournaments/<int:tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    tournament = _require_tournament(tournament_id)
    teams_by_id = {t.id: t for t in get_store().list_teams()}
    data = tournament.to_dict()
    data['teams'] = [teams_by_id[tid].to_dict() for tid in tournament.team_ids if tid in teams_by_id]
    return jsonify(data)


@app.route('/api/tournaments/<int:tournament_id>', methods=['PUT'])
@admin_required
def api_update_tournament(tournament_id):
    _require_tournament(tournament_id)
    fields = _validate_tournament_fields(_json_body(), partial=True)
    record = get_store().update_record('tournaments', tournament_id, fields)
    return jsonify(record)


@app.route('/api/tournaments/<int:tournament_id>', methods=['DELETE'])
@admin_required
def api_delete_tournament(tournament_id):
    store = get_store()
    with store.locked():
        _require_tournament(tournament_id)
        removed = store.delete_matches([m.id for m in store.list_matches(tournament_id)])
        store.delete_record('tournaments', tournament_id)
    app.logger.info(f'Tournament {tournament_id} deleted with {removed} fixtures')
    return jsonify({'success': True, 'deleted_fixtures': removed})


@app.route('/api/tournaments/<int:tournament_id>/fixtures', methods=['GET'])
def api_tournament_fixtures(tournament_id):
    _require_tournament(tournament_id)
    store = get_store()
    teams_by_id = {t.id: t for t in store.list_teams()}
    matches = sorted(store.list_matches(tournament_id), key=lambda m: m.date_time or '')
    status = request.args.get('status')
    if status:
        matches = [m for m in matches if m.status == status]
    return jsonify([_match_dict(m, teams_by_id) for m in matches])


def _tournament_standings(tournament):
    store = get_store()
    settings = store.load_settings()
    return calculate_standings(tournament.id, store.list_matches(tournament.id), store.list_teams(),
                               roster=tournament.team_ids, win_points=settings['win_points'])


@app.route('/api/tournaments/<int:tournament_id>/standings', methods=['GET'])
def api_tournament_standings(tournament_id):
    tournament = _require_tournament(tournament_id)
    standings = _tournament_standings(tournament)
    return jsonify({
        'tournament': tournament.to_dict(),
        'win_points': get_store().load_settings()['win_points'],
        'standings': [row.to_dict() for row in standings],
    })


@app.route('/api/tournaments/<int:tournament_id>/standings.csv', methods=['GET'])
def api_tournament_standings_csv(tournament_id):
    tournament = _require_tournament(tournament_id)
    content = export_standings_csv(_tournament_standings(tournament))
    return _csv_response(content, f'standings_{tournament_id}.csv')


@app.route('/api/tournaments/<int:tournament_id>/bracket', methods=['GET'])
def api_tournament_bracket(tournament_id):
    tournament = _require_tournament(tournament_id)
    store = get_store()
    teams_by_id = {t.id: t for t in store.list_teams()}
    knockout = sorted((m for m in store.list_matches(tournament_id) if m.stage), key=lambda m: m.id)
    return jsonify({
        'phase': tournament.phase,
        'rounds': {
            stage: [_match_dict(m, teams_by_id) for m in knockout if m.stage == stage]
            for stage in KNOCKOUT_STAGES
        },
    })


@app.route('/api/tournaments/<int:tournament_id>/advance', methods=['POST'])
@admin_required
def api_advance_tournament(tournament_id):
    """Seed the knockout round from the current standings."""
    _require_tournament(tournament_id)
    settings = get_store().load_settings()
    inserted = advance_to_knockout(
        get_store(), tournament_id,
        win_points=settings['win_points'],
        start_time=default_start_time(hour=settings['knockout_start_hour']),
        ground=settings['knockout_ground'],
    )
    app.logger.info(f'Tournament {tournament_id} moved to knockout ({len(inserted)} fixtures)')
    teams_by_id = {t.id: t for t in get_store().list_teams()}
    return jsonify({
        'success': True,
        'phase': 'knockout',
        'fixtures': [_match_dict(m, teams_by_id) for m in inserted],
    }), 201


@app.route('/api/tournaments/<int:tournament_id>/round-robin', methods=['POST'])
@admin_required
def api_generate_round_robin(tournament_id):
    """Create the missing round-robin fixtures for the tournament roster."""
    tournament = _require_tournament(tournament_id)
    data = request.get_json(silent=True) or {}
    settings = get_store().load_settings()

    first_date = data.get('first_date')
    if first_date:
        try:
            first_date = datetime.fromisoformat(first_date)
        except (TypeError, ValueError):
            raise ValidationError('first_date must be an ISO date, e.g. 2026-05-01T18:00')
    else:
        first_date = default_start_time(hour=settings['knockout_start_hour'])

    days_between = data.get('days_between_rounds', 7)
    if not isinstance(days_between, int) or days_between < 1:
        raise ValidationError('days_between_rounds must be a positive whole number')

    store = get_store()
    with store.locked():
        fixtures = generate_round_robin_fixtures(
            tournament.id, tournament.team_ids, first_date,
            ground=data.get('ground') or settings['fixture_ground'],
            days_between_rounds=days_between,
            existing_matches=store.list_matches(tournament.id),
        )
        inserted = store.insert_matches(fixtures) if fixtures else []
    teams_by_id = {t.id: t for t in store.list_teams()}
    return jsonify({
        'success': True,
        'created': len(inserted),
        'fixtures': [_match_dict(m, teams_by_id) for m in inserted],
    }), 201


# Teams

def _validate_team_fields(data, partial=False):
    fields = {}
    for key, label in (('name', 'Team name'), ('short_name', 'Short name')):
        if key in data or not partial:
            value = str(data.get(key) or '').strip()
            if not value:
                raise ValidationError(f'{label} is required')
            fields[key] = value
    if 'division' in data or not partial:
        if data.get('division') not in DIVISIONS:
            raise ValidationError(f'Division must be one of: {", ".join(DIVISIONS)}')
        fields['division'] = data['division']
    if 'logo_url' in data:
        fields['logo_url'] = str(data.get('logo_url') or '').strip()
    if 'club_id' in data:
        club_id = data['club_id']
        if club_id is not None and get_store().get_record('clubs', club_id) is None:
            raise ValidationError(f'Club {club_id} not found')
        fields['club_id'] = club_id
    if 'captain' in data:
        captain = data['captain'] or None
        if captain is not None and not any(
                u['username'] == captain and u.get('role') == 'captain' for u in load_users()):
            raise ValidationError(f'No captain account named "{captain}"')
        fields['captain'] = captain
    return fields


@app.route('/api/teams', methods=['GET'])
def api_list_teams():
    teams = get_store().list_teams()
    division = request.args.get('division')
    if division:
        teams = [t for t in teams if t.division == division]
    return jsonify([t.to_dict() for t in sorted(teams, key=lambda t: t.name.casefold())])


@app.route('/api/teams', methods=['POST'])
@admin_required
def api_create_team():
    fields = _validate_team_fields(_json_body())
    fields.setdefault('logo_url', '')
    fields.setdefault('club_id', None)
    fields.setdefault('captain', None)
    store = get_store()
    with store.locked():
        if any(t.name.casefold() == fields['name'].casefold() for t in store.list_teams()):
            raise ValidationError(f'A team named "{fields["name"]}" already exists')
        record = store.insert_record('teams', fields)
    return jsonify(record), 201


@app.route('/api/teams/<int:team_id>', methods=['GET'])
def api_get_team(team_id):
    team = _require_record('teams', team_id)
    players = [p for p in get_store().list_records('players') if p.get('team_id') == team_id]
    return jsonify({**team, 'players': sorted(players, key=lambda p: p.get('name', '').casefold())})


@app.route('/api/teams/<int:team_id>', methods=['PUT'])
@admin_required
def api_update_team(team_id):
    _require_record('teams', team_id)
    record = get_store().update_record('teams', team_id, _validate_team_fields(_json_body(), partial=True))
    return jsonify(record)


@app.route('/api/teams/<int:team_id>', methods=['DELETE'])
@admin_required
def api_delete_team(team_id):
    store = get_store()
    with store.locked():
        _require_record('teams', team_id)
        if any(team_id in (m.team1_id, m.team2_id) for m in store.list_matches()):
            raise ValidationError('Team has fixtures; delete them first')
        store.delete_record('teams', team_id)
    return jsonify({'success': True})


# Captain dashboard: captains manage the players of the teams they captain

def _managed_team(team_id):
    """The team, if the logged-in user may manage its players."""
    team = get_store().get_team(team_id)
    if team is None:
        abort(404)
    if session.get('role') != 'admin' and team.captain != session['user']:
        return None
    return team


def _forbidden():
    return jsonify({'error': 'You do not captain this team'}), 403


@app.route('/api/my-teams', methods=['GET'])
@login_required
def api_my_teams():
    """Teams captained by the logged-in user, with players and eligible tournaments."""
    store = get_store()
    players = store.list_records('players')
    tournaments = store.list_tournaments()
    result = []
    for team in store.list_teams():
        if team.captain != session['user']:
            continue
        data = team.to_dict()
        data['players'] = sorted((p for p in players if p.get('team_id') == team.id),
                                 key=lambda p: p.get('name', '').casefold())
        data['tournaments'] = [t.to_dict() for t in tournaments if t.division == team.division]
        result.append(data)
    return jsonify(result)


@app.route('/api/my-teams/<int:team_id>/players', methods=['POST'])
@login_required
def api_captain_add_player(team_id):
    team = _managed_team(team_id)
    if team is None:
        return _forbidden()
    data = _json_body()
    data['team_id'] = team.id
    record = get_store().insert_record('players', _validate_record('players', data))
    app.logger.info(f'{session["user"]} added player {record["id"]} to team {team.id}')
    return jsonify(record), 201


def _team_player(team, player_id):
    player = _require_record('players', player_id)
    if player.get('team_id') != team.id:
        abort(404)
    return player


@app.route('/api/my-teams/<int:team_id>/players/<int:player_id>', methods=['PUT'])
@login_required
def api_captain_update_player(team_id, player_id):
    team = _managed_team(team_id)
    if team is None:
        return _forbidden()
    _team_player(team, player_id)
    # team changes go through /api/transfers
    data = {k: v for k, v in _json_body().items() if k != 'team_id'}
    record = get_store().update_record('players', player_id, _validate_record('players', data, partial=True))
    return jsonify(record)


@app.route('/api/my-teams/<int:team_id>/players/<int:player_id>', methods=['DELETE'])
@login_required
def api_captain_remove_player(team_id, player_id):
    team = _managed_team(team_id)
    if team is None:
        return _forbidden()
    _team_player(team, player_id)
    get_store().delete_record('players', player_id)
    return jsonify({'success': True})


# Fixtures

def _validate_fixture_fields(data, current=None):
    """Validate fixture fields, merged over the current record when updating."""
    store = get_store()
    merged = dict(current or {})
    merged.update({k: v for k, v in data.items() if k not in ('id', 'score')})

    if store.get_tournament(merged.get('tournament_id')) is None:
        raise ValidationError('Tournament not found')
    known_teams = {t.id for t in store.list_teams()}
    for key in ('team1_id', 'team2_id'):
        if merged.get(key) not in known_teams:
            raise ValidationError(f'{key} must be an existing team')
    if merged['team1_id'] == merged['team2_id']:
        raise ValidationError('A fixture needs two different teams')
    if merged.get('status', 'upcoming') not in MATCH_STATUSES:
        raise ValidationError(f'Status must be one of: {", ".join(MATCH_STATUSES)}')
    if merged.get('stage') and merged['stage'] not in KNOCKOUT_STAGES:
        raise ValidationError(f'Stage must be one of: {", ".join(KNOCKOUT_STAGES)}')
    if not merged.get('date_time'):
        raise ValidationError('date_time is required')
    try:
        datetime.fromisoformat(str(merged['date_time']))
    except ValueError:
        raise ValidationError('date_time must be an ISO date and time')

    return {
        'tournament_id': merged['tournament_id'],
        'team1_id': merged['team1_id'],
        'team2_id': merged['team2_id'],
        'date_time': str(merged['date_time']),
        'ground': str(merged.get('ground') or '').strip(),
        'status': merged.get('status', 'upcoming'),
        'stage': merged.get('stage') or None,
        'referee': merged.get('referee'),
    }


@app.route('/api/fixtures', methods=['POST'])
@admin_required
def api_create_fixture():
    fields = _validate_fixture_fields(_json_body())
    match = Match(id=None, **fields)
    inserted = get_store().insert_matches([match])[0]
    return jsonify(inserted.to_dict()), 201


@app.route('/api/fixtures/<int:match_id>', methods=['GET'])
def api_get_fixture(match_id):
    match = get_store().get_match(match_id)
    if match is None:
        abort(404)
    teams_by_id = {t.id: t for t in get_store().list_teams()}
    return jsonify(_match_dict(match, teams_by_id))


@app.route('/api/fixtures/<int:match_id>', methods=['PUT'])
@admin_required
def api_update_fixture(match_id):
    current = _require_record('matches', match_id)
    fields = _validate_fixture_fields(_json_body(), current=current)
    record = get_store().update_record('matches', match_id, fields)
    return jsonify(record)


@app.route('/api/fixtures/<int:match_id>', methods=['DELETE'])
@admin_required
def api_delete_fixture(match_id):
    _require_record('matches', match_id)
    get_store().delete_matches([match_id])
    return jsonify({'success': True})


@app.route('/api/fixtures/<int:match_id>/score', methods=['POST'])
@admin_required
def api_save_score(match_id):
    """Save set scores for a fixture, or clear them with an empty set list."""
    data = _json_body()
    store = get_store()
    match = store.get_match(match_id)
    if match is None:
        abort(404)

    sets = parse_sets(data.get('sets', []))
    status = data.get('status', 'completed' if sets else 'upcoming')
    if status not in MATCH_STATUSES:
        raise ValidationError(f'Status must be one of: {", ".join(MATCH_STATUSES)}')

    if sets:
        team1 = store.get_team(match.team1_id)
        team2 = store.get_team(match.team2_id)
        match.score = build_score(sets,
                                  team1.short_name if team1 else 'T1',
                                  team2.short_name if team2 else 'T2')
    else:
        match.score = None
    match.status = status
    if 'man_of_the_match_id' in data:
        match.man_of_the_match_id = data['man_of_the_match_id']

    saved = store.save_match(match)
    return jsonify({'success': True, 'fixture': saved.to_dict(), 'cleared': not sets})


# Transfers

@app.route('/api/transfers', methods=['POST'])
@admin_required
def api_create_transfer():
    """Record a transfer and move the player to the new team (None releases them)."""
    data = _json_body()
    store = get_store()
    with store.locked():
        player = store.get_record('players', data.get('player_id'))
        if player is None:
            raise ValidationError('Player not found')
        to_team_id = data.get('to_team_id')
        if to_team_id is not None and store.get_team(to_team_id) is None:
            raise ValidationError(f'Team {to_team_id} not found')
        if to_team_id == player.get('team_id'):
            raise ValidationError('Player is already in that team')

        record = store.insert_record('transfers', {
            'player_id': player['id'],
            'from_team_id': player.get('team_id'),
            'to_team_id': to_team_id,
            'transfer_date': data.get('transfer_date') or datetime.now().date().isoformat(),
            'note': str(data.get('note') or ''),
        })
        store.update_record('players', player['id'], {'team_id': to_team_id})
    app.logger.info(f'Player {player["id"]} transferred from {record["from_team_id"]} to {to_team_id}')
    return jsonify(record), 201


@app.route('/api/notices/active', methods=['GET'])
def api_active_notices():
    now = datetime.now().isoformat()
    notices = [
        n for n in get_store().list_records('notices')
        if n.get('active', True) and (not n.get('expires_at') or str(n['expires_at']) > now)
    ]
    return jsonify(notices)


# Generic records: players, clubs, sponsors, notices, transfers, awards

def _validate_record(collection, data, partial=False):
    schema = RECORD_SCHEMAS[collection]
    fields = {k: v for k, v in data.items() if k in schema['required'] or k in schema['defaults']}
    if not partial:
        for key in schema['required']:
            value = fields.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f'{key} is required')
        for key, default in schema['defaults'].items():
            fields.setdefault(key, default)

    if collection == 'players':
        if 'role' in fields and fields['role'] not in PLAYER_ROLES:
            raise ValidationError(f'Role must be one of: {", ".join(PLAYER_ROLES)}')
        if 'team_id' in fields and fields['team_id'] is not None \
                and get_store().get_team(fields['team_id']) is None:
            raise ValidationError(f'Team {fields["team_id"]} not found')
    if collection == 'notices' and 'level' in fields and fields['level'] not in NOTICE_LEVELS:
        raise ValidationError(f'Level must be one of: {", ".join(NOTICE_LEVELS)}')
    return fields


@app.route('/api/<collection>', methods=['GET'])
def api_list_records(collection):
    if collection not in RECORD_SCHEMAS:
        abort(404)
    records = get_store().list_records(collection)
    team_id = request.args.get('team_id', type=int)
    if team_id is not None:
        records = [r for r in records if r.get('team_id') == team_id]
    return jsonify(records)


@app.route('/api/<collection>', methods=['POST'])
@admin_required
def api_create_record(collection):
    if collection not in RECORD_SCHEMAS:
        abort(404)
    record = get_store().insert_record(collection, _validate_record(collection, _json_body()))
    return jsonify(record), 201


@app.route('/api/<collection>/<int:record_id>', methods=['GET'])
def api_get_record(collection, record_id):
    if collection not in RECORD_SCHEMAS:
        abort(404)
    return jsonify(_require_record(collection, record_id))


@app.route('/api/<collection>/<int:record_id>', methods=['PUT'])
@admin_required
def api_update_record(collection, record_id):
    if collection not in RECORD_SCHEMAS:
        abort(404)
    _require_record(collection, record_id)
    fields = _validate_record(collection, _json_body(), partial=True)
    return jsonify(get_store().update_record(collection, record_id, fields))


@app.route('/api/<collection>/<int:record_id>', methods=['DELETE'])
@admin_required
def api_delete_record(collection, record_id):
    if collection not in RECORD_SCHEMAS:
        abort(404)
    _require_record(collection, record_id)
    get_store().delete_record(collection, record_id)
    return jsonify({'success': True})


# Bulk import / export

@app.route('/api/import/teams', methods=['POST'])
@admin_required
def api_import_teams():
    rows = read_team_rows(_uploaded_text())
    created, updated = upsert_teams(get_store(), rows)
    app.logger.info(f'Team import: {created} created, {updated} updated')
    return jsonify({'success': True, 'created': created, 'updated': updated})


@app.route('/api/import/players', methods=['POST'])
@admin_required
def api_import_players():
    rows = read_player_rows(_uploaded_text())
    created, updated = upsert_players(get_store(), rows)
    app.logger.info(f'Player import: {created} created, {updated} updated')
    return jsonify({'success': True, 'created': created, 'updated': updated})


@app.route('/api/export/teams.csv', methods=['GET'])
@admin_required
def api_export_teams():
    teams = get_store().list_records('teams')
    stamp = datetime.now().date().isoformat()
    return _csv_response(export_teams_csv(teams), f'teams_{stamp}.csv')


@app.route('/api/export/players.csv', methods=['GET'])
@admin_required
def api_export_players():
    store = get_store()
    stamp = datetime.now().date().isoformat()
    content = export_players_csv(store.list_records('players'), store.list_records('teams'))
    return _csv_response(content, f'players_{stamp}.csv')


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=5000)
