"""
Shared pytest fixtures for league tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.models import Team, Match, SetScore
from core.scoring import build_score
from league_store import LeagueStore


@pytest.fixture
def client():
    """Create a test client logged in as an admin."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'testadmin'
            sess['role'] = 'admin'
        yield client


@pytest.fixture
def anon_client():
    """Create a test client with no session."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def captain_client():
    """Create a test client logged in as a non-admin user."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'captain'
            sess['role'] = 'captain'
        yield client


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at an empty temporary data directory."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()

    users_file = data_dir / "users.yaml"
    users_file.write_text(yaml.dump({'users': []}, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    monkeypatch.setattr(app_module, 'USERS_FILE', str(users_file))

    return str(data_dir)


@pytest.fixture
def store(temp_data_dir):
    """A LeagueStore on the temporary data directory."""
    return LeagueStore(temp_data_dir)


@pytest.fixture
def sample_teams():
    """Eight Division 1 teams, ids 1-8, named so alphabetical order matches id order."""
    names = ['Aces', 'Blockers', 'Cyclones', 'Diggers', 'Eagles', 'Falcons', 'Giants', 'Hawks']
    return [
        Team(id=i, name=name, short_name=name[:3].upper(), division='Division 1')
        for i, name in enumerate(names, start=1)
    ]


@pytest.fixture
def make_result():
    """Factory for a completed round-robin match with the given set scores."""
    counter = {'next': 1}

    def _make(team1_id, team2_id, sets, tournament_id=1, stage=None, status='completed'):
        set_scores = [SetScore(a, b) for a, b in sets]
        match = Match(
            id=counter['next'],
            tournament_id=tournament_id,
            team1_id=team1_id,
            team2_id=team2_id,
            date_time='2026-05-01T18:00',
            ground='Main Court',
            status=status,
            stage=stage,
            score=build_score(set_scores) if set_scores else None,
        )
        counter['next'] += 1
        return match
    return _make


@pytest.fixture
def league(store, sample_teams):
    """A stored tournament with the eight sample teams on its roster."""
    store.insert_records('teams', [
        {k: v for k, v in t.to_dict().items() if k != 'id'} for t in sample_teams
    ])
    tournament = store.insert_record('tournaments', {
        'name': 'Spring Cup',
        'division': 'Division 1',
        'phase': 'round-robin',
        'team_ids': [t.id for t in sample_teams],
    })
    return tournament
