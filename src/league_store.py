"""
File-backed data store for the league.

Each collection lives in its own YAML file inside the data directory and holds
a list of records (plain dicts with an integer ``id``). All writes happen
under a FileLock on the data directory and replace the file in one step.
"""
import logging
import os
import tempfile
from contextlib import contextmanager
from typing import Iterable, List, Optional

import yaml
from filelock import FileLock, Timeout

from core.errors import PersistenceError, ValidationError
from core.knockout import DEFAULT_KNOCKOUT_GROUND
from core.models import Match, Team, Tournament, PHASES
from core.standings import DEFAULT_WIN_POINTS
from generate_fixtures import DEFAULT_FIXTURE_GROUND

logger = logging.getLogger(__name__)

COLLECTIONS = (
    'tournaments', 'teams', 'matches', 'players', 'clubs',
    'sponsors', 'notices', 'transfers', 'awards',
)
SETTINGS_FILE_NAME = 'settings.yaml'


def get_default_settings():
    """Return default league settings."""
    return {
        'league_name': 'Volleyball League',
        'win_points': DEFAULT_WIN_POINTS,
        'knockout_ground': DEFAULT_KNOCKOUT_GROUND,
        'knockout_start_hour': 18,
        'fixture_ground': DEFAULT_FIXTURE_GROUND,
    }


def write_yaml_atomic(path, data):
    """Dump data to a temp file beside path, then move it into place.

    Callers hold the lock that guards path.
    """
    directory = os.path.dirname(path) or '.'
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
        os.replace(tmp_path, path)
    except (OSError, yaml.YAMLError) as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise PersistenceError(f'Failed to write {path}: {e}') from e


class LeagueStore:
    def __init__(self, data_dir, lock_timeout=10):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    @contextmanager
    def locked(self):
        """Hold the data lock. Reentrant for this store instance."""
        try:
            self._lock.acquire()
        except Timeout as e:
            raise PersistenceError(f'Timed out waiting for the data lock in {self.data_dir}') from e
        try:
            yield self
        finally:
            self._lock.release()

    def _path(self, collection: str) -> str:
        if collection not in COLLECTIONS:
            raise ValueError(f'Unknown collection: {collection}')
        return os.path.join(self.data_dir, f'{collection}.yaml')

    def _load(self, collection: str) -> List[dict]:
        path = self._path(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f'Failed to read {path}: {e}') from e
        if not data:
            return []
        if not isinstance(data, list):
            raise PersistenceError(f'{path} does not contain a list of records')
        return [r for r in data if isinstance(r, dict)]

    def _save(self, collection: str, records: List[dict]):
        with self.locked():
            write_yaml_atomic(self._path(collection), records)

    @staticmethod
    def _next_id(records: List[dict]) -> int:
        ids = [r['id'] for r in records if isinstance(r.get('id'), int)]
        return max(ids) + 1 if ids else 1

    # Generic records

    def list_records(self, collection: str) -> List[dict]:
        return self._load(collection)

    def get_record(self, collection: str, record_id) -> Optional[dict]:
        for record in self._load(collection):
            if record.get('id') == record_id:
                return record
        return None

    def insert_record(self, collection: str, data: dict) -> dict:
        return self.insert_records(collection, [data])[0]

    def insert_records(self, collection: str, items: Iterable[dict]) -> List[dict]:
        """Append records in a single write, assigning consecutive ids."""
        with self.locked():
            records = self._load(collection)
            next_id = self._next_id(records)
            inserted = []
            for item in items:
                record = dict(item)
                record['id'] = next_id
                next_id += 1
                records.append(record)
                inserted.append(record)
            self._save(collection, records)
        return inserted

    def update_record(self, collection: str, record_id, changes: dict) -> Optional[dict]:
        """Merge changes into a record. Returns None if it doesn't exist."""
        with self.locked():
            records = self._load(collection)
            for record in records:
                if record.get('id') == record_id:
                    record.update({k: v for k, v in changes.items() if k != 'id'})
                    self._save(collection, records)
                    return record
        return None

    def delete_records(self, collection: str, record_ids: Iterable) -> int:
        ids = set(record_ids)
        with self.locked():
            records = self._load(collection)
            kept = [r for r in records if r.get('id') not in ids]
            removed = len(records) - len(kept)
            if removed:
                self._save(collection, kept)
        return removed

    def delete_record(self, collection: str, record_id) -> bool:
        return self.delete_records(collection, [record_id]) > 0

    # Settings

    def load_settings(self) -> dict:
        """Load settings.yaml, merging with defaults. An unreadable file gives the defaults."""
        path = os.path.join(self.data_dir, SETTINGS_FILE_NAME)
        defaults = get_default_settings()
        if not os.path.exists(path):
            return defaults
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning('Failed to parse %s: %s', path, e)
            return defaults
        if not isinstance(data, dict):
            return defaults
        for key, value in defaults.items():
            if key not in data:
                data[key] = value
        return data

    def save_settings(self, settings: dict):
        with self.locked():
            write_yaml_atomic(os.path.join(self.data_dir, SETTINGS_FILE_NAME), settings)

    # Tournaments

    def list_tournaments(self) -> List[Tournament]:
        return [Tournament.from_dict(r) for r in self._load('tournaments')]

    def get_tournament(self, tournament_id) -> Optional[Tournament]:
        record = self.get_record('tournaments', tournament_id)
        return Tournament.from_dict(record) if record else None

    def update_tournament_phase(self, tournament_id, phase: str) -> Tournament:
        if phase not in PHASES:
            raise ValidationError(f'Unknown tournament phase: {phase}')
        record = self.update_record('tournaments', tournament_id, {'phase': phase})
        if record is None:
            raise ValidationError(f'Tournament {tournament_id} not found')
        return Tournament.from_dict(record)

    # Teams

    def list_teams(self) -> List[Team]:
        return [Team.from_dict(r) for r in self._load('teams')]

    def get_team(self, team_id) -> Optional[Team]:
        record = self.get_record('teams', team_id)
        return Team.from_dict(record) if record else None

    # Matches

    def _to_match(self, record: dict) -> Optional[Match]:
        try:
            return Match.from_dict(record)
        except ValidationError as e:
            logger.warning('Skipping stored match %s: %s', record.get('id'), e)
            return None

    def list_matches(self, tournament_id=None) -> List[Match]:
        matches = []
        for record in self._load('matches'):
            if tournament_id is not None and record.get('tournament_id') != tournament_id:
                continue
            match = self._to_match(record)
            if match is not None:
                matches.append(match)
        return matches

    def get_match(self, match_id) -> Optional[Match]:
        record = self.get_record('matches', match_id)
        return self._to_match(record) if record else None

    def insert_matches(self, matches: Iterable[Match]) -> List[Match]:
        """Insert a batch of matches in one write. Returns them with ids set."""
        payload = []
        for m in matches:
            data = m.to_dict()
            data.pop('id')
            payload.append(data)
        inserted = self.insert_records('matches', payload)
        return [Match.from_dict(r) for r in inserted]

    def save_match(self, match: Match) -> Match:
        record = self.update_record('matches', match.id, match.to_dict())
        if record is None:
            raise ValidationError(f'Match {match.id} not found')
        return Match.from_dict(record)

    def delete_matches(self, match_ids: Iterable) -> int:
        return self.delete_records('matches', match_ids)
