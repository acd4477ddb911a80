"""
Exceptions raised by the league core and the data store.
"""


class LeagueError(Exception):
    """Base class for league errors."""


class ValidationError(LeagueError):
    """A precondition was not met. Nothing was changed."""


class PersistenceError(LeagueError):
    """Reading or writing the data store failed."""
