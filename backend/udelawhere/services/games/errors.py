class GameError(Exception):
    """Base class for errors raised by the game services."""


class SessionStateError(GameError):
    """An operation was attempted in a state that does not allow it."""


class InvalidGuessError(GameError):
    """A guess point is missing or not a valid coordinate."""


class LeaderboardError(GameError):
    """The leaderboard store could not be read or written."""
