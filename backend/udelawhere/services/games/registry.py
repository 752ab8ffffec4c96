import logging
import random
import string
import threading
import time
from functools import partial
from typing import Dict, Optional

from .errors import GameError
from .scheduler import schedule_countdown, submit_score_in_background
from .session import CHALLENGE_DURATION_SEC, PRACTICE, ROUNDS_PER_GAME, GameSession

logger = logging.getLogger(__name__)

# Ended sessions stay readable this long (seconds) before eviction
ENDED_SESSION_TTL_SEC = 300


def generate_game_code(existing, length=4) -> str:
    """Generate a unique, short game code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in existing:
            return code


class SessionRegistry:
    """Live sessions keyed by game code, one per open game view."""

    def __init__(self):
        self._sessions: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def create(self, app, catalog, mode: str = PRACTICE, username: Optional[str] = None,
               leaderboard=None, classifier=None) -> GameSession:
        self.sweep_ended(float(app.config.get('ENDED_SESSION_TTL_SEC', ENDED_SESSION_TTL_SEC)))
        rounds = min(int(app.config.get('ROUNDS_PER_GAME', ROUNDS_PER_GAME)), ROUNDS_PER_GAME)
        locations = catalog.sample(rounds)
        if not locations:
            raise GameError('The location catalog is empty')

        with self._lock:
            code = generate_game_code(self._sessions)
            session = GameSession(
                code,
                locations,
                mode=mode,
                username=username,
                leaderboard=leaderboard,
                timer_factory=partial(schedule_countdown, app),
                score_submitter=partial(submit_score_in_background, app),
                duration=int(app.config.get('CHALLENGE_DURATION_SEC', CHALLENGE_DURATION_SEC)),
            )
            self._sessions[code] = session

        if classifier is not None and app.config.get('CLASSIFY_ON_START', True):
            for location in locations:
                classifier.rate_location_async(location)

        session.start()
        app.logger.info(f"[session-create] session={code} mode={mode} rounds={session.total_rounds}")
        return session

    def get(self, code: str) -> Optional[GameSession]:
        return self._sessions.get((code or '').upper())

    def discard(self, code: str) -> Optional[GameSession]:
        """Drop a session and tear down its countdown."""
        with self._lock:
            session = self._sessions.pop((code or '').upper(), None)
        if session is not None:
            session.close()
        return session

    def sweep_ended(self, ttl: float = ENDED_SESSION_TTL_SEC) -> int:
        """Drop sessions that ended at least ``ttl`` seconds ago."""
        cutoff = time.monotonic() - ttl
        with self._lock:
            stale = [code for code, s in self._sessions.items()
                     if s.ended_at is not None and s.ended_at <= cutoff]
            dropped = [self._sessions.pop(code) for code in stale]
        for session in dropped:
            session.close()
        if dropped:
            logger.info(f"[session-sweep] dropped {len(dropped)} ended sessions")
        return len(dropped)

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, code) -> bool:
        return (code or '').upper() in self._sessions
