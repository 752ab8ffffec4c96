"""Round lifecycle for a single playthrough.

A session walks through its locations one round at a time:

    awaiting_guess --submit_guess/expire_round--> result_shown
    result_shown   --advance-------------------> awaiting_guess (next round)
    result_shown   --advance (last round)------> ended

Challenge mode adds a per-round countdown. The countdown task is created
through ``timer_factory`` and cancelled whenever a round stops accepting
guesses, so a late tick can never touch a newer round.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import GameError, InvalidGuessError, LeaderboardError, SessionStateError
from .geo import GeoPoint
from .panorama import panorama_payload
from .scoring import MAX_POINTS, score_guess

logger = logging.getLogger(__name__)

AWAITING_GUESS = 'awaiting_guess'
RESULT_SHOWN = 'result_shown'
ENDED = 'ended'

PRACTICE = 'practice'
CHALLENGE = 'challenge'
MODES = (PRACTICE, CHALLENGE)

ROUNDS_PER_GAME = 5
CHALLENGE_DURATION_SEC = 120


@dataclass(frozen=True)
class Guess:
    point: GeoPoint
    round: int
    actual: GeoPoint

    def to_dict(self) -> dict:
        return {
            'guessed': list(self.point.to_pair()),
            'actual': list(self.actual.to_pair()),
            'round': self.round,
        }


@dataclass(frozen=True)
class RoundResult:
    round: int
    distance_feet: Optional[float]
    points: int
    guess: Optional[Guess]
    location: object

    def to_dict(self) -> dict:
        return {
            'round': self.round,
            'distance_feet': round(self.distance_feet) if self.distance_feet is not None else None,
            'points': self.points,
            'guess': self.guess.to_dict() if self.guess else None,
            'location': self.location.to_dict(),
        }


class GameSession:
    def __init__(
        self,
        code: str,
        locations: List,
        mode: str = PRACTICE,
        username: Optional[str] = None,
        leaderboard=None,
        timer_factory: Optional[Callable] = None,
        score_submitter: Optional[Callable] = None,
        duration: int = CHALLENGE_DURATION_SEC,
    ):
        if mode not in MODES:
            raise GameError(f'Unknown game mode: {mode}')
        if not locations:
            raise GameError('No locations available')
        ids = [loc.id for loc in locations]
        if len(set(ids)) != len(ids):
            raise GameError('Session locations must be distinct')

        self.code = code
        self.locations = list(locations)[:ROUNDS_PER_GAME]
        self.mode = mode
        self.username = username
        self.leaderboard = leaderboard
        self.timer_factory = timer_factory
        self.score_submitter = score_submitter
        self.duration = int(duration)

        self.state = AWAITING_GUESS
        self.round_index = 1
        self.score = 0
        self.results: List[RoundResult] = []
        self.selected_point: Optional[GeoPoint] = None
        self.time_remaining: Optional[int] = self.duration if self.timed else None
        self.leaderboard_submitted: Optional[bool] = None
        self.leaderboard_message: Optional[str] = None
        self.ended_at: Optional[float] = None

        self._timer = None
        self._lock = threading.RLock()

    # ---- read-only views ----

    @property
    def timed(self) -> bool:
        return self.mode == CHALLENGE

    @property
    def total_rounds(self) -> int:
        return len(self.locations)

    @property
    def current_location(self):
        return self.locations[self.round_index - 1]

    @property
    def ended(self) -> bool:
        return self.state == ENDED

    @property
    def max_score(self) -> int:
        return MAX_POINTS * self.total_rounds

    # ---- transitions ----

    def start(self) -> None:
        """Arm the countdown for the first round (challenge mode)."""
        with self._lock:
            self._start_timer()

    def select_point(self, point: GeoPoint) -> None:
        with self._lock:
            self._require(AWAITING_GUESS, 'select a point')
            self.selected_point = point

    def submit_guess(self, point: Optional[GeoPoint] = None) -> RoundResult:
        with self._lock:
            self._require(AWAITING_GUESS, 'submit a guess')
            point = point or self.selected_point
            if point is None:
                raise InvalidGuessError('Place a guess on the map first')
            self.selected_point = point
            location = self.current_location
            distance, points = score_guess(point, location)
            guess = Guess(point=point, round=self.round_index, actual=location.point)
            return self._finish_round(RoundResult(self.round_index, distance, points, guess, location))

    def tick(self, expected_round: Optional[int] = None) -> bool:
        """Count one second off the round clock.

        Returns False when the tick belongs to a round that is no longer
        accepting guesses, in which case nothing changes.
        """
        with self._lock:
            if not self.timed or self.state != AWAITING_GUESS:
                return False
            if expected_round is not None and expected_round != self.round_index:
                return False
            self.time_remaining = max(0, (self.time_remaining or 0) - 1)
            if self.time_remaining == 0:
                self.expire_round()
            return True

    def expire_round(self) -> RoundResult:
        """Close the round when time runs out, using the pending point if any."""
        with self._lock:
            self._require(AWAITING_GUESS, 'expire the round')
            if self.selected_point is not None:
                logger.info(f"[round-expire] session={self.code} round={self.round_index} auto-submitting pending guess")
                return self.submit_guess(self.selected_point)
            logger.info(f"[round-expire] session={self.code} round={self.round_index} no guess placed")
            location = self.current_location
            return self._finish_round(RoundResult(self.round_index, None, 0, None, location))

    def advance(self) -> None:
        with self._lock:
            self._require(RESULT_SHOWN, 'advance')
            if self.round_index < self.total_rounds:
                self.round_index += 1
                self.selected_point = None
                self.time_remaining = self.duration if self.timed else None
                self.state = AWAITING_GUESS
                self._start_timer()
                return
            self.state = ENDED
            self.ended_at = time.monotonic()
            self._cancel_timer()
            logger.info(f"[session-end] session={self.code} score={self.score}/{self.max_score}")
        # leaderboard write runs outside the lock
        if self.submits_score:
            if self.score_submitter is not None:
                self.score_submitter(self)
            else:
                self.submit_final_score()

    @property
    def submits_score(self) -> bool:
        return self.timed and bool(self.username) and self.leaderboard is not None

    def submit_final_score(self) -> Optional[bool]:
        """Write the final score to the leaderboard; failures only set a message."""
        if not self.ended or not self.submits_score:
            return None
        try:
            submitted = bool(self.leaderboard.submit_score(self.username, self.score))
            message = None
        except LeaderboardError as exc:
            logger.warning(f"[leaderboard] session={self.code} submit failed: {exc}")
            submitted = False
            message = 'Your score could not be saved to the leaderboard.'
        with self._lock:
            self.leaderboard_submitted = submitted
            self.leaderboard_message = message
        return submitted

    def close(self) -> None:
        with self._lock:
            self._cancel_timer()

    # ---- internals ----

    def _require(self, state: str, action: str) -> None:
        if self.state != state:
            raise SessionStateError(f'Cannot {action} while {self.state}')

    def _finish_round(self, result: RoundResult) -> RoundResult:
        self._cancel_timer()
        self.results.append(result)
        self.score += result.points
        self.state = RESULT_SHOWN
        logger.info(
            f"[round-end] session={self.code} round={result.round} distance={result.distance_feet} points={result.points} total={self.score}"
        )
        return result

    def _start_timer(self) -> None:
        self._cancel_timer()
        if self.timed and self.timer_factory is not None:
            self._timer = self.timer_factory(self)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # ---- serialization ----

    def to_dict(self) -> dict:
        with self._lock:
            last = self.results[-1] if self.results else None
            location = self.current_location
            current = {
                'id': location.id,
                'name': location.name,
                'image': location.image,
                'panorama': panorama_payload(location.image),
            }
            if self.state != AWAITING_GUESS:
                current['coordinates'] = list(location.point.to_pair())
            payload = {
                'game_code': self.code,
                'mode': self.mode,
                'username': self.username,
                'state': self.state,
                'current_round': self.round_index,
                'total_rounds': self.total_rounds,
                'score': self.score,
                'max_score': self.max_score,
                'time_remaining': self.time_remaining,
                'selected_point': list(self.selected_point.to_pair()) if self.selected_point else None,
                'current_location': current,
                'last_result': last.to_dict() if last else None,
                'results': [r.to_dict() for r in self.results],
                'leaderboard_submitted': self.leaderboard_submitted,
                'leaderboard_message': self.leaderboard_message,
            }
            if self.state == ENDED:
                payload['accuracy'] = round(self.score / self.max_score * 100)
            return payload
