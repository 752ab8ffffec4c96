from typing import Optional, Set, Tuple

from udelawhere import socketio


_scheduled_countdown_keys: Set[Tuple[str, int]] = set()


class CountdownHandle:
    """Cancellable reference to a running round countdown."""

    def __init__(self, code: str, round_idx: int):
        self.code = code
        self.round_idx = round_idx
        self.cancelled = False

    @property
    def key(self) -> Tuple[str, int]:
        return (self.code, self.round_idx)

    def cancel(self) -> None:
        self.cancelled = True
        _scheduled_countdown_keys.discard(self.key)


def schedule_countdown(app, session) -> Optional[CountdownHandle]:
    """Start the per-second countdown for the session's current round.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single countdown per (session, round)
    - Each tick decrements the session clock and emits ``timer_tick`` to the room
    - When the clock hits zero the session closes the round itself; we announce it
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return None

    code = session.code
    round_idx = session.round_index
    handle = CountdownHandle(code, round_idx)

    if handle.key in _scheduled_countdown_keys:
        app.logger.info(f"[timer-skip] session={code} round={round_idx} already scheduled")
        return None
    _scheduled_countdown_keys.add(handle.key)

    tick_sec = float(app.config.get('TIMER_TICK_SEC', 1))
    try:
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
    except (TypeError, ValueError):
        hb = 0

    app.logger.info(f"[timer-set] session={code} round={round_idx} duration={session.time_remaining}s")

    def _worker():
        elapsed = 0
        while True:
            socketio.sleep(tick_sec)
            elapsed += 1
            if handle.cancelled:
                app.logger.info(f"[timer-abort] session={code} round={round_idx} cancelled")
                return
            if not session.tick(expected_round=round_idx):
                app.logger.info(
                    f"[timer-abort] session={code} expected_round={round_idx} actual_round={session.round_index} state={session.state}"
                )
                _scheduled_countdown_keys.discard(handle.key)
                return

            remaining = session.time_remaining
            if hb > 0 and elapsed % hb == 0:
                app.logger.info(f"[timer-heartbeat] session={code} round={round_idx} remaining={remaining}s")
            socketio.emit('timer_tick', {'game_code': code, 'round': round_idx, 'time_remaining': remaining},
                          to=f"game:{code}", namespace='/ws')

            if remaining <= 0:
                app.logger.info(f"[timer-fire] session={code} round={round_idx} state={session.state}")
                _scheduled_countdown_keys.discard(handle.key)
                socketio.emit('state_update', {'game_code': code}, to=f"game:{code}", namespace='/ws')
                return

    socketio.start_background_task(_worker)
    return handle


def submit_score_in_background(app, session) -> None:
    """Write a finished session's score without holding up the request.

    Runs inline in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set, so
    the result is already on the session when the request returns.
    """
    code = session.code

    def _worker():
        with app.app_context():
            submitted = session.submit_final_score()
        app.logger.info(f"[leaderboard] session={code} score={session.score} submitted={submitted}")
        socketio.emit('leaderboard_update', {
            'game_code': code,
            'leaderboard_submitted': session.leaderboard_submitted,
            'leaderboard_message': session.leaderboard_message,
        }, to=f"game:{code}", namespace='/ws')

    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        _worker()
        return
    socketio.start_background_task(_worker)
