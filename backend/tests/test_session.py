import pytest

from udelawhere.services.games.errors import GameError, InvalidGuessError, SessionStateError
from udelawhere.services.games.geo import GeoPoint
from udelawhere.services.games.session import (
    AWAITING_GUESS,
    CHALLENGE,
    ENDED,
    PRACTICE,
    RESULT_SHOWN,
    GameSession,
)
from conftest import FakeLeaderboard, FakeTimer, make_location


def _locations(n=5):
    return [make_location(i, 39.68 + i * 0.001, -75.75) for i in range(1, n + 1)]


def _challenge(n=5, leaderboard=None, username='blue_hen', duration=120):
    timers = []

    def factory(session):
        timer = FakeTimer(session)
        timers.append(timer)
        return timer

    session = GameSession('ABCD', _locations(n), mode=CHALLENGE, username=username,
                          leaderboard=leaderboard, timer_factory=factory, duration=duration)
    session.start()
    return session, timers


def _play_perfect(session):
    session.submit_guess(session.current_location.point)


def test_initial_state():
    session = GameSession('ABCD', _locations())
    assert session.state == AWAITING_GUESS
    assert session.round_index == 1
    assert session.total_rounds == 5
    assert session.score == 0
    assert session.results == []
    assert session.time_remaining is None


def test_submit_requires_a_point():
    session = GameSession('ABCD', _locations())
    with pytest.raises(InvalidGuessError):
        session.submit_guess()
    assert session.state == AWAITING_GUESS


def test_selected_point_is_used_on_submit():
    session = GameSession('ABCD', _locations())
    target = session.current_location.point
    session.select_point(GeoPoint(0, 0))
    session.select_point(target)
    result = session.submit_guess()
    assert result.points == 5000
    assert result.distance_feet == 0
    assert result.guess.point == target
    assert result.guess.actual == target
    assert result.guess.round == 1
    assert session.state == RESULT_SHOWN


def test_wrong_state_transitions_raise():
    session = GameSession('ABCD', _locations())
    with pytest.raises(SessionStateError):
        session.advance()
    _play_perfect(session)
    with pytest.raises(SessionStateError):
        session.submit_guess(GeoPoint(0, 0))
    with pytest.raises(SessionStateError):
        session.select_point(GeoPoint(0, 0))


def test_advance_resets_round_state():
    session = GameSession('ABCD', _locations())
    session.select_point(GeoPoint(39.7, -75.7))
    session.submit_guess()
    session.advance()
    assert session.round_index == 2
    assert session.state == AWAITING_GUESS
    assert session.selected_point is None


def test_cumulative_score_tracks_results():
    session = GameSession('ABCD', _locations())
    guesses = [GeoPoint(39.681, -75.75), GeoPoint(39.6825, -75.7505), GeoPoint(0, 0)]
    for k, guess in enumerate(guesses, start=1):
        before = session.score
        session.submit_guess(guess)
        assert session.score == sum(r.points for r in session.results[:k])
        assert session.score >= before
        session.advance()
    assert len(session.results) == 3


def test_perfect_practice_game_ends_without_leaderboard():
    board = FakeLeaderboard()
    session = GameSession('ABCD', _locations(), mode=PRACTICE, username='blue_hen', leaderboard=board)
    for _ in range(5):
        _play_perfect(session)
        session.advance()
    assert session.state == ENDED
    assert session.score == 25000
    assert board.submissions == []
    assert session.leaderboard_submitted is None


def test_perfect_challenge_game_submits_final_score():
    board = FakeLeaderboard()
    session, _ = _challenge(leaderboard=board)
    for _ in range(5):
        assert session.round_index <= 5
        _play_perfect(session)
        session.advance()
    assert session.ended
    assert session.score == 25000
    assert board.submissions == [('blue_hen', 25000)]
    assert session.leaderboard_submitted is True
    assert session.to_dict()['accuracy'] == 100
    with pytest.raises(SessionStateError):
        session.advance()


def test_challenge_without_username_skips_leaderboard():
    board = FakeLeaderboard()
    session, _ = _challenge(leaderboard=board, username=None)
    for _ in range(5):
        _play_perfect(session)
        session.advance()
    assert session.ended
    assert board.submissions == []


def test_leaderboard_failure_does_not_block_ending():
    session, _ = _challenge(leaderboard=FakeLeaderboard(fail=True))
    for _ in range(5):
        _play_perfect(session)
        session.advance()
    assert session.state == ENDED
    assert session.leaderboard_submitted is False
    assert session.leaderboard_message


def test_short_catalog_gives_short_session():
    session = GameSession('ABCD', _locations(2))
    assert session.total_rounds == 2
    _play_perfect(session)
    session.advance()
    _play_perfect(session)
    session.advance()
    assert session.state == ENDED
    assert session.score == 10000


def test_duplicate_or_empty_locations_rejected():
    loc = make_location(1)
    with pytest.raises(GameError):
        GameSession('ABCD', [loc, loc])
    with pytest.raises(GameError):
        GameSession('ABCD', [])
    with pytest.raises(GameError):
        GameSession('ABCD', _locations(), mode='ranked')


def test_more_than_five_locations_are_truncated():
    session = GameSession('ABCD', _locations(7))
    assert session.total_rounds == 5


def test_countdown_timer_lifecycle():
    session, timers = _challenge()
    assert session.time_remaining == 120
    assert len(timers) == 1
    _play_perfect(session)
    assert timers[0].cancelled
    session.advance()
    assert len(timers) == 2
    assert timers[1].round == 2
    assert session.time_remaining == 120
    assert not timers[1].cancelled


def test_tick_counts_down_and_ignores_stale_rounds():
    session, _ = _challenge()
    assert session.tick(expected_round=1)
    assert session.time_remaining == 119
    assert not session.tick(expected_round=2)
    assert session.time_remaining == 119


def test_expiry_auto_submits_pending_point():
    session, timers = _challenge(duration=3)
    target = session.current_location.point
    session.select_point(target)
    session.tick()
    session.tick()
    assert session.state == AWAITING_GUESS
    session.tick()
    assert session.time_remaining == 0
    assert session.state == RESULT_SHOWN
    assert session.results[0].points == 5000
    assert timers[0].cancelled
    # late tick after the round closed changes nothing
    assert not session.tick()


def test_expiry_without_guess_records_zero_round():
    session, _ = _challenge(duration=1)
    session.tick()
    assert session.state == RESULT_SHOWN
    result = session.results[0]
    assert result.guess is None
    assert result.points == 0
    assert result.distance_feet is None
    assert result.to_dict()['guess'] is None
    session.advance()
    assert session.round_index == 2
    assert session.score == 0


def test_practice_mode_ignores_ticks():
    session = GameSession('ABCD', _locations())
    assert not session.tick()
    assert session.time_remaining is None


def test_close_cancels_timer():
    session, timers = _challenge()
    session.close()
    assert timers[0].cancelled


def test_to_dict_hides_answer_until_result():
    session = GameSession('ABCD', _locations())
    payload = session.to_dict()
    assert 'coordinates' not in payload['current_location']
    assert len(payload['current_location']['panorama']['faces']) == 6
    _play_perfect(session)
    payload = session.to_dict()
    assert payload['current_location']['coordinates'] == list(session.current_location.point.to_pair())
    assert payload['last_result']['points'] == 5000
    assert payload['state'] == RESULT_SHOWN


def test_late_recognizability_applies_to_later_guesses():
    locations = _locations(2)
    session = GameSession('ABCD', locations)
    # guess ~150 ft north of the first location
    guess = GeoPoint(locations[0].point.lat + 0.000411, locations[0].point.lng)
    first = session.submit_guess(guess)
    session.advance()
    locations[1].resolve_recognizability(10)
    second = session.submit_guess(GeoPoint(locations[1].point.lat + 0.000411, locations[1].point.lng))
    assert second.points < first.points


def test_final_score_goes_through_submitter():
    board = FakeLeaderboard()
    queued = []
    session = GameSession('ABCD', _locations(), mode=CHALLENGE, username='blue_hen',
                          leaderboard=board, score_submitter=queued.append)
    for _ in range(5):
        _play_perfect(session)
        session.advance()
    assert session.ended
    assert queued == [session]
    # nothing written until the submitter runs it
    assert board.submissions == []
    assert session.leaderboard_submitted is None

    assert session.submit_final_score() is True
    assert board.submissions == [('blue_hen', 25000)]
    assert session.leaderboard_submitted is True


def test_submit_final_score_requires_ended_session():
    board = FakeLeaderboard()
    session, _ = _challenge(leaderboard=board)
    assert session.submit_final_score() is None
    assert board.submissions == []


def test_ending_records_time():
    session = GameSession('ABCD', _locations(1), mode=PRACTICE)
    assert session.ended_at is None
    _play_perfect(session)
    session.advance()
    assert session.ended_at is not None
