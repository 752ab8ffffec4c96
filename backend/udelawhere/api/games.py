from flask import Blueprint, current_app, jsonify, request
from udelawhere import catalog, classifier, leaderboard, sessions, socketio
from udelawhere.services.games.errors import GameError, InvalidGuessError, SessionStateError
from udelawhere.services.games.geo import GeoPoint
from udelawhere.services.games.panorama import CameraState
from udelawhere.services.games.registry import ENDED_SESSION_TTL_SEC
from udelawhere.services.games.session import MODES, PRACTICE

MAX_USERNAME_LENGTH = 20

games = Blueprint('games', __name__)


def _emit_state(session) -> None:
    socketio.emit('state_update', {'game_code': session.code, 'state': session.state},
                  to=f"game:{session.code}", namespace='/ws')


def _get_session_or_404(game_code):
    session = sessions.get(game_code)
    if session is None:
        return None, (jsonify({'error': 'Game not found'}), 404)
    return session, None


def _point_from(data):
    if data.get('lat') is None and data.get('lng') is None:
        return None
    return GeoPoint.validated(data.get('lat'), data.get('lng'))


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    mode = data.get('mode') or PRACTICE
    if mode not in MODES:
        return jsonify({'error': f"mode must be one of {', '.join(MODES)}"}), 400
    username = (data.get('username') or '').strip() or None
    if username and len(username) > MAX_USERNAME_LENGTH:
        return jsonify({'error': f'Username must be at most {MAX_USERNAME_LENGTH} characters'}), 400

    # Starting a new game from the same view replaces the old one
    previous = data.get('replace_game_code')
    if previous:
        sessions.discard(previous)

    try:
        session = sessions.create(
            current_app._get_current_object(),
            catalog,
            mode=mode,
            username=username,
            leaderboard=leaderboard,
            classifier=classifier,
        )
    except GameError as exc:
        return jsonify({'error': str(exc)}), 503
    payload = session.to_dict()
    payload['message'] = 'New game created!'
    return jsonify(payload), 201


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    session, err = _get_session_or_404(game_code)
    if err:
        return err
    payload = session.to_dict()
    payload['durations'] = {'round': int(current_app.config.get('CHALLENGE_DURATION_SEC', 120))}
    return jsonify(payload)


@games.route('/<string:game_code>/select', methods=['POST'])
def select_point(game_code):
    session, err = _get_session_or_404(game_code)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    try:
        point = _point_from(data)
        if point is None:
            raise InvalidGuessError('lat and lng are required')
        session.select_point(point)
    except InvalidGuessError as exc:
        return jsonify({'error': str(exc)}), 400
    except SessionStateError as exc:
        return jsonify({'error': str(exc)}), 409
    return jsonify(session.to_dict())


@games.route('/<string:game_code>/guess', methods=['POST'])
def submit_guess(game_code):
    session, err = _get_session_or_404(game_code)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    try:
        result = session.submit_guess(_point_from(data))
    except InvalidGuessError as exc:
        return jsonify({'error': str(exc)}), 400
    except SessionStateError as exc:
        return jsonify({'error': str(exc)}), 409
    _emit_state(session)
    payload = session.to_dict()
    payload['result'] = result.to_dict()
    return jsonify(payload)


@games.route('/<string:game_code>/advance', methods=['POST'])
def advance_round(game_code):
    session, err = _get_session_or_404(game_code)
    if err:
        return err
    try:
        session.advance()
    except SessionStateError as exc:
        return jsonify({'error': str(exc)}), 409
    _emit_state(session)
    payload = session.to_dict()
    if session.ended:
        sessions.sweep_ended(float(current_app.config.get('ENDED_SESSION_TTL_SEC', ENDED_SESSION_TTL_SEC)))
    return jsonify(payload)


@games.route('/<string:game_code>/leave', methods=['POST'])
def leave_game(game_code):
    session = sessions.discard(game_code)
    if session is None:
        return jsonify({'error': 'Game not found'}), 404
    socketio.emit('session_ended', {'game_code': session.code}, to=f"game:{session.code}", namespace='/ws')
    return jsonify({'message': 'You have left the game.', 'score': session.score})


@games.route('/<string:game_code>/view', methods=['POST'])
def drag_view(game_code):
    """Applies a pointer drag to the panorama camera of the current round."""
    session, err = _get_session_or_404(game_code)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    try:
        camera = CameraState(lon=float(data.get('lon', 0)), lat=float(data.get('lat', 0)))
        camera.drag(float(data.get('dx', 0)), float(data.get('dy', 0)))
    except (TypeError, ValueError):
        return jsonify({'error': 'lon, lat, dx and dy must be numbers'}), 400
    payload = camera.to_dict()
    payload['location_id'] = session.current_location.id
    return jsonify(payload)


@games.route('/<string:game_code>/fun-fact', methods=['GET'])
def get_fun_fact(game_code):
    session, err = _get_session_or_404(game_code)
    if err:
        return err
    return jsonify({'fact': classifier.fun_fact(session.current_location.name)})
