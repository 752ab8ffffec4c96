from flask import Blueprint, current_app, jsonify, request
from udelawhere import catalog, leaderboard
from udelawhere.services.games.errors import LeaderboardError

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the UDelaWhere game server!', 'locations': len(catalog)})

@main.route('/api/leaderboard', methods=['GET'])
def get_leaderboard():
    default_limit = int(current_app.config.get('LEADERBOARD_SIZE', 10))
    limit = request.args.get('limit', default_limit, type=int)
    if limit is None or limit < 1:
        return jsonify({'error': 'limit must be a positive integer'}), 400
    try:
        entries = leaderboard.top(limit=min(limit, 100))
    except LeaderboardError as exc:
        current_app.logger.warning(f"[leaderboard] read failed: {exc}")
        return jsonify({'error': 'Leaderboard is unavailable right now', 'entries': []}), 503
    return jsonify({'entries': entries})

@main.route('/api/leaderboard/usernames/<string:username>', methods=['GET'])
def check_username(username):
    username = username.strip()
    if not username:
        return jsonify({'error': 'username is required'}), 400
    try:
        taken = leaderboard.is_username_taken(username)
    except LeaderboardError as exc:
        current_app.logger.warning(f"[leaderboard] username check failed: {exc}")
        return jsonify({'error': 'Leaderboard is unavailable right now'}), 503
    return jsonify({'username': username, 'taken': taken})
