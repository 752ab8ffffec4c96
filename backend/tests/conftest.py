import json
import os
import sys
import pytest

# Ensure the backend root (containing the `udelawhere` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from udelawhere import create_app, db, socketio, sessions
from udelawhere.services.games.catalog import Location
from udelawhere.services.games.geo import GeoPoint


class TestConfig:
    __test__ = False
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ROUNDS_PER_GAME = 5
    CHALLENGE_DURATION_SEC = 120
    TIMER_TICK_SEC = 1
    LOCATIONS_FILE = None
    LOCATIONS_ROOT = None
    GEMINI_API_KEY = ''
    CLASSIFY_ON_START = False
    LEADERBOARD_SIZE = 10


def build_app(config_class=TestConfig):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import udelawhere.models  # noqa: F401
        db.create_all()
    return application


@pytest.fixture()
def flask_app():
    application = build_app()
    with application.app_context():
        yield application
        sessions.clear()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def locations_file(tmp_path):
    """Write a catalog JSON and return its path."""
    def _write(entries):
        path = tmp_path / 'locations.json'
        path.write_text(json.dumps(entries), encoding='utf-8')
        return str(path)
    return _write


def make_location(idx, lat=39.68, lng=-75.75, recognizability=None):
    location = Location(id=f'img{idx}', image=f'/locations/img{idx}/', point=GeoPoint(lat, lng), name=f'Spot {idx}')
    if recognizability is not None:
        location.resolve_recognizability(recognizability)
    return location


class FakeLeaderboard:
    def __init__(self, fail=False):
        self.fail = fail
        self.submissions = []

    def submit_score(self, username, score):
        from udelawhere.services.games.errors import LeaderboardError
        if self.fail:
            raise LeaderboardError('store offline')
        self.submissions.append((username, score))
        return True


class FakeTimer:
    def __init__(self, session):
        self.round = session.round_index
        self.cancelled = False

    def cancel(self):
        self.cancelled = True
