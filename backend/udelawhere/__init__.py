import json

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

# Game services depend on the extension objects above
from udelawhere.services.games.catalog import LocationCatalog  # noqa: E402
from udelawhere.services.games.classifier import RecognizabilityClassifier  # noqa: E402
from udelawhere.services.games.leaderboard import LeaderboardStore  # noqa: E402
from udelawhere.services.games.registry import SessionRegistry  # noqa: E402

catalog = LocationCatalog()
classifier = RecognizabilityClassifier()
leaderboard = LeaderboardStore()
sessions = SessionRegistry()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    catalog.init_app(flask_app)
    classifier.init_app(flask_app)
    sessions.clear()

    from udelawhere.routes import main
    flask_app.register_blueprint(main)

    from udelawhere.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from udelawhere.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the leaderboard tables."""
        import udelawhere.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('generate-locations')
    @click.argument('assets_dir', type=click.Path(exists=True, file_okay=False))
    @click.argument('locations_dir', type=click.Path(file_okay=False))
    @click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
                  help='Destination JSON file (defaults to LOCATIONS_FILE).')
    def generate_locations_command(assets_dir, locations_dir, output):
        """Builds the location catalog from img<N> asset folders."""
        from udelawhere.services.games.catalog import DEFAULT_LOCATIONS_FILE
        from udelawhere.services.games.coordinates import generate_locations

        output = output or flask_app.config.get('LOCATIONS_FILE') or DEFAULT_LOCATIONS_FILE
        locations = generate_locations(assets_dir, locations_dir)
        with open(output, 'w', encoding='utf-8') as fh:
            json.dump(locations, fh, indent=2)
        print(f'Generated {len(locations)} locations into {output}')

    @click.command('rate-locations')
    def rate_locations_command():
        """Scores every unrated location with the classifier and saves the catalog."""
        if not classifier.enabled:
            print('GEMINI_API_KEY is not set; no locations were rated.')
            return
        updated = []
        for location in catalog:
            if not location.is_rated():
                rating = classifier.classify_location(location)
                if rating is None:
                    # left unrated so a later run retries it
                    print(f'{location.id}: rating failed, skipped')
                else:
                    location.resolve_recognizability(rating)
                    print(f'{location.id}: recognizability {rating}')
            updated.append(location.to_dict())
        with open(catalog.source, 'w', encoding='utf-8') as fh:
            json.dump(updated, fh, indent=2)
        print(f'Saved {len(updated)} locations to {catalog.source}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(generate_locations_command)
    flask_app.cli.add_command(rate_locations_command)

    return flask_app
