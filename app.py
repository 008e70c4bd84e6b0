import atexit
import os
import logging
from datetime import datetime
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Flask specific imports ---
from flask import Flask, send_from_directory, request, g
from flask_cors import CORS

from config import Config
from catalog.settings import load_settings
from catalog.database.db_manager import initialize_database
from catalog.domain.remote import BearerTokenCache, CatalogClient, UserAuthorization
from catalog.domain.library import TrackRepository
from catalog.domain.sync import BackgroundSyncRunner, SyncOrchestrator
from catalog.interfaces.http import register_error_handlers
from catalog.interfaces.http.routes import (
    health_bp,
    tracks_bp,
    artists_bp,
    stats_bp,
    sync_bp,
    auth_bp,
    token_bp,
)
from catalog.observability import configure_structured_logging, metrics_blueprint


logger = logging.getLogger(__name__)

PUBLIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'public')


def configure_logging(log_dir: str) -> str:
    """
    Configure root logging with:
      - FileHandler (INFO+) to a new file per run: log-YYYY-MM-DD-HH-MM-SS
      - StreamHandler (WARNING+) to console when ENABLE_CONSOLE_LOGS is set
      - Werkzeug/Flask loggers routed to root

    Returns the path to the created log file.
    """
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    log_path = os.path.join(log_dir, f"log-{timestamp}")

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # Preserve structured handlers; remove existing FileHandlers to avoid duplicates
    root.handlers = [h for h in root.handlers if not isinstance(h, logging.FileHandler)]

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if Config.ENABLE_CONSOLE_LOGS:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    for name in ("werkzeug", "flask.app"):
        _l = logging.getLogger(name)
        _l.setLevel(logging.INFO)
        _l.handlers = []
        _l.propagate = True

    return log_path


def build_services(app, settings) -> None:
    """Wire the catalog services into ``app.extensions`` for routes and the CLI."""
    token_cache = BearerTokenCache()
    if settings.spotify_user_token:
        token_cache.set_user_token(settings.spotify_user_token)
        app.logger.info("User token loaded from SPOTIFY_USER_TOKEN")

    app.extensions['catalog_settings'] = settings
    app.extensions['token_cache'] = token_cache
    app.extensions['catalog_client'] = CatalogClient.from_settings(settings, token_cache=token_cache)
    app.extensions['track_repository'] = TrackRepository()
    app.extensions['user_auth'] = UserAuthorization(
        settings.spotify_client_id,
        settings.spotify_client_secret,
        settings.spotify_redirect_uri,
        token_cache,
    )

    def _orchestrator_factory() -> SyncOrchestrator:
        # Resolved per run so replaced services are picked up
        return SyncOrchestrator(
            app.extensions['catalog_client'],
            app.extensions['track_repository'],
            app.extensions['catalog_settings'],
        )

    app.extensions['sync_orchestrator_factory'] = _orchestrator_factory
    app.extensions['sync_runner'] = BackgroundSyncRunner(
        app, _orchestrator_factory, timeout_seconds=settings.sync_timeout_seconds
    )


def shutdown_services(app) -> None:
    """Stop any running sync and release the Spotify HTTP session."""
    if app.extensions['sync_runner'].cancel("shutting down"):
        app.logger.info("Cancelled the running sync on shutdown")
    app.extensions['catalog_client'].close()


def create_app(overrides=None):
    settings = load_settings(overrides)
    # Fail fast: nothing works without client credentials
    settings.require_spotify_credentials()

    app = Flask(__name__, static_folder=PUBLIC_DIR, static_url_path='/static')
    app.config.from_object(Config)
    app.config['SQLALCHEMY_DATABASE_URI'] = settings.sqlalchemy_url()
    configure_structured_logging(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid4().hex

    @app.after_request
    def _inject_request_id(response):
        if getattr(g, 'request_id', None):
            response.headers.setdefault('X-Request-ID', g.request_id)
        return response

    allowed_origins = sorted({
        origin.strip()
        for origin in Config.CORS_ALLOWED_ORIGINS
        if origin and origin.strip() and origin.strip() != "*"
    })
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}}, supports_credentials=True)

    initialize_database(app)
    build_services(app, settings)
    register_error_handlers(app)

    # --- Register Blueprints ---
    app.register_blueprint(health_bp)
    app.register_blueprint(tracks_bp)
    app.register_blueprint(artists_bp)
    app.register_blueprint(stats_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(token_bp)
    app.register_blueprint(metrics_blueprint)

    @app.route('/')
    def index():
        return send_from_directory(PUBLIC_DIR, 'index.html')

    app.logger.info(
        "Catalog ready: %d artist(s) configured, policy=%s, test_mode=%s",
        len(settings.artists), settings.primary_artist_policy, settings.test_mode,
    )
    return app


if __name__ == '__main__':
    debug_mode = bool(Config.DEBUG)
    log_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'catalog', 'log')
    # With the reloader only the child process logs to file
    if not debug_mode or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        log_file_path = configure_logging(log_dir)
        logger.info("File logging initialized at %s", log_file_path)

    app = create_app()
    atexit.register(shutdown_services, app)
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')), debug=debug_mode)
