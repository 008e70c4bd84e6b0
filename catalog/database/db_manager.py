# database/db_manager.py
from flask_sqlalchemy import SQLAlchemy
import os  # Import os for path handling
import logging
from datetime import datetime, timezone
from sqlalchemy.engine import make_url

# Initialize the SQLAlchemy object
db = SQLAlchemy()
logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo on round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Track(db.Model):
    __tablename__ = 'artist_tracks'

    id = db.Column(db.Integer, primary_key=True)
    spotify_id = db.Column(db.String(64), unique=True, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    artists = db.Column(db.JSON, nullable=False, default=list)  # list[str], provider order
    artist_main = db.Column(db.String(255), nullable=True, index=True)
    # True when the requested artist was only a featured/secondary credit
    featured = db.Column(db.Boolean, default=False, nullable=False)
    album = db.Column(db.String(255), nullable=True)
    release_date = db.Column(db.Date, nullable=True)
    duration_ms = db.Column(db.Integer, nullable=True)
    bpm = db.Column(db.Float, nullable=True)
    genres = db.Column(db.JSON, nullable=False, default=list)  # list[str]

    preview_url = db.Column(db.String(500), nullable=True)
    cover_url = db.Column(db.String(500), nullable=True)

    fetched_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<Track {self.spotify_id}: {self.name} by {self.artist_main}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'spotify_id': self.spotify_id,
            'name': self.name,
            'artists': list(self.artists or []),
            'artist_main': self.artist_main,
            'featured': bool(self.featured),
            'album': self.album,
            'release_date': self.release_date.isoformat() if self.release_date else None,
            'duration_ms': self.duration_ms,
            'bpm': self.bpm,
            'genres': list(self.genres or []),
            'preview_url': self.preview_url,
            'cover_url': self.cover_url,
            'fetched_at': self.fetched_at.isoformat() if self.fetched_at else None,
        }


def initialize_database(app):
    """
    Initializes the SQLAlchemy extension with the Flask app instance
    and creates the catalog table if it doesn't already exist.
    """
    db.init_app(app)
    # Ensure the instance folder exists for SQLite database file
    instance_path = app.instance_path
    if not os.path.exists(instance_path):
        os.makedirs(instance_path)
        logger.info("Created instance folder: %s", instance_path)

    # Ensure the directory for the configured SQLite file exists
    try:
        uri = app.config.get('SQLALCHEMY_DATABASE_URI')
        if uri:
            url = make_url(uri)
            # Only handle file-based SQLite (not :memory:)
            if url.get_backend_name() == 'sqlite' and url.database and url.database != ':memory:':
                db_dir = os.path.dirname(url.database)
                if db_dir and not os.path.exists(db_dir):
                    os.makedirs(db_dir, exist_ok=True)
                    logger.info("Created SQLite DB directory: %s", db_dir)
    except Exception as e:
        # Don't block app startup on path parsing issues; log and continue
        logger.warning("Could not ensure SQLite directory exists: %s", e)

    # Create database tables within the application context
    with app.app_context():
        db.create_all()
        logger.info("Database tables created or already exist.")
