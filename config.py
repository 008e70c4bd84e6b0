#!/usr/bin/env python
# config.py
import os
from typing import List

# This assumes config.py is at the root of your project
basedir = os.path.abspath(os.path.dirname(__file__))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _get_csv_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name)
    source = raw if raw is not None else default
    return [token.strip() for token in source.split(",") if token and token.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me-tempo-catalog'

    # Datastore. Any SQLAlchemy URL; hosted Postgres in production.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'catalog', 'database', 'instance', 'catalog.db')
    # Optional password for hosted datastores whose URL is shared without one
    DATABASE_KEY = os.environ.get('DATABASE_KEY')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Spotify API
    SPOTIFY_CLIENT_ID = os.environ.get('SPOTIFY_CLIENT_ID')
    SPOTIFY_CLIENT_SECRET = os.environ.get('SPOTIFY_CLIENT_SECRET')
    SPOTIFY_REDIRECT_URI = os.environ.get('SPOTIFY_REDIRECT_URI')
    SPOTIFY_MARKET = os.getenv('SPOTIFY_MARKET', 'US')
    # User-scoped token unlocking the audio-features (tempo) endpoint
    SPOTIFY_USER_TOKEN = (os.getenv('SPOTIFY_USER_TOKEN') or '').strip() or None

    # Rate limiting against the Spotify API
    SPOTIFY_RATE_LIMIT_RETRIES = _get_int('SPOTIFY_RATE_LIMIT_RETRIES', 5)
    SPOTIFY_RATE_LIMIT_DELAY = _get_int('SPOTIFY_RATE_LIMIT_DELAY', 1000)

    # Sync roster and crawl behaviour
    SYNC_ARTISTS = _get_csv_list('SYNC_ARTISTS', 'Duki,Bizarrap,Airbag,Emilia')
    PRIMARY_ARTIST_POLICY = os.getenv('PRIMARY_ARTIST_POLICY', 'any_credit')
    INCLUDE_FEATURED = _get_bool('INCLUDE_FEATURED', True)
    TRACKS_PER_ARTIST = _get_int('TRACKS_PER_ARTIST', 0)
    START_YEAR = _get_int('START_YEAR', 2010)
    LABEL_SEARCH_TERM = os.getenv('LABEL_SEARCH_TERM', 'dale play records')
    MAX_TRACKS_TO_PROCESS = _get_int('MAX_TRACKS_TO_PROCESS', 50)
    TEST_MODE = _get_bool('TEST_MODE', False)
    SYNC_TIMEOUT_SECONDS = _get_int('SYNC_TIMEOUT_SECONDS', 180)
    SYNC_ARTIST_DELAY_MS = _get_int('SYNC_ARTIST_DELAY_MS', 500)

    # Shared secret for the scheduled-job trigger
    CRON_SECRET = os.getenv('CRON_SECRET')

    # HTTP surface
    FRONTEND_URL = os.getenv('FRONTEND_URL', '/')
    CORS_ALLOWED_ORIGINS = _get_csv_list('CORS_ALLOWED_ORIGINS', 'http://localhost:3000')

    # Runtime behavior
    # Turn Flask debug on/off from env; default off to avoid noisy console
    DEBUG = _get_bool('DEBUG', False)
    # Control console logging; when disabled, logs go only to file
    ENABLE_CONSOLE_LOGS = _get_bool('ENABLE_CONSOLE_LOGS', False)
