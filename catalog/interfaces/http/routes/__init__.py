"""Route blueprints exposed via Flask."""

from .health import health_bp
from .tracks import tracks_bp
from .artists import artists_bp
from .stats import stats_bp
from .sync import sync_bp
from .auth import auth_bp
from .token import token_bp

__all__ = [
    "health_bp",
    "tracks_bp",
    "artists_bp",
    "stats_bp",
    "sync_bp",
    "auth_bp",
    "token_bp",
]
