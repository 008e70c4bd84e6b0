#!/usr/bin/env python
"""
Centralized settings schema for the catalog service.

Merges defaults from config.Config with runtime overrides and validates
the values the sync pipeline depends on.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.engine import make_url

from config import Config
from catalog.errors import ConfigurationError


def _parse_artist_roster(value: Optional[object]) -> List[str]:
    """Normalize the artist roster into a unique ordered list."""
    if value is None:
        tokens: List[str] = []
    elif isinstance(value, str):
        tokens = [token.strip() for token in value.split(",")]
    elif isinstance(value, (list, tuple)):
        tokens = [str(token).strip() for token in value]
    else:
        tokens = [str(value).strip()]

    seen = set()
    roster: List[str] = []
    for token in tokens:
        if not token:
            continue
        key = token.lower()
        if key in seen:
            continue
        seen.add(key)
        roster.append(token)
    return roster


class CatalogSettings(BaseModel):
    """Application-wide settings for the Spotify sync and the HTTP layer."""

    model_config = ConfigDict(extra="ignore")

    # Spotify credentials
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_redirect_uri: Optional[str] = None
    spotify_user_token: Optional[str] = None
    market: str = "US"

    # Datastore
    database_url: str
    database_key: Optional[str] = None

    # Remote request policy
    rate_limit_retries: int = 5
    rate_limit_delay_ms: int = 1000

    # Sync behaviour
    artists: List[str] = Field(default_factory=list)
    primary_artist_policy: str = "any_credit"
    include_featured: bool = True
    tracks_per_artist: int = 0
    start_year: Optional[int] = None
    label_search_term: str = "dale play records"
    max_tracks_to_process: int = 50
    test_mode: bool = False
    sync_timeout_seconds: float = 180.0
    artist_delay_ms: int = 500

    # HTTP surface
    cron_secret: Optional[str] = None
    frontend_url: str = "/"

    @field_validator("artists", mode="before")
    @classmethod
    def _normalize_artists(cls, value: Optional[object]) -> List[str]:
        return _parse_artist_roster(value)

    @field_validator("primary_artist_policy", mode="before")
    @classmethod
    def _normalize_policy(cls, value: object) -> str:
        raw = str(value or "").strip().lower().replace("-", "_")
        if raw not in {"lead_only", "any_credit"}:
            return "any_credit"
        return raw

    @field_validator("rate_limit_retries", mode="before")
    @classmethod
    def _coerce_retries(cls, value: object) -> int:
        try:
            retries = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 5
        return max(1, min(retries, 20))

    @field_validator("rate_limit_delay_ms", "artist_delay_ms", "tracks_per_artist", "max_tracks_to_process", mode="before")
    @classmethod
    def _coerce_non_negative(cls, value: object) -> int:
        try:
            number = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0
        return max(0, number)

    @field_validator("sync_timeout_seconds", mode="before")
    @classmethod
    def _coerce_timeout(cls, value: object) -> float:
        try:
            seconds = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 180.0
        return seconds if seconds > 0 else 180.0

    @field_validator("spotify_user_token", "cron_secret", "spotify_redirect_uri", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @property
    def has_spotify_credentials(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    def require_spotify_credentials(self) -> None:
        if not self.has_spotify_credentials:
            raise ConfigurationError(
                "SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET are required"
            )

    def sqlalchemy_url(self) -> str:
        """Database URL with DATABASE_KEY applied as password when the URL has none."""
        url = make_url(self.database_url)
        if self.database_key and not url.password and url.username:
            url = url.set(password=self.database_key)
        return url.render_as_string(hide_password=False)


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> CatalogSettings:
    """Load settings merging config defaults with optional runtime overrides."""
    data: Dict[str, Any] = {
        "spotify_client_id": Config.SPOTIFY_CLIENT_ID,
        "spotify_client_secret": Config.SPOTIFY_CLIENT_SECRET,
        "spotify_redirect_uri": Config.SPOTIFY_REDIRECT_URI,
        "spotify_user_token": Config.SPOTIFY_USER_TOKEN,
        "market": Config.SPOTIFY_MARKET,
        "database_url": Config.SQLALCHEMY_DATABASE_URI,
        "database_key": Config.DATABASE_KEY,
        "rate_limit_retries": Config.SPOTIFY_RATE_LIMIT_RETRIES,
        "rate_limit_delay_ms": Config.SPOTIFY_RATE_LIMIT_DELAY,
        "artists": Config.SYNC_ARTISTS,
        "primary_artist_policy": Config.PRIMARY_ARTIST_POLICY,
        "include_featured": Config.INCLUDE_FEATURED,
        "tracks_per_artist": Config.TRACKS_PER_ARTIST,
        "start_year": Config.START_YEAR,
        "label_search_term": Config.LABEL_SEARCH_TERM,
        "max_tracks_to_process": Config.MAX_TRACKS_TO_PROCESS,
        "test_mode": Config.TEST_MODE,
        "sync_timeout_seconds": Config.SYNC_TIMEOUT_SECONDS,
        "artist_delay_ms": Config.SYNC_ARTIST_DELAY_MS,
        "cron_secret": Config.CRON_SECRET,
        "frontend_url": Config.FRONTEND_URL,
    }
    if overrides:
        data.update(overrides)
    return CatalogSettings.model_validate(data)


__all__ = [
    "CatalogSettings",
    "load_settings",
]
