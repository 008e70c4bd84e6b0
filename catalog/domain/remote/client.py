"""Spotify Web API client used by the sync pipeline and the maintenance tools.

Catalog calls go through ``spotipy.Spotify`` with its own retry adapter
disabled; :meth:`CatalogClient._call_spotify` owns the retry policy instead:
429 waits for ``Retry-After`` (milliseconds) within a bounded attempt budget,
401 refreshes the bearer token once, 403/404 fail immediately and timeouts
are retried within the same budget.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from catalog.domain.remote.token_cache import BearerTokenCache
from catalog.errors import (
    AccessDenied,
    AuthenticationFailed,
    ConfigurationError,
    RateLimitExceeded,
    RemoteAPIError,
    RemoteTimeout,
    ResourceNotFound,
)
from catalog.observability.metrics import record_remote_retry
from catalog.utils.cancellation import CancelToken

logger = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"

TOKEN_ATTEMPTS = 3
TEMPO_BATCH_SIZE = 100
SEARCH_PAGE_SIZE = 50


@dataclass
class ArtistMatch:
    id: str
    name: str
    popularity: int = 0
    genres: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ArtistMatch":
        return cls(
            id=payload.get("id") or "",
            name=payload.get("name") or "",
            popularity=int(payload.get("popularity") or 0),
            genres=list(payload.get("genres") or []),
        )


class CatalogClient:
    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        *,
        token_cache: Optional[BearerTokenCache] = None,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
        market: str = "US",
        max_attempts: int = 5,
        default_delay_ms: int = 1000,
        request_timeout: float = 20.0,
        token_timeout: float = 8.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self.tokens = token_cache or BearerTokenCache()
        self._session = session or requests.Session()
        self._sleep = sleep
        self.market = market
        self._max_attempts = max(1, int(max_attempts))
        self._default_delay_ms = max(0, int(default_delay_ms))
        self._request_timeout = request_timeout
        self._token_timeout = token_timeout
        # One spotipy client per thread; auth and timeout change per attempt
        self._local = threading.local()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "CatalogClient":
        return cls(
            settings.spotify_client_id,
            settings.spotify_client_secret,
            market=settings.market,
            max_attempts=settings.rate_limit_retries,
            default_delay_ms=settings.rate_limit_delay_ms,
            **kwargs,
        )

    def close(self) -> None:
        self._session.close()

    # -- plumbing ------------------------------------------------------------

    def _pause(self, seconds: float, cancel: Optional[CancelToken]) -> None:
        if self._sleep is not None:
            if cancel is not None:
                cancel.raise_if_cancelled()
            self._sleep(seconds)
            if cancel is not None:
                cancel.raise_if_cancelled()
        elif cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)

    @staticmethod
    def _timeout(base: float, cancel: Optional[CancelToken]) -> float:
        if cancel is None:
            return base
        remaining = cancel.remaining()
        if remaining is None:
            return base
        return max(0.1, min(base, remaining))

    def _retry_after_ms(self, headers: Optional[Mapping[str, str]]) -> int:
        raw = (headers or {}).get("Retry-After")
        if raw is None:
            return self._default_delay_ms
        try:
            return max(0, int(str(raw).strip()))
        except ValueError:
            return self._default_delay_ms

    def _spotify(self, token: str, cancel: Optional[CancelToken]) -> spotipy.Spotify:
        sp = getattr(self._local, "spotify", None)
        if sp is None:
            sp = spotipy.Spotify(
                requests_session=self._session,
                retries=0,
                status_retries=0,
                requests_timeout=self._request_timeout,
            )
            self._local.spotify = sp
        sp.set_auth(token)
        sp.requests_timeout = self._timeout(self._request_timeout, cancel)
        return sp

    # -- authentication ------------------------------------------------------

    def authenticate(self, cancel: Optional[CancelToken] = None) -> str:
        """Return a client-credentials bearer token, fetching one when needed."""
        if not self._client_id or not self._client_secret:
            raise ConfigurationError("SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET are required")
        return self.tokens.get_or_fetch(lambda: self._request_token(cancel))

    def _request_token(self, cancel: Optional[CancelToken]) -> Tuple[str, int]:
        for attempt in range(1, TOKEN_ATTEMPTS + 1):
            if cancel is not None:
                cancel.raise_if_cancelled()
            logger.info("Requesting Spotify access token (attempt %s/%s)", attempt, TOKEN_ATTEMPTS)
            try:
                response = self._session.post(
                    TOKEN_URL,
                    data={"grant_type": "client_credentials"},
                    auth=(self._client_id, self._client_secret),
                    timeout=self._timeout(self._token_timeout, cancel),
                )
            except requests.Timeout:
                if attempt >= TOKEN_ATTEMPTS:
                    raise RemoteTimeout(
                        f"Timed out requesting a Spotify access token after {TOKEN_ATTEMPTS} attempts",
                        url=TOKEN_URL,
                    )
                logger.warning("Token request timed out; retrying in %ss", attempt)
                record_remote_retry("token_timeout")
                self._pause(attempt, cancel)
                continue
            except requests.RequestException as exc:
                raise ConfigurationError(f"Could not reach the Spotify token endpoint: {exc}") from exc

            if response.status_code != 200:
                raise ConfigurationError(
                    f"Spotify token endpoint returned {response.status_code}: {response.text[:200]}"
                )
            try:
                payload = response.json()
            except ValueError as exc:
                raise ConfigurationError("Spotify token endpoint returned a non-JSON body") from exc
            token = payload.get("access_token")
            if not token:
                raise ConfigurationError("Spotify token response did not include an access token")
            logger.info("Spotify access token obtained (attempt %s)", attempt)
            return token, int(payload.get("expires_in") or 3600)
        raise RemoteTimeout("Could not obtain a Spotify access token", url=TOKEN_URL)  # pragma: no cover

    def _bearer(self, cancel: Optional[CancelToken], use_user_token: bool) -> Tuple[str, bool]:
        if use_user_token:
            user_token = self.tokens.user_token()
            if user_token:
                return user_token, True
        return self.authenticate(cancel), False

    # -- request policy ------------------------------------------------------

    def _call_spotify(
        self,
        action: str,
        call: Callable[[spotipy.Spotify], Any],
        *,
        cancel: Optional[CancelToken] = None,
        use_user_token: bool = False,
    ) -> Any:
        attempt = 0
        app_token_refreshed = False
        while True:
            attempt += 1
            if cancel is not None:
                cancel.raise_if_cancelled()
            token, is_user_token = self._bearer(cancel, use_user_token)
            try:
                return call(self._spotify(token, cancel))
            except requests.Timeout:
                if attempt >= self._max_attempts:
                    raise RemoteTimeout(f"{action}: timed out after {attempt} attempts")
                logger.warning("%s timed out (attempt %s/%s)", action, attempt, self._max_attempts)
                record_remote_retry("timeout")
                self._pause(self._default_delay_ms / 1000.0, cancel)
                continue
            except requests.RequestException as exc:
                raise RemoteAPIError(f"{action} failed: {exc}") from exc
            except SpotifyException as exc:
                status = exc.http_status
                if status == 429:
                    wait_ms = self._retry_after_ms(exc.headers)
                    if attempt >= self._max_attempts:
                        raise RateLimitExceeded(
                            f"{action}: rate limited after {attempt} attempts", status=status
                        ) from exc
                    logger.warning(
                        "Rate limited by Spotify during %s; waiting %sms (attempt %s/%s)",
                        action, wait_ms, attempt, self._max_attempts,
                    )
                    record_remote_retry("rate_limit")
                    self._pause(wait_ms / 1000.0, cancel)
                    continue
                if status == 401:
                    # Neither refresh spends the attempt budget
                    attempt -= 1
                    record_remote_retry("unauthorized")
                    if is_user_token:
                        logger.warning("User token rejected; falling back to client credentials")
                        self.tokens.clear_user_token()
                        use_user_token = False
                        continue
                    if app_token_refreshed:
                        raise AuthenticationFailed(
                            f"{action}: Spotify rejected a freshly issued token", status=status
                        ) from exc
                    app_token_refreshed = True
                    logger.warning("Access token expired; requesting a new one")
                    self.tokens.invalidate(token)
                    continue
                if status == 403:
                    raise AccessDenied(f"{action}: access denied", status=status) from exc
                if status == 404:
                    raise ResourceNotFound(f"{action}: not found", status=status) from exc
                raise RemoteAPIError(f"{action} failed: {exc.msg}", status=status) from exc

    # -- catalog operations --------------------------------------------------

    def search_artist(self, name: str, cancel: Optional[CancelToken] = None) -> Optional[ArtistMatch]:
        """Best match for ``name``: exact (case-insensitive) first, then most popular."""
        payload = self._call_spotify(
            f"artist search for {name!r}",
            lambda sp: sp.search(q=name, limit=10, type="artist"),
            cancel=cancel,
        ) or {}
        items = [item for item in (payload.get("artists") or {}).get("items") or [] if item]
        if not items:
            return None
        wanted = name.strip().lower()
        exact = [item for item in items if (item.get("name") or "").strip().lower() == wanted]
        best = max(exact or items, key=lambda item: item.get("popularity") or 0)
        return ArtistMatch.from_payload(best)

    def get_artist(self, artist_id: str, cancel: Optional[CancelToken] = None) -> ArtistMatch:
        payload = self._call_spotify(
            f"artist {artist_id}", lambda sp: sp.artist(artist_id), cancel=cancel
        )
        return ArtistMatch.from_payload(payload or {})

    def get_top_tracks(
        self, artist_id: str, market: Optional[str] = None, cancel: Optional[CancelToken] = None
    ) -> List[Dict[str, Any]]:
        payload = self._call_spotify(
            f"top tracks of {artist_id}",
            lambda sp: sp.artist_top_tracks(artist_id, country=market or self.market),
            cancel=cancel,
        ) or {}
        return [track for track in payload.get("tracks") or [] if track and track.get("id")]

    def search_tracks(
        self,
        artist_name: str,
        limit: int,
        *,
        start_year: Optional[int] = None,
        market: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[Dict[str, Any]]:
        """Paginated track search for ``artist:"<name>"`` up to ``limit`` results."""
        if limit <= 0:
            return []
        query = f'artist:"{artist_name}"'
        if start_year:
            query += f" year:{start_year}-{date.today().year}"
        action = f"track search for {artist_name!r}"
        payload = self._call_spotify(
            action,
            lambda sp: sp.search(
                q=query, limit=min(SEARCH_PAGE_SIZE, limit), offset=0, type="track",
                market=market or self.market,
            ),
            cancel=cancel,
        ) or {}
        page = payload.get("tracks") or {}
        results: List[Dict[str, Any]] = []
        while True:
            results.extend(item for item in page.get("items") or [] if item and item.get("id"))
            if len(results) >= limit or not page.get("next"):
                break
            current = page
            # ``next`` already carries the query string
            payload = self._call_spotify(action, lambda sp: sp.next(current), cancel=cancel) or {}
            page = payload.get("tracks") or {}
        return results[:limit]

    def get_tempo(self, track_ids: Iterable[str], cancel: Optional[CancelToken] = None) -> Dict[str, float]:
        """Map track id -> BPM; ids without a tempo are left out."""
        ids = list(dict.fromkeys(tid for tid in track_ids if tid))
        tempos: Dict[str, float] = {}
        for start in range(0, len(ids), TEMPO_BATCH_SIZE):
            batch = ids[start:start + TEMPO_BATCH_SIZE]
            try:
                features = self._call_spotify(
                    f"audio features for {len(batch)} track(s)",
                    lambda sp: sp.audio_features(batch),
                    cancel=cancel,
                    use_user_token=True,
                )
            except (RateLimitExceeded, RemoteTimeout) as exc:
                # Per-track lookups would only multiply the traffic
                logger.warning("Audio features unavailable (%s); skipping tempo for the rest", exc)
                break
            except RemoteAPIError as exc:
                logger.warning("Batch audio-features request failed (%s); trying tracks one by one", exc)
                if not self._tempo_fallback(batch, tempos, cancel):
                    break
                continue
            for feature in features or []:
                _collect_tempo(feature, tempos)
        return tempos

    def _tempo_fallback(self, batch: List[str], tempos: Dict[str, float], cancel: Optional[CancelToken]) -> bool:
        """Look tracks up one by one; False when tempo lookups should stop altogether."""
        for track_id in batch:
            try:
                features = self._call_spotify(
                    f"audio features for {track_id}",
                    lambda sp: sp.audio_features([track_id]),
                    cancel=cancel,
                    use_user_token=True,
                )
            except AccessDenied:
                logger.warning("Audio features are not available to these credentials; skipping tempo")
                return False
            except (RateLimitExceeded, RemoteTimeout) as exc:
                logger.warning("Stopping per-track tempo lookups: %s", exc)
                return False
            except RemoteAPIError as exc:
                logger.debug("No audio features for %s: %s", track_id, exc)
                continue
            for feature in features or []:
                _collect_tempo(feature, tempos)
        return True

    def get_track_label(self, track_id: str, cancel: Optional[CancelToken] = None) -> Optional[str]:
        track = self._call_spotify(f"track {track_id}", lambda sp: sp.track(track_id), cancel=cancel) or {}
        album = track.get("album") or {}
        label = album.get("label")
        if not label and album.get("id"):
            details = self._call_spotify(
                f"album {album['id']}", lambda sp: sp.album(album["id"]), cancel=cancel
            ) or {}
            label = details.get("label")
        return label or None


def _collect_tempo(feature: Optional[Dict[str, Any]], tempos: Dict[str, float]) -> None:
    if not feature:
        return
    tempo = feature.get("tempo")
    if feature.get("id") and isinstance(tempo, (int, float)) and tempo > 0:
        tempos[feature["id"]] = float(tempo)


__all__ = ["ArtistMatch", "CatalogClient", "TOKEN_URL"]
