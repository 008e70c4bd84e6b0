"""Thread-safe holder for Spotify bearer tokens."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Refresh this many seconds before the provider-reported expiry.
EXPIRY_MARGIN_SECONDS = 300


class BearerTokenCache:
    """Caches the client-credentials token and an optional user token.

    ``get_or_fetch`` serialises fetches on a dedicated lock, so concurrent
    callers wait for a single in-flight request instead of each hitting the
    token endpoint. Token state sits behind a separate short-held lock; the
    user-token accessors never wait on the network.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._fetch_lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at: float = 0.0
        self._user_token: Optional[str] = None
        self._user_expires_at: Optional[float] = None

    def current(self) -> Optional[str]:
        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token
            return None

    def get_or_fetch(self, fetch: Callable[[], Tuple[str, int]]) -> str:
        """Return the cached token or call ``fetch`` -> ``(token, expires_in)``."""
        cached = self.current()
        if cached:
            return cached
        with self._fetch_lock:
            # Another caller may have fetched while this one waited
            cached = self.current()
            if cached:
                return cached
            token, expires_in = fetch()
            lifetime = max(0, int(expires_in) - EXPIRY_MARGIN_SECONDS)
            with self._lock:
                self._token = token
                self._expires_at = self._clock() + lifetime
            logger.debug("Cached Spotify access token for %ss", lifetime)
            return token

    def invalidate(self, token: Optional[str] = None) -> None:
        """Drop the cached token; when ``token`` is given only if it is still current."""
        with self._lock:
            if token is not None and token != self._token:
                return
            self._token = None
            self._expires_at = 0.0

    # -- user token (authorization-code flow) -------------------------------

    def set_user_token(self, token: str, expires_in: Optional[int] = None) -> None:
        with self._lock:
            self._user_token = token
            self._user_expires_at = (
                self._clock() + int(expires_in) if expires_in else None
            )

    def user_token(self) -> Optional[str]:
        with self._lock:
            if not self._user_token:
                return None
            if self._user_expires_at is not None and self._clock() >= self._user_expires_at:
                logger.info("User token expired; falling back to client credentials")
                self._user_token = None
                self._user_expires_at = None
                return None
            return self._user_token

    def clear_user_token(self) -> None:
        with self._lock:
            self._user_token = None
            self._user_expires_at = None

    def status(self) -> Dict[str, Optional[float]]:
        with self._lock:
            has_user_token = self.user_token() is not None
            return {
                "hasUserToken": has_user_token,
                "expiresAt": self._user_expires_at if has_user_token else None,
            }


__all__ = ["BearerTokenCache", "EXPIRY_MARGIN_SECONDS"]
