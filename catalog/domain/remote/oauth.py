"""Authorization-code flow for a user-scoped Spotify token.

Some endpoints (audio features in particular) are refused to app-only
credentials, so an operator can log in once and the resulting token is kept
in the server-side :class:`BearerTokenCache`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from catalog.domain.remote.token_cache import BearerTokenCache
from catalog.errors import AuthenticationFailed, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "user-read-private user-read-email"


class UserAuthorization:
    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: Optional[str],
        token_cache: BearerTokenCache,
        *,
        scope: str = DEFAULT_SCOPE,
        oauth: Optional[SpotifyOAuth] = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._scope = scope
        self._tokens = token_cache
        self._oauth = oauth

    def _manager(self) -> SpotifyOAuth:
        if self._oauth is None:
            if not (self._client_id and self._client_secret and self._redirect_uri):
                raise ConfigurationError(
                    "SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET and SPOTIFY_REDIRECT_URI are required for login"
                )
            self._oauth = SpotifyOAuth(
                client_id=self._client_id,
                client_secret=self._client_secret,
                redirect_uri=self._redirect_uri,
                scope=self._scope,
                cache_handler=MemoryCacheHandler(),
                open_browser=False,
            )
        return self._oauth

    def authorize_url(self, state: Optional[str] = None) -> str:
        return self._manager().get_authorize_url(state=state)

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Trade an authorization code for a token and store it server-side."""
        try:
            token_info = self._manager().get_access_token(code, as_dict=True, check_cache=False)
        except SpotifyOauthError as exc:
            raise AuthenticationFailed(f"Authorization code exchange failed: {exc}") from exc
        access_token = (token_info or {}).get("access_token")
        if not access_token:
            raise AuthenticationFailed("Authorization response did not include an access token")
        self._tokens.set_user_token(access_token, token_info.get("expires_in"))
        logger.info("Stored user token from authorization-code flow")
        return token_info


__all__ = ["UserAuthorization", "DEFAULT_SCOPE"]
