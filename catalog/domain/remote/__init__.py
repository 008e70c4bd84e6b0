from .client import TOKEN_URL, ArtistMatch, CatalogClient  # noqa: F401
from .oauth import UserAuthorization  # noqa: F401
from .token_cache import BearerTokenCache  # noqa: F401
