"""Client-credentials access tokens with expiry-aware caching.

Tokens are cached per ``client_id::scope`` until shortly before the
server-declared expiry. Failures never raise: the caller gets ``None`` and
is expected to continue unauthenticated.
"""

import logging
import time
from collections.abc import Callable

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from rendition_delivery.cache import TtlCache
from rendition_delivery.config import Settings, get_settings
from rendition_delivery.http_client import create_http_client

logger = logging.getLogger(__name__)

# Tokens are dropped this many seconds before the server says they expire
EXPIRY_BUFFER_SECONDS = 5


class TokenResponse(BaseModel):
    """Token endpoint response body."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "bearer"
    expires_in: int


def cache_key(client_id: str, scope: str) -> str:
    return f"{client_id}::{scope}"


class AccessTokenCache:
    """Obtains bearer tokens via OAuth2 client credentials and caches them."""

    def __init__(
        self,
        token_url: str,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
        settings: Settings | None = None,
    ):
        """Initialize the token cache.

        Args:
            token_url: Token endpoint accepting form-encoded client credentials
            client: HTTP client (one is created lazily from settings if omitted)
            clock: Monotonic time source in seconds
            settings: Timeouts and proxy for a lazily created client
        """
        self.token_url = token_url
        self._client = client
        self._owns_client = client is None
        self._settings = settings
        self._cache: TtlCache[TokenResponse] = TtlCache(clock=clock)

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = create_http_client(self._settings or get_settings())
        return self._client

    def close(self) -> None:
        """Close the HTTP client if it was created here."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def get_access_token(self, client_id: str, client_secret: str, scope: str) -> str | None:
        """Get a cached or freshly exchanged access token.

        Args:
            client_id: OAuth client id
            client_secret: OAuth client secret
            scope: Requested scope

        Returns:
            Access token value, or None if the exchange failed
        """
        token = self._cache.get_or_compute(
            cache_key(client_id, scope),
            lambda: self._exchange(client_id, client_secret, scope),
            lambda response: response.expires_in - EXPIRY_BUFFER_SECONDS,
        )
        return token.access_token if token is not None else None

    def _exchange(self, client_id: str, client_secret: str, scope: str) -> TokenResponse | None:
        form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": scope,
        }
        try:
            response = self._get_client().post(self.token_url, data=form)
        except httpx.HTTPError as e:
            logger.warning(f"Token exchange with {self.token_url} failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(
                f"Token exchange with {self.token_url} returned HTTP {response.status_code} "
                f"for client {client_id}"
            )
            return None

        try:
            token = TokenResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.warning(f"Unparsable token response from {self.token_url}: {e}")
            return None

        logger.debug(f"Obtained {token.token_type} token for client {client_id}, expires in {token.expires_in}s")
        return token

    def invalidate(self, client_id: str, scope: str) -> None:
        """Forget the cached token for a client and scope."""
        self._cache.invalidate(cache_key(client_id, scope))
