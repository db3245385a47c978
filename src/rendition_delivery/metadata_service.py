"""Remote asset metadata lookup.

``MetadataFetcher.fetch_metadata`` never raises: any failure yields None and
a log line. 404 means the repository has not computed metadata yet and is
only logged at debug level.
"""

import logging

import httpx

from rendition_delivery.auth import AccessTokenCache
from rendition_delivery.cache import TtlCache
from rendition_delivery.config import Settings, get_settings
from rendition_delivery.http_client import create_http_client, parse_header_lines
from rendition_delivery.metadata import AssetMetadata, MetadataParseError, parse_metadata_json
from rendition_delivery.reference import AssetReference

logger = logging.getLogger(__name__)

PLACEHOLDER_ASSET_ID = "{asset-id}"


class MetadataUrlBuilder:
    """Builds metadata URLs from the configured repository and path template."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def build(self, reference: AssetReference) -> str | None:
        """Metadata URL for an asset, or None if repository or path is not configured."""
        base_url = self._settings.repository_base_url
        path = self._settings.asset_metadata_path
        if not base_url or not path:
            return None
        return base_url + path.replace(PLACEHOLDER_ASSET_ID, reference.asset_id)


class MetadataFetcher:
    """Fetches and validates remote asset metadata."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
        token_cache: AccessTokenCache | None = None,
    ):
        """Initialize the fetcher.

        Args:
            settings: Settings (defaults to the environment)
            client: HTTP client (created lazily from settings if omitted)
            token_cache: Token source; one sharing ``client`` is created if
                authentication is configured
        """
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._token_cache = token_cache
        self._owns_token_cache = token_cache is None
        self._url_builder = MetadataUrlBuilder(self._settings)
        self._headers = parse_header_lines(self._settings.asset_metadata_headers)

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = create_http_client(self._settings)
        return self._client

    def _get_token_cache(self) -> AccessTokenCache:
        if self._token_cache is None:
            self._token_cache = AccessTokenCache(
                self._settings.ims_token_url, client=self._get_client(), settings=self._settings
            )
        return self._token_cache

    def close(self) -> None:
        """Close the HTTP client if it was created here."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
        if self._owns_token_cache:
            # Shares the closed client
            self._token_cache = None

    @property
    def enabled(self) -> bool:
        return self._settings.metadata_enabled

    def _request_headers(self) -> dict[str, str]:
        headers = dict(self._headers)
        if self._settings.authentication_configured:
            token = self._get_token_cache().get_access_token(
                self._settings.client_id, self._settings.client_secret, self._settings.scope
            )
            if token:
                headers["Authorization"] = f"Bearer {token}"
            else:
                logger.warning("No access token available, fetching metadata unauthenticated")
        return headers

    def fetch_metadata(self, reference: AssetReference) -> AssetMetadata | None:
        """Fetch metadata for a remote asset.

        Args:
            reference: Remote asset reference

        Returns:
            Valid metadata, or None if disabled, unconfigured, missing or failed
        """
        if not self.enabled:
            return None
        url = self._url_builder.build(reference)
        if url is None:
            logger.debug(f"Metadata lookup not configured, skipping {reference}")
            return None

        try:
            response = self._get_client().get(url, headers=self._request_headers())
        except httpx.HTTPError as e:
            logger.warning(f"Unable to fetch asset metadata from {url}: {e}")
            return None

        if response.status_code == 404:
            logger.debug(f"No asset metadata found at {url}")
            return None
        if response.status_code != 200:
            logger.warning(f"Unexpected response fetching asset metadata from {url}: HTTP {response.status_code}")
            return None

        try:
            metadata = parse_metadata_json(response.content)
        except MetadataParseError as e:
            logger.warning(f"Unable to parse asset metadata from {url}: {e}")
            return None

        if not metadata.is_valid:
            logger.warning(f"Invalid asset metadata received from {url}: no MIME type")
            return None
        return metadata


class CachingMetadataFetcher:
    """Wraps a ``MetadataFetcher`` with a per-asset TTL cache.

    Misses are not cached, so an asset whose metadata is computed later is
    picked up by the next lookup.
    """

    def __init__(
        self,
        fetcher: MetadataFetcher,
        ttl_seconds: float,
        cache: TtlCache[AssetMetadata] | None = None,
        max_entries: int | None = None,
    ):
        self._fetcher = fetcher
        self._ttl_seconds = ttl_seconds
        self._cache: TtlCache[AssetMetadata] = cache if cache is not None else TtlCache(max_entries=max_entries)

    @property
    def enabled(self) -> bool:
        return self._fetcher.enabled

    def fetch_metadata(self, reference: AssetReference) -> AssetMetadata | None:
        return self._cache.get_or_compute(
            reference.asset_id,
            lambda: self._fetcher.fetch_metadata(reference),
            lambda _: self._ttl_seconds,
        )

    def invalidate(self, reference: AssetReference) -> None:
        self._cache.invalidate(reference.asset_id)

    def close(self) -> None:
        self._fetcher.close()
