"""Tests for remote metadata lookup."""

import logging
from unittest.mock import Mock

import httpx
import pytest

from rendition_delivery.auth import AccessTokenCache
from rendition_delivery.cache import TtlCache
from rendition_delivery.config import Settings
from rendition_delivery.dimensions import Dimension
from rendition_delivery.metadata_service import CachingMetadataFetcher, MetadataFetcher, MetadataUrlBuilder
from rendition_delivery.reference import AssetReference


class MetadataEndpoint:
    """Mock metadata endpoint recording requests."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def reference(sample_reference) -> AssetReference:
    return AssetReference.parse(sample_reference)


def create_fetcher(settings: Settings, endpoint: MetadataEndpoint, token_cache=None) -> MetadataFetcher:
    client = httpx.Client(transport=httpx.MockTransport(endpoint))
    return MetadataFetcher(settings, client=client, token_cache=token_cache)


class TestMetadataUrlBuilder:
    """Tests for MetadataUrlBuilder."""

    def test_https(self, settings, reference, asset_id):
        """Test URL for a regular repository host."""
        assert MetadataUrlBuilder(settings).build(reference) == f"https://repo1/adobe/assets/{asset_id}/metadata"

    def test_localhost_uses_http(self, reference, asset_id):
        """Test that localhost repositories are addressed over http."""
        settings = Settings(_env_file=None, repository_id="localhost:4502")

        assert MetadataUrlBuilder(settings).build(reference) == (
            f"http://localhost:4502/adobe/assets/{asset_id}/metadata"
        )

    def test_unconfigured(self, reference):
        """Test that missing repository or path gives None."""
        assert MetadataUrlBuilder(Settings(_env_file=None, repository_id="")).build(reference) is None
        assert MetadataUrlBuilder(Settings(_env_file=None, repository_id="repo1", asset_metadata_path="")).build(
            reference
        ) is None


class TestMetadataFetcher:
    """Tests for MetadataFetcher."""

    def test_success(self, settings, reference, image_metadata, asset_id):
        """Test fetching and parsing valid metadata."""
        endpoint = MetadataEndpoint(httpx.Response(200, json=image_metadata))

        metadata = create_fetcher(settings, endpoint).fetch_metadata(reference)

        assert metadata is not None
        assert metadata.dimension == Dimension(1200, 800)
        request = endpoint.requests[0]
        assert str(request.url) == f"https://repo1/adobe/assets/{asset_id}/metadata"
        assert request.headers["X-Adobe-Accept-Experimental"] == "1"
        assert "Authorization" not in request.headers

    def test_disabled(self, reference, image_metadata):
        """Test that nothing is fetched when disabled."""
        settings = Settings(_env_file=None, repository_id="repo1", metadata_enabled=False)
        endpoint = MetadataEndpoint(httpx.Response(200, json=image_metadata))

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert endpoint.requests == []

    def test_unconfigured(self, reference, image_metadata):
        """Test that a missing repository id means unavailable."""
        settings = Settings(_env_file=None, repository_id="", metadata_enabled=True)
        endpoint = MetadataEndpoint(httpx.Response(200, json=image_metadata))

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert endpoint.requests == []

    def test_not_found_logged_at_debug(self, settings, reference, caplog):
        """Test that 404 is unavailable without a warning."""
        endpoint = MetadataEndpoint(httpx.Response(404))

        with caplog.at_level(logging.DEBUG, logger="rendition_delivery"):
            assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None

        levels = [record.levelno for record in caplog.records if record.name.startswith("rendition_delivery")]
        assert logging.WARNING not in levels
        assert logging.DEBUG in levels

    def test_unexpected_status_warns(self, settings, reference, caplog):
        """Test that other error statuses are unavailable with a warning."""
        endpoint = MetadataEndpoint(httpx.Response(500, text="boom"))

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert "HTTP 500" in caplog.text

    def test_invalid_metadata_warns(self, settings, reference, caplog):
        """Test that metadata without MIME type is rejected."""
        endpoint = MetadataEndpoint(httpx.Response(200, json={}))

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert "Invalid asset metadata" in caplog.text

    def test_malformed_body_warns(self, settings, reference, caplog, asset_id):
        """Test that unparsable bodies are unavailable with the URL logged."""
        endpoint = MetadataEndpoint(httpx.Response(200, text="no json"))

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert f"https://repo1/adobe/assets/{asset_id}/metadata" in caplog.text

    @pytest.mark.parametrize("width", ['"1e999"', "NaN", "Infinity", "1e999"])
    def test_non_finite_dimension(self, settings, reference, width):
        """Test that non-finite sizes leave the dimension unknown instead of raising."""
        body = (
            '{"repositoryMetadata": {"dc:format": "image/jpeg"},'
            f' "assetMetadata": {{"tiff:ImageWidth": {width}, "tiff:ImageLength": 800}}}}'
        )
        endpoint = MetadataEndpoint(httpx.Response(200, content=body))

        metadata = create_fetcher(settings, endpoint).fetch_metadata(reference)

        assert metadata is not None
        assert metadata.dimension is None

    def test_non_finite_smart_crop(self, settings, reference):
        """Test that a smart crop with an infinite fraction is dropped."""
        body = (
            '{"repositoryMetadata": {"dc:format": "image/jpeg", "smartcrops": {"Square":'
            ' {"left": Infinity, "top": 0.0, "normalizedWidth": 0.5, "normalizedHeight": 0.5}}},'
            ' "assetMetadata": {"tiff:ImageWidth": 1200, "tiff:ImageLength": 800}}'
        )
        endpoint = MetadataEndpoint(httpx.Response(200, content=body))

        metadata = create_fetcher(settings, endpoint).fetch_metadata(reference)

        assert metadata is not None
        assert metadata.smart_crops == []

    def test_non_finite_file_size_warns(self, settings, reference, caplog):
        """Test that an infinite file size makes the metadata unavailable."""
        body = '{"repositoryMetadata": {"dc:format": "image/jpeg", "repo:size": Infinity}}'
        endpoint = MetadataEndpoint(httpx.Response(200, content=body))

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert "Unable to parse asset metadata" in caplog.text

    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError("Connection refused"), httpx.ReadTimeout("Read timed out")],
    )
    def test_transport_error_warns(self, settings, reference, caplog, error, asset_id):
        """Test that network failures are unavailable with the URL logged."""
        endpoint = MetadataEndpoint(error=error)

        assert create_fetcher(settings, endpoint).fetch_metadata(reference) is None
        assert f"https://repo1/adobe/assets/{asset_id}/metadata" in caplog.text

    def test_bearer_token(self, auth_settings, reference, image_metadata):
        """Test that an obtained token is sent as bearer authorization."""
        token_cache = Mock(spec=AccessTokenCache)
        token_cache.get_access_token.return_value = "token-123"
        endpoint = MetadataEndpoint(httpx.Response(200, json=image_metadata))

        metadata = create_fetcher(auth_settings, endpoint, token_cache).fetch_metadata(reference)

        assert metadata is not None
        assert endpoint.requests[0].headers["Authorization"] == "Bearer token-123"
        token_cache.get_access_token.assert_called_once_with("client-1", "secret-1", "openid,AdobeID")

    def test_token_failure_falls_back_to_unauthenticated(self, auth_settings, reference, image_metadata):
        """Test that a failed token exchange does not abort the lookup."""
        token_cache = Mock(spec=AccessTokenCache)
        token_cache.get_access_token.return_value = None
        endpoint = MetadataEndpoint(httpx.Response(200, json=image_metadata))

        metadata = create_fetcher(auth_settings, endpoint, token_cache).fetch_metadata(reference)

        assert metadata is not None
        assert "Authorization" not in endpoint.requests[0].headers

    def test_token_exchange_shares_client(self, auth_settings, reference, image_metadata):
        """Test the default token cache against a mocked token endpoint."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/ims/token/v3":
                return httpx.Response(200, json={"access_token": "abc", "token_type": "bearer", "expires_in": 3600})
            assert request.headers["Authorization"] == "Bearer abc"
            return httpx.Response(200, json=image_metadata)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        fetcher = MetadataFetcher(auth_settings, client=client)

        metadata = fetcher.fetch_metadata(reference)

        assert metadata is not None
        assert metadata.properties["dc:title"] == "Test Image"

    def test_custom_headers(self, reference, image_metadata):
        """Test that configured headers are split on the first colon."""
        settings = Settings(
            _env_file=None,
            repository_id="repo1",
            metadata_enabled=True,
            asset_metadata_headers=["X-Custom: a:b", "malformed"],
        )
        endpoint = MetadataEndpoint(httpx.Response(200, json=image_metadata))

        create_fetcher(settings, endpoint).fetch_metadata(reference)

        assert endpoint.requests[0].headers["X-Custom"] == "a:b"


class TestCachingMetadataFetcher:
    """Tests for CachingMetadataFetcher."""

    def test_cached_per_asset(self, reference, clock):
        """Test that metadata is fetched once per TTL."""
        fetcher = Mock(spec=MetadataFetcher)
        fetcher.fetch_metadata.return_value = Mock()
        caching = CachingMetadataFetcher(fetcher, ttl_seconds=60, cache=TtlCache(clock=clock))

        first = caching.fetch_metadata(reference)
        second = caching.fetch_metadata(reference)

        assert first is second
        assert fetcher.fetch_metadata.call_count == 1

        clock.advance(60)
        caching.fetch_metadata(reference)
        assert fetcher.fetch_metadata.call_count == 2

    def test_misses_not_cached(self, reference, clock):
        """Test that unavailable metadata is looked up again."""
        fetcher = Mock(spec=MetadataFetcher)
        fetcher.fetch_metadata.return_value = None
        caching = CachingMetadataFetcher(fetcher, ttl_seconds=60, cache=TtlCache(clock=clock))

        assert caching.fetch_metadata(reference) is None
        assert caching.fetch_metadata(reference) is None
        assert fetcher.fetch_metadata.call_count == 2

    def test_invalidate(self, reference, clock):
        """Test dropping a cached entry."""
        fetcher = Mock(spec=MetadataFetcher)
        fetcher.fetch_metadata.return_value = Mock()
        caching = CachingMetadataFetcher(fetcher, ttl_seconds=60, cache=TtlCache(clock=clock))

        caching.fetch_metadata(reference)
        caching.invalidate(reference)
        caching.fetch_metadata(reference)

        assert fetcher.fetch_metadata.call_count == 2
