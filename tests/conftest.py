"""Shared fixtures for rendition_delivery tests."""

import copy

import pytest

from rendition_delivery.config import Settings

SAMPLE_ASSET_ID = "urn:aaid:aem:12345678-abcd-abcd-abcd-abcd12345678"
SAMPLE_REFERENCE = f"/{SAMPLE_ASSET_ID}/my-image.jpg"

METADATA_IMAGE = {
    "assetId": SAMPLE_ASSET_ID,
    "repositoryMetadata": {
        "repo:name": "test.jpg",
        "dc:format": "image/jpeg",
        "repo:size": 250000,
    },
    "assetMetadata": {
        "dam:assetStatus": "approved",
        "dc:description": "Test Description",
        "dc:title": "Test Image",
        "tiff:ImageLength": 800,
        "tiff:ImageWidth": 1200,
    },
}

METADATA_IMAGE_SMARTCROPS = {
    "assetId": SAMPLE_ASSET_ID,
    "repositoryMetadata": {
        "repo:name": "test.jpg",
        "dc:format": "image/jpeg",
        "smartcrops": {
            "Landscape": {
                "height": 675,
                "left": 0.0,
                "normalizedHeight": 0.84375,
                "normalizedWidth": 1.0,
                "top": 0.5774,
                "width": 1200,
            },
            "Portrait": {
                "left": 0.16792180740265983,
                "top": 0.0,
                "normalizedWidth": 0.3326723533333333,
                "normalizedHeight": 0.9980170652565797,
            },
            "Broken": {"left": 0.1, "top": 0.1, "normalizedWidth": 0.0, "normalizedHeight": 0.5},
        },
    },
    "assetMetadata": {
        "dam:assetStatus": "approved",
        "tiff:ImageLength": 800,
        "tiff:ImageWidth": 1200,
    },
}

METADATA_PDF = {
    "assetId": SAMPLE_ASSET_ID,
    "repositoryMetadata": {
        "repo:name": "test.pdf",
        "dc:format": "application/pdf",
    },
    "assetMetadata": {
        "dam:assetStatus": "approved",
        "dc:description": "Test Description",
        "dc:title": "Test Document",
    },
}


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings for a configured remote repository, independent of the environment."""
    return Settings(
        _env_file=None,
        repository_id="repo1",
        metadata_enabled=True,
        metadata_cache_ttl_seconds=0,
    )


@pytest.fixture
def auth_settings() -> Settings:
    """Settings with client credentials configured."""
    return Settings(
        _env_file=None,
        repository_id="repo1",
        metadata_enabled=True,
        metadata_cache_ttl_seconds=0,
        ims_token_url="https://ims.example.com/ims/token/v3",
        client_id="client-1",
        client_secret="secret-1",
        scope="openid,AdobeID",
    )


@pytest.fixture
def image_metadata() -> dict:
    """Metadata response of a 1200x800 JPEG."""
    return copy.deepcopy(METADATA_IMAGE)


@pytest.fixture
def smartcrop_metadata() -> dict:
    """Metadata response of a 1200x800 JPEG with smart crops."""
    return copy.deepcopy(METADATA_IMAGE_SMARTCROPS)


@pytest.fixture
def pdf_metadata() -> dict:
    """Metadata response of a PDF document."""
    return copy.deepcopy(METADATA_PDF)


@pytest.fixture
def asset_id() -> str:
    return SAMPLE_ASSET_ID


@pytest.fixture
def sample_reference() -> str:
    """Reference string of a remote JPEG named my-image.jpg."""
    return SAMPLE_REFERENCE
