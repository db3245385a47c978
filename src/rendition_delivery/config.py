"""Configuration using pydantic-settings."""

from enum import Enum
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rendition_delivery.file_types import VideoManifestFormat


class CropOption(str, Enum):
    """How the native delivery builder encodes a crop rectangle."""

    RELATIVE = "relative"
    ABSOLUTE = "absolute"


def repository_base_url(repository_id: str) -> str:
    """Scheme and host for a repository id; localhost is addressed over plain http."""
    if not repository_id:
        return ""
    scheme = "http" if repository_id.startswith("localhost:") else "https"
    return f"{scheme}://{repository_id}"


class Settings(BaseSettings):
    """Settings loaded from ``RENDITION_DELIVERY_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RENDITION_DELIVERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote repository (host[:port], empty = remote delivery disabled)
    repository_id: str = ""
    image_delivery_base_path: str = "/adobe/dynamicmedia/deliver/{asset-id}/{seo-name}.{format}"
    asset_original_binary_delivery_path: str = "/adobe/assets/{asset-id}/original/as/{seo-name}"
    asset_metadata_path: str = "/adobe/assets/{asset-id}/metadata"

    # Video delivery (empty path = fall back to the original binary)
    video_delivery_path: str = "/adobe/assets/{asset-id}/manifest.{format}"
    video_player_path: str = "/adobe/assets/{asset-id}/play"
    default_video_manifest_format: VideoManifestFormat = VideoManifestFormat.HLS

    # Metadata lookups
    metadata_enabled: bool = False
    asset_metadata_headers: list[str] = ["X-Adobe-Accept-Experimental:1"]
    metadata_cache_ttl_seconds: int = 300
    metadata_cache_max_entries: int = 10000

    # Client-credentials authentication
    ims_token_url: str = "https://ims-na1.adobelogin.com/ims/token/v3"
    client_id: str = ""
    client_secret: str = ""
    scope: str = ""

    # HTTP
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
    proxy_url: str = ""

    # Rendering
    default_image_quality: float = 0.85
    web_optimized_crop_option: CropOption = CropOption.RELATIVE
    local_repository_id: str = ""
    native_delivery_path: str = "/adobe/dynamicmedia/deliver/{asset-id}/{seo-name}.{format}"

    # Per-asset dimension probing
    lock_stripes: int = 64

    @field_validator("default_video_manifest_format", mode="before")
    @classmethod
    def parse_manifest_format(cls, value):
        return VideoManifestFormat.from_string(value)

    @property
    def authentication_configured(self) -> bool:
        """True when all client credentials are present."""
        return bool(self.client_id and self.client_secret and self.scope)

    @property
    def repository_base_url(self) -> str:
        """Base URL of the remote repository, or "" when unconfigured."""
        return repository_base_url(self.repository_id)

    @property
    def local_repository_base_url(self) -> str:
        """Base URL for native delivery, or "" to build host-relative URLs."""
        return repository_base_url(self.local_repository_id)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
