"""Delivery URLs for video assets.

Videos are never scaled by the delivery endpoint. They are streamed from an
adaptive manifest (HLS or DASH) or embedded through the hosted player; when
neither path is configured the original binary is delivered instead.
"""

from dataclasses import dataclass

from rendition_delivery.config import Settings
from rendition_delivery.delivery import PLACEHOLDER_ASSET_ID, PLACEHOLDER_FORMAT
from rendition_delivery.file_types import VideoManifestFormat

PLAYER_FILE_EXTENSION = "html"
PLAYER_MIME_TYPE = "text/html"


@dataclass(frozen=True)
class VideoDelivery:
    """Where and as what a video is delivered."""

    url: str
    file_extension: str
    mime_type: str
    manifest_format: VideoManifestFormat | None = None


class VideoUrlBuilder:
    """Builds manifest and player URLs against one repository host."""

    def __init__(self, settings: Settings, base_url: str | None):
        """Initialize the builder.

        Args:
            settings: Path templates and default manifest format
            base_url: Scheme and host of the repository serving the video
        """
        self._settings = settings
        self._base_url = (base_url or "").rstrip("/")

    def manifest_url(self, asset_id: str, manifest_format: VideoManifestFormat | None = None) -> str | None:
        """Adaptive streaming manifest URL.

        Args:
            asset_id: Asset id
            manifest_format: Requested format, the configured default if None

        Returns:
            URL, or None if repository or path template is not configured
        """
        template = self._settings.video_delivery_path
        if not self._base_url or not template:
            return None
        target = manifest_format or self._settings.default_video_manifest_format
        path = template.replace(PLACEHOLDER_ASSET_ID, asset_id).replace(PLACEHOLDER_FORMAT, target.extension)
        return self._base_url + path

    def player_url(self, asset_id: str) -> str | None:
        """URL of the hosted video player page, None if not configured."""
        template = self._settings.video_player_path
        if not self._base_url or not template:
            return None
        return self._base_url + template.replace(PLACEHOLDER_ASSET_ID, asset_id)

    def build(
        self, asset_id: str, manifest_format: VideoManifestFormat | None = None, hosted_player: bool = False
    ) -> VideoDelivery | None:
        """Pick the player page or the streaming manifest.

        Args:
            asset_id: Asset id
            manifest_format: Requested manifest format, the configured default if None
            hosted_player: Deliver the hosted player page instead of a manifest

        Returns:
            Video delivery, or None if the chosen path is not configured
        """
        if hosted_player:
            url = self.player_url(asset_id)
            return VideoDelivery(url, PLAYER_FILE_EXTENSION, PLAYER_MIME_TYPE) if url else None

        target = manifest_format or self._settings.default_video_manifest_format
        url = self.manifest_url(asset_id, target)
        if url is None:
            return None
        return VideoDelivery(url, target.extension, target.mime_type, manifest_format=target)
