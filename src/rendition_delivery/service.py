"""Rendition delivery service.

Wires token, metadata, resolution and URL building together:

    reference -> metadata (token-authenticated, cached) -> resolver -> builder -> URL

Nothing here raises on bad input or unreachable services; a rendition
without URL is returned instead.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import IO, Any, Protocol

from rendition_delivery.config import Settings, get_settings
from rendition_delivery.delivery import (
    DeliveryParams,
    DeliverySource,
    NativeDeliveryParameterBuilder,
    RemoteDeliveryParameterBuilder,
    binary_delivery_url,
    render_delivery_url,
)
from rendition_delivery.file_types import AssetKind, VideoManifestFormat, kind_from_mime_type
from rendition_delivery.metadata import AssetMetadata, DimensionProbe, dimension_from_properties
from rendition_delivery.metadata_service import CachingMetadataFetcher, MetadataFetcher
from rendition_delivery.reference import AssetReference
from rendition_delivery.resolver import (
    DeliveryRequest,
    ImageQualityPolicy,
    MediaFormat,
    RenditionResolver,
    Resolution,
    ResolutionState,
)
from rendition_delivery.smart_crop import NamedSmartCrop
from rendition_delivery.video import VideoDelivery, VideoUrlBuilder

logger = logging.getLogger(__name__)

INVALID_REASON_REFERENCE = "invalid_reference"


class MetadataSource(Protocol):
    """Anything that can look up remote asset metadata."""

    def fetch_metadata(self, reference: AssetReference) -> AssetMetadata | None: ...


@dataclass(frozen=True)
class Rendition:
    """A resolved rendition, ready for markup.

    Attributes:
        state: Resolution outcome
        url: Delivery URL, None if nothing can be delivered
        width: Rendition width in pixels (0 = unknown)
        height: Rendition height in pixels (0 = unknown)
        file_extension: Extension of the delivered file
        mime_type: MIME type of the source asset
        file_size: Size of the source binary, if known
        metadata: Metadata used for resolution
        invalid_reason: Why nothing is delivered, for INVALID renditions
        video_manifest_format: Streaming manifest format, for videos delivered as a manifest
        poster_url: Still image of a video asset
    """

    state: ResolutionState
    url: str | None
    width: int = 0
    height: int = 0
    file_extension: str = ""
    mime_type: str | None = None
    file_size: int | None = None
    metadata: AssetMetadata | None = None
    invalid_reason: str | None = None
    video_manifest_format: VideoManifestFormat | None = None
    poster_url: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.url is not None

    @classmethod
    def from_resolution(
        cls,
        resolution: Resolution,
        url: str | None,
        metadata: AssetMetadata | None,
        video: VideoDelivery | None = None,
        poster_url: str | None = None,
    ) -> "Rendition":
        if video is not None:
            return cls(
                state=resolution.state,
                url=video.url,
                width=resolution.width,
                height=resolution.height,
                file_extension=video.file_extension,
                mime_type=video.mime_type,
                file_size=None,
                metadata=metadata,
                video_manifest_format=video.manifest_format,
                poster_url=poster_url,
            )
        return cls(
            state=resolution.state,
            url=url,
            width=resolution.width,
            height=resolution.height,
            file_extension=resolution.file_extension,
            mime_type=metadata.mime_type if metadata is not None else None,
            file_size=metadata.file_size if metadata is not None else None,
            metadata=metadata,
            invalid_reason=resolution.invalid_reason,
            poster_url=poster_url,
        )


@dataclass
class NativeAsset:
    """Asset stored in the local repository.

    Attributes:
        asset_id: Repository asset id used in delivery URLs
        path: Repository path, also the URL of the original binary
        name: File name
        mime_type: MIME type
        properties: Asset metadata properties
        smart_crops: Smart crops stored with the asset
        file_size: Binary size in bytes
        open_binary: Opens the original binary, for dimension probing
    """

    asset_id: str
    path: str
    name: str
    mime_type: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    smart_crops: list[NamedSmartCrop] = field(default_factory=list)
    file_size: int | None = None
    open_binary: Callable[[], IO[bytes]] | None = None


class RenditionDeliveryService:
    """Resolves renditions for remote and repository-hosted assets."""

    def __init__(
        self,
        settings: Settings | None = None,
        metadata_source: MetadataSource | None = None,
        resolver: RenditionResolver | None = None,
        dimension_probe: DimensionProbe | None = None,
    ):
        self._settings = settings or get_settings()
        self._metadata_source = metadata_source or self._create_metadata_source(self._settings)
        self._resolver = resolver or RenditionResolver(ImageQualityPolicy(self._settings.default_image_quality))
        self._dimension_probe = dimension_probe or DimensionProbe(self._settings.lock_stripes)
        self._remote_builder = RemoteDeliveryParameterBuilder()
        self._native_builder = NativeDeliveryParameterBuilder(self._settings.web_optimized_crop_option)

    @staticmethod
    def _create_metadata_source(settings: Settings) -> MetadataSource:
        fetcher = MetadataFetcher(settings)
        if settings.metadata_cache_ttl_seconds > 0:
            return CachingMetadataFetcher(
                fetcher, settings.metadata_cache_ttl_seconds, max_entries=settings.metadata_cache_max_entries
            )
        return fetcher

    def fetch_metadata(self, reference: AssetReference | str) -> AssetMetadata | None:
        """Fetch metadata of a remote asset, None if unavailable."""
        parsed = self._parse_reference(reference)
        if parsed is None:
            return None
        return self._metadata_source.fetch_metadata(parsed)

    def remote_rendition(
        self,
        reference: AssetReference | str,
        request: DeliveryRequest,
        media_format: MediaFormat | None = None,
    ) -> Rendition:
        """Resolve a rendition of a remote asset.

        Videos are delivered as a streaming manifest or through the hosted
        player, with a poster image; the original binary when neither is
        configured.

        Args:
            reference: Asset reference or ``/urn:.../file-name`` string
            request: Delivery request
            media_format: First media format matching the request

        Returns:
            Rendition; ``url`` is None for INVALID results and when the
            remote repository is not configured
        """
        parsed = self._parse_reference(reference)
        if parsed is None:
            return Rendition(state=ResolutionState.INVALID, url=None, invalid_reason=INVALID_REASON_REFERENCE)

        metadata = self._metadata_source.fetch_metadata(parsed)
        resolution = self._resolver.resolve(parsed.file_name, request, metadata, media_format)

        if self._is_video(parsed.file_name, resolution, request, metadata):
            video = VideoUrlBuilder(self._settings, self._settings.repository_base_url).build(
                parsed.asset_id, request.video_manifest_format, request.hosted_video_player
            )
            poster_url = self._remote_rendition_url(parsed, DeliveryParams(), metadata)
            if video is not None:
                return Rendition.from_resolution(resolution, None, metadata, video=video, poster_url=poster_url)
            logger.debug(f"Video delivery not configured, delivering original binary of {parsed}")
            url = binary_delivery_url(self._settings, parsed, request.content_disposition_attachment)
            return Rendition.from_resolution(resolution, url, metadata, poster_url=poster_url)

        url = None
        if resolution.state == ResolutionState.BINARY_PASSTHROUGH:
            url = binary_delivery_url(self._settings, parsed, request.content_disposition_attachment)
        elif resolution.state == ResolutionState.SCALED and resolution.params is not None:
            url = self._remote_rendition_url(parsed, resolution.params, metadata)

        if url is None and resolution.state != ResolutionState.INVALID:
            logger.debug(f"Remote delivery not configured, no URL for {parsed}")
        return Rendition.from_resolution(resolution, url, metadata)

    @staticmethod
    def _is_video(
        file_name: str, resolution: Resolution, request: DeliveryRequest, metadata: AssetMetadata | None
    ) -> bool:
        # Downloads always get the original binary
        if resolution.state != ResolutionState.BINARY_PASSTHROUGH or request.download:
            return False
        kind = metadata.kind if metadata is not None else kind_from_mime_type(None, file_name)
        return kind == AssetKind.VIDEO

    def _remote_rendition_url(
        self, reference: AssetReference, delivery_params: DeliveryParams, metadata: AssetMetadata | None
    ) -> str | None:
        base_url = self._settings.repository_base_url
        template = self._settings.image_delivery_base_path
        if not base_url or not template:
            return None
        source = DeliverySource.from_reference(reference, metadata.dimension if metadata is not None else None)
        params = self._remote_builder.build(source, delivery_params)
        return render_delivery_url(base_url, template, params)

    def native_metadata(self, asset: NativeAsset) -> AssetMetadata:
        """Build metadata of a repository-hosted asset.

        The binary is only decoded for raster images whose properties
        carry no dimension.
        """
        fallback = None
        if (
            dimension_from_properties(asset.properties) is None
            and asset.open_binary is not None
            and kind_from_mime_type(asset.mime_type, asset.name) == AssetKind.RASTER
        ):
            fallback = self._dimension_probe.probe(asset.path, asset.open_binary)

        return AssetMetadata.from_properties(
            asset.mime_type,
            asset.properties,
            file_name=asset.name,
            file_size=asset.file_size,
            smart_crops=asset.smart_crops,
            fallback_dimension=fallback,
        )

    def native_rendition(
        self,
        asset: NativeAsset,
        request: DeliveryRequest,
        media_format: MediaFormat | None = None,
    ) -> Rendition:
        """Resolve a rendition of a repository-hosted asset.

        Passthrough renditions point at the asset path; scaled ones at the
        web-optimized delivery endpoint (host-relative unless
        ``local_repository_id`` is set). Videos are streamed from the local
        repository when ``local_repository_id`` is set.
        """
        metadata = self.native_metadata(asset)
        resolution = self._resolver.resolve(asset.name, request, metadata, media_format)

        if self._is_video(asset.name, resolution, request, metadata):
            video = VideoUrlBuilder(self._settings, self._settings.local_repository_base_url).build(
                asset.asset_id, request.video_manifest_format, request.hosted_video_player
            )
            poster_url = self._native_rendition_url(asset, DeliveryParams(), metadata)
            return Rendition.from_resolution(resolution, asset.path, metadata, video=video, poster_url=poster_url)

        url = None
        if resolution.state == ResolutionState.BINARY_PASSTHROUGH:
            url = asset.path
        elif resolution.state == ResolutionState.SCALED and resolution.params is not None:
            url = self._native_rendition_url(asset, resolution.params, metadata)
        return Rendition.from_resolution(resolution, url, metadata)

    def _native_rendition_url(
        self, asset: NativeAsset, delivery_params: DeliveryParams, metadata: AssetMetadata
    ) -> str:
        source = DeliverySource(path=asset.path, file_name=asset.name, dimension=metadata.dimension)
        params = self._native_builder.build(source, delivery_params)
        return render_delivery_url(
            self._settings.local_repository_base_url,
            self._settings.native_delivery_path,
            params,
            asset_id=asset.asset_id,
        )

    @staticmethod
    def _parse_reference(reference: AssetReference | str) -> AssetReference | None:
        if isinstance(reference, AssetReference):
            return reference
        parsed = AssetReference.parse(reference)
        if parsed is None:
            logger.warning(f"Invalid remote asset reference: '{reference}'")
        return parsed


@lru_cache
def get_service() -> RenditionDeliveryService:
    """Get the service configured from the environment."""
    return RenditionDeliveryService()
