"""Decides whether and how a rendition of an asset can be delivered.

Resolution ends in one of three states:

- ``BINARY_PASSTHROUGH``: deliver the original file unchanged (downloads,
  vector images, videos and non-images)
- ``INVALID``: no delivery, the request would need upscaling
- ``SCALED``: deliver a scaled and optionally cropped/rotated rendition
  described by ``DeliveryParams``

Resolution is pure and safe to call from any thread.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from rendition_delivery.delivery import DeliveryParams
from rendition_delivery.dimensions import CropDimension, Dimension, ratio, round_half_up
from rendition_delivery.file_types import (
    AssetKind,
    VideoManifestFormat,
    file_extension,
    kind_from_file_name,
    output_format,
    supports_quality,
)
from rendition_delivery.metadata import AssetMetadata
from rendition_delivery.smart_crop import find_smart_crop

logger = logging.getLogger(__name__)

INVALID_REASON_UPSCALE = "upscale_not_supported"


class ResolutionState(str, Enum):
    BINARY_PASSTHROUGH = "binary_passthrough"
    INVALID = "invalid"
    SCALED = "scaled"


@dataclass(frozen=True)
class DeliveryRequest:
    """What the caller wants delivered.

    Attributes:
        width: Fixed target width in pixels
        height: Fixed target height in pixels
        ratio: Target aspect ratio (width / height)
        crop_dimension: Crop rectangle in original pixels
        crop_smart_ratio: Ask the endpoint to smart-crop to this width:height pair
        smart_crop_name: Crop to the asset's smart crop of this name, if present
        rotation: Rotation in degrees (0 = none)
        quality: Output quality as a fraction (0..1)
        quality_percent: Output quality as integer percent, wins over ``quality``
        enforce_output_extension: Render in this format instead of the original's
        download: Always deliver the original binary
        content_disposition_attachment: Ask for the original binary as a download (Save as)
        video_manifest_format: Streaming manifest for videos, the configured default if None
        hosted_video_player: Deliver videos through the hosted player page
    """

    width: int | None = None
    height: int | None = None
    ratio: float | None = None
    crop_dimension: CropDimension | None = None
    crop_smart_ratio: Dimension | None = None
    smart_crop_name: str | None = None
    rotation: int | None = None
    quality: float | None = None
    quality_percent: int | None = None
    enforce_output_extension: str | None = None
    download: bool = False
    content_disposition_attachment: bool = False
    video_manifest_format: VideoManifestFormat | None = None
    hosted_video_player: bool = False


@dataclass(frozen=True)
class MediaFormat:
    """Size constraints of the output format driving a request.

    Only consulted when the request pins no width.
    """

    name: str
    min_width: int = 0
    min_height: int = 0
    ratio_width: float = 0.0
    ratio_height: float = 0.0
    ratio: float = 0.0

    @property
    def effective_ratio(self) -> float:
        if self.ratio > 0:
            return self.ratio
        if self.ratio_width > 0 and self.ratio_height > 0:
            return self.ratio_width / self.ratio_height
        return 0.0


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a request.

    ``width`` and ``height`` are what the delivered rendition will measure
    (0 where neither the request nor the asset tells). ``params`` is only
    set for ``SCALED``.
    """

    state: ResolutionState
    width: int
    height: int
    file_extension: str
    params: DeliveryParams | None = None
    invalid_reason: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.state != ResolutionState.INVALID


QualityPolicy = Callable[[DeliveryRequest, str], int | None]


class ImageQualityPolicy:
    """Quality percentage for formats that support one.

    Uses the request's ``quality_percent``, else its ``quality`` fraction,
    else the configured default fraction.
    """

    def __init__(self, default_quality: float = 0.85):
        self.default_quality = default_quality

    def __call__(self, request: DeliveryRequest, extension: str) -> int | None:
        if request.quality_percent is not None:
            return request.quality_percent
        if not supports_quality(extension):
            return None
        quality = request.quality if request.quality is not None else self.default_quality
        return round_half_up(quality * 100)


class RenditionResolver:
    """Resolves delivery requests against asset metadata."""

    def __init__(self, quality_policy: QualityPolicy | None = None):
        self._quality_policy = quality_policy or ImageQualityPolicy()

    def resolve(
        self,
        file_name: str,
        request: DeliveryRequest,
        metadata: AssetMetadata | None = None,
        media_format: MediaFormat | None = None,
    ) -> Resolution:
        """Resolve a request for one asset.

        Args:
            file_name: Original file name of the asset
            request: Delivery request
            metadata: Asset metadata; without it the kind is guessed from the
                file name and the original dimension is unknown
            media_format: First media format matching the request, if any

        Returns:
            Resolution with state, effective dimension and delivery parameters
        """
        original = metadata.dimension if metadata is not None else None
        kind = metadata.kind if metadata is not None else kind_from_file_name(file_name)
        extension = (request.enforce_output_extension or file_extension(file_name)).lower()

        requested_width = request.width or 0
        requested_height = request.height or 0
        if requested_width == 0 and media_format is not None:
            requested_width = media_format.min_width
            requested_height = media_format.min_height
        target_ratio = self._requested_ratio(request, media_format)

        if request.download or kind in (AssetKind.OTHER, AssetKind.VIDEO):
            width, height = (original.width, original.height) if original else (0, 0)
            return Resolution(ResolutionState.BINARY_PASSTHROUGH, width, height, file_extension(file_name))

        if kind == AssetKind.VECTOR:
            if original is not None:
                width, height = original.width, original.height
            else:
                width, height, _, _ = calculate_width_height(requested_width, requested_height, target_ratio, None)
            return Resolution(ResolutionState.BINARY_PASSTHROUGH, width, height, file_extension(file_name))

        width, height, requested_width, requested_height = calculate_width_height(
            requested_width, requested_height, target_ratio, original
        )

        if original is not None and (requested_width > original.width or requested_height > original.height):
            logger.debug(
                f"Requested dimension {Dimension(requested_width, requested_height)} is larger than "
                f"original dimension {original} of {file_name}"
            )
            return Resolution(
                ResolutionState.INVALID, width, height, extension, invalid_reason=INVALID_REASON_UPSCALE
            )

        out_format = output_format(extension)
        params = DeliveryParams(
            width=requested_width or None,
            height=requested_height or None,
            crop_dimension=self._crop_dimension(request, metadata),
            crop_smart_ratio=request.crop_smart_ratio,
            rotation=request.rotation or None,
            quality=self._quality_policy(request, out_format),
            output_extension=request.enforce_output_extension,
        )
        return Resolution(ResolutionState.SCALED, width, height, out_format, params=params)

    @staticmethod
    def _requested_ratio(request: DeliveryRequest, media_format: MediaFormat | None) -> float:
        # An explicit ratio wins over the ratio of a pinned width and height
        if request.ratio and request.ratio > 0:
            return request.ratio
        if request.width and request.height:
            return ratio(request.width, request.height)
        if media_format is not None:
            return media_format.effective_ratio
        return 0.0

    @staticmethod
    def _crop_dimension(request: DeliveryRequest, metadata: AssetMetadata | None) -> CropDimension | None:
        if request.crop_dimension is not None and not request.crop_dimension.is_empty:
            return request.crop_dimension
        if request.smart_crop_name and metadata is not None:
            smart_crop = find_smart_crop(metadata.smart_crops, request.smart_crop_name)
            if smart_crop is not None:
                return smart_crop.crop_dimension
            logger.debug(f"No smart crop named '{request.smart_crop_name}' available")
        return None


def calculate_width_height(
    requested_width: int,
    requested_height: int,
    target_ratio: float,
    original: Dimension | None,
) -> tuple[int, int, int, int]:
    """Derive the rendition dimension from what the request pins.

    Args:
        requested_width: Requested width (0 = not set)
        requested_height: Requested height (0 = not set)
        target_ratio: Requested aspect ratio (0 = not set)
        original: Original dimension, if known

    Returns:
        (width, height, requested_width, requested_height); the requested
        side derived from the target ratio is written back so the upscale
        guard and delivery parameters see it

    Examples:
        >>> calculate_width_height(100, 0, 2.0, None)
        (100, 50, 100, 50)
    """
    if requested_width > 0 and target_ratio > 0:
        requested_height = round_half_up(requested_width / target_ratio)

    if requested_width > 0 and requested_height > 0:
        return requested_width, requested_height, requested_width, requested_height

    if requested_width == 0 and requested_height == 0:
        if original is not None:
            return original.width, original.height, 0, 0
        return 0, 0, 0, 0

    if requested_width > 0:
        height = round_half_up(requested_width / original.ratio) if original is not None and original.ratio else 0
        return requested_width, height, requested_width, 0

    if target_ratio > 0:
        width = round_half_up(requested_height * target_ratio)
        return width, requested_height, width, requested_height
    width = round_half_up(requested_height * original.ratio) if original is not None else 0
    return width, requested_height, 0, requested_height
