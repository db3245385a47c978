"""Named smart-crop regions and their conversion to pixel rectangles.

Smart crops arrive as fractions of the original image (0..1). Resolving one
against the original dimension yields an absolute ``CropDimension``.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

from rendition_delivery.dimensions import CropDimension, Dimension, ratio, round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamedSmartCrop:
    """Smart crop as reported by repository metadata.

    Attributes:
        name: Crop name (e.g. "Landscape")
        normalized_left: Left edge as a fraction of the original width
        normalized_top: Top edge as a fraction of the original height
        normalized_width: Width as a fraction of the original width
        normalized_height: Height as a fraction of the original height
    """

    name: str
    normalized_left: float
    normalized_top: float
    normalized_width: float
    normalized_height: float

    @property
    def is_valid(self) -> bool:
        """Named, finite, non-empty and not starting outside the image."""
        return (
            bool(self.name and self.name.strip())
            and all(math.isfinite(value) for value in self.fractions)
            and self.normalized_width > 0
            and self.normalized_height > 0
            and self.normalized_left >= 0
            and self.normalized_top >= 0
        )

    @property
    def fractions(self) -> tuple[float, float, float, float]:
        return self.normalized_left, self.normalized_top, self.normalized_width, self.normalized_height

    def scales_to(self, original: Dimension) -> bool:
        """True if the fractions give finite pixel values for the original."""
        return all(
            math.isfinite(side * value)
            for side, value in zip((original.width, original.height) * 2, self.fractions)
        )

    def to_crop_dimension(self, original: Dimension) -> CropDimension:
        """Scale the fractions to pixels of the original image."""
        return CropDimension(
            left=round_half_up(original.width * self.normalized_left),
            top=round_half_up(original.height * self.normalized_top),
            width=round_half_up(original.width * self.normalized_width),
            height=round_half_up(original.height * self.normalized_height),
            is_automatic=True,
        )


@dataclass(frozen=True)
class ResolvedSmartCrop:
    """Smart crop in pixels of a concrete original image."""

    name: str
    crop_dimension: CropDimension
    ratio: float

    @classmethod
    def resolve(cls, crop: NamedSmartCrop, original: Dimension) -> "ResolvedSmartCrop":
        crop_dimension = crop.to_crop_dimension(original)
        return cls(
            name=crop.name,
            crop_dimension=crop_dimension,
            ratio=ratio(crop_dimension.width, crop_dimension.height),
        )


def resolve_smart_crops(crops: Iterable[NamedSmartCrop], original: Dimension | None) -> list[ResolvedSmartCrop]:
    """Resolve all valid smart crops against the original dimension.

    Invalid crops are dropped silently. Nothing is resolved when the
    original dimension is unknown.

    Args:
        crops: Raw smart crops, in metadata order
        original: Original image dimension

    Returns:
        Resolved crops in input order
    """
    if original is None or not original.is_known:
        return []
    resolved = []
    for crop in crops:
        if not crop.is_valid or not crop.scales_to(original):
            logger.debug(f"Dropping invalid smart crop {crop}")
            continue
        resolved.append(ResolvedSmartCrop.resolve(crop, original))
    return resolved


def find_smart_crop(crops: Iterable[ResolvedSmartCrop], name: str) -> ResolvedSmartCrop | None:
    """Look up a resolved smart crop by name (case-insensitive)."""
    wanted = name.lower()
    for crop in crops:
        if crop.name.lower() == wanted:
            return crop
    return None
