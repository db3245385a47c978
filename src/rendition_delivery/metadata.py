"""Asset metadata model and parsing.

Remote metadata arrives as JSON::

    {
      "repositoryMetadata": {
        "repo:name": "test.jpg",
        "dc:format": "image/jpeg",
        "repo:size": 250000,
        "smartcrops": {
          "Landscape": {"left": 0.0, "top": 0.5774, "normalizedWidth": 1.0, "normalizedHeight": 0.84375}
        }
      },
      "assetMetadata": {
        "dam:assetStatus": "approved",
        "tiff:ImageWidth": 1200,
        "tiff:ImageLength": 800
      }
    }

Unknown fields are ignored. Repository-native assets are described by the
same ``AssetMetadata`` built from their property map instead.
"""

import json
import logging
import math
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import IO, Any

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rendition_delivery.cache import TtlCache
from rendition_delivery.dimensions import Dimension
from rendition_delivery.file_types import AssetKind, kind_from_mime_type
from rendition_delivery.locking import StripedLock
from rendition_delivery.smart_crop import NamedSmartCrop, ResolvedSmartCrop, resolve_smart_crops

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# Checked in order, image properties before video properties
WIDTH_PROPERTIES = ("tiff:ImageWidth", "exif:PixelXDimension", "xmpDM:videoFrameWidth")
HEIGHT_PROPERTIES = ("tiff:ImageLength", "exif:PixelYDimension", "xmpDM:videoFrameHeight")
ASSET_STATUS_PROPERTY = "dam:assetStatus"

# Larger property values are treated as absent
MAX_SIDE_PIXELS = 2**31 - 1


class MetadataParseError(ValueError):
    """Raised when a metadata body is not a JSON object."""

    pass


class SmartCropPayload(BaseModel):
    """One entry of ``repositoryMetadata.smartcrops``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    left: float = 0.0
    top: float = 0.0
    normalized_width: float = Field(default=0.0, alias="normalizedWidth")
    normalized_height: float = Field(default=0.0, alias="normalizedHeight")


class RepositoryMetadataPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = Field(default=None, alias="repo:name")
    format: str | None = Field(default=None, alias="dc:format")
    size: int | None = Field(default=None, alias="repo:size")
    smartcrops: dict[str, SmartCropPayload] = Field(default_factory=dict)


class MetadataResponse(BaseModel):
    """Top-level metadata response body."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    asset_id: str | None = Field(default=None, alias="assetId")
    repository_metadata: RepositoryMetadataPayload | None = Field(default=None, alias="repositoryMetadata")
    asset_metadata: dict[str, Any] = Field(default_factory=dict, alias="assetMetadata")


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        # NaN and infinity (also "1e999" strings) carry no dimension
        return int(value) if math.isfinite(value) else None
    return None


def _first_int(properties: Mapping[str, Any], names: Iterable[str]) -> int:
    for name in names:
        value = _as_int(properties.get(name))
        if value is not None and 0 < value <= MAX_SIDE_PIXELS:
            return value
    return 0


def dimension_from_properties(properties: Mapping[str, Any]) -> Dimension | None:
    """Read the original dimension from a property map.

    Returns:
        Dimension if both width and height are positive, else None
    """
    dimension = Dimension(_first_int(properties, WIDTH_PROPERTIES), _first_int(properties, HEIGHT_PROPERTIES))
    return dimension if dimension.is_known else None


@dataclass
class AssetMetadata:
    """Validated metadata of one asset.

    Attributes:
        declared_mime_type: MIME type as reported, None if absent
        file_size: Binary size in bytes
        dimension: Original dimension, None if unknown
        asset_status: Workflow status (e.g. "approved")
        properties: Free-form asset properties in source order
        smart_crops: Valid smart crops resolved against ``dimension``
        file_name: Original file name, if reported
        kind: Derived once from MIME type and file name
    """

    declared_mime_type: str | None = None
    file_size: int | None = None
    dimension: Dimension | None = None
    asset_status: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    smart_crops: list[ResolvedSmartCrop] = field(default_factory=list)
    file_name: str | None = None
    kind: AssetKind = field(init=False)

    def __post_init__(self):
        self.kind = kind_from_mime_type(self.declared_mime_type, self.file_name)

    @property
    def mime_type(self) -> str:
        return self.declared_mime_type or DEFAULT_MIME_TYPE

    @property
    def is_valid(self) -> bool:
        """True if the source reported a MIME type."""
        return self.declared_mime_type is not None

    @classmethod
    def from_response(cls, response: MetadataResponse) -> "AssetMetadata":
        repository = response.repository_metadata or RepositoryMetadataPayload()
        properties = dict(response.asset_metadata)
        dimension = dimension_from_properties(properties)

        named_crops = [
            NamedSmartCrop(
                name=name,
                normalized_left=crop.left,
                normalized_top=crop.top,
                normalized_width=crop.normalized_width,
                normalized_height=crop.normalized_height,
            )
            for name, crop in repository.smartcrops.items()
        ]

        status = properties.get(ASSET_STATUS_PROPERTY)
        return cls(
            declared_mime_type=repository.format,
            file_size=repository.size,
            dimension=dimension,
            asset_status=str(status) if status is not None else None,
            properties=properties,
            smart_crops=resolve_smart_crops(named_crops, dimension),
            file_name=repository.name,
        )

    @classmethod
    def from_properties(
        cls,
        mime_type: str | None,
        properties: Mapping[str, Any],
        file_name: str | None = None,
        file_size: int | None = None,
        smart_crops: Iterable[NamedSmartCrop] = (),
        fallback_dimension: Dimension | None = None,
    ) -> "AssetMetadata":
        """Build metadata for a repository-native asset from its properties.

        Args:
            mime_type: Asset MIME type
            properties: Asset property map
            file_name: Asset file name
            file_size: Binary size in bytes
            smart_crops: Smart crops stored with the asset
            fallback_dimension: Used when the properties carry no dimension
                (e.g. probed from the binary)

        Returns:
            Asset metadata
        """
        dimension = dimension_from_properties(properties)
        if dimension is None and fallback_dimension is not None and fallback_dimension.is_known:
            dimension = fallback_dimension

        status = properties.get(ASSET_STATUS_PROPERTY)
        return cls(
            declared_mime_type=mime_type,
            file_size=file_size,
            dimension=dimension,
            asset_status=str(status) if status is not None else None,
            properties=dict(properties),
            smart_crops=resolve_smart_crops(smart_crops, dimension),
            file_name=file_name,
        )


def parse_metadata_json(body: str | bytes) -> AssetMetadata:
    """Parse a metadata response body.

    The result may be invalid (see ``AssetMetadata.is_valid``), e.g. for ``{}``.

    Raises:
        MetadataParseError: If the body is not a JSON object or has wrongly
            typed known fields
    """
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MetadataParseError(f"Metadata is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MetadataParseError(f"Metadata must be a JSON object, got {type(payload).__name__}")

    try:
        response = MetadataResponse.model_validate(payload)
    except ValidationError as e:
        raise MetadataParseError(f"Unexpected metadata structure: {e}") from e
    return AssetMetadata.from_response(response)


class DimensionProbe:
    """Reads image dimensions from binaries, once per asset.

    Decoding is serialized per asset key with a ``StripedLock`` so
    concurrent requests for the same asset open the binary only once.
    Decoded dimensions are remembered for ``ttl_seconds`` in a cache bounded
    to ``max_entries``; failures are not remembered and retried next time.
    """

    def __init__(
        self,
        stripes: int = 64,
        ttl_seconds: float = 3600,
        max_entries: int = 4096,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._locks = StripedLock(stripes)
        self._ttl_seconds = ttl_seconds
        self._results: TtlCache[Dimension] = TtlCache(clock=clock, max_entries=max_entries)

    def probe(self, key: str, open_binary: Callable[[], IO[bytes]]) -> Dimension | None:
        """Get the dimension of an asset binary.

        Args:
            key: Asset identity (e.g. repository path)
            open_binary: Opens the binary for reading; closed after use

        Returns:
            Dimension, or None if the binary could not be decoded
        """
        dimension = self._results.get(key)
        if dimension is not None:
            return dimension

        with self._locks.lock(key):
            return self._results.get_or_compute(
                key,
                lambda: self._read_dimension(key, open_binary),
                lambda _: self._ttl_seconds,
            )

    @staticmethod
    def _read_dimension(key: str, open_binary: Callable[[], IO[bytes]]) -> Dimension | None:
        try:
            with open_binary() as stream, Image.open(stream) as img:
                width, height = img.size
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning(f"Unable to read image dimension of {key}: {e}")
            return None

        dimension = Dimension(width, height)
        logger.debug(f"Probed dimension {dimension} for {key}")
        return dimension if dimension.is_known else None

    def forget(self, key: str) -> None:
        """Drop the remembered result for an asset (e.g. after it changed)."""
        self._results.invalidate(key)
