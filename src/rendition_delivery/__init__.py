"""Rendition resolution and delivery URL synthesis for remote and repository-hosted assets."""

from importlib.metadata import PackageNotFoundError, version

from rendition_delivery.auth import AccessTokenCache
from rendition_delivery.cache import TtlCache
from rendition_delivery.config import CropOption, Settings, get_settings
from rendition_delivery.delivery import (
    DeliveryParameterBuilder,
    DeliveryParams,
    DeliverySource,
    NativeDeliveryParameterBuilder,
    RemoteDeliveryParameterBuilder,
    binary_delivery_url,
    relative_cropping_string,
    render_delivery_url,
    sanitize_seo_name,
)
from rendition_delivery.dimensions import CropDimension, CropStringError, Dimension, round_half_up
from rendition_delivery.file_types import AssetKind, VideoManifestFormat, output_format
from rendition_delivery.locking import StripedLock, StripeIndex
from rendition_delivery.metadata import AssetMetadata, DimensionProbe, MetadataParseError, parse_metadata_json
from rendition_delivery.metadata_service import CachingMetadataFetcher, MetadataFetcher
from rendition_delivery.reference import AssetReference, InvalidAssetReferenceError
from rendition_delivery.resolver import (
    DeliveryRequest,
    ImageQualityPolicy,
    MediaFormat,
    RenditionResolver,
    Resolution,
    ResolutionState,
)
from rendition_delivery.service import NativeAsset, Rendition, RenditionDeliveryService, get_service
from rendition_delivery.smart_crop import NamedSmartCrop, ResolvedSmartCrop, resolve_smart_crops
from rendition_delivery.video import VideoDelivery, VideoUrlBuilder

try:
    __version__ = version("rendition-delivery")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    "__version__",
    # Geometry
    "Dimension",
    "CropDimension",
    "CropStringError",
    "round_half_up",
    # Assets
    "AssetKind",
    "AssetReference",
    "InvalidAssetReferenceError",
    "AssetMetadata",
    "MetadataParseError",
    "parse_metadata_json",
    "NamedSmartCrop",
    "ResolvedSmartCrop",
    "resolve_smart_crops",
    "DimensionProbe",
    # Infrastructure
    "Settings",
    "CropOption",
    "get_settings",
    "StripedLock",
    "StripeIndex",
    "TtlCache",
    "AccessTokenCache",
    "MetadataFetcher",
    "CachingMetadataFetcher",
    # Resolution and delivery
    "DeliveryRequest",
    "MediaFormat",
    "RenditionResolver",
    "ImageQualityPolicy",
    "Resolution",
    "ResolutionState",
    "DeliveryParams",
    "DeliverySource",
    "DeliveryParameterBuilder",
    "RemoteDeliveryParameterBuilder",
    "NativeDeliveryParameterBuilder",
    "sanitize_seo_name",
    "output_format",
    "relative_cropping_string",
    "render_delivery_url",
    "binary_delivery_url",
    "VideoManifestFormat",
    "VideoDelivery",
    "VideoUrlBuilder",
    # Service
    "NativeAsset",
    "Rendition",
    "RenditionDeliveryService",
    "get_service",
]
