"""Delivery parameter sets and URLs for the image delivery endpoints.

Two builders share one interface:

- ``RemoteDeliveryParameterBuilder`` for assets hosted in a remote
  repository: crops as ``left,top,width,height`` or ``w:h,smart``
- ``NativeDeliveryParameterBuilder`` for repository-hosted assets
  (web-optimized delivery): crops as percentages of the original
  (``6.5p,55.0p,52.5p,67.0p``) or absolute pixels, depending on configuration

Both produce an ordered ``dict[str, str]``; ``render_delivery_url`` turns it
into a URL.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote, urlencode

from rendition_delivery.config import CropOption, Settings
from rendition_delivery.dimensions import CropDimension, Dimension, round_half_up
from rendition_delivery.file_types import file_extension, output_format
from rendition_delivery.reference import AssetReference

logger = logging.getLogger(__name__)

PARAM_PATH = "path"
PARAM_SEO_NAME = "seoname"
PARAM_FORMAT = "format"
PARAM_PREFER_WEBP = "preferwebp"
PARAM_WIDTH = "width"
PARAM_HEIGHT = "height"
PARAM_QUALITY = "quality"

PLACEHOLDER_ASSET_ID = "{asset-id}"
PLACEHOLDER_SEO_NAME = "{seo-name}"
PLACEHOLDER_FORMAT = "{format}"
ATTACHMENT_QUERY = "attachment=true"

DEFAULT_SEO_NAME = "image"

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class DeliveryParams:
    """Transformation parameters of a scaled rendition.

    Attributes:
        width: Target width in pixels
        height: Target height in pixels
        crop_dimension: Explicit crop rectangle in original pixels
        crop_smart_ratio: Width:height pair to smart-crop to
        rotation: Rotation in degrees
        quality: Output quality percent
        output_extension: Requested output extension before format negotiation
    """

    width: int | None = None
    height: int | None = None
    crop_dimension: CropDimension | None = None
    crop_smart_ratio: Dimension | None = None
    rotation: int | None = None
    quality: int | None = None
    output_extension: str | None = None


@dataclass(frozen=True)
class DeliverySource:
    """The asset a parameter set is built for.

    Attributes:
        path: Source identity (remote asset id or repository path)
        file_name: Original file name, source of the SEO name and format
        dimension: Original dimension, if known
    """

    path: str
    file_name: str
    dimension: Dimension | None = None

    @classmethod
    def from_reference(cls, reference: AssetReference, dimension: Dimension | None = None) -> "DeliverySource":
        return cls(path=reference.asset_id, file_name=reference.file_name, dimension=dimension)


def sanitize_seo_name(name: str | None) -> str:
    """Turn a file base name into a URL-safe SEO name.

    Diacritics are stripped, non-alphanumeric runs become one hyphen and
    the result is lower-cased. Leading and trailing hyphens are dropped.

    Examples:
        >>> sanitize_seo_name("Test_1")
        'test-1'
        >>> sanitize_seo_name("Crème Brûlée (2)")
        'creme-brulee-2'
    """
    decomposed = unicodedata.normalize("NFKD", name or "")
    ascii_name = decomposed.encode("ascii", "ignore").decode("ascii").lower()
    sanitized = _NON_ALPHANUMERIC.sub("-", ascii_name).strip("-")
    return sanitized or DEFAULT_SEO_NAME


def base_name(file_name: str) -> str:
    if "." not in file_name:
        return file_name
    return file_name.rsplit(".", 1)[0]


def _to_percentage(fraction: float) -> str:
    percentage = round_half_up(fraction * 1000) / 10
    percentage = min(100.0, max(0.0, percentage))
    return f"{percentage:.1f}"


def relative_cropping_string(left: float, top: float, width: float, height: float) -> str:
    """Format crop fractions as one-decimal percentages.

    Examples:
        >>> relative_cropping_string(0.1512, 0.2131, 0.4954, 0.5915)
        '15.1p,21.3p,49.5p,59.2p'
    """
    return ",".join(f"{_to_percentage(value)}p" for value in (left, top, width, height))


def relative_cropping_string_from_crop(crop: CropDimension, original: Dimension) -> str:
    """Express a pixel crop relative to the original dimension."""
    return relative_cropping_string(
        crop.left / original.width,
        crop.top / original.height,
        crop.width / original.width,
        crop.height / original.height,
    )


class DeliveryParameterBuilder(Protocol):
    """Builds the query parameter map for a delivery endpoint."""

    def build(self, source: DeliverySource, params: DeliveryParams) -> dict[str, str]:
        """Build the ordered parameter map.

        Args:
            source: Asset to deliver
            params: Resolved transformation parameters

        Returns:
            Parameter map with string values
        """
        ...


def _common_params(source: DeliverySource, params: DeliveryParams) -> dict[str, str]:
    extension = params.output_extension or file_extension(source.file_name)
    return {
        PARAM_PATH: source.path,
        PARAM_SEO_NAME: sanitize_seo_name(base_name(source.file_name)),
        PARAM_FORMAT: output_format(extension),
        PARAM_PREFER_WEBP: "true",
    }


class RemoteDeliveryParameterBuilder:
    """Parameters for the remote repository's delivery endpoint."""

    PARAM_CROP = "crop"
    PARAM_ROTATE = "rotate"

    def build(self, source: DeliverySource, params: DeliveryParams) -> dict[str, str]:
        result = _common_params(source, params)
        if params.width:
            result[PARAM_WIDTH] = str(params.width)
        if params.height:
            result[PARAM_HEIGHT] = str(params.height)

        crop = self._crop(params)
        if crop:
            result[self.PARAM_CROP] = crop
        if params.rotation:
            result[self.PARAM_ROTATE] = str(params.rotation)
        if params.quality is not None:
            result[PARAM_QUALITY] = str(params.quality)
        return result

    @staticmethod
    def _crop(params: DeliveryParams) -> str | None:
        # Manual rectangle, then smart ratio, then automatic rectangle
        crop = params.crop_dimension
        if crop is not None and crop.is_empty:
            crop = None
        if crop is not None and not crop.is_automatic:
            return crop.crop_string_width_height
        smart_ratio = params.crop_smart_ratio
        if smart_ratio is not None and smart_ratio.is_known:
            return f"{smart_ratio.width}:{smart_ratio.height},smart"
        if crop is not None:
            return crop.crop_string_width_height
        return None


class NativeDeliveryParameterBuilder:
    """Parameters for web-optimized delivery of repository-hosted assets."""

    PARAM_CROP = "c"
    PARAM_ROTATE = "r"

    def __init__(self, crop_option: CropOption = CropOption.RELATIVE):
        self.crop_option = crop_option

    def build(self, source: DeliverySource, params: DeliveryParams) -> dict[str, str]:
        result = _common_params(source, params)
        if params.width:
            result[PARAM_WIDTH] = str(params.width)

        crop = params.crop_dimension
        if crop is not None and not crop.is_empty:
            result[self.PARAM_CROP] = self._crop_string(crop, source.dimension)
        if params.rotation:
            result[self.PARAM_ROTATE] = str(params.rotation)
        if params.quality is not None:
            result[PARAM_QUALITY] = str(params.quality)
        return result

    def _crop_string(self, crop: CropDimension, original: Dimension | None) -> str:
        if self.crop_option == CropOption.RELATIVE:
            if original is not None and original.is_known:
                return relative_cropping_string_from_crop(crop, original)
            logger.debug(f"Original dimension unknown, using absolute crop {crop.crop_string_width_height}")
        return crop.crop_string_width_height


def render_delivery_url(base_url: str, template: str, params: dict[str, str], asset_id: str | None = None) -> str:
    """Assemble a delivery URL from a path template and parameter map.

    ``{asset-id}`` is filled with ``asset_id`` (default: the ``path``
    parameter), ``{seo-name}`` and ``{format}`` with their parameters. The
    ``path`` parameter and every parameter used in the template are left
    out of the query; the rest is appended sorted by key.

    Args:
        base_url: Scheme and host, e.g. ``https://repo1``
        template: Path template
        params: Parameters from a ``DeliveryParameterBuilder``
        asset_id: Asset id to put in the path, if it is not the ``path`` parameter

    Returns:
        Delivery URL
    """
    query = dict(params)
    path_value = asset_id if asset_id is not None else query.get(PARAM_PATH, "")
    query.pop(PARAM_PATH, None)

    path = template.replace(PLACEHOLDER_ASSET_ID, path_value)
    for placeholder, key in ((PLACEHOLDER_SEO_NAME, PARAM_SEO_NAME), (PLACEHOLDER_FORMAT, PARAM_FORMAT)):
        if placeholder in path:
            path = path.replace(placeholder, query.pop(key, ""))

    url = base_url.rstrip("/") + path
    if query:
        separator = "&" if "?" in url else "?"
        url += separator + urlencode(sorted(query.items()), quote_via=quote, safe="")
    return url


def binary_delivery_url(settings: Settings, reference: AssetReference, attachment: bool = False) -> str | None:
    """URL of the unmodified original binary of a remote asset.

    Args:
        settings: Repository host and original binary path template
        reference: Remote asset
        attachment: Ask the repository to serve the binary as a download

    Returns:
        URL, or None if repository or path template is not configured
    """
    base_url = settings.repository_base_url
    template = settings.asset_original_binary_delivery_path
    if not base_url or not template:
        return None
    path = template.replace(PLACEHOLDER_ASSET_ID, reference.asset_id)
    path = path.replace(PLACEHOLDER_SEO_NAME, reference.file_name)
    if attachment:
        path += ("&" if "?" in path else "?") + ATTACHMENT_QUERY
    return base_url + path
