"""Classification of assets by MIME type and file extension."""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class AssetKind(str, Enum):
    """What the delivery layer may do with an asset."""

    RASTER = "raster"
    VECTOR = "vector"
    VIDEO = "video"
    OTHER = "other"

    @property
    def is_image(self) -> bool:
        return self in (AssetKind.RASTER, AssetKind.VECTOR)


RASTER_EXTENSIONS = frozenset({"gif", "jpg", "jpeg", "png", "tif", "tiff", "webp"})
VECTOR_EXTENSIONS = frozenset({"svg"})
VIDEO_EXTENSIONS = frozenset({"mp4", "webm", "mov"})

# Extensions whose encoders honour a quality setting
QUALITY_EXTENSIONS = frozenset({"jpg", "jpeg", "webp"})

_MIME_TYPES = {
    "image/gif": AssetKind.RASTER,
    "image/jpeg": AssetKind.RASTER,
    "image/jpg": AssetKind.RASTER,
    "image/pjpeg": AssetKind.RASTER,
    "image/png": AssetKind.RASTER,
    "image/tiff": AssetKind.RASTER,
    "image/webp": AssetKind.RASTER,
    "image/svg+xml": AssetKind.VECTOR,
    "video/mp4": AssetKind.VIDEO,
    "video/webm": AssetKind.VIDEO,
    "video/quicktime": AssetKind.VIDEO,
}


def file_extension(file_name: str | None) -> str:
    """Lower-cased extension without the dot, or "" if there is none."""
    if not file_name or "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[1].lower()


def kind_from_file_name(file_name: str | None) -> AssetKind:
    """Classify an asset by its file extension."""
    extension = file_extension(file_name)
    if extension in VECTOR_EXTENSIONS:
        return AssetKind.VECTOR
    if extension in RASTER_EXTENSIONS:
        return AssetKind.RASTER
    if extension in VIDEO_EXTENSIONS:
        return AssetKind.VIDEO
    return AssetKind.OTHER


def kind_from_mime_type(mime_type: str | None, file_name: str | None = None) -> AssetKind:
    """Classify an asset by MIME type, falling back to the file name.

    Args:
        mime_type: MIME type as reported by the repository (parameters ignored)
        file_name: Used when the MIME type is missing or generic

    Returns:
        Asset kind
    """
    normalized = (mime_type or "").split(";", 1)[0].strip().lower()
    kind = _MIME_TYPES.get(normalized)
    if kind is not None:
        return kind
    if normalized.startswith("video/"):
        return AssetKind.VIDEO
    return kind_from_file_name(file_name)


def supports_quality(extension: str | None) -> bool:
    """True if the output format accepts a quality percentage."""
    return (extension or "").lower() in QUALITY_EXTENSIONS


# Formats the delivery endpoints can render; anything else is delivered as JPEG
SUPPORTED_OUTPUT_FORMATS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
FALLBACK_OUTPUT_FORMAT = "jpeg"


def output_format(extension: str | None) -> str:
    """Negotiate the rendered output format for a file extension.

    Examples:
        >>> output_format("PNG")
        'png'
        >>> output_format("bmp")
        'jpeg'
    """
    normalized = (extension or "").lower()
    if normalized in SUPPORTED_OUTPUT_FORMATS:
        return normalized
    return FALLBACK_OUTPUT_FORMAT


class VideoManifestFormat(str, Enum):
    """Adaptive streaming manifest formats of the video delivery endpoint."""

    HLS = "hls"
    DASH = "dash"

    @property
    def extension(self) -> str:
        return "m3u8" if self is VideoManifestFormat.HLS else "mpd"

    @property
    def mime_type(self) -> str:
        return "application/vnd.apple.mpegurl" if self is VideoManifestFormat.HLS else "application/dash+xml"

    @classmethod
    def from_string(cls, value: "str | VideoManifestFormat | None") -> "VideoManifestFormat":
        """Parse a format name case-insensitively, falling back to HLS.

        Examples:
            >>> VideoManifestFormat.from_string("DASH")
            <VideoManifestFormat.DASH: 'dash'>
            >>> VideoManifestFormat.from_string("flv")
            <VideoManifestFormat.HLS: 'hls'>
        """
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            logger.warning(f"Unsupported video manifest format '{value}', falling back to HLS")
            return cls.HLS
