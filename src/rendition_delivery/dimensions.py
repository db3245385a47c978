"""Pixel geometry for renditions and crop regions.

All values are unitless pixels with a top-left origin. A dimension with a zero
side is "unknown": callers must check ``is_known`` before doing ratio math.

Rounding follows the delivery contract: halves always round up
(``round_half_up(2.5) == 3``), unlike Python's banker's rounding.
"""

import math
from dataclasses import dataclass


class CropStringError(ValueError):
    """Raised when a crop string cannot be turned into a crop rectangle."""

    pass


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    Examples:
        >>> round_half_up(2.5)
        3
        >>> round_half_up(101 / 3)
        34
    """
    return int(math.floor(value + 0.5))


def ratio(width: float, height: float) -> float:
    """Width divided by height, or 0.0 when height is zero."""
    if height == 0:
        return 0.0
    return width / height


@dataclass(frozen=True)
class Dimension:
    """Width and height of an image in pixels.

    Attributes:
        width: Width in pixels (0 = unknown)
        height: Height in pixels (0 = unknown)
    """

    width: int
    height: int

    @property
    def is_known(self) -> bool:
        """True when both sides are positive."""
        return self.width > 0 and self.height > 0

    @property
    def ratio(self) -> float:
        """Aspect ratio (width / height), 0.0 if height is unknown."""
        return ratio(self.width, self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class CropDimension:
    """Crop rectangle in absolute pixel coordinates of the original image.

    Attributes:
        left: Left edge in pixels
        top: Top edge in pixels
        width: Crop width in pixels
        height: Crop height in pixels
        is_automatic: True if computed by the system (smart or auto-fit crop),
            False if authored manually
    """

    left: int
    top: int
    width: int
    height: int
    is_automatic: bool = False

    @property
    def right(self) -> int:
        """Right edge in pixels."""
        return self.left + self.width

    @property
    def bottom(self) -> int:
        """Bottom edge in pixels."""
        return self.top + self.height

    @property
    def is_empty(self) -> bool:
        """Zero-area crops are treated as absent."""
        return self.width <= 0 or self.height <= 0

    @property
    def ratio(self) -> float:
        """Aspect ratio of the crop rectangle."""
        return ratio(self.width, self.height)

    @property
    def crop_string(self) -> str:
        """Crop as ``left,top,right,bottom``."""
        return f"{self.left},{self.top},{self.right},{self.bottom}"

    @property
    def crop_string_width_height(self) -> str:
        """Crop as ``left,top,width,height``."""
        return f"{self.left},{self.top},{self.width},{self.height}"

    @property
    def dimension(self) -> Dimension:
        return Dimension(self.width, self.height)

    @classmethod
    def from_crop_string(cls, crop_string: str, is_automatic: bool = False) -> "CropDimension":
        """Parse a ``left,top,right,bottom`` crop string.

        Args:
            crop_string: Four comma-separated non-negative integers
            is_automatic: Marks the result as a system-computed crop

        Returns:
            Parsed crop rectangle

        Raises:
            CropStringError: If the string is malformed, negative or zero-area

        Examples:
            >>> CropDimension.from_crop_string("15,5,35,15").crop_string_width_height
            '15,5,20,10'
        """
        parts = [part.strip() for part in (crop_string or "").split(",")]
        if len(parts) != 4:
            raise CropStringError(f"Invalid crop string: '{crop_string}'")
        try:
            left, top, right, bottom = (int(part) for part in parts)
        except ValueError as e:
            raise CropStringError(f"Invalid crop string: '{crop_string}'") from e

        if left < 0 or top < 0 or right <= left or bottom <= top:
            raise CropStringError(f"Invalid crop string: '{crop_string}'")

        return cls(left=left, top=top, width=right - left, height=bottom - top, is_automatic=is_automatic)

    @classmethod
    def from_rect(cls, rect: str, is_automatic: bool = False) -> "CropDimension":
        """Parse a ``left,top,width,height`` rectangle string.

        Raises:
            CropStringError: If the string is malformed, negative or zero-area
        """
        parts = [part.strip() for part in (rect or "").split(",")]
        if len(parts) != 4:
            raise CropStringError(f"Invalid crop rectangle: '{rect}'")
        try:
            left, top, width, height = (int(part) for part in parts)
        except ValueError as e:
            raise CropStringError(f"Invalid crop rectangle: '{rect}'") from e

        crop = cls(left=left, top=top, width=width, height=height, is_automatic=is_automatic)
        if left < 0 or top < 0 or crop.is_empty:
            raise CropStringError(f"Invalid crop rectangle: '{rect}'")
        return crop
