"""Remote asset references of the form ``/<asset-id>/<file-name>``."""

import re
from dataclasses import dataclass

from rendition_delivery.file_types import file_extension

REFERENCE_PATTERN = re.compile(r"^/(urn:[^/]+)/([^/]+)$")


class InvalidAssetReferenceError(ValueError):
    """Raised when an asset id or file name is not usable."""

    pass


@dataclass(frozen=True)
class AssetReference:
    """Pointer to an asset hosted in a remote repository.

    Attributes:
        asset_id: Repository asset id, always starting with ``urn:``
        file_name: Original file name including extension
    """

    asset_id: str
    file_name: str

    def __post_init__(self):
        if not self.asset_id or not self.asset_id.startswith("urn:"):
            raise InvalidAssetReferenceError(f"Asset id must start with 'urn:': '{self.asset_id}'")
        if not self.file_name or "/" in self.file_name:
            raise InvalidAssetReferenceError(f"Invalid file name: '{self.file_name}'")

    @classmethod
    def parse(cls, reference: str | None) -> "AssetReference | None":
        """Parse ``/urn:aaid:aem:.../my-image.jpg``; returns None if it does not match."""
        if not reference:
            return None
        match = REFERENCE_PATTERN.match(reference)
        if match is None:
            return None
        return cls(asset_id=match.group(1), file_name=match.group(2))

    def to_reference(self) -> str:
        return f"/{self.asset_id}/{self.file_name}"

    @property
    def extension(self) -> str:
        """Lower-cased file extension."""
        return file_extension(self.file_name)

    @property
    def base_name(self) -> str:
        """File name without extension."""
        if "." not in self.file_name:
            return self.file_name
        return self.file_name.rsplit(".", 1)[0]

    def __str__(self) -> str:
        return self.to_reference()
