"""
Variant - Records for one original image and the variants derived from it.
"""

from dataclasses import dataclass

from .image_paths import VARIANT_CONTENT_TYPE
from .size_policy import SizeClass


@dataclass(frozen=True)
class OriginalImage:
    """
    Decoded facts about an uploaded original.

    Attributes:
        data: Raw bytes as uploaded
        width: Displayed width in pixels (EXIF orientation applied)
        height: Displayed height in pixels
        mime: Detected source mime type
    """
    data: bytes
    width: int
    height: int
    mime: str


@dataclass(frozen=True)
class Variant:
    """
    One encoded, size-class specific rendition of an original.

    Attributes:
        size: Size class this variant was produced for
        data: Encoded WebP bytes
        width: Pixel width
        height: Pixel height
        object_name: Full object key ({canonical}-{size}.webp)
    """
    size: SizeClass
    data: bytes
    width: int
    height: int
    object_name: str
    content_type: str = VARIANT_CONTENT_TYPE

    @property
    def byte_size(self) -> int:
        return len(self.data)

    def describe(self) -> str:
        """Short human-readable form used in logs."""
        return f"{self.size.value}: {self.width}x{self.height} ({self.byte_size} bytes)"
