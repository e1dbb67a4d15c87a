"""
VariantGenerator - Derives the resized WebP variants of an original image.
"""

import io
import logging
import math
from typing import Iterable, List, Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import GenerationError
from .image_paths import object_name
from .size_policy import ALL_SIZES, DEFAULT_POLICY, SizeClass, SizePolicy
from .variant import OriginalImage, Variant


class VariantGenerator:
    """
    Generates one WebP variant per size class using Pillow.

    Dimensions are always read from the bytes themselves. Resized classes
    never exceed the original width.
    """

    OUTPUT_FORMAT = 'WEBP'
    WEBP_METHOD = 6

    def __init__(
        self,
        policy: SizePolicy = DEFAULT_POLICY,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize variant generator.

        Args:
            policy: Size policy (widths and qualities per class)
            logger: Optional logger instance
        """
        self.policy = policy
        self.logger = logger or logging.getLogger(__name__)

    def read_original(self, image_data: bytes) -> OriginalImage:
        """Decode bytes and report their displayed dimensions and mime type."""
        img = self._open(image_data)
        mime = Image.MIME.get(img.format or '', 'application/octet-stream')
        img = ImageOps.exif_transpose(img)
        width, height = img.size
        if not width or not height:
            raise GenerationError("Could not determine image dimensions")
        return OriginalImage(data=image_data, width=width, height=height, mime=mime)

    def generate(
        self,
        image_data: bytes,
        canonical_path: str,
        sizes: Iterable[SizeClass] = ALL_SIZES
    ) -> List[Variant]:
        """
        Generate variants for an original.

        Args:
            image_data: Original image as bytes
            canonical_path: Canonical path the variants will be stored under
            sizes: Size classes to produce (default: all five)

        Returns:
            List of Variant, one per requested size class
        """
        img = self._open(image_data)
        img = ImageOps.exif_transpose(img)
        original_width, original_height = img.size
        if not original_width or not original_height:
            raise GenerationError("Could not determine image dimensions")

        img = self._convert_color_mode(img)

        variants = []
        for size in sizes:
            size = SizeClass.parse(str(size))
            if size is SizeClass.ORIGINAL:
                width, height = original_width, original_height
                rendered = img
            else:
                width, height = self.target_dimensions(
                    original_width, original_height, self.policy.width_for(size)
                )
                if (width, height) == (original_width, original_height):
                    rendered = img
                else:
                    rendered = img.resize((width, height), Image.Resampling.LANCZOS)

            data = self._encode(rendered, self.policy.quality_for(size))
            variant = Variant(
                size=size,
                data=data,
                width=width,
                height=height,
                object_name=object_name(canonical_path, size),
            )
            self.logger.debug(f"Generated {variant.object_name} ({variant.describe()})")
            variants.append(variant)

        return variants

    @staticmethod
    def target_dimensions(
        original_width: int,
        original_height: int,
        policy_width: int
    ) -> Tuple[int, int]:
        """
        Target size for a resized class: width min(policy, original), height
        proportional and rounded half up. Never larger than the original.
        """
        width = min(policy_width, original_width)
        height = int(math.floor(original_height * width / original_width + 0.5))
        return width, max(1, min(height, original_height))

    def _open(self, image_data: bytes) -> Image.Image:
        if not image_data:
            raise GenerationError("Empty image payload")
        try:
            img = Image.open(io.BytesIO(image_data))
            img.load()
            return img
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            self.logger.error(f"Error decoding image: {e}")
            raise GenerationError(f"Unreadable image data: {e}") from e

    def _encode(self, img: Image.Image, quality: int) -> bytes:
        output = io.BytesIO()
        try:
            img.save(output, format=self.OUTPUT_FORMAT, quality=quality, method=self.WEBP_METHOD)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error encoding variant: {e}")
            raise GenerationError(f"Could not encode variant: {e}") from e
        return output.getvalue()

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Convert image to a mode WebP can encode, keeping transparency."""
        if img.mode in ('RGB', 'RGBA'):
            return img
        if img.mode == 'LA':
            return img.convert('RGBA')
        if img.mode == 'P':
            if 'transparency' in img.info:
                return img.convert('RGBA')
            return img.convert('RGB')
        return img.convert('RGB')
