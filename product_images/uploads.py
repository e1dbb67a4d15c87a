"""
ImageUploadService - Ingests one uploaded image and removes images by base name.
"""

import logging
import secrets
import time
from typing import List, Optional

from .errors import StorageError, ValidationError
from .image_paths import base_path, matches_base, object_name
from .size_policy import SizeClass

BASE36_ALPHABET = '0123456789abcdefghijklmnopqrstuvwxyz'
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def new_canonical_path(folder: str) -> str:
    """Mint a fresh canonical path: ``{folder}/{epoch_ms}-{6 random base36 chars}``."""
    suffix = ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
    return f"{folder.strip('/')}/{int(time.time() * 1000)}-{suffix}"


class ImageUploadService:
    """
    Validates an upload, generates every variant and stores them through the
    orchestrator. The caller receives the canonical URL only once every
    variant is stored.
    """

    def __init__(
        self,
        storage,
        generator,
        orchestrator,
        folder: str = 'produtos',
        max_bytes: int = MAX_UPLOAD_BYTES,
        logger: Optional[logging.Logger] = None
    ):
        self.storage = storage
        self.generator = generator
        self.orchestrator = orchestrator
        self.folder = folder
        self.max_bytes = max_bytes
        self.logger = logger or logging.getLogger(__name__)

    def validate(self, data: bytes, content_type: Optional[str]) -> None:
        """Raise ValidationError for non-images, empty and oversized payloads."""
        if not content_type or not content_type.lower().startswith('image/'):
            raise ValidationError(f"File must be an image (got {content_type or 'no content type'})")
        if not data:
            raise ValidationError("File is empty")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"Image must be at most {self.max_bytes // (1024 * 1024)}MB "
                f"(got {len(data):,} bytes)"
            )

    def upload(self, data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> dict:
        """
        Store a new image.

        Args:
            data: Uploaded bytes
            content_type: Mime type declared by the client
            filename: Client file name (logging only)

        Returns:
            Dict with 'url' (public canonical URL), 'path' (canonical path)
            and 'variants' (stored object names)

        Raises:
            ValidationError, GenerationError, StorageError, PartialFailure
        """
        self.validate(data, content_type)

        canonical = new_canonical_path(self.folder)
        self.logger.info(f"Upload of {filename or 'unnamed file'} ({len(data):,} bytes) -> {canonical}")

        variants = self.generator.generate(data, canonical)
        result = self.orchestrator.upload(canonical, variants)

        return {
            'url': self.storage.public_url(result.canonical_path),
            'path': result.canonical_path,
            'variants': sorted(result.stored),
        }

    def delete(self, path_or_url: str) -> List[str]:
        """
        Remove every variant of the image a path or URL names.

        Only names matching ``base + "-"`` exactly are removed. If listing
        fails, or finds nothing, the literal key supplied is deleted instead.

        Returns:
            Keys removed
        """
        key = self.storage.key_from_url(path_or_url)
        if not key:
            raise ValidationError(f"Not an object of this store: {path_or_url}")

        base = base_path(key)
        try:
            targets = [
                obj['key'] for obj in self.storage.list_prefix(base + '-')
                if matches_base(obj['key'], base)
            ]
        except StorageError as e:
            self.logger.warning(f"Listing variants of {base} failed ({e}); deleting {key} only")
            targets = []

        if not targets:
            targets = [key]

        removed = []
        for target in targets:
            self.storage.delete_object(target)
            removed.append(target)

        self.logger.info(f"Removed {len(removed)} object(s) for {base}")
        return removed

    def variant_url(self, path_or_url: str, size: SizeClass) -> str:
        """Public URL of one size class of an image."""
        key = self.storage.key_from_url(path_or_url) or path_or_url
        return self.storage.public_url(object_name(key, size))
