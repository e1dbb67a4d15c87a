"""
Exception taxonomy for the image variant pipeline.
"""

from typing import Dict, List, Optional


class ImagePipelineError(Exception):
    """Base class for every error raised by the pipeline."""
    pass


class ValidationError(ImagePipelineError):
    """Raised when an upload is rejected before any processing (bad mime, oversize)."""
    pass


class GenerationError(ImagePipelineError):
    """Raised when image bytes are unreadable or their dimensions cannot be determined."""
    pass


class StorageError(ImagePipelineError):
    """Raised when a single blob-store operation fails."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class RateLimitBackoff(StorageError):
    """Transient blob-store failure (throttling, timeout, 5xx). Safe to retry."""
    pass


class PartialFailure(StorageError):
    """
    Some but not all variants of one image were stored.

    Attributes:
        stored: Object names that were stored during the call
        rolled_back: Object names removed again by the rollback
        rollback_failed: Object names the rollback could not remove
        errors: Mapping of object name -> error message for missing variants
    """

    def __init__(
        self,
        message: str,
        stored: List[str],
        rolled_back: List[str],
        rollback_failed: List[str],
        errors: Dict[str, str]
    ):
        super().__init__(message)
        self.stored = stored
        self.rolled_back = rolled_back
        self.rollback_failed = rollback_failed
        self.errors = errors


class ReferenceNotFound(ImagePipelineError):
    """Raised when the original bytes (or any variant) for a reference cannot be located."""
    pass
