"""
Product image variant pipeline.

Every uploaded image is stored as a fixed set of WebP variants
(thumb, small, medium, large, original) under one canonical path.
Maintenance jobs keep storage and catalog in step:
    - gc: remove stored objects no catalog row references
    - reprocess: regenerate variants and migrate legacy references
"""

__version__ = "1.0.0"

from .errors import (
    GenerationError,
    ImagePipelineError,
    PartialFailure,
    RateLimitBackoff,
    ReferenceNotFound,
    StorageError,
    ValidationError,
)
from .size_policy import ALL_SIZES, DEFAULT_POLICY, SizeClass, SizePolicy
from .s3_config import S3Config
from .s3_client import S3Client
from .variant import OriginalImage, Variant
from .variant_generator import VariantGenerator
from .upload_orchestrator import UploadOrchestrator, UploadResult
from .catalog import CatalogConfig, CatalogDb, CatalogReference
from .storage_object import StorageObject
from .storage_lister import StorageLister
from .reference_index import ReferenceIndexBuilder
from .gc_manifest import GcManifest
from .reconciliation_report import ReconciliationReport
from .reconciler import OrphanReconciler
from .job_stats import JobStats
from .reprocessor import ReprocessingDriver
from .uploads import ImageUploadService
from .reporter import Reporter

__all__ = [
    "ImagePipelineError",
    "ValidationError",
    "GenerationError",
    "StorageError",
    "RateLimitBackoff",
    "PartialFailure",
    "ReferenceNotFound",
    "SizeClass",
    "SizePolicy",
    "ALL_SIZES",
    "DEFAULT_POLICY",
    "S3Config",
    "S3Client",
    "OriginalImage",
    "Variant",
    "VariantGenerator",
    "UploadOrchestrator",
    "UploadResult",
    "CatalogConfig",
    "CatalogDb",
    "CatalogReference",
    "StorageObject",
    "StorageLister",
    "ReferenceIndexBuilder",
    "GcManifest",
    "ReconciliationReport",
    "OrphanReconciler",
    "JobStats",
    "ReprocessingDriver",
    "ImageUploadService",
    "Reporter",
]
