"""
ReprocessingDriver - Regenerates variants for images referenced by the catalog.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .catalog import CatalogReference
from .errors import ReferenceNotFound
from .image_paths import base_path, has_extension, has_size_suffix, object_name
from .job_stats import JobStats
from .size_policy import SizeClass


@dataclass
class ReprocessItem:
    """One canonical path and the catalog references that point at it."""
    canonical_path: str
    references: List[CatalogReference] = field(default_factory=list)
    legacy_references: List[CatalogReference] = field(default_factory=list)
    source_keys: List[str] = field(default_factory=list)
    needs_upload: bool = False


class ReprocessingDriver:
    """
    Walks catalog references and brings each image to the current variant set.

    Legacy originals (``.jpg``, ``.png``, ``.blob`` ...) are converted into the
    full variant set and the catalog value is rewritten to the canonical URL.
    Images whose original variant already exists are left alone unless
    ``force`` is set, so a second run over the same catalog uploads nothing.
    """

    LEGACY_EXTENSIONS = ('.blob', '.jpeg', '.jpg', '.png', '.webp')

    def __init__(
        self,
        catalog,
        storage,
        generator,
        orchestrator,
        lister,
        prefix: str = '',
        cadence: float = 1.0,
        dry_run: bool = True,
        force: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reprocessing driver.

        Args:
            catalog: CatalogDb exposing iter_references() and replace_reference()
            storage: Storage client (download_object, key_from_url, public_url)
            generator: VariantGenerator
            orchestrator: UploadOrchestrator
            lister: StorageLister used for the existence snapshot
            prefix: Folder to snapshot ('' for the whole bucket)
            cadence: Seconds between images
            dry_run: If True, only report what would be done
            force: Regenerate even when variants already exist
            logger: Optional logger instance
        """
        self.catalog = catalog
        self.storage = storage
        self.generator = generator
        self.orchestrator = orchestrator
        self.lister = lister
        self.prefix = prefix
        self.cadence = cadence
        self.dry_run = dry_run
        self.force = force
        self.logger = logger or logging.getLogger(__name__)
        self.stats = JobStats()
        self._stop_requested = False

    def stop(self) -> None:
        """Request the driver to stop after the current image."""
        self._stop_requested = True

    def run(self, limit: Optional[int] = None) -> JobStats:
        """
        Reprocess every catalog image that needs it.

        Args:
            limit: Optional cap on the number of images handled

        Returns:
            JobStats with results
        """
        references = list(self.catalog.iter_references())
        existing = {obj.key for obj in self.lister.list_all(self.prefix)}

        items, skipped = self.plan(references, existing)
        if limit is not None and len(items) > limit:
            items = items[:limit]

        self.stats = JobStats(total=len(items) + skipped, skipped=skipped)

        mode_str = " [DRY RUN]" if self.dry_run else ""
        self.logger.info(
            f"Starting reprocessing: {len(items)} image(s) to handle, "
            f"{skipped} already current{mode_str}"
        )

        for item in items:
            if self._stop_requested:
                self.logger.info("Stop requested, halting reprocessing")
                break

            self._process_item(item, existing)

            if self.cadence > 0 and not self.dry_run:
                time.sleep(self.cadence)

        self.logger.info(
            f"Reprocessing complete: {self.stats.processed} processed, "
            f"{self.stats.skipped} skipped, {self.stats.failed} failed, "
            f"{self.stats.uploads} uploads ({self.stats.elapsed_seconds:.1f}s)"
        )
        return self.stats

    def plan(self, references: List[CatalogReference], existing: Set[str]):
        """
        Group references by canonical path and decide what each group needs.

        Returns:
            Tuple of (items needing work, number of groups already current)
        """
        groups: Dict[str, ReprocessItem] = OrderedDict()
        for reference in references:
            key = self.storage.key_from_url(reference.raw_value)
            if not key:
                self.logger.debug(f"Ignoring reference outside this store: {reference.raw_value}")
                continue

            canonical = base_path(key)
            item = groups.setdefault(canonical, ReprocessItem(canonical_path=canonical))
            if has_size_suffix(key):
                # Already points at a stored variant
                continue

            item.references.append(reference)
            if key != canonical:
                item.legacy_references.append(reference)
                if has_extension(key) and key not in item.source_keys:
                    item.source_keys.append(key)

        items, skipped = [], 0
        for item in groups.values():
            if not item.references:
                skipped += 1
                continue
            has_original = object_name(item.canonical_path, SizeClass.ORIGINAL) in existing
            item.needs_upload = self.force or not has_original
            if not item.needs_upload and not item.legacy_references:
                skipped += 1
                continue
            items.append(item)

        return items, skipped

    def _process_item(self, item: ReprocessItem, existing: Set[str]) -> bool:
        canonical = item.canonical_path
        if self.dry_run:
            action = "regenerate variants" if item.needs_upload else "rewrite catalog"
            self.logger.info(
                f"[DRY RUN] Would {action} for {canonical} "
                f"({len(item.legacy_references)} legacy reference(s))"
            )
            self.stats.processed += 1
            return True

        try:
            if item.needs_upload:
                data = self.load_original(item)
                variants = self.generator.generate(data, canonical)
                result = self.orchestrator.upload(canonical, variants, overwrite=True)
                existing.update(result.stored)
                self.stats.uploads += len(result.stored)
                self.stats.bytes_uploaded += sum(v.byte_size for v in variants)

            for reference in item.legacy_references:
                if self.catalog.replace_reference(reference, self._canonical_value(reference, canonical)):
                    self.stats.catalog_updates += 1

            self.stats.processed += 1
            self.logger.info(
                f"Reprocessed: {canonical} "
                f"[{self.stats.completed_count}/{self.stats.total}]"
            )
            return True

        except Exception as e:
            error_msg = f"Error reprocessing {canonical}: {e}"
            self.logger.error(error_msg)
            self.stats.record_failure(error_msg)
            return False

    def load_original(self, item: ReprocessItem) -> bytes:
        """
        Find the original bytes for an image.

        Tries the referenced keys, then the canonical path with each legacy
        extension, then the stored original variant.

        Raises:
            ReferenceNotFound if nothing could be downloaded
        """
        candidates = list(item.source_keys)
        candidates += [item.canonical_path + ext for ext in self.LEGACY_EXTENSIONS]
        candidates.append(object_name(item.canonical_path, SizeClass.ORIGINAL))

        tried = []
        for key in candidates:
            if key in tried:
                continue
            tried.append(key)
            try:
                data = self.storage.download_object(key)
            except ReferenceNotFound:
                continue
            self.logger.debug(f"Using {key} as original for {item.canonical_path}")
            return data

        raise ReferenceNotFound(
            f"No original found for {item.canonical_path} (tried {len(tried)} keys)"
        )

    def _canonical_value(self, reference: CatalogReference, canonical: str) -> str:
        """New catalog value: a public URL if the old one was a URL, else the bare path."""
        if '://' in reference.raw_value:
            return self.storage.public_url(canonical)
        return canonical
