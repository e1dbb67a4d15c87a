"""
OrphanReconciler - Removes stored objects no catalog row references.
"""

import logging
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import StorageError
from .gc_manifest import GcManifest
from .reconciliation_report import ReconciliationReport
from .storage_object import StorageObject


class OrphanReconciler:
    """
    Garbage collection for the blob store.

    A run always works from fresh, complete snapshots of storage and of the
    catalog, writes a manifest of the candidates to disk and only then
    deletes. Dry-run is the default.
    """

    def __init__(
        self,
        storage,
        lister,
        index_builder,
        batch_size: int = 50,
        batch_delay: float = 0.5,
        dry_run: bool = True,
        backup_bucket: Optional[str] = None,
        prefix: str = '',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reconciler.

        Args:
            storage: Storage client (delete_objects, delete_object, copy_object)
            lister: StorageLister used for the storage snapshot
            index_builder: ReferenceIndexBuilder used for the catalog snapshot
            batch_size: Keys per batch delete request
            batch_delay: Seconds to sleep between batches
            dry_run: If True, never delete anything
            backup_bucket: Copy each orphan here before deleting it
            prefix: Folder to reconcile ('' for the whole bucket)
            logger: Optional logger instance
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.storage = storage
        self.lister = lister
        self.index_builder = index_builder
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.dry_run = dry_run
        self.backup_bucket = backup_bucket
        self.prefix = prefix
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def find_orphans(referenced: Set[str], stored: Iterable[StorageObject]) -> List[StorageObject]:
        """Objects whose canonical path is not referenced."""
        return [obj for obj in stored if obj.base_path not in referenced]

    def run(self, manifest_path: str, limit: Optional[int] = None) -> ReconciliationReport:
        """
        Execute one reconciliation.

        Args:
            manifest_path: Where to write the manifest (before any delete)
            limit: Optional cap on the number of orphans handled

        Returns:
            ReconciliationReport
        """
        report = ReconciliationReport(dry_run=self.dry_run, manifest_path=manifest_path)

        self.logger.info(f"Listing storage under '{self.prefix or '/'}'...")
        stored = self.lister.list_all(self.prefix)
        self.logger.info("Building reference index from catalog...")
        referenced = self.index_builder.build()

        report.total_storage = len(stored)
        report.total_referenced = len(referenced)

        if not referenced and stored:
            self.logger.warning(
                f"Catalog references no images but storage holds {len(stored):,} objects"
            )

        orphans = self.find_orphans(referenced, stored)
        self.logger.info(f"Found {len(orphans):,} orphan(s) out of {len(stored):,} objects")
        if limit is not None and len(orphans) > limit:
            self.logger.info(f"Limiting to {limit} orphan(s)")
            orphans = orphans[:limit]
        report.orphans = [o.key for o in orphans]

        manifest = GcManifest.create_new(
            bucket=self.storage.bucket,
            endpoint=getattr(getattr(self.storage, 'config', None), 'endpoint', None),
            prefix=self.prefix,
            dry_run=self.dry_run,
            backup_bucket=self.backup_bucket,
        )
        manifest.total_storage = report.total_storage
        manifest.total_referenced = report.total_referenced
        manifest.candidates = list(orphans)
        manifest.save(manifest_path)
        self.logger.info(f"Manifest saved to: {manifest_path}")

        if self.dry_run:
            for orphan in orphans:
                self.logger.info(f"[DRY RUN] Would delete: {orphan.key} ({orphan.size} bytes)")
            return report

        sizes = {o.key: o.size for o in orphans}
        keys = [o.key for o in orphans]
        batches = [keys[i:i + self.batch_size] for i in range(0, len(keys), self.batch_size)]

        for index, batch in enumerate(batches):
            if index > 0 and self.batch_delay > 0:
                time.sleep(self.batch_delay)

            if self.backup_bucket:
                batch, backup_failed = self._backup(batch)
                report.failed.update(backup_failed)

            removed, failed = self._delete_batch(batch)
            report.removed.extend(removed)
            report.failed.update(failed)
            report.bytes_freed += sum(sizes.get(k, 0) for k in removed)

            manifest.removed = list(report.removed)
            manifest.failed = dict(report.failed)
            manifest.save(manifest_path)
            self.logger.info(
                f"Batch {index + 1}/{len(batches)}: {len(removed)} removed, {len(failed)} failed"
            )

        manifest.completed_at = datetime.now().isoformat()
        manifest.save(manifest_path)

        self.logger.info(
            f"GC complete: {len(report.removed)} removed, {len(report.failed)} failed, "
            f"{report.bytes_freed:,} bytes freed ({report.elapsed_seconds:.1f}s)"
        )
        return report

    def _backup(self, keys: List[str]) -> Tuple[List[str], Dict[str, str]]:
        """Copy keys to the backup bucket. Keys that failed to copy are not deleted."""
        copied, failed = [], {}
        for key in keys:
            try:
                self.storage.copy_object(key, self.backup_bucket)
                copied.append(key)
            except StorageError as e:
                self.logger.error(f"Backup failed for {key}, leaving it in place: {e}")
                failed[key] = f"backup failed: {e}"
        return copied, failed

    def _delete_batch(self, keys: List[str]) -> Tuple[List[str], Dict[str, str]]:
        """Delete a batch, retrying per object when the batch call fails."""
        if not keys:
            return [], {}
        try:
            errors = self.storage.delete_objects(keys)
        except StorageError as e:
            self.logger.warning(f"Batch delete failed ({e}); falling back to per-object deletion")
            return self._delete_individually(keys)

        refused = [key for key, _ in errors]
        removed = [k for k in keys if k not in set(refused)]
        if not refused:
            return removed, {}

        self.logger.warning(f"{len(refused)} key(s) refused by batch delete; retrying individually")
        retried, failed = self._delete_individually(refused)
        return removed + retried, failed

    def _delete_individually(self, keys: List[str]) -> Tuple[List[str], Dict[str, str]]:
        removed, failed = [], {}
        for key in keys:
            try:
                self.storage.delete_object(key)
                removed.append(key)
            except StorageError as e:
                self.logger.error(f"Failed to delete {key}: {e}")
                failed[key] = str(e)
        return removed, failed

    def restore(self, manifest: GcManifest) -> ReconciliationReport:
        """
        Copy every object a manifest records as removed back from its backup bucket.

        The returned report lists restored keys under `removed`.

        Raises:
            ValueError if the manifest has no backup bucket
        """
        if not manifest.backup_bucket:
            raise ValueError("Manifest has no backup bucket; nothing to restore from")

        report = ReconciliationReport(dry_run=self.dry_run)
        keys = list(manifest.removed)
        report.orphans = keys
        if not keys:
            self.logger.info("Nothing to restore: the manifest records no removed objects")
            return report
        self.logger.info(f"Restoring {len(keys)} object(s) from {manifest.backup_bucket}")

        for key in keys:
            if self.dry_run:
                self.logger.info(f"[DRY RUN] Would restore: {key}")
                continue
            try:
                self.storage.copy_object(key, manifest.bucket, source_bucket=manifest.backup_bucket)
                report.removed.append(key)
            except StorageError as e:
                self.logger.error(f"Failed to restore {key}: {e}")
                report.failed[key] = str(e)

        self.logger.info(f"Restore complete: {len(report.removed)} restored, {len(report.failed)} failed")
        return report
