"""
Reporter - Human-readable summaries of GC manifests and job results.
"""

import logging
import sys
from collections import Counter
from typing import Optional, TextIO

from .gc_manifest import GcManifest
from .job_stats import JobStats
from .reconciliation_report import ReconciliationReport


class Reporter:
    """
    Prints summaries for the maintenance CLI.
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reporter.

        Args:
            output: Output stream (default: stdout)
            logger: Optional logger instance
        """
        self.output = output or sys.stdout
        self.logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    def _format_bytes(self, bytes_val: int) -> str:
        """Format bytes as human-readable string."""
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} PB"

    def _format_duration(self, seconds: float) -> str:
        """Format duration as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            return f"{seconds / 60:.1f} minutes"
        else:
            return f"{seconds / 3600:.1f} hours"

    def report_manifest(self, manifest: GcManifest, limit: int = 20) -> None:
        """Summary of a saved GC manifest."""
        self._print("=" * 70)
        self._print("STORAGE GC MANIFEST SUMMARY")
        self._print("=" * 70)
        self._print()

        self._print("Manifest Information:")
        self._print(f"  Created:     {manifest.created_at}")
        self._print(f"  Age:         {manifest.age_hours:.1f} hours")
        self._print(f"  Endpoint:    {manifest.endpoint or 'aws'}")
        self._print(f"  Bucket:      {manifest.bucket}/{manifest.prefix}")
        self._print(f"  Mode:        {'dry run' if manifest.dry_run else 'execute'}")
        if manifest.backup_bucket:
            self._print(f"  Backup:      {manifest.backup_bucket}")
        if manifest.completed_at:
            self._print(f"  Completed:   {manifest.completed_at}")
        self._print()

        if manifest.is_stale():
            self._print("WARNING: Manifest is older than 24 hours!")
            self._print("   Storage and catalog may have changed since it was written.")
            self._print()

        self._print("Overall Statistics:")
        self._print(f"  Objects in storage:   {manifest.total_storage:,}")
        self._print(f"  Referenced images:    {manifest.total_referenced:,}")
        self._print(f"  Orphan candidates:    {len(manifest.candidates):,}")
        self._print(f"  Candidate size:       {self._format_bytes(manifest.candidate_bytes)}")
        self._print(f"  Removed:              {len(manifest.removed):,}")
        self._print(f"  Failed:               {len(manifest.failed):,}")
        self._print()

        by_size = Counter(
            c.size_class.value if c.size_class else 'legacy' for c in manifest.candidates
        )
        if by_size:
            self._print("Candidates by size class:")
            self._print("-" * 40)
            for name, count in sorted(by_size.items()):
                self._print(f"  {name:<20} {count:>12,}")
            self._print("-" * 40)
            self._print()

        if manifest.candidates:
            self._print("Candidates:")
            for candidate in manifest.candidates[:limit]:
                self._print(f"  {candidate.key} ({self._format_bytes(candidate.size)})")
            remaining = len(manifest.candidates) - limit
            if remaining > 0:
                self._print(f"  ... and {remaining:,} more")
            self._print()

        if manifest.failed:
            self._print("Failures:")
            for key, error in sorted(manifest.failed.items()):
                self._print(f"  {key}: {error}")
            self._print()

    def report_reconciliation(self, report: ReconciliationReport) -> None:
        """Final summary of a GC run."""
        self._print("=" * 70)
        self._print("STORAGE GC" + (" [DRY RUN]" if report.dry_run else ""))
        self._print("=" * 70)
        self._print(f"  Objects in storage:   {report.total_storage:,}")
        self._print(f"  Referenced images:    {report.total_referenced:,}")
        self._print(f"  Orphans:              {report.orphan_count:,}")
        if report.dry_run:
            self._print(f"  Would remove:         {report.orphan_count:,}")
        else:
            self._print(f"  Removed:              {len(report.removed):,}")
            self._print(f"  Failed:               {len(report.failed):,}")
            self._print(f"  Freed:                {self._format_bytes(report.bytes_freed)}")
        if report.manifest_path:
            self._print(f"  Manifest:             {report.manifest_path}")
        self._print(f"  Time:                 {self._format_duration(report.elapsed_seconds)}")
        self._print()

    def report_job(self, title: str, stats: JobStats) -> None:
        """Final summary of a reprocessing or delete job."""
        self._print("=" * 70)
        self._print(title)
        self._print("=" * 70)
        self._print(f"  Total:            {stats.total:,}")
        self._print(f"  Processed:        {stats.processed:,}")
        self._print(f"  Skipped:          {stats.skipped:,}")
        self._print(f"  Failed:           {stats.failed:,}")
        self._print(f"  Uploads:          {stats.uploads:,} ({self._format_bytes(stats.bytes_uploaded)})")
        self._print(f"  Catalog updates:  {stats.catalog_updates:,}")
        self._print(f"  Time:             {self._format_duration(stats.elapsed_seconds)}")
        self._print(f"  Rate:             {stats.rate_per_minute:.1f}/min")
        if stats.error_details:
            self._print()
            self._print("Errors:")
            for message in stats.error_details:
                self._print(f"  {message}")
        self._print()
