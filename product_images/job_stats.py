"""
JobStats - Counters for a batch maintenance job.
"""

import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class JobStats:
    """
    Statistics for a reprocessing or delete run.

    Attributes:
        total: Items the job set out to handle
        processed: Items completed successfully
        skipped: Items left alone (already canonical, or filtered)
        failed: Items that raised
        uploads: Variant objects written
        bytes_uploaded: Total bytes of variants written
        catalog_updates: Catalog values rewritten to canonical URLs
        start_time: Start timestamp
        error_details: List of error messages
    """
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    uploads: int = 0
    bytes_uploaded: int = 0
    catalog_updates: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    @property
    def rate_per_minute(self) -> float:
        """Processed items per minute."""
        if self.elapsed_seconds > 0:
            return self.processed / self.elapsed_seconds * 60
        return 0.0

    @property
    def completed_count(self) -> int:
        return self.processed + self.skipped + self.failed

    @property
    def remaining_count(self) -> int:
        return self.total - self.completed_count

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.error_details.append(message)
