"""
ReconciliationReport - Outcome of one orphan reconciliation run.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class ReconciliationReport:
    """
    What a GC run found and did. Never persisted; the manifest is the record.

    Attributes:
        total_storage: Objects found in storage
        total_referenced: Canonical paths referenced by the catalog
        orphans: Orphan keys selected (after any limit)
        removed: Keys deleted
        failed: Key -> error for deletions or backups that failed
        bytes_freed: Total size of removed objects
        dry_run: True if nothing was deleted on purpose
        manifest_path: Where the manifest was written
    """
    total_storage: int = 0
    total_referenced: int = 0
    orphans: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    bytes_freed: int = 0
    dry_run: bool = True
    manifest_path: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def orphan_count(self) -> int:
        return len(self.orphans)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def succeeded(self) -> bool:
        return not self.failed
