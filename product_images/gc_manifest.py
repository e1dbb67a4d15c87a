"""
GcManifest - Write-ahead record of the objects a GC run is about to delete.
"""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .storage_object import StorageObject


@dataclass
class GcManifest:
    """
    Manifest written before any deletion happens.

    Attributes:
        created_at: ISO timestamp when the snapshot was taken
        bucket: Bucket the candidates live in
        endpoint: S3 endpoint (None for AWS)
        prefix: Folder that was listed
        dry_run: True if the run was not allowed to delete
        total_storage: Objects found in storage
        total_referenced: Canonical paths referenced by the catalog
        candidates: Orphans selected for deletion
        backup_bucket: Bucket orphans are copied to before deletion
        removed: Keys actually deleted (filled after the run)
        failed: Key -> error for deletions that failed
        completed_at: ISO timestamp when deletion finished
    """
    created_at: str
    bucket: str
    endpoint: Optional[str] = None
    prefix: str = ''
    dry_run: bool = True
    total_storage: int = 0
    total_referenced: int = 0
    candidates: List[StorageObject] = field(default_factory=list)
    backup_bucket: Optional[str] = None
    removed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    completed_at: Optional[str] = None

    AGE_WARNING_HOURS = 24

    @property
    def candidate_keys(self) -> List[str]:
        return [c.key for c in self.candidates]

    @property
    def candidate_bytes(self) -> int:
        return sum(c.size for c in self.candidates)

    @property
    def age_hours(self) -> float:
        """Age of manifest in hours."""
        created = datetime.fromisoformat(self.created_at)
        return (datetime.now() - created).total_seconds() / 3600

    def is_stale(self, threshold_hours: Optional[float] = None) -> bool:
        """Check if manifest is older than threshold."""
        threshold = threshold_hours or self.AGE_WARNING_HOURS
        return self.age_hours > threshold

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'created_at': self.created_at,
            'bucket': self.bucket,
            'endpoint': self.endpoint,
            'prefix': self.prefix,
            'dry_run': self.dry_run,
            'total_storage': self.total_storage,
            'total_referenced': self.total_referenced,
            'candidate_count': len(self.candidates),
            'candidate_bytes': self.candidate_bytes,
            'candidates': [c.to_dict() for c in self.candidates],
            'backup_bucket': self.backup_bucket,
            'removed': self.removed,
            'failed': self.failed,
            'completed_at': self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GcManifest':
        """Create from dictionary."""
        return cls(
            created_at=data['created_at'],
            bucket=data['bucket'],
            endpoint=data.get('endpoint'),
            prefix=data.get('prefix', ''),
            dry_run=data.get('dry_run', True),
            total_storage=data.get('total_storage', 0),
            total_referenced=data.get('total_referenced', 0),
            candidates=[StorageObject.from_dict(c) for c in data.get('candidates', [])],
            backup_bucket=data.get('backup_bucket'),
            removed=list(data.get('removed', [])),
            failed=dict(data.get('failed', {})),
            completed_at=data.get('completed_at'),
        )

    def save(self, filepath: str) -> None:
        """
        Save manifest to a JSON file.

        The file is written to a temporary name, flushed to disk and then
        renamed, so a reader never sees a half-written manifest.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + '.tmp')

        with open(tmp_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)

    @classmethod
    def load(cls, filepath: str) -> 'GcManifest':
        """Load manifest from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def create_new(
        cls,
        bucket: str,
        endpoint: Optional[str] = None,
        prefix: str = '',
        dry_run: bool = True,
        backup_bucket: Optional[str] = None
    ) -> 'GcManifest':
        """Create a new empty manifest stamped with the current time."""
        return cls(
            created_at=datetime.now().isoformat(),
            bucket=bucket,
            endpoint=endpoint,
            prefix=prefix,
            dry_run=dry_run,
            backup_bucket=backup_bucket,
        )

    @staticmethod
    def default_path(directory: str = 'reports') -> str:
        """Timestamped manifest path, e.g. reports/gc-manifest-20260101-120000.json."""
        stamp = datetime.now().strftime('%Y%m%d-%H%M%S')
        return os.path.join(directory, f"gc-manifest-{stamp}.json")
