"""
StorageObject - One object physically present in the blob store.
"""

from dataclasses import asdict, dataclass
from typing import Optional

from .image_paths import base_path, size_class_of
from .size_policy import SizeClass


@dataclass(frozen=True)
class StorageObject:
    """
    Object as reported by the storage listing.

    Attributes:
        key: Full object key (folder segment included)
        size: Size in bytes
        last_modified: ISO timestamp, when the store reports one
    """
    key: str
    size: int = 0
    last_modified: Optional[str] = None

    @property
    def base_path(self) -> str:
        """Canonical path this object belongs to."""
        return base_path(self.key)

    @property
    def size_class(self) -> Optional[SizeClass]:
        return size_class_of(self.key)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'StorageObject':
        return cls(
            key=data['key'],
            size=data.get('size', 0) or 0,
            last_modified=data.get('last_modified'),
        )
