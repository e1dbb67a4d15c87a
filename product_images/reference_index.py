"""
ReferenceIndexBuilder - Set of canonical paths the catalog still references.
"""

import logging
from collections import Counter
from typing import List, Optional, Set

from .catalog import CatalogReference
from .image_paths import base_path


class ReferenceIndexBuilder:
    """
    Scans every catalog field that can hold an image reference and
    normalises the values to canonical paths. Read-only.
    """

    def __init__(self, catalog, storage, logger: Optional[logging.Logger] = None):
        """
        Initialize builder.

        Args:
            catalog: CatalogDb (or compatible) exposing iter_references()
            storage: Storage client exposing key_from_url()
            logger: Optional logger instance
        """
        self.catalog = catalog
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    def collect_references(self) -> List[CatalogReference]:
        """Every raw reference, across products and banners."""
        references = list(self.catalog.iter_references())
        by_field = Counter(f"{r.owner_kind}.{r.field}" for r in references)
        for name, count in sorted(by_field.items()):
            self.logger.info(f"  {name}: {count} reference(s)")
        return references

    def canonical_for(self, reference: CatalogReference) -> Optional[str]:
        """Canonical path of a reference, or None if it points outside this store."""
        key = self.storage.key_from_url(reference.raw_value)
        if not key:
            return None
        return base_path(key)

    def build(self, references: Optional[List[CatalogReference]] = None) -> Set[str]:
        """
        Build the set of canonical paths in use.

        Args:
            references: Pre-collected references (collected fresh when None)
        """
        if references is None:
            references = self.collect_references()

        referenced: Set[str] = set()
        foreign = 0
        for reference in references:
            canonical = self.canonical_for(reference)
            if canonical is None:
                foreign += 1
                continue
            referenced.add(canonical)

        self.logger.info(
            f"Reference index: {len(referenced):,} canonical paths "
            f"from {len(references):,} references ({foreign} outside this store)"
        )
        return referenced
