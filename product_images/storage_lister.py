"""
StorageLister - Enumerates every object in the bucket, folder by folder.
"""

import logging
from typing import Iterator, List, Optional

from .storage_object import StorageObject


class StorageLister:
    """
    Paginated, folder-aware listing of the blob store.

    Each folder is listed with a delimiter so nested folders are discovered
    and walked in turn. A folder's listing stops on the first short page or
    when the store stops handing out continuation tokens.
    """

    PLACEHOLDER_NAMES = {'.emptyFolderPlaceholder', '.keep'}

    def __init__(
        self,
        storage,
        page_size: int = 1000,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize lister.

        Args:
            storage: Storage client exposing list_page()
            page_size: Maximum keys requested per page
            logger: Optional logger instance
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.storage = storage
        self.page_size = page_size
        self.logger = logger or logging.getLogger(__name__)

    def list_objects(self, prefix: str = '') -> Iterator[StorageObject]:
        """
        Yield every object under prefix, descending into sub-folders.

        Args:
            prefix: Folder to start from ('' for the bucket root)
        """
        folders = [prefix]
        visited = set()
        count = 0

        while folders:
            folder = folders.pop(0)
            if folder in visited:
                continue
            visited.add(folder)

            token = None
            seen_tokens = set()
            while True:
                page = self.storage.list_page(
                    folder,
                    max_keys=self.page_size,
                    continuation_token=token
                )

                for obj in page['objects']:
                    if self._is_placeholder(obj['key']):
                        continue
                    count += 1
                    if count % 1000 == 0:
                        self.logger.info(f"  Listed {count:,} objects...")
                    yield StorageObject(
                        key=obj['key'],
                        size=obj.get('size') or 0,
                        last_modified=obj.get('last_modified'),
                    )

                for sub_folder in page['folders']:
                    if sub_folder not in visited:
                        folders.append(sub_folder)

                token = page.get('next_token')
                if page['count'] < self.page_size or not token or token in seen_tokens:
                    break
                seen_tokens.add(token)

        self.logger.debug(f"Listing of '{prefix}' complete: {count} objects")

    def list_all(self, prefix: str = '') -> List[StorageObject]:
        """Full snapshot of the store under prefix."""
        objects = list(self.list_objects(prefix))
        self.logger.info(f"Storage snapshot: {len(objects):,} objects")
        return objects

    def _is_placeholder(self, key: str) -> bool:
        if key.endswith('/'):
            return True
        return key.rsplit('/', 1)[-1] in self.PLACEHOLDER_NAMES
