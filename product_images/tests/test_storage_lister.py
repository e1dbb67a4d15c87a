"""Tests for StorageLister class."""

from unittest.mock import MagicMock

import pytest

from conftest import FakeStorage
from product_images.storage_lister import StorageLister


def page(keys, folders=(), next_token=None, count=None):
    return {
        'objects': [{'key': k, 'size': 10, 'last_modified': None} for k in keys],
        'folders': list(folders),
        'next_token': next_token,
        'count': count if count is not None else len(keys) + len(folders),
    }


class TestStorageLister:
    """Tests for StorageLister."""

    def test_lists_every_object_across_pages(self, logger):
        storage = FakeStorage()
        for i in range(7):
            storage.add(f'produtos/img{i}-thumb.webp')

        lister = StorageLister(storage, page_size=3, logger=logger)
        keys = [o.key for o in lister.list_objects('produtos/')]

        assert keys == sorted(storage.objects)
        assert len(storage.calls_named('list_page')) == 3

    def test_recurses_into_folders(self, logger):
        """Test nested folders are discovered and walked."""
        storage = FakeStorage()
        storage.add('produtos/a-thumb.webp')
        storage.add('produtos/2024/b-thumb.webp')
        storage.add('produtos/2024/old/c.jpg')
        storage.add('banners/d-original.webp')

        lister = StorageLister(storage, page_size=100, logger=logger)
        keys = {o.key for o in lister.list_objects('')}

        assert keys == set(storage.objects)

    def test_stops_on_short_page(self, logger):
        """Test a short page ends the folder even if a token is returned."""
        storage = MagicMock()
        storage.list_page.side_effect = [
            page(['a', 'b'], next_token='t1'),
            page(['c'], next_token='t2'),
            page(['never'], next_token=None),
        ]

        lister = StorageLister(storage, page_size=2, logger=logger)
        keys = [o.key for o in lister.list_objects('')]

        assert keys == ['a', 'b', 'c']
        assert storage.list_page.call_count == 2

    def test_stops_without_token(self, logger):
        storage = MagicMock()
        storage.list_page.side_effect = [page(['a', 'b'], next_token=None)]

        lister = StorageLister(storage, page_size=2, logger=logger)

        assert [o.key for o in lister.list_objects('')] == ['a', 'b']
        assert storage.list_page.call_count == 1

    def test_stops_on_repeated_token(self, logger):
        storage = MagicMock()
        storage.list_page.side_effect = [
            page(['a', 'b'], next_token='same'),
            page(['c', 'd'], next_token='same'),
            page(['e', 'f'], next_token='same'),
        ]

        lister = StorageLister(storage, page_size=2, logger=logger)

        assert [o.key for o in lister.list_objects('')] == ['a', 'b', 'c', 'd']

    def test_skips_placeholders(self, logger):
        storage = MagicMock()
        storage.list_page.side_effect = [
            page(['produtos/', 'produtos/.emptyFolderPlaceholder', 'produtos/a-thumb.webp'])
        ]

        lister = StorageLister(storage, page_size=10, logger=logger)

        assert [o.key for o in lister.list_objects('produtos/')] == ['produtos/a-thumb.webp']

    def test_list_all_returns_storage_objects(self, logger):
        storage = FakeStorage()
        storage.add('produtos/a-thumb.webp', size=42)

        objects = StorageLister(storage, logger=logger).list_all('produtos/')

        assert objects[0].size == 42
        assert objects[0].base_path == 'produtos/a'

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            StorageLister(FakeStorage(), page_size=0)
