"""Tests for ReferenceIndexBuilder class."""

from conftest import FakeCatalog, FakeStorage, PUBLIC_BASE
from product_images.catalog import CatalogReference, FIELD_FOTOS, OWNER_PRODUCT
from product_images.reference_index import ReferenceIndexBuilder


class TestReferenceIndexBuilder:
    """Tests for ReferenceIndexBuilder."""

    def test_build_normalises_to_canonical_paths(self, logger):
        catalog = FakeCatalog(
            products=[
                {'id': 1, 'foto_principal': f'{PUBLIC_BASE}/produtos/a-large.webp',
                 'fotos': [f'{PUBLIC_BASE}/produtos/b.jpg?token=1', 'produtos/c']},
                {'id': 2, 'foto_principal': None, 'fotos': []},
            ],
            banners=[{'id': 7, 'imagem_url': f'{PUBLIC_BASE}/banners/d-original.webp'}],
        )

        referenced = ReferenceIndexBuilder(catalog, FakeStorage(), logger=logger).build()

        assert referenced == {'produtos/a', 'produtos/b', 'produtos/c', 'banners/d'}

    def test_foreign_urls_are_ignored(self, logger):
        catalog = FakeCatalog(products=[
            {'id': 1, 'foto_principal': 'https://elsewhere.example.com/x.jpg', 'fotos': []},
        ])

        referenced = ReferenceIndexBuilder(catalog, FakeStorage(), logger=logger).build()

        assert referenced == set()

    def test_collect_references_includes_every_field(self, logger):
        catalog = FakeCatalog(
            products=[{'id': 1, 'foto_principal': 'p/a', 'fotos': ['p/b', 'p/c']}],
            banners=[{'id': 2, 'imagem_url': 'p/d'}],
        )

        references = ReferenceIndexBuilder(catalog, FakeStorage(), logger=logger).collect_references()

        assert [(r.owner_kind, r.field) for r in references] == [
            ('product', 'foto_principal'),
            ('product', 'fotos'),
            ('product', 'fotos'),
            ('banner', 'imagem_url'),
        ]

    def test_build_with_precollected_references(self, logger):
        references = [CatalogReference(OWNER_PRODUCT, 1, FIELD_FOTOS, 'p/z-thumb.webp')]
        builder = ReferenceIndexBuilder(FakeCatalog(), FakeStorage(), logger=logger)

        assert builder.build(references) == {'p/z'}
