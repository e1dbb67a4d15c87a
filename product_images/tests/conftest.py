"""
Pytest fixtures for product_images tests.
"""

import io
import json
from datetime import datetime, timedelta

import pytest

from product_images.catalog import (
    BannerImage,
    FIELD_FOTO_PRINCIPAL,
    FIELD_FOTOS,
    FIELD_IMAGEM_URL,
    ProductImages,
)
from product_images.errors import ReferenceNotFound, StorageError

PUBLIC_BASE = 'https://cdn.example.com/produtos'


class FakeStorage:
    """In-memory stand-in for S3Client with the same method surface."""

    def __init__(self, bucket='produtos', public_base=PUBLIC_BASE):
        self.bucket = bucket
        self.public_base = public_base
        self.objects = {}
        self.buckets = {}
        self.calls = []
        self.fail_put = {}
        self.fail_delete = set()
        self.fail_delete_objects = False
        self.refuse_in_batch = set()
        self.fail_list = False

    def add(self, key, data=b'x', size=None):
        self.objects[key] = data if size is None else b'x' * size

    # Listing

    def list_page(self, prefix='', max_keys=1000, continuation_token=None, delimiter='/'):
        self.calls.append(('list_page', prefix))
        entries = []
        folders = set()
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if delimiter and delimiter in rest:
                folder = prefix + rest.split(delimiter, 1)[0] + delimiter
                if folder not in folders:
                    folders.add(folder)
                    entries.append(('folder', folder))
            else:
                entries.append(('object', key))

        offset = int(continuation_token or 0)
        page = entries[offset:offset + max_keys]
        more = offset + max_keys < len(entries)
        return {
            'objects': [
                {'key': k, 'size': len(self.objects[k]), 'last_modified': None}
                for kind, k in page if kind == 'object'
            ],
            'folders': [k for kind, k in page if kind == 'folder'],
            'next_token': str(offset + max_keys) if more else None,
            'count': len(page),
        }

    def list_prefix(self, prefix, max_keys=1000):
        self.calls.append(('list_prefix', prefix))
        if self.fail_list:
            raise StorageError(f"Listing failed for {prefix}", prefix)
        for key in sorted(self.objects):
            if key.startswith(prefix):
                yield {'key': key, 'size': len(self.objects[key]), 'last_modified': None}

    # Objects

    def download_object(self, key):
        self.calls.append(('download_object', key))
        if key not in self.objects:
            raise ReferenceNotFound(f"Object not found: {key}")
        return self.objects[key]

    def put_object(self, key, data, content_type='application/octet-stream', overwrite=False):
        self.calls.append(('put_object', key))
        failures = self.fail_put.get(key)
        if failures:
            error = failures.pop(0)
            raise error
        if not overwrite and key in self.objects:
            raise StorageError(f"Object already exists: {key}", key)
        self.objects[key] = data

    def delete_object(self, key):
        self.calls.append(('delete_object', key))
        if key in self.fail_delete:
            raise StorageError(f"Delete refused: {key}", key)
        self.objects.pop(key, None)

    def delete_objects(self, keys):
        self.calls.append(('delete_objects', tuple(keys)))
        if self.fail_delete_objects:
            raise StorageError("Batch delete failed")
        errors = []
        for key in keys:
            if key in self.refuse_in_batch:
                errors.append((key, 'AccessDenied'))
            else:
                self.objects.pop(key, None)
        return errors

    def copy_object(self, key, dest_bucket, source_bucket=None):
        self.calls.append(('copy_object', key, dest_bucket))
        if source_bucket and source_bucket != self.bucket:
            source = self.buckets.get(source_bucket, {})
        else:
            source = self.objects
        if key not in source:
            raise StorageError(f"Copy source missing: {key}", key)
        if dest_bucket == self.bucket:
            self.objects[key] = source[key]
        else:
            self.buckets.setdefault(dest_bucket, {})[key] = source[key]

    # URLs

    def public_url(self, key):
        return f"{self.public_base}/{key.lstrip('/')}"

    def key_from_url(self, value):
        if not value:
            return None
        cleaned = value.strip().split('?', 1)[0].split('#', 1)[0]
        if '://' not in cleaned:
            return cleaned.lstrip('/') or None
        if cleaned.startswith(self.public_base + '/'):
            return cleaned[len(self.public_base) + 1:] or None
        return None

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


class FakeCatalog:
    """In-memory catalog with the CatalogDb read/rewrite surface."""

    def __init__(self, products=None, banners=None):
        self.products = {p['id']: dict(p) for p in (products or [])}
        self.banners = {b['id']: dict(b) for b in (banners or [])}
        self.replaced = []

    def fetch_products(self):
        return [
            ProductImages(id=p['id'], foto_principal=p.get('foto_principal'), fotos=tuple(p.get('fotos', ())))
            for p in self.products.values()
        ]

    def fetch_banners(self):
        return [BannerImage(id=b['id'], imagem_url=b.get('imagem_url')) for b in self.banners.values()]

    def iter_references(self):
        for product in self.fetch_products():
            yield from product.references()
        for banner in self.fetch_banners():
            yield from banner.references()

    def replace_reference(self, reference, new_value):
        self.replaced.append((reference, new_value))
        if reference.field == FIELD_FOTO_PRINCIPAL:
            row = self.products[reference.owner_id]
            if row.get('foto_principal') != reference.raw_value:
                return False
            row['foto_principal'] = new_value
        elif reference.field == FIELD_FOTOS:
            row = self.products[reference.owner_id]
            row['fotos'] = [new_value if f == reference.raw_value else f for f in row.get('fotos', [])]
        elif reference.field == FIELD_IMAGEM_URL:
            row = self.banners[reference.owner_id]
            if row.get('imagem_url') != reference.raw_value:
                return False
            row['imagem_url'] = new_value
        return True


@pytest.fixture
def s3_config():
    """Fixture providing S3 configuration."""
    from product_images.s3_config import S3Config

    return S3Config(
        endpoint='https://test-endpoint.example.com:9000',
        bucket='produtos',
        prefix='produtos',
        access_key='test-access-key',
        secret_key='test-secret-key',
        region='us-east-1',
    )


@pytest.fixture
def storage():
    """Fixture providing an empty in-memory storage."""
    return FakeStorage()


@pytest.fixture
def catalog():
    """Fixture providing an empty in-memory catalog."""
    return FakeCatalog()


def make_image(width, height, mode='RGB', fmt='JPEG', color='red', exif=None):
    from PIL import Image

    img = Image.new(mode, (width, height), color=color)
    buffer = io.BytesIO()
    if exif is not None:
        img.save(buffer, format=fmt, exif=exif)
    else:
        img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def sample_image_bytes():
    """Fixture providing sample JPEG image bytes."""
    return make_image(100, 100)


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes with transparency."""
    return make_image(100, 100, mode='RGBA', fmt='PNG', color=(255, 0, 0, 128))


@pytest.fixture
def sample_gc_manifest():
    """Fixture providing a GC manifest with two candidates."""
    from product_images.gc_manifest import GcManifest
    from product_images.storage_object import StorageObject

    manifest = GcManifest(
        created_at=datetime.now().isoformat(),
        bucket='produtos',
        endpoint='https://test-endpoint.example.com:9000',
        prefix='produtos/',
        dry_run=True,
        total_storage=5,
        total_referenced=2,
        candidates=[
            StorageObject(key='produtos/c-small.webp', size=2048),
            StorageObject(key='produtos/old.jpg', size=4096),
        ],
    )
    return manifest


@pytest.fixture
def stale_gc_manifest(sample_gc_manifest):
    """Fixture providing a stale manifest (>24 hours old)."""
    sample_gc_manifest.created_at = (datetime.now() - timedelta(hours=48)).isoformat()
    return sample_gc_manifest


@pytest.fixture
def temp_gc_manifest_file(sample_gc_manifest, tmp_path):
    """Fixture providing a saved manifest file."""
    filepath = tmp_path / "gc_manifest.json"
    sample_gc_manifest.save(str(filepath))
    return str(filepath)


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')


def fotos_json(*values):
    return json.dumps(list(values))
