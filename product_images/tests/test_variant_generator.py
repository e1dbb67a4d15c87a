"""Tests for VariantGenerator class."""

import io

import pytest
from PIL import Image

from conftest import make_image
from product_images.errors import GenerationError
from product_images.size_policy import ALL_SIZES, DEFAULT_POLICY, SizeClass
from product_images.variant_generator import VariantGenerator


def decoded_size(data):
    return Image.open(io.BytesIO(data)).size


class TestTargetDimensions:
    """Tests for the no-upscale sizing rule."""

    @pytest.mark.parametrize('policy_width, expected', [
        (112, (112, 149)),
        (400, (400, 533)),
        (800, (800, 1067)),
        (1200, (1200, 1600)),
    ])
    def test_portrait(self, policy_width, expected):
        assert VariantGenerator.target_dimensions(3000, 4000, policy_width) == expected

    def test_never_upscales(self):
        assert VariantGenerator.target_dimensions(300, 300, 1200) == (300, 300)

    def test_half_rounds_up(self):
        # 3 * 1 / 2 = 1.5
        assert VariantGenerator.target_dimensions(2, 3, 1) == (1, 2)

    def test_minimum_height_one(self):
        assert VariantGenerator.target_dimensions(5000, 10, 112) == (112, 1)


class TestVariantGenerator:
    """Tests for VariantGenerator."""

    @pytest.fixture
    def generator(self, logger):
        return VariantGenerator(logger=logger)

    def test_generates_all_sizes_for_large_portrait(self, generator):
        """Test 3000x4000 produces the documented dimensions."""
        data = make_image(3000, 4000)

        variants = generator.generate(data, 'produtos/big')

        dims = {v.size: (v.width, v.height) for v in variants}
        assert dims == {
            SizeClass.THUMB: (112, 149),
            SizeClass.SMALL: (400, 533),
            SizeClass.MEDIUM: (800, 1067),
            SizeClass.LARGE: (1200, 1600),
            SizeClass.ORIGINAL: (3000, 4000),
        }
        for variant in variants:
            assert decoded_size(variant.data) == (variant.width, variant.height)

    def test_small_square_is_never_upscaled(self, generator):
        """Test 300x300 keeps 300x300 in every class."""
        variants = generator.generate(make_image(300, 300), 'produtos/small')

        assert len(variants) == len(ALL_SIZES)
        assert all((v.width, v.height) == (300, 300) for v in variants)

    def test_object_names_and_content_type(self, generator, sample_image_bytes):
        variants = generator.generate(sample_image_bytes, 'produtos/123-abc.jpg')

        assert [v.object_name for v in variants] == [
            f'produtos/123-abc-{s.value}.webp' for s in ALL_SIZES
        ]
        assert all(v.content_type == 'image/webp' for v in variants)

    def test_output_is_webp(self, generator, sample_image_bytes):
        variants = generator.generate(sample_image_bytes, 'p/a', sizes=[SizeClass.THUMB])

        assert Image.open(io.BytesIO(variants[0].data)).format == 'WEBP'

    def test_subset_of_sizes(self, generator, sample_image_bytes):
        variants = generator.generate(sample_image_bytes, 'p/a', sizes=['thumb', 'original'])

        assert [v.size for v in variants] == [SizeClass.THUMB, SizeClass.ORIGINAL]

    def test_keeps_transparency(self, generator, sample_png_bytes):
        variants = generator.generate(sample_png_bytes, 'p/a', sizes=[SizeClass.SMALL])

        assert Image.open(io.BytesIO(variants[0].data)).mode == 'RGBA'

    def test_palette_image(self, generator):
        data = make_image(50, 40, mode='P', fmt='PNG', color=3)

        variants = generator.generate(data, 'p/a', sizes=[SizeClass.ORIGINAL])

        assert (variants[0].width, variants[0].height) == (50, 40)

    def test_exif_orientation_applied(self, generator):
        """Test dimensions are the displayed ones after EXIF rotation."""
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 degrees on display
        data = make_image(200, 100, exif=exif.tobytes())

        original = generator.read_original(data)
        variants = generator.generate(data, 'p/rotated', sizes=[SizeClass.ORIGINAL])

        assert (original.width, original.height) == (100, 200)
        assert (variants[0].width, variants[0].height) == (100, 200)

    def test_read_original(self, generator, sample_image_bytes):
        original = generator.read_original(sample_image_bytes)

        assert (original.width, original.height) == (100, 100)
        assert original.mime == 'image/jpeg'

    def test_invalid_bytes(self, generator):
        """Test unreadable data raises GenerationError."""
        with pytest.raises(GenerationError):
            generator.generate(b'not an image', 'p/a')

    def test_empty_bytes(self, generator):
        with pytest.raises(GenerationError, match="Empty"):
            generator.generate(b'', 'p/a')

    def test_custom_policy(self, logger):
        policy = DEFAULT_POLICY.with_overrides(widths={SizeClass.THUMB: 50})
        generator = VariantGenerator(policy=policy, logger=logger)

        variants = generator.generate(make_image(100, 200), 'p/a', sizes=[SizeClass.THUMB])

        assert (variants[0].width, variants[0].height) == (50, 100)
