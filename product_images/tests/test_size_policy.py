"""Tests for SizePolicy and SizeClass."""

import pytest

from product_images.size_policy import ALL_SIZES, DEFAULT_POLICY, SizeClass, SizePolicy


class TestSizeClass:
    """Tests for SizeClass enum."""

    def test_values_are_suffixes(self):
        """Test enum values match object name suffixes."""
        assert [s.value for s in ALL_SIZES] == ['thumb', 'small', 'medium', 'large', 'original']

    def test_str(self):
        assert str(SizeClass.MEDIUM) == 'medium'

    def test_parse_case_insensitive(self):
        assert SizeClass.parse('LARGE') is SizeClass.LARGE

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown size class"):
            SizeClass.parse('huge')


class TestSizePolicy:
    """Tests for SizePolicy."""

    def test_default_widths(self):
        """Test default widths per size class."""
        assert DEFAULT_POLICY.width_for(SizeClass.THUMB) == 112
        assert DEFAULT_POLICY.width_for(SizeClass.SMALL) == 400
        assert DEFAULT_POLICY.width_for(SizeClass.MEDIUM) == 800
        assert DEFAULT_POLICY.width_for(SizeClass.LARGE) == 1200

    def test_original_has_no_width(self):
        assert DEFAULT_POLICY.width_for(SizeClass.ORIGINAL) is None

    def test_default_qualities(self):
        """Test default qualities per size class."""
        qualities = [DEFAULT_POLICY.quality_for(s) for s in ALL_SIZES]
        assert qualities == [70, 75, 80, 85, 90]

    def test_mappings_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_POLICY.widths[SizeClass.THUMB] = 50

    def test_frozen(self):
        with pytest.raises(Exception):
            DEFAULT_POLICY.widths = {}

    def test_with_overrides_returns_new_policy(self):
        """Test overrides leave the default untouched."""
        policy = DEFAULT_POLICY.with_overrides(widths={SizeClass.THUMB: 150})

        assert policy.width_for(SizeClass.THUMB) == 150
        assert policy.width_for(SizeClass.SMALL) == 400
        assert DEFAULT_POLICY.width_for(SizeClass.THUMB) == 112

    def test_rejects_width_for_original(self):
        with pytest.raises(ValueError, match="original"):
            DEFAULT_POLICY.with_overrides(widths={SizeClass.ORIGINAL: 2000})

    def test_rejects_bad_quality(self):
        with pytest.raises(ValueError, match="Quality"):
            DEFAULT_POLICY.with_overrides(qualities={SizeClass.SMALL: 0})

    def test_rejects_missing_width(self):
        with pytest.raises(ValueError, match="Missing width"):
            SizePolicy(widths={SizeClass.THUMB: 112})
