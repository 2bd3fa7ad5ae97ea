"""Tests for the image comparator."""

import base64

import numpy as np
import pytest
from helpers import BLACK, BLUE, WHITE, make_image, make_png

from design_parity.compare.comparator import compare_images, compare_or_error, display_score
from design_parity.compare.imaging import (
    crop,
    decode_image,
    encode_png_base64,
    generate_diff_thumbnail,
    get_image_dimensions,
    resize_image,
)
from design_parity.errors import DimensionMismatchError
from design_parity.models.comparison import Bounds
from design_parity.models.config import CompareOptions


class TestCompareImages:
    """Tests for compare_images."""

    def test_identical_images(self):
        """Test identical images score 100 with no regions."""
        png = make_png(800, 600)
        result = compare_images(png, png)

        assert result.match_score == 100.0
        assert result.mismatched_pixels == 0
        assert result.total_pixels == 480000
        assert result.regions == []
        assert result.dimensions.width == 800
        assert result.dimensions.height == 600

    def test_missing_block(self):
        """Test a missing block is counted and located in its grid cell."""
        reference = make_png(300, 300, blocks=[(0, 0, 100, 100, BLACK)])
        rendered = make_png(300, 300)

        result = compare_images(reference, rendered)

        assert result.mismatched_pixels == 10000
        assert result.match_score == pytest.approx(100 * 80000 / 90000)
        assert display_score(result.match_score) == 88.9
        assert len(result.regions) == 1
        region = result.regions[0]
        assert region.area == "top-left"
        assert region.mismatch_percent == 100.0
        assert region.severity == "critical"
        assert region.possible_cause == "Major element missing or significantly different"
        assert region.bounds == Bounds(x=0, y=0, width=100, height=100)

    def test_single_pixel_is_not_a_full_match(self):
        """Test one differing pixel keeps the score below 100 on a large image."""
        reference = make_png(800, 600)
        rendered = make_png(800, 600, blocks=[(400, 300, 1, 1, BLACK)])

        result = compare_images(reference, rendered)

        assert result.mismatched_pixels == 1
        assert result.match_score < 100
        assert result.match_score == pytest.approx(100 * 479999 / 480000)
        assert display_score(result.match_score) == 99.9

    def test_regions_sorted_critical_first(self):
        """Test regions come back ordered by severity."""
        # bottom-right cell 20% different, top-left cell 100% different
        reference = make_png(300, 300, blocks=[(200, 200, 100, 20, BLUE), (0, 0, 100, 100, BLACK)])
        rendered = make_png(300, 300)

        result = compare_images(reference, rendered)

        assert [r.area for r in result.regions] == ["top-left", "bottom-right"]
        assert [r.severity for r in result.regions] == ["critical", "moderate"]
        assert result.regions[1].mismatch_percent == 20.0

    def test_small_difference_not_reported_as_region(self):
        """Test cells at or below 5% mismatch are not reported."""
        reference = make_png(300, 300, blocks=[(10, 10, 10, 10, BLACK)])
        rendered = make_png(300, 300)

        result = compare_images(reference, rendered)

        assert result.mismatched_pixels == 100
        assert result.regions == []

    def test_dimension_mismatch(self):
        """Test differently sized images raise instead of being resized."""
        with pytest.raises(DimensionMismatchError) as exc_info:
            compare_images(make_png(100, 100), make_png(100, 101))

        err = exc_info.value
        assert err.reference_size == (100, 100)
        assert err.rendered_size == (100, 101)
        assert err.details == {
            "reference_dimensions": {"width": 100, "height": 100},
            "rendered_dimensions": {"width": 100, "height": 101},
        }

    def test_diff_image_marks_mismatches_red(self):
        """Test the diff image paints counted mismatches red over a faded copy."""
        reference = make_png(30, 30, blocks=[(0, 0, 10, 10, BLACK)])
        result = compare_images(reference, make_png(30, 30))

        diff = decode_image(result.diff_image_base64)
        assert tuple(diff.data[5, 5]) == (255, 0, 0, 255)
        assert tuple(diff.data[20, 20]) == (255, 255, 255, 255)

    def test_diff_image_optional(self):
        """Test the diff image can be skipped."""
        png = make_png(20, 20)
        result = compare_images(png, png, CompareOptions(include_diff_image=False))
        assert result.diff_image_base64 is None

    def test_accepts_base64_and_pil(self):
        """Test base64 strings and PIL images are accepted as inputs."""
        png = make_png(20, 20, BLUE)
        result = compare_images(base64.b64encode(png).decode("ascii"), make_image(20, 20, BLUE))
        assert result.match_score == 100.0

    def test_threshold_controls_sensitivity(self):
        """Test a near-identical colour passes by default and fails at threshold 0."""
        reference = make_png(20, 20, (200, 200, 200, 255))
        rendered = make_png(20, 20, (203, 200, 200, 255))

        assert compare_images(reference, rendered).mismatched_pixels == 0
        assert compare_images(reference, rendered, CompareOptions(threshold=0.0)).mismatched_pixels == 400


class TestCompareOrError:
    """Tests for the tagged comparison outcome."""

    def test_success(self):
        """Test a valid comparison yields a result."""
        png = make_png(10, 10)
        outcome = compare_or_error(png, png)
        assert outcome.success is True
        assert outcome.result.match_score == 100.0

    def test_dimension_mismatch_tag(self):
        """Test a size mismatch is tagged with both sizes and a hint."""
        outcome = compare_or_error(make_png(100, 100), make_png(120, 100))

        assert outcome.success is False
        assert outcome.error == "DIMENSION_MISMATCH"
        assert "100x100 vs 120x100" in outcome.message
        assert "viewport" in outcome.message
        assert outcome.details["rendered_dimensions"] == {"width": 120, "height": 100}

    def test_undecodable_input(self):
        """Test garbage bytes are tagged as a comparison error."""
        outcome = compare_or_error(b"not an image", make_png(10, 10))
        assert outcome.success is False
        assert outcome.error == "COMPARISON_ERROR"


class TestImaging:
    """Tests for raster helpers."""

    def test_crop_is_clipped(self):
        """Test crops are clipped to the image extent."""
        image = decode_image(make_png(50, 40))
        part = crop(image, Bounds(x=30, y=30, width=40, height=40))
        assert part.size == (20, 10)
        assert part.data.shape == (10, 20, 4)

    def test_crop_does_not_alias_source(self):
        """Test a crop owns its pixels."""
        image = decode_image(make_png(10, 10, WHITE))
        part = crop(image, Bounds(x=0, y=0, width=5, height=5))
        assert not np.shares_memory(part.data, image.data)

    def test_dimensions_without_decoding(self):
        """Test dimensions are read from the PNG header."""
        assert get_image_dimensions(make_png(64, 32)) == (64, 32)

    def test_round_trip_encoding(self):
        """Test encoding a raster keeps its pixels."""
        image = decode_image(make_png(8, 8, BLUE))
        again = decode_image(encode_png_base64(image))
        assert np.array_equal(image.data, again.data)

    def test_resize(self):
        """Test resizing stretches to the exact size."""
        image = resize_image(decode_image(make_png(10, 20)), 30, 15)
        assert image.size == (30, 15)

    def test_thumbnail_longest_side(self):
        """Test thumbnails keep the aspect ratio within the size limit."""
        thumb = decode_image(generate_diff_thumbnail(make_png(400, 100), max_side=200))
        assert thumb.size == (200, 50)

        small = decode_image(generate_diff_thumbnail(make_png(40, 10), max_side=200))
        assert small.size == (40, 10)


class TestDisplayScore:
    """Tests for display rounding."""

    def test_rounds_to_one_decimal(self):
        """Test scores are shown with one decimal."""
        assert display_score(88.8888) == 88.9
        assert display_score(100.0) == 100.0
        assert display_score(0.0) == 0.0

    def test_partial_match_never_shows_100(self):
        """Test a score just under 100 is shown as 99.9."""
        assert display_score(99.98) == 99.9
