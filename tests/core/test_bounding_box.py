"""
Unit Tests for BoundingBox Model

Tests for the normalized image region parsed from untrusted model output.
"""

import itertools

import pytest

from question_toolkit.common.bbox_utils import normalized_to_pixels
from question_toolkit.core.models.bounds import BoundingBox


class TestBoundingBox:
    """Tests for BoundingBox dataclass."""

    # ─────────────────────────────────────────────────────────────────────────
    # Constructor Tests
    # ─────────────────────────────────────────────────────────────────────────

    def test_init_when_valid_box_then_creates_box(self):
        box = BoundingBox(page=2, x=0.1, y=0.2, width=0.5, height=0.3)
        assert box.page == 2
        assert box.as_tuple() == (0.1, 0.2, 0.5, 0.3)

    def test_init_when_page_zero_then_raises_error(self):
        with pytest.raises(ValueError, match="page must be >= 1"):
            BoundingBox(page=0, x=0.1, y=0.1, width=0.1, height=0.1)

    def test_init_when_box_overflows_right_edge_then_raises_error(self):
        with pytest.raises(ValueError, match="x \\+ width"):
            BoundingBox(page=1, x=0.8, y=0.1, width=0.4, height=0.1)

    # ─────────────────────────────────────────────────────────────────────────
    # Clamping Tests
    # ─────────────────────────────────────────────────────────────────────────

    def test_clamped_when_box_overflows_then_trimmed_to_page(self):
        box = BoundingBox.clamped(page=2, x=0.8, y=0.5, width=0.4, height=0.2)
        assert box.x == 0.8
        assert box.x + box.width <= 1.0
        assert box.width == pytest.approx(0.2)

    def test_clamped_when_negative_origin_then_clamped_to_zero(self):
        box = BoundingBox.clamped(page=1, x=-0.3, y=-1.0, width=0.5, height=0.5)
        assert box.x == 0.0
        assert box.y == 0.0

    def test_clamped_when_arbitrary_inputs_then_always_inside_unit_square(self):
        """Clamping holds for every combination of out-of-range inputs."""
        values = [-2.0, -0.1, 0.0, 0.3, 0.999, 1.0, 1.7, 150.0, float("nan")]
        for x, y, w, h in itertools.product(values, repeat=4):
            box = BoundingBox.clamped(page=1, x=x, y=y, width=w, height=h)
            assert 0.0 <= box.x <= 1.0
            assert 0.0 <= box.y <= 1.0
            assert 0.0 <= box.width <= 1.0
            assert 0.0 <= box.height <= 1.0
            assert box.x + box.width <= 1.0
            assert box.y + box.height <= 1.0

    # ─────────────────────────────────────────────────────────────────────────
    # Untrusted Parsing Tests
    # ─────────────────────────────────────────────────────────────────────────

    def test_from_untrusted_when_percent_scale_then_rescaled(self):
        box = BoundingBox.from_untrusted({"x": 10, "y": 20, "width": 50, "height": 30}, default_page=1)
        assert box.as_tuple() == pytest.approx((0.1, 0.2, 0.5, 0.3))

    def test_from_untrusted_when_box_2d_then_reads_per_mille(self):
        box = BoundingBox.from_untrusted({"box_2d": [200, 100, 500, 600]}, default_page=3)
        assert box.page == 3
        assert box.as_tuple() == pytest.approx((0.1, 0.2, 0.5, 0.3))

    def test_from_untrusted_when_corner_form_then_converts(self):
        box = BoundingBox.from_untrusted({"x1": 0.6, "y1": 0.5, "x2": 0.1, "y2": 0.2, "page": 4}, default_page=1)
        assert box.page == 4
        assert box.as_tuple() == pytest.approx((0.1, 0.2, 0.5, 0.3))

    def test_from_untrusted_when_page_missing_then_uses_default(self):
        box = BoundingBox.from_untrusted({"x": 0.1, "y": 0.1, "width": 0.2, "height": 0.2}, default_page=7)
        assert box.page == 7

    def test_from_untrusted_when_coordinates_missing_then_raises_error(self):
        with pytest.raises(ValueError, match="missing or invalid"):
            BoundingBox.from_untrusted({"x": 0.1, "y": 0.1}, default_page=1)

    def test_from_untrusted_when_zero_area_after_clamp_then_raises_error(self):
        with pytest.raises(ValueError, match="zero area"):
            BoundingBox.from_untrusted({"x": 1.0, "y": 0.1, "width": 0.5, "height": 0.2}, default_page=1)


class TestNormalizedToPixels:
    """Tests for converting normalized boxes to pixel crops."""

    def test_normalized_to_pixels_when_no_padding_then_scales_exactly(self):
        assert normalized_to_pixels((0.1, 0.2, 0.5, 0.25), (1000, 2000)) == (100, 400, 600, 900)

    def test_normalized_to_pixels_when_tiny_box_then_grows_to_minimum(self):
        left, top, right, bottom = normalized_to_pixels((0.5, 0.5, 0.0001, 0.0001), (1000, 1000), min_size_px=10)
        assert right - left >= 10
        assert bottom - top >= 10

    def test_normalized_to_pixels_when_box_at_edge_then_stays_inside_image(self):
        left, top, right, bottom = normalized_to_pixels(
            (0.999, 0.999, 0.001, 0.001), (500, 500), padding_ratio=0.05, min_size_px=20
        )
        assert 0 <= left < right <= 500
        assert 0 <= top < bottom <= 500
        assert right - left >= 20
