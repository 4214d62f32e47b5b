"""
Tests for Oriented Palm Crops
=============================
"""

import math

import numpy as np
import pytest

from gesture_pipeline.core.types import Frame, PalmRegion
from gesture_pipeline.detection.crop import (
    CropTransform, crop_from_palm, estimate_orientation, prepare_rotated_crop,
)
from gesture_pipeline.utils.config import CropConfig

from fakes import solid_frame


def palm(keypoints, bbox=(0.0, 0.0, 10.0, 10.0), score=0.9):
    return PalmRegion(bbox=bbox, landmarks=tuple(keypoints), score=score)


class TestCropTransform:
    """Test suite for the crop <-> frame mapping."""

    @pytest.fixture
    def transform(self):
        return CropTransform(center=(320.0, 240.0), side=300.0, angle=0.7,
                             output_size=224, orig_w=640, orig_h=480)

    @pytest.mark.parametrize("point", [(320.0, 240.0), (100.0, 100.0), (600.0, 400.0)])
    def test_round_trip(self, transform, point):
        """project(to_crop(p)) returns p for in-frame points."""
        u, v = transform.to_crop(*point)
        assert transform.project(u, v) == pytest.approx(point, abs=1e-6)

    @pytest.mark.parametrize("corner", [(0.0, 0.0), (224.0, 0.0), (224.0, 224.0), (0.0, 224.0), (112.0, 112.0)])
    def test_crop_corners_round_trip(self, transform, corner):
        """Crop corners and centre survive project followed by to_crop."""
        fx, fy = transform.project(*corner)
        assert transform.to_crop(fx, fy) == pytest.approx(corner, abs=1e-6)

    def test_center_maps_to_crop_center(self, transform):
        assert transform.to_crop(320.0, 240.0) == pytest.approx((112.0, 112.0))

    def test_project_clamps(self, transform):
        """Crop points far outside land on the frame border."""
        x, y = transform.project(-5000.0, -5000.0)
        assert 0.0 <= x <= 639.0
        assert 0.0 <= y <= 479.0

    def test_matrix_matches_projection(self, transform):
        m = transform.matrix()
        for u, v in ((0.0, 0.0), (224.0, 0.0), (50.0, 170.0)):
            fx, fy = m @ np.array([u, v, 1.0])
            assert (fx, fy) == pytest.approx(transform._to_frame(u, v))

    def test_corners_side_length(self, transform):
        """Corners are ``side`` apart regardless of rotation."""
        corners = transform.corners()
        assert len(corners) == 4
        (x0, y0), (x1, y1) = corners[0], corners[1]
        assert math.hypot(x1 - x0, y1 - y0) == pytest.approx(300.0)


class TestOrientation:
    """Test suite for estimate_orientation()."""

    def test_horizontal_keypoints(self):
        assert estimate_orientation(palm([(0, 0), (10, 0), (20, 0)])) == pytest.approx(-math.pi / 2)

    def test_vertical_keypoints(self):
        assert estimate_orientation(palm([(0, 0), (0, 10), (0, 20)])) == pytest.approx(0.0)

    def test_diagonal_keypoints(self):
        assert estimate_orientation(palm([(0, 0), (10, 10), (20, 20)])) == pytest.approx(-math.pi / 4)

    def test_isotropic_falls_back_to_x_axis(self):
        square = [(0, 0), (10, 0), (0, 10), (10, 10)]
        assert estimate_orientation(palm(square)) == pytest.approx(-math.pi / 2)

    def test_single_keypoint(self):
        assert estimate_orientation(palm([(5, 5)])) == 0.0


class TestCropFromPalm:
    """Test suite for crop_from_palm()."""

    def test_small_palm_uses_min_side(self):
        center, side, _ = crop_from_palm(palm([(0, 0), (5, 5)]))
        assert center == pytest.approx((2.5, 2.5))
        assert side == pytest.approx(2.4 * 80.0)

    def test_large_palm_uses_bbox(self):
        region = palm([(150, 150), (160, 170)], bbox=(100.0, 120.0, 300.0, 220.0))
        _, side, _ = crop_from_palm(region, CropConfig(scale=2.0))
        assert side == pytest.approx(400.0)

    def test_no_keypoints_uses_bbox_center(self):
        center, _, angle = crop_from_palm(palm([], bbox=(100.0, 50.0, 200.0, 150.0)))
        assert center == pytest.approx((150.0, 100.0))
        assert angle == 0.0


class TestPrepareRotatedCrop:
    """Test suite for prepare_rotated_crop()."""

    def test_output_shape(self):
        tensor, transform = prepare_rotated_crop(
            solid_frame(100, 100, (0, 0, 0)), (50, 50), 40, 0.3, 32)
        assert tensor.shape == (1, 32, 32, 3)
        assert tensor.dtype == np.float32
        assert transform.output_size == 32

    def test_uniform_color(self):
        """A crop fully inside a solid frame is that solid color."""
        tensor, _ = prepare_rotated_crop(
            solid_frame(100, 100, (10, 20, 30)), (50, 50), 40, 0.3, 32)
        expected = np.array([10, 20, 30], dtype=np.float32) / 255.0
        assert np.allclose(tensor[0], expected, atol=1e-6)

    def test_outside_frame_is_black(self):
        tensor, _ = prepare_rotated_crop(
            solid_frame(100, 100, (200, 200, 200)), (-500, -500), 40, 0.0, 16)
        assert not tensor.any()

    def test_bilinear_gradient(self):
        """Unrotated 1:1 crop of a horizontal ramp reproduces the ramp."""
        rgba = np.zeros((100, 200, 4), dtype=np.uint8)
        rgba[:, :, 0] = np.arange(200, dtype=np.uint8)[np.newaxis, :]
        rgba[:, :, 3] = 255
        frame = Frame(pixels=rgba, width=200, height=100, timestamp=0.0)

        tensor, _ = prepare_rotated_crop(frame, (100.0, 50.0), 112.0, 0.0, 112)
        row = tensor[0, 56, :, 0] * 255.0
        expected = np.arange(112, dtype=np.float32) + 44.0
        assert np.allclose(row, expected, atol=1.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
