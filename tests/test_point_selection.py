"""
Tests for gradient-based selection of new points.
"""

import numpy as np

from photoba.ba.options import Options
from photoba.ba.point_selection import gradient_magnitude, select_points


class TestGradient:
    def test_flat_image_has_no_gradient(self):
        mag = gradient_magnitude(np.full((20, 20), 9.0))
        assert mag.dtype == np.float32
        assert np.all(mag == 0)

    def test_vertical_edge(self):
        image = np.zeros((20, 20), dtype=np.float32)
        image[:, 10:] = 100.0
        mag = gradient_magnitude(image)
        assert mag[10, 9] > 0 and mag[10, 10] > 0
        assert mag[10, 3] == 0


class TestSelectPoints:
    def test_strongest_first_within_margin(self, sequence, depth):
        image, _ = sequence[0]
        uv, saliency = select_points(image, depth, Options(), max_points=50, margin=4)
        assert 0 < uv.shape[0] <= 50
        assert uv.dtype == np.int64
        assert np.all(np.diff(saliency) <= 0)
        rows, cols = image.shape
        assert np.all((uv[:, 0] >= 4) & (uv[:, 0] < cols - 4))
        assert np.all((uv[:, 1] >= 4) & (uv[:, 1] < rows - 4))
        assert np.all(saliency >= Options().gradient_threshold)

    def test_invalid_depth_is_skipped(self, sequence, depth):
        image, _ = sequence[0]
        depth = depth.copy()
        depth[:, :32] = 0.0
        depth[:5, :] = np.nan
        uv, _ = select_points(image, depth, Options(), max_points=1000, margin=2)
        assert uv.shape[0] > 0
        assert np.all(uv[:, 0] >= 32)
        assert np.all(uv[:, 1] >= 5)

    def test_exclude_mask(self, sequence, depth):
        image, _ = sequence[0]
        exclude = np.zeros(image.shape, dtype=bool)
        exclude[:, 20:] = True
        uv, _ = select_points(image, depth, Options(), max_points=1000, margin=2, exclude_mask=exclude)
        assert np.all(uv[:, 0] < 20)

    def test_non_max_suppression(self, sequence, depth):
        image, _ = sequence[0]
        dense, _ = select_points(image, depth, Options(nms_radius=0), max_points=10**6, margin=2)
        sparse, _ = select_points(image, depth, Options(nms_radius=2), max_points=10**6, margin=2)
        assert sparse.shape[0] < dense.shape[0]

    def test_flat_image_selects_nothing(self, depth):
        uv, saliency = select_points(np.full(depth.shape, 50.0), depth, Options(), max_points=10, margin=2)
        assert uv.shape == (0, 2)
        assert saliency.shape == (0,)

    def test_zero_budget(self, sequence, depth):
        uv, _ = select_points(sequence[0][0], depth, Options(), max_points=0, margin=2)
        assert uv.shape == (0, 2)
