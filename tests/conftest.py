"""
Synthetic scene shared by the bundle adjustment tests.

A textured plane at depth PLANE_DEPTH in front of a pinhole camera. Cameras
only translate along x; a translation of -PIXEL_SHIFT_WORLD shifts the image
content by exactly two pixels, so tracking and residuals can be checked
against exact values.
"""

import numpy as np
import pytest

from photoba.ba.options import Options
from photoba.scene.data_structures import Calibration, ImageSize

ROWS = 48
COLS = 64
PLANE_DEPTH = 2.0
FOCAL = 80.0
# World distance on the plane covered by one pixel.
PIXEL_WORLD = PLANE_DEPTH / FOCAL
PIXEL_SHIFT_WORLD = 2 * PIXEL_WORLD


def texture(X, Y):
    return (
        128.0
        + 50.0 * np.sin(10.0 * X) * np.cos(8.0 * Y)
        + 30.0 * np.sin(17.0 * X + 5.0 * Y)
    )


def render(calib, tx):
    """Image of the plane seen from a camera with T_c_w = [I | (tx, 0, 0)]."""
    v, u = np.mgrid[0:ROWS, 0:COLS].astype(np.float64)
    X = (u - calib.cx) / calib.fx * PLANE_DEPTH - tx
    Y = (v - calib.cy) / calib.fy * PLANE_DEPTH
    return texture(X, Y).astype(np.float32)


def translation(tx):
    T = np.eye(4)
    T[0, 3] = tx
    return T


@pytest.fixture
def calib():
    return Calibration(fx=FOCAL, fy=FOCAL, cx=COLS / 2.0, cy=ROWS / 2.0)


@pytest.fixture
def image_size():
    return ImageSize(rows=ROWS, cols=COLS)


@pytest.fixture
def depth():
    return np.full((ROWS, COLS), PLANE_DEPTH, dtype=np.float32)


@pytest.fixture
def sequence(calib):
    """Three (image, pose) pairs, each shifted two pixels from the previous."""
    frames = []
    for k in range(3):
        tx = -k * PIXEL_SHIFT_WORLD
        frames.append((render(calib, tx), translation(tx)))
    return frames


@pytest.fixture
def options():
    return Options(
        max_num_points=120,
        sliding_window_size=3,
        min_score=0.75,
        gradient_threshold=10.0,
        max_iterations=10,
        robust_loss="linear",
    )
