"""
Fixed-size patch extraction around a projected point.

Patches are flattened column-major: the outer loop runs over the horizontal
offset, the inner loop over the vertical offset. Two patches can only be
compared element-for-element if they share this layout.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

import numpy as np

from photoba.image.sampling import interp2

PATCH_RADIUS = 2


def patch_dimension(radius: int = PATCH_RADIUS) -> int:
    """Number of samples in a square patch of the given radius."""
    return (2 * radius + 1) ** 2


@lru_cache(maxsize=None)
def _offsets(radius: int) -> Tuple[np.ndarray, np.ndarray]:
    steps = np.arange(-radius, radius + 1, dtype=np.int64)
    # NOTE: column-major, dx is the slow index
    dx = np.repeat(steps, steps.size)
    dy = np.tile(steps, steps.size)
    dx.setflags(write=False)
    dy.setflags(write=False)
    return dx, dy


def patch_offsets(radius: int = PATCH_RADIUS) -> Tuple[np.ndarray, np.ndarray]:
    """
    Return the (dx, dy) integer offsets of a patch in storage order.

    Args:
        radius: Patch radius R; the patch spans [-R, R] x [-R, R].

    Returns:
        Tuple of read-only int64 arrays, each of length (2R+1)**2.
    """
    if radius < 0:
        raise ValueError(f"Patch radius must be non-negative, got {radius}")
    return _offsets(int(radius))


def interpolate_fixed_patch(
    image: np.ndarray,
    p,
    radius: int = PATCH_RADIUS,
    fillval: float = 0.0,
    offset: float = 0.0,
    dtype=np.float64,
) -> np.ndarray:
    """
    Sample a (2R+1)x(2R+1) patch centred at the sub-pixel location p.

    Args:
        image: 2-D scalar image (rows, cols).
        p: Centre (x, y) in pixel coordinates, may be fractional.
        radius: Patch radius R.
        fillval: Value used for samples that fall outside the image.
        offset: Added to both centre coordinates before sampling.
        dtype: Output dtype.

    Returns:
        1-D array of length (2R+1)**2 in column-major patch order.
    """
    x = float(p[0]) + offset
    y = float(p[1]) + offset
    dx, dy = patch_offsets(radius)
    values = interp2(image, x + dx, y + dy, fillval)
    return np.asarray(values, dtype=dtype)


def copy_fixed_patch(
    image: np.ndarray,
    p,
    radius: int = PATCH_RADIUS,
) -> np.ndarray:
    """
    Copy the raw samples of a patch around the nearest pixel to p.

    Sample coordinates are clamped into [R, cols-1-R] x [R, rows-1-R], so the
    patch never reaches within R pixels of the border and never needs a fill
    value.

    Args:
        image: 2-D scalar image (rows, cols).
        p: Centre (x, y) in pixel coordinates; rounded to the nearest pixel.
        radius: Patch radius R.

    Returns:
        1-D array of length (2R+1)**2 with the image dtype.

    Raises:
        ValueError: If the image is smaller than the patch on either axis.
    """
    rows_total, cols_total = image.shape[:2]
    side = 2 * radius + 1
    if rows_total < side or cols_total < side:
        raise ValueError(
            f"Image of shape {image.shape[:2]} is smaller than a {side}x{side} patch"
        )

    x = int(np.round(p[0]))
    y = int(np.round(p[1]))

    max_cols = cols_total - 1 - radius
    max_rows = rows_total - 1 - radius

    dx, dy = patch_offsets(radius)
    cols = np.clip(x + dx, radius, max_cols)
    rows = np.clip(y + dy, radius, max_rows)
    return image[rows, cols].copy()


__all__ = [
    "PATCH_RADIUS",
    "patch_dimension",
    "patch_offsets",
    "interpolate_fixed_patch",
    "copy_fixed_patch",
]
