"""
Selection of new scene points from image gradients and depth.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from photoba.ba.options import Options


def gradient_magnitude(image: np.ndarray) -> np.ndarray:
    """Sobel (3x3) gradient magnitude of a single-channel image, float32."""
    gray = np.asarray(image, dtype=np.float32)
    grad_x = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    return cv2.magnitude(grad_x, grad_y)


def select_points(
    image: np.ndarray,
    depth: np.ndarray,
    options: Options,
    max_points: int,
    margin: int,
    exclude_mask: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pick well-textured pixels with valid depth to seed new scene points.

    Args:
        image: Intensity image (rows, cols).
        depth: Depth map aligned with `image` (rows, cols); invalid pixels may
               hold 0, negative values or NaN.
        options: Thresholds (gradient, depth range, NMS radius).
        max_points: Maximum number of pixels to return.
        margin: Pixels closer than this to the border are never selected.
        exclude_mask: Optional boolean mask of pixels that must not be selected
                      (e.g. around already tracked points).

    Returns:
        Tuple of (uv, saliency) where:
        - uv: Selected pixel coordinates (N, 2) as (x, y), dtype=int64,
              strongest gradient first.
        - saliency: Gradient magnitude at each selected pixel (N,).
    """
    if max_points <= 0:
        return np.zeros((0, 2), dtype=np.int64), np.zeros((0,))

    mag = gradient_magnitude(image)

    with np.errstate(invalid="ignore"):
        valid = (
            (mag >= options.gradient_threshold)
            & np.isfinite(depth)
            & (depth >= options.min_valid_depth)
            & (depth <= options.max_valid_depth)
        )

    rows, cols = mag.shape
    border = np.zeros_like(valid)
    if rows > 2 * margin and cols > 2 * margin:
        border[margin : rows - margin, margin : cols - margin] = True
    valid &= border

    if exclude_mask is not None:
        valid &= ~exclude_mask

    if options.nms_radius > 0:
        size = 2 * options.nms_radius + 1
        kernel = np.ones((size, size), dtype=np.uint8)
        local_max = cv2.dilate(mag, kernel)
        valid &= mag >= local_max

    ys, xs = np.nonzero(valid)
    if ys.size == 0:
        return np.zeros((0, 2), dtype=np.int64), np.zeros((0,))

    strengths = mag[ys, xs]
    order = np.argsort(-strengths, kind="stable")[:max_points]

    uv = np.stack([xs[order], ys[order]], axis=1).astype(np.int64)
    return uv, strengths[order].astype(np.float64)


__all__ = ["gradient_magnitude", "select_points"]
