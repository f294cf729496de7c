"""
Pinhole projection, back-projection and pose parameterization.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from photoba.scene.data_structures import Calibration, ImageSize


def project_points(
    calib: Calibration,
    T_c_w: np.ndarray,
    X: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project world points into the image of a camera with pose T_c_w.

    Args:
        calib: Pinhole calibration.
        T_c_w: Pose (4x4) mapping world points into the camera frame.
        X: World points (N, 3) or a single point (3,).

    Returns:
        Tuple of (uv, z) where:
        - uv: Pixel coordinates (N, 2); NaN for points with z <= 0.
        - z: Depth of each point in the camera frame (N,).
    """
    X = np.asarray(X, dtype=np.float64).reshape(-1, 3)
    R = T_c_w[:3, :3]
    t = T_c_w[:3, 3]

    X_c = X @ R.T + t
    z = X_c[:, 2]

    uv = np.full((X.shape[0], 2), np.nan)
    front = z > 0
    uv[front, 0] = calib.fx * X_c[front, 0] / z[front] + calib.cx
    uv[front, 1] = calib.fy * X_c[front, 1] / z[front] + calib.cy
    return uv, z


def backproject(
    calib: Calibration,
    T_c_w: np.ndarray,
    uv: np.ndarray,
    depth: np.ndarray,
) -> np.ndarray:
    """
    Lift pixels with known depth to world coordinates.

    Args:
        calib: Pinhole calibration.
        T_c_w: Pose (4x4) of the observing camera.
        uv: Pixel coordinates (N, 2).
        depth: Depth along the optical axis for each pixel (N,).

    Returns:
        World points (N, 3).
    """
    uv = np.asarray(uv, dtype=np.float64).reshape(-1, 2)
    z = np.asarray(depth, dtype=np.float64).reshape(-1)

    X_c = np.empty((uv.shape[0], 3))
    X_c[:, 0] = (uv[:, 0] - calib.cx) / calib.fx * z
    X_c[:, 1] = (uv[:, 1] - calib.cy) / calib.fy * z
    X_c[:, 2] = z

    R = T_c_w[:3, :3]
    t = T_c_w[:3, 3]
    # x_w = R^T (x_c - t)
    return (X_c - t) @ R


def invert_pose(T: np.ndarray) -> np.ndarray:
    R = T[:3, :3]
    t = T[:3, 3]
    Ti = np.eye(4)
    Ti[:3, :3] = R.T
    Ti[:3, 3] = -R.T @ t
    return Ti


def pose_to_rvec_t(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Split a 4x4 pose into a Rodrigues rotation vector (3,) and translation (3,)."""
    rvec, _ = cv2.Rodrigues(np.ascontiguousarray(T[:3, :3], dtype=np.float64))
    return rvec.flatten(), np.array(T[:3, 3], dtype=np.float64)


def rvec_t_to_pose(rvec: np.ndarray, t: np.ndarray) -> np.ndarray:
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def in_image(uv: np.ndarray, image_size: ImageSize, margin: float = 0.0) -> np.ndarray:
    """
    Boolean mask of the pixels lying at least `margin` pixels inside the image.

    NaN coordinates are reported as outside.
    """
    uv = np.asarray(uv, dtype=np.float64).reshape(-1, 2)
    with np.errstate(invalid="ignore"):
        return (
            (uv[:, 0] >= margin)
            & (uv[:, 0] <= image_size.cols - 1 - margin)
            & (uv[:, 1] >= margin)
            & (uv[:, 1] <= image_size.rows - 1 - margin)
        )


__all__ = [
    "project_points",
    "backproject",
    "invert_pose",
    "pose_to_rvec_t",
    "rvec_t_to_pose",
    "in_image",
]
