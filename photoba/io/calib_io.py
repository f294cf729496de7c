"""
Calibration I/O utilities for saving and loading camera intrinsics and scenes.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from photoba.ba.photometric_bundle_adjustment import PhotometricBundleAdjustment
from photoba.scene.data_structures import Calibration, ImageSize


def save_calibration(
    output_path: str,
    calib: Calibration,
    image_size: ImageSize,
) -> None:
    """
    Save camera intrinsics and image geometry to a .npz file.

    Args:
        output_path: Path where the calibration data will be saved (.npz file).
        calib: Pinhole calibration.
        image_size: Image geometry the calibration refers to.
    """
    np.savez(
        output_path,
        K=calib.K,
        baseline=np.float64(calib.baseline),
        image_size=np.array([image_size.rows, image_size.cols], dtype=np.int64),
    )


def load_calibration(
    input_path: str,
) -> Tuple[Calibration, ImageSize]:
    """
    Load camera intrinsics and image geometry from a .npz file.

    Args:
        input_path: Path to the .npz file containing calibration data.

    Returns:
        Tuple of (calib, image_size).
    """
    with np.load(input_path) as data:
        missing = [key for key in ("K", "image_size") if key not in data.files]
        if missing:
            raise ValueError(f"{input_path} is missing {', '.join(missing)}")
        baseline = float(data["baseline"]) if "baseline" in data.files else 0.0
        calib = Calibration.from_K(data["K"], baseline=baseline)
        rows, cols = (int(v) for v in data["image_size"])
    return calib, ImageSize(rows=rows, cols=cols)


def save_scene_npz(
    output_path: str,
    pba: PhotometricBundleAdjustment,
) -> None:
    """
    Serialize the scene points and window poses of `pba` to a .npz file.

    Visibility lists have different lengths, so they are stored flattened in
    `visibility` with per-point start offsets in `visibility_offsets`
    (point i owns visibility[offsets[i]:offsets[i + 1]]).

    Args:
        output_path: Path where the scene data will be saved (.npz file).
        pba: Bundle adjustment whose state is saved.
    """
    point_ids = sorted(pba.scene_points.keys())
    points = [pba.scene_points[i] for i in point_ids]
    n_points = len(points)

    points_xyz = np.zeros((n_points, 3))
    points_original = np.zeros((n_points, 3))
    saliency = np.zeros(n_points)
    was_refined = np.zeros(n_points, dtype=bool)
    first_projection = -np.ones((n_points, 2), dtype=np.int64)
    patch_norms = np.zeros(n_points)
    patch_dim = points[0].patch.dimension if points else 0
    patches = np.zeros((n_points, patch_dim), dtype=np.float32)
    visibility_offsets = np.zeros(n_points + 1, dtype=np.int64)
    visibility = []

    for i, pt in enumerate(points):
        points_xyz[i] = pt.X
        points_original[i] = pt.original_point
        saliency[i] = pt.saliency
        was_refined[i] = pt.was_refined
        if pt.first_projection is not None:
            first_projection[i] = pt.first_projection
        patches[i] = pt.patch.data
        patch_norms[i] = pt.patch.norm
        visibility.extend(pt.visibility_list)
        visibility_offsets[i + 1] = len(visibility)

    frame_ids = pba.frame_ids
    poses = np.stack([pba.pose(f) for f in frame_ids]) if frame_ids else np.zeros((0, 4, 4))

    np.savez(
        output_path,
        K=pba.calib.K,
        image_size=np.array([pba.image_size.rows, pba.image_size.cols], dtype=np.int64),
        point_ids=np.array(point_ids, dtype=np.int64),
        points_xyz=points_xyz,
        points_original=points_original,
        saliency=saliency,
        was_refined=was_refined,
        first_projection=first_projection,
        patches=patches,
        patch_norms=patch_norms,
        visibility=np.array(visibility, dtype=np.int64),
        visibility_offsets=visibility_offsets,
        frame_ids=np.array(frame_ids, dtype=np.int64),
        poses=poses,
    )


__all__ = ["save_calibration", "load_calibration", "save_scene_npz"]
