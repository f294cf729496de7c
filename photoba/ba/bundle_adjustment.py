"""
Photometric refinement of scene points (and optionally poses) in the window.

The solver is scipy's least_squares; this module only wires the residuals,
the parameter packing and the Jacobian sparsity pattern.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np
from scipy.optimize import least_squares
from scipy.sparse import lil_matrix

from photoba.ba.options import Options
from photoba.geometry.projection import pose_to_rvec_t, project_points, rvec_t_to_pose
from photoba.image.patch import patch_offsets
from photoba.image.sampling import interp2
from photoba.scene.data_structures import Calibration, Frame
from photoba.scene.scene_point import ScenePoint

LOGGER = logging.getLogger(__name__)


@dataclass
class BundleAdjustmentSummary:
    num_points: int = 0
    num_observations: int = 0
    initial_cost: float = 0.0
    final_cost: float = 0.0
    status: int = 0
    nfev: int = 0
    # Indices (into the input sequence) of the points that were refined.
    point_indices: List[int] = field(default_factory=list)
    # frame id -> 4x4 T_c_w after refinement (all window frames).
    poses: Dict[int, np.ndarray] = field(default_factory=dict)


def pack_parameters(
    points_xyz: np.ndarray,
    poses: Mapping[int, np.ndarray],
    refine_poses: bool = False,
) -> Tuple[np.ndarray, Dict]:
    """
    Pack window poses and 3D point positions into a 1D parameter vector.

    Args:
        points_xyz: Point positions (N, 3).
        poses: Window poses, frame id -> 4x4 T_c_w, oldest first. The oldest
               pose is always held fixed to remove the gauge freedom.
        refine_poses: If False, every pose is held fixed.

    Returns:
        Tuple of (params, meta) where:
        - params: 1D array of all free parameters.
        - meta: Dictionary with slice information for unpacking:
            - meta["camera_slice"][frame_id] -> slice object, or None if fixed
            - meta["point_slice"][point_index] -> slice object
            - meta["fixed_poses"][frame_id] -> 4x4 pose held constant
            - meta["point_params_start"]: Starting index for point parameters
    """
    param_list: List[float] = []
    meta: Dict = {
        "camera_slice": {},
        "point_slice": {},
        "fixed_poses": {},
        "frame_ids": list(poses.keys()),
    }

    # Pack camera parameters (6 per free camera: rvec (3) + t (3))
    for k, (frame_id, T) in enumerate(poses.items()):
        if not refine_poses or k == 0:
            meta["camera_slice"][frame_id] = None
            meta["fixed_poses"][frame_id] = np.array(T, dtype=np.float64)
            continue

        rvec, t = pose_to_rvec_t(T)
        start_idx = len(param_list)
        param_list.extend([rvec[0], rvec[1], rvec[2], t[0], t[1], t[2]])
        meta["camera_slice"][frame_id] = slice(start_idx, len(param_list))

    # Pack point parameters (3 per point: X, Y, Z)
    point_params_start = len(param_list)
    for j, xyz in enumerate(np.asarray(points_xyz, dtype=np.float64).reshape(-1, 3)):
        start_idx = len(param_list)
        param_list.extend([xyz[0], xyz[1], xyz[2]])
        meta["point_slice"][j] = slice(start_idx, len(param_list))

    meta["point_params_start"] = point_params_start
    meta["num_points"] = len(meta["point_slice"])

    params = np.array(param_list, dtype=np.float64)
    return params, meta


def unpack_parameters(
    params: np.ndarray,
    meta: Dict,
) -> Tuple[np.ndarray, Dict[int, np.ndarray]]:
    """
    Unpack a parameter vector produced by `pack_parameters`.

    Returns:
        Tuple of (points_xyz (N, 3), poses frame id -> 4x4 T_c_w).
    """
    poses: Dict[int, np.ndarray] = {}
    for frame_id in meta["frame_ids"]:
        cam_slice = meta["camera_slice"][frame_id]
        if cam_slice is None:
            poses[frame_id] = meta["fixed_poses"][frame_id]
            continue
        cam_params = params[cam_slice]
        poses[frame_id] = rvec_t_to_pose(cam_params[:3], cam_params[3:6])

    start = meta["point_params_start"]
    points_xyz = params[start : start + 3 * meta["num_points"]].reshape(-1, 3)
    return points_xyz, poses


def photometric_residuals(
    params: np.ndarray,
    meta: Dict,
    observations: np.ndarray,
    frames: Mapping[int, Frame],
    calib: Calibration,
    ref_patches: np.ndarray,
    radius: int,
) -> np.ndarray:
    """
    Compute photometric residuals for all observations.

    For each (point, frame) observation the patch at the point's projection is
    sampled, made zero-mean and compared to the point's zero-mean reference
    patch. Points behind the camera or outside the image contribute a zero
    patch.

    Args:
        params: 1D parameter vector (free poses + 3D points).
        meta: Dictionary with slice information for unpacking.
        observations: (M, 2) int array of [point_index, frame_id].
        frames: Window frames keyed by frame id.
        calib: Pinhole calibration.
        ref_patches: (N, D) zero-mean reference patches, one per point.
        radius: Patch radius.

    Returns:
        1D array of residuals (D per observation).
    """
    points_xyz, poses = unpack_parameters(params, meta)
    dx, dy = patch_offsets(radius)
    dim = dx.size

    residuals = np.zeros((observations.shape[0], dim), dtype=np.float64)

    for frame_id in np.unique(observations[:, 1]):
        idx = np.nonzero(observations[:, 1] == frame_id)[0]
        point_idx = observations[idx, 0]

        uv, _ = project_points(calib, poses[int(frame_id)], points_xyz[point_idx])

        xs = uv[:, 0:1] + dx[None, :]
        ys = uv[:, 1:2] + dy[None, :]
        values = interp2(frames[int(frame_id)].image, xs, ys, 0.0)
        values -= values.mean(axis=1, keepdims=True)

        residuals[idx] = values - ref_patches[point_idx]

    return residuals.ravel()


def build_jac_sparsity(meta: Dict, observations: np.ndarray, dim: int) -> lil_matrix:
    """
    Jacobian sparsity: each residual block depends on its point and,
    when free, on its frame's pose.
    """
    n_params = meta["point_params_start"] + 3 * meta["num_points"]
    A = lil_matrix((observations.shape[0] * dim, n_params), dtype=int)

    for m, (point_index, frame_id) in enumerate(observations):
        rows = slice(m * dim, (m + 1) * dim)
        A[rows, meta["point_slice"][int(point_index)]] = 1

        cam_slice = meta["camera_slice"][int(frame_id)]
        if cam_slice is not None:
            A[rows, cam_slice] = 1

    return A


def collect_observations(
    points: Sequence[ScenePoint],
    frame_ids: Sequence[int],
) -> Tuple[List[int], np.ndarray]:
    """
    Gather the (point, frame) pairs that can be refined inside the window.

    The reference frame of each point is skipped (its patch is the template)
    and repeated frame ids count once.

    Returns:
        Tuple of (kept, observations) where:
        - kept: Indices into `points` of points with at least one observation.
        - observations: (M, 2) int array of [index into kept, frame_id].
    """
    window = set(int(f) for f in frame_ids)
    kept: List[int] = []
    obs: List[Tuple[int, int]] = []

    for i, pt in enumerate(points):
        ref = pt.ref_frame_id
        frames = [f for f in dict.fromkeys(pt.visibility_list) if f != ref and f in window]
        if not frames:
            continue
        j = len(kept)
        kept.append(i)
        obs.extend((j, f) for f in frames)

    observations = np.array(obs, dtype=np.int64).reshape(-1, 2)
    return kept, observations


def run_photometric_bundle_adjustment(
    points: Sequence[ScenePoint],
    frames: Mapping[int, Frame],
    calib: Calibration,
    options: Options,
) -> BundleAdjustmentSummary:
    """
    Refine point positions (and optionally poses) against the window images.

    Refined positions are written back to the points, which are flagged
    `was_refined`; refined poses are written back to the frames.

    Args:
        points: Candidate scene points.
        frames: Window frames keyed by frame id, oldest first.
        calib: Pinhole calibration.
        options: Solver options (loss, iterations, pose refinement).

    Returns:
        BundleAdjustmentSummary of the run (num_points == 0 if nothing to do).
    """
    summary = BundleAdjustmentSummary(
        poses={fid: frame.T_c_w for fid, frame in frames.items()}
    )

    kept, observations = collect_observations(points, list(frames.keys()))
    if len(kept) == 0:
        LOGGER.debug("[ba] No point observed twice in the window; skipping refinement")
        return summary

    active = [points[i] for i in kept]
    radius = active[0].patch.radius
    ref_patches = np.stack([pt.patch.data.astype(np.float64) for pt in active])
    poses = {fid: frame.T_c_w for fid, frame in frames.items()}

    params, meta = pack_parameters(
        np.stack([pt.X for pt in active]), poses, options.refine_poses
    )
    dim = ref_patches.shape[1]
    args = (meta, observations, frames, calib, ref_patches, radius)

    r0 = photometric_residuals(params, *args)
    summary.num_points = len(active)
    summary.point_indices = list(kept)
    summary.num_observations = observations.shape[0]
    summary.initial_cost = 0.5 * float(r0 @ r0)

    LOGGER.info(
        "[ba] Starting photometric refinement with %d frames, %d points, "
        "%d observations, %d parameters, max_nfev=%d",
        len(frames),
        summary.num_points,
        summary.num_observations,
        params.size,
        options.max_iterations,
    )

    result = least_squares(
        photometric_residuals,
        params,
        jac_sparsity=build_jac_sparsity(meta, observations, dim),
        args=args,
        method="trf",
        loss=options.robust_loss,
        f_scale=options.loss_scale,
        x_scale="jac",
        max_nfev=options.max_iterations,
        verbose=2 if options.verbose else 0,
    )

    summary.final_cost = 0.5 * float(result.fun @ result.fun)
    summary.status = int(result.status)
    summary.nfev = int(result.nfev)

    LOGGER.info(
        "[ba] Done. status=%d, nfev=%d, cost %.3e -> %.3e",
        summary.status,
        summary.nfev,
        summary.initial_cost,
        summary.final_cost,
    )

    points_xyz, refined_poses = unpack_parameters(result.x, meta)
    for pt, xyz in zip(active, points_xyz):
        pt.X = xyz
        pt.was_refined = True

    if options.refine_poses:
        for fid, T in refined_poses.items():
            frames[fid].T_c_w = T
    summary.poses = refined_poses

    return summary


__all__ = [
    "BundleAdjustmentSummary",
    "pack_parameters",
    "unpack_parameters",
    "photometric_residuals",
    "build_jac_sparsity",
    "collect_observations",
    "run_photometric_bundle_adjustment",
]
