"""
Sliding-window photometric bundle adjustment.

`PhotometricBundleAdjustment.add_frame` runs one ingestion pass:

1) track: project every scene point into the new frame and score its
   reference patch against the patch found there (parallel over points)
2) seed: create new scene points from high-gradient pixels with valid depth
3) refine: once the window is full, run the photometric refinement
4) evict: drop points that were not seen inside the window, slide the window

Only step 1 runs concurrently, and each task writes to its own point only.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

import numpy as np

from photoba.ba.bundle_adjustment import run_photometric_bundle_adjustment
from photoba.ba.options import Options
from photoba.ba.point_selection import select_points
from photoba.geometry.projection import backproject, in_image, project_points
from photoba.image.patch import PATCH_RADIUS
from photoba.matching.zncc import MIN_NORM_PRODUCT, ZnccPatch
from photoba.scene.data_structures import Calibration, Frame, ImageSize, Result
from photoba.scene.scene_point import ScenePoint

LOGGER = logging.getLogger(__name__)


class PhotometricBundleAdjustment:
    def __init__(
        self,
        calib: Calibration,
        image_size: ImageSize,
        options: Optional[Options] = None,
    ):
        self._calib = calib
        self._image_size = image_size
        self._options = options if options is not None else Options()
        self._options.validate()

        self._frames: "OrderedDict[int, Frame]" = OrderedDict()
        self._points: Dict[int, ScenePoint] = {}
        self._next_frame_id = 0
        self._next_point_id = 0

    # accessors

    @property
    def calib(self) -> Calibration:
        return self._calib

    @property
    def image_size(self) -> ImageSize:
        return self._image_size

    @property
    def options(self) -> Options:
        return self._options

    @property
    def scene_points(self) -> Mapping[int, ScenePoint]:
        return MappingProxyType(self._points)

    @property
    def num_points(self) -> int:
        return len(self._points)

    @property
    def frame_ids(self) -> List[int]:
        """Ids of the frames in the window, oldest first."""
        return list(self._frames.keys())

    def pose(self, frame_id: int) -> np.ndarray:
        if frame_id not in self._frames:
            raise KeyError(f"Frame {frame_id} is not in the sliding window")
        return self._frames[frame_id].T_c_w

    # ingestion

    def add_frame(
        self,
        image: np.ndarray,
        depth: Optional[np.ndarray],
        T: np.ndarray,
        result: Optional[Result] = None,
    ) -> Result:
        """
        Ingest a new frame.

        Args:
            image: Intensity image (rows, cols), any numeric dtype.
            depth: Optional depth map (rows, cols) in scene units; new points
                   are only created when it is given.
            T: Pose (4x4) of the new frame, mapping world points into it.
            result: Optional slot filled in place.

        Returns:
            The filled Result.
        """
        image = np.asarray(image)
        if image.shape != self._image_size.shape:
            raise ValueError(
                f"Expected image of shape {self._image_size.shape}, got {image.shape}"
            )
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"Pose must be 4x4, got shape {T.shape}")
        if depth is not None:
            depth = np.asarray(depth, dtype=np.float32)
            if depth.shape != image.shape:
                raise ValueError(
                    f"Depth map shape {depth.shape} does not match image shape {image.shape}"
                )

        if result is None:
            result = Result()
        frame_id = self._next_frame_id
        self._next_frame_id += 1
        result.reset(frame_id)

        frame = Frame(id=frame_id, image=image.astype(np.float32), T_c_w=T.copy())
        self._frames[frame_id] = frame

        result.num_tracked = self._track(frame)

        if depth is not None:
            result.num_new_points = self._seed(frame, depth)

        if len(self._frames) >= self._options.sliding_window_size:
            self._refine(result)

        result.num_evicted += self._evict(frame_id)
        result.num_points = len(self._points)

        LOGGER.info(
            "[pba] Frame %d: tracked %d, new %d, evicted %d, %d points live",
            frame_id,
            result.num_tracked,
            result.num_new_points,
            result.num_evicted,
            result.num_points,
        )
        return result

    # steps

    def _match_point(self, point: ScenePoint, frame: Frame) -> bool:
        """Score one point against the new frame; on success record the observation."""
        radius = point.patch.radius
        uv, z = project_points(self._calib, frame.T_c_w, point.X)
        if z[0] <= 0 or not in_image(uv, self._image_size, margin=radius + 1)[0]:
            return False

        patch = ZnccPatch.from_image(frame.image, uv[0], radius)
        if point.patch.score(patch) < self._options.min_score:
            return False

        point.add_frame(frame.id)
        return True

    def _track(self, frame: Frame) -> int:
        points = list(self._points.values())
        if not points:
            return 0

        if self._options.num_threads > 1:
            with ThreadPoolExecutor(max_workers=self._options.num_threads) as executor:
                matched = list(executor.map(lambda pt: self._match_point(pt, frame), points))
        else:
            matched = [self._match_point(pt, frame) for pt in points]

        return int(sum(matched))

    def _seed(self, frame: Frame, depth: np.ndarray) -> int:
        budget = self._options.max_num_points - len(self._points)
        if budget <= 0:
            return 0

        # Keep new points away from pixels already covered by tracked ones.
        exclude = np.zeros(self._image_size.shape, dtype=bool)
        r = max(self._options.nms_radius, 1)
        for pt in self._points.values():
            if pt.last_frame_id != frame.id:
                continue
            uv, _ = project_points(self._calib, frame.T_c_w, pt.X)
            if not np.all(np.isfinite(uv)):
                continue
            x, y = np.rint(uv[0]).astype(int)
            exclude[max(y - r, 0) : y + r + 1, max(x - r, 0) : x + r + 1] = True

        radius = PATCH_RADIUS
        uv, saliency = select_points(
            frame.image, depth, self._options, budget, margin=radius + 1, exclude_mask=exclude
        )
        if uv.shape[0] == 0:
            return 0

        X = backproject(self._calib, frame.T_c_w, uv, depth[uv[:, 1], uv[:, 0]])

        num_new = 0
        for xyz, x, s in zip(X, uv, saliency):
            point = ScenePoint(xyz, frame.id)
            point.set_zncc_patch(frame.image, x.astype(np.float64))
            if point.patch.norm ** 2 <= MIN_NORM_PRODUCT:
                continue
            point.set_first_projection(x)
            point.saliency = float(s)
            self._points[self._next_point_id] = point
            self._next_point_id += 1
            num_new += 1

        return num_new

    def _refine(self, result: Result) -> None:
        ids = list(self._points.keys())
        before = {i: self._points[i].X.copy() for i in ids}
        summary = run_photometric_bundle_adjustment(
            [self._points[i] for i in ids], self._frames, self._calib, self._options
        )
        if summary.num_points == 0:
            return

        refined_ids = [ids[k] for k in summary.point_indices]
        result.refined = True
        result.initial_cost = summary.initial_cost
        result.final_cost = summary.final_cost
        result.optimizer_status = summary.status
        result.refined_poses = {fid: T.copy() for fid, T in summary.poses.items()}
        result.point_ids = refined_ids
        result.initial_points = np.array([before[i] for i in refined_ids]).reshape(-1, 3)
        result.refined_points = np.array([self._points[i].X for i in refined_ids]).reshape(-1, 3)

        max_drift = self._options.max_point_drift
        if max_drift is not None:
            outliers = [i for i in refined_ids if self._points[i].drift() > max_drift]
            for i in outliers:
                del self._points[i]
            if outliers:
                LOGGER.debug("[pba] Dropped %d points drifting more than %.3f", len(outliers), max_drift)
            result.num_evicted += len(outliers)

    def _evict(self, frame_id: int) -> int:
        window = self._options.sliding_window_size
        stale = [i for i, pt in self._points.items() if frame_id - pt.last_frame_id >= window]
        for i in stale:
            del self._points[i]

        while len(self._frames) >= window:
            self._frames.popitem(last=False)

        return len(stale)


__all__ = ["PhotometricBundleAdjustment"]
