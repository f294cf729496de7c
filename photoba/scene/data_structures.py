"""
Shared data structures for the photometric bundle adjustment.

These dataclasses are simple containers used across:
- frame ingestion and tracking
- photometric refinement
- IO and visualization
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np


@dataclass
class Calibration:
    """Pinhole intrinsics of a calibrated (undistorted) camera."""

    fx: float
    fy: float
    cx: float
    cy: float
    # Stereo baseline in metres, 0.0 for monocular setups.
    baseline: float = 0.0

    @classmethod
    def from_K(cls, K: np.ndarray, baseline: float = 0.0) -> "Calibration":
        K = np.asarray(K, dtype=np.float64)
        if K.shape != (3, 3):
            raise ValueError(f"K must be 3x3, got shape {K.shape}")
        return cls(
            fx=float(K[0, 0]),
            fy=float(K[1, 1]),
            cx=float(K[0, 2]),
            cy=float(K[1, 2]),
            baseline=float(baseline),
        )

    @property
    def K(self) -> np.ndarray:
        return np.array(
            [
                [self.fx, 0.0, self.cx],
                [0.0, self.fy, self.cy],
                [0.0, 0.0, 1.0],
            ]
        )


@dataclass(frozen=True)
class ImageSize:
    rows: int
    cols: int

    @property
    def shape(self) -> tuple:
        return (self.rows, self.cols)


@dataclass
class Frame:
    """A frame inside the sliding window."""

    id: int
    # Intensity image (rows, cols), dtype=float32.
    image: np.ndarray
    # Pose (4x4) mapping world points into this camera: x_c = R @ x_w + t.
    T_c_w: np.ndarray


@dataclass
class Result:
    """
    Output of one `PhotometricBundleAdjustment.add_frame` call.

    `refined_poses`, `point_ids`, `initial_points` and `refined_points` are only
    populated when the call ran a refinement.
    """

    frame_id: int = -1
    num_tracked: int = 0
    num_new_points: int = 0
    num_evicted: int = 0
    num_points: int = 0
    refined: bool = False
    initial_cost: float = 0.0
    final_cost: float = 0.0
    # frame id -> refined 4x4 T_c_w
    refined_poses: Dict[int, np.ndarray] = field(default_factory=dict)
    point_ids: List[int] = field(default_factory=list)
    # (N, 3) positions before and after refinement, aligned with point_ids.
    initial_points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    refined_points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    optimizer_status: Optional[int] = None

    def reset(self, frame_id: int) -> None:
        """Clear every field so the slot can be reused for `frame_id`."""
        fresh = Result(frame_id=frame_id)
        self.__dict__.update(fresh.__dict__)


__all__ = ["Calibration", "ImageSize", "Frame", "Result"]
