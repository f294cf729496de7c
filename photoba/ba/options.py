"""
Options for the photometric bundle adjustment.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

ROBUST_LOSSES = ("linear", "huber", "soft_l1", "cauchy", "arctan")


@dataclass
class Options:
    # Upper bound on the number of live scene points.
    max_num_points: int = 4096
    # Number of frames kept in the optimisation window.
    sliding_window_size: int = 5
    # Minimum ZNCC score for a point to count as re-observed.
    min_score: float = 0.75
    # Minimum gradient magnitude for a pixel to seed a new point.
    gradient_threshold: float = 10.0
    nms_radius: int = 1
    min_valid_depth: float = 0.01
    max_valid_depth: float = 100.0
    # Refined points that moved further than this from their original
    # position are dropped. None disables the check.
    max_point_drift: Optional[float] = None
    # Values > 1 enable parallel tracking.
    num_threads: int = 1
    refine_poses: bool = False
    max_iterations: int = 50
    robust_loss: str = "huber"
    loss_scale: float = 10.0
    verbose: bool = False

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Options":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown options: {', '.join(unknown)}")
        options = cls(**values)
        options.validate()
        return options

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> None:
        if self.max_num_points < 0:
            raise ValueError("max_num_points must be >= 0")
        if self.sliding_window_size < 2:
            raise ValueError("sliding_window_size must be >= 2")
        if not -1.0 <= self.min_score <= 1.0:
            raise ValueError("min_score must lie in [-1, 1]")
        if self.nms_radius < 0:
            raise ValueError("nms_radius must be >= 0")
        if not 0.0 <= self.min_valid_depth < self.max_valid_depth:
            raise ValueError("need 0 <= min_valid_depth < max_valid_depth")
        if self.max_point_drift is not None and self.max_point_drift <= 0:
            raise ValueError("max_point_drift must be positive when set")
        if self.num_threads < 1:
            raise ValueError("num_threads must be >= 1")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.robust_loss not in ROBUST_LOSSES:
            raise ValueError(
                f"robust_loss must be one of {ROBUST_LOSSES}, got {self.robust_loss!r}"
            )
        if self.loss_scale <= 0:
            raise ValueError("loss_scale must be positive")


__all__ = ["Options", "ROBUST_LOSSES"]
