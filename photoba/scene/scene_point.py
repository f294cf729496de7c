"""
The scene point: a tracked 3-D landmark and its visibility bookkeeping.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from photoba.matching.zncc import ZnccPatch


def _frame_id(f) -> int:
    if isinstance(f, (bool, np.bool_)) or not isinstance(f, (int, np.integer)):
        raise TypeError(f"Frame ids must be integers, got {f!r}")
    f = int(f)
    if f < 0:
        raise ValueError(f"Frame ids are unsigned, got {f}")
    return f


class ScenePoint:
    """
    A 3-D point `X` first observed (and patch-anchored) in frame `frame_id`.

    The visibility list starts with the reference frame and only ever grows:
    `ref_frame_id` is its first entry and `last_frame_id` its most recent one.
    The initial position is kept as `original_point` for drift checks.
    """

    __slots__ = (
        "_X",
        "_X_original",
        "_f",
        "_patch",
        "descriptor",
        "saliency",
        "was_refined",
        "_x",
    )

    def __init__(self, X, frame_id: int):
        X = np.array(X, dtype=np.float64).reshape(3)
        self._X = X
        self._X_original = X.copy()
        self._X_original.setflags(write=False)
        self._f: List[int] = [_frame_id(frame_id)]
        self._patch = ZnccPatch()
        # Filled and interpreted by whoever computes descriptors.
        self.descriptor: List[float] = []
        self.saliency = 0.0
        self.was_refined = False
        self._x: Optional[np.ndarray] = None

    # position

    @property
    def X(self) -> np.ndarray:
        return self._X

    @X.setter
    def X(self, value) -> None:
        self._X = np.array(value, dtype=np.float64).reshape(3)

    @property
    def original_point(self) -> np.ndarray:
        return self._X_original

    def drift(self) -> float:
        """Distance between the current and the original position."""
        return float(np.linalg.norm(self._X - self._X_original))

    # visibility

    def has_frame(self, f: int) -> bool:
        return f in self._f

    def add_frame(self, f: int) -> None:
        self._f.append(_frame_id(f))

    @property
    def visibility_list(self) -> Tuple[int, ...]:
        return tuple(self._f)

    @property
    def ref_frame_id(self) -> int:
        assert self._f, "ScenePoint visibility list must never be empty"
        return self._f[0]

    @property
    def last_frame_id(self) -> int:
        assert self._f, "ScenePoint visibility list must never be empty"
        return self._f[-1]

    @property
    def num_frames(self) -> int:
        return len(self._f)

    # appearance

    @property
    def patch(self) -> ZnccPatch:
        return self._patch

    def set_zncc_patch(self, image: np.ndarray, x) -> None:
        """(Re)anchor the matching template at the projection `x` in `image`."""
        self._patch.set(image, x)

    @property
    def first_projection(self) -> Optional[np.ndarray]:
        return self._x

    def set_first_projection(self, x) -> None:
        self._x = np.rint(np.asarray(x, dtype=np.float64).reshape(2)).astype(np.int64)

    def __repr__(self) -> str:
        return (
            f"ScenePoint(X={self._X.tolist()}, frames={self._f}, "
            f"saliency={self.saliency:.3g}, refined={self.was_refined})"
        )


__all__ = ["ScenePoint"]
