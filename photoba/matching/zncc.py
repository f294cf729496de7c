"""
Zero-mean normalized cross-correlation (ZNCC) between fixed-size patches.
"""

from __future__ import annotations

import numpy as np

from photoba.image.patch import PATCH_RADIUS, interpolate_fixed_patch, patch_dimension

# Denominators at or below this are treated as textureless.
MIN_NORM_PRODUCT = 1e-6

# Returned by `ZnccPatch.score` when the match cannot be trusted.
INVALID_SCORE = -1.0


class ZnccPatch:
    """
    A mean-subtracted image patch together with its Euclidean norm.

    The norm is computed once in `set` and stays in sync with the data; it is
    the patch's own share of the ZNCC denominator.
    """

    def __init__(self, radius: int = PATCH_RADIUS, dtype=np.float32):
        if not np.issubdtype(np.dtype(dtype), np.floating):
            raise TypeError(f"ZnccPatch dtype must be floating point, got {dtype}")
        self._radius = int(radius)
        self._data = np.zeros(patch_dimension(self._radius), dtype=dtype)
        self._norm = self._data.dtype.type(0.0)
        self._is_set = False

    @classmethod
    def from_image(cls, image: np.ndarray, uv, radius: int = PATCH_RADIUS, dtype=np.float32) -> "ZnccPatch":
        return cls(radius, dtype).set(image, uv)

    def set(self, image: np.ndarray, uv) -> "ZnccPatch":
        """
        Extract the patch at `uv` (zero fill, zero offset) and normalize it.

        Args:
            image: 2-D scalar image.
            uv: Projected location (x, y), may be fractional.

        Returns:
            self, for chaining.
        """
        data = interpolate_fixed_patch(
            image, uv, self._radius, fillval=0.0, offset=0.0, dtype=self._data.dtype
        )
        data -= data.sum() / data.dtype.type(data.size)
        self._data = data
        self._norm = np.linalg.norm(data)
        self._is_set = True
        return self

    def score(self, other: "ZnccPatch") -> float:
        """
        ZNCC score against `other`, in [-1, 1].

        Returns INVALID_SCORE (-1.0) when either patch is textureless, i.e.
        when the product of the norms is at or below MIN_NORM_PRODUCT.
        """
        if other._radius != self._radius:
            raise ValueError(
                f"Cannot score patches of radius {self._radius} and {other._radius}"
            )
        d = float(self._norm) * float(other._norm)
        if d > MIN_NORM_PRODUCT:
            return float(np.dot(self._data, other._data)) / d
        return INVALID_SCORE

    @property
    def data(self) -> np.ndarray:
        view = self._data.view()
        view.setflags(write=False)
        return view

    @property
    def norm(self) -> float:
        return float(self._norm)

    @property
    def radius(self) -> int:
        return self._radius

    @property
    def dimension(self) -> int:
        return self._data.size

    @property
    def is_set(self) -> bool:
        return self._is_set

    def __repr__(self) -> str:
        return f"ZnccPatch(radius={self._radius}, norm={self.norm:.4g}, is_set={self._is_set})"


__all__ = ["ZnccPatch", "INVALID_SCORE", "MIN_NORM_PRODUCT"]
