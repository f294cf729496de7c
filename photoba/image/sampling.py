"""
Sub-pixel sampling of scalar images.
"""

from __future__ import annotations

from typing import Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


def interp2(
    image: np.ndarray,
    xf: ArrayLike,
    yf: ArrayLike,
    fillval: float = 0.0,
    offset: float = 0.0,
) -> ArrayLike:
    """
    Bilinearly interpolate `image` at the sub-pixel location (xf, yf).

    Coordinates follow the image convention: x is the column, y is the row.
    The last valid row/column can be sampled exactly (zero fractional part);
    anything that would need extrapolation returns `fillval`.

    Args:
        image: 2-D scalar image (rows, cols).
        xf: Column coordinate(s), scalar or array.
        yf: Row coordinate(s), scalar or array (broadcast against xf).
        fillval: Value returned for out-of-range locations.
        offset: Added to both coordinates before flooring.

    Returns:
        A float for scalar inputs, otherwise a float64 array with the
        broadcast shape of (xf, yf).
    """
    scalar_input = np.ndim(xf) == 0 and np.ndim(yf) == 0

    x, y = np.broadcast_arrays(
        np.asarray(xf, dtype=np.float64) + offset,
        np.asarray(yf, dtype=np.float64) + offset,
    )

    max_cols = image.shape[1] - 1
    max_rows = image.shape[0] - 1

    xi = np.floor(x)
    yi = np.floor(y)
    ax = x - xi
    ay = y - yi

    # NaN coordinates fall through every mask below and get the fill value.
    finite = np.isfinite(xi) & np.isfinite(yi)
    xi = np.where(finite, xi, -1).astype(np.int64)
    yi = np.where(finite, yi, -1).astype(np.int64)

    inner_x = (xi >= 0) & (xi < max_cols)
    inner_y = (yi >= 0) & (yi < max_rows)
    last_x = xi == max_cols
    last_y = yi == max_rows

    interior = inner_x & inner_y
    on_last_col = last_x & inner_y
    on_last_row = last_y & inner_x
    on_corner = last_x & last_y

    # Safe gather indices; results at invalid locations are masked out below.
    x0 = np.clip(xi, 0, max_cols)
    y0 = np.clip(yi, 0, max_rows)
    x1 = np.clip(xi + 1, 0, max_cols)
    y1 = np.clip(yi + 1, 0, max_rows)

    I00 = image[y0, x0].astype(np.float64)
    I01 = image[y0, x1].astype(np.float64)
    I10 = image[y1, x0].astype(np.float64)
    I11 = image[y1, x1].astype(np.float64)

    out = np.full(x.shape, float(fillval), dtype=np.float64)

    wx = 1.0 - ax
    bilinear = (1.0 - ay) * (I00 * wx + I01 * ax) + ay * (I10 * wx + I11 * ax)
    out = np.where(interior, bilinear, out)

    along_col = (1.0 - ay) * I00 + ay * I10
    out = np.where(on_last_col & (ax <= 0), along_col, out)

    along_row = (1.0 - ax) * I00 + ax * I01
    out = np.where(on_last_row & (ay <= 0), along_row, out)

    out = np.where(on_corner & (ax <= 0) & (ay <= 0), I00, out)

    if scalar_input:
        return float(out)
    return out


__all__ = ["interp2"]
