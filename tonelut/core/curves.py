"""
curves - Diagonal tone curves defined by control points.

A Python implementation of darktable's "diagonal" curve: a list of (x, y)
control points interpolated either linearly or with a natural cubic spline,
with identity curves detected up front so that they cost nothing to apply.
"""

import logging
import math
from typing import Sequence

import numpy as np
from numba import njit

from tonelut.core.datatypes import CurveKind, UnsupportedCurveError, UNIMPLEMENTED_KINDS

logger = logging.getLogger(__name__)

# Smallest meaningful difference between an x and a y value is ~1e-5; the
# threshold sits just below it.
IDENTITY_TOLERANCE = 0.000009
MAX_PPN = 65500

_POINT_KINDS = (CurveKind.LINEAR, CurveKind.SPLINE, CurveKind.NURBS, CurveKind.CATMULL_ROM)

# numba kernels compare against plain ints
_KIND_LINEAR = int(CurveKind.LINEAR)
_KIND_SPLINE = int(CurveKind.SPLINE)


# ---------- evaluation kernels ---------- #
@njit(error_model="numpy")
def _curve_value(kind, x, y, ypp, t):
    if kind != _KIND_LINEAR and kind != _KIND_SPLINE:
        return t

    n = x.shape[0]
    # flat beyond the first and last point
    if t > x[n - 1]:
        return y[n - 1]
    elif t < x[0]:
        return y[0]
    if n == 1:
        return y[0]

    # binary search for the right interval
    k_lo = 0
    k_hi = n - 1
    while k_hi > 1 + k_lo:
        k = (k_hi + k_lo) // 2
        if x[k] > t:
            k_hi = k
        else:
            k_lo = k

    h = x[k_hi] - x[k_lo]

    if kind == _KIND_LINEAR:
        return y[k_lo] + (t - x[k_lo]) * (y[k_hi] - y[k_lo]) / h

    a = (x[k_hi] - t) / h
    b = (t - x[k_lo]) / h
    r = a * y[k_lo] + b * y[k_hi] + ((a * a * a - a) * ypp[k_lo] + (b * b * b - b) * ypp[k_hi]) * (h * h) / 6.0
    if r > 0.0:
        return r if r < 1.0 else 1.0
    return 0.0


@njit(error_model="numpy")
def _curve_values(kind, x, y, ypp, ts, out):
    for i in range(ts.shape[0]):
        out[i] = _curve_value(kind, x, y, ypp, ts[i])
    return out


# ---------- construction helpers ---------- #
def _decode_kind(value: float) -> CurveKind:
    """Curve type from the leading value; unknown codes mean identity."""
    if not math.isfinite(value):
        return CurveKind.EMPTY
    try:
        return CurveKind(int(value))
    except ValueError:
        return CurveKind.EMPTY


def spline_cubic_set(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    Second derivatives of the natural cubic spline through (x, y).

    Tridiagonal elimination with ypp[0] = ypp[n-1] = 0. `x` must be strictly
    increasing and hold at least 3 points.
    """
    n = len(x)
    ypp = np.zeros(n, dtype=np.float64)
    u = np.zeros(n - 1, dtype=np.float64)

    for i in range(1, n - 1):
        sig = (x[i] - x[i - 1]) / (x[i + 1] - x[i - 1])
        p = sig * ypp[i - 1] + 2.0
        ypp[i] = (sig - 1.0) / p
        u[i] = (y[i + 1] - y[i]) / (x[i + 1] - x[i]) - (y[i] - y[i - 1]) / (x[i] - x[i - 1])
        u[i] = (6.0 * u[i] / (x[i + 1] - x[i - 1]) - sig * u[i - 1]) / p

    ypp[n - 1] = 0.0
    for k in range(n - 2, -1, -1):
        ypp[k] = ypp[k] * ypp[k + 1] + u[k]

    return ypp


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


class CurveModel:
    """
    A tone curve built once from a flat point list and read-only afterwards.

    The point list is `[kind, x0, y0, x1, y1, ...]` where `kind` is a
    `CurveKind` code. Curves whose points all lie on y = x from 0 to 1 become
    identity curves, spline curves with fewer than 3 points become linear.
    """

    def __init__(self, points: Sequence[float], ppn: int = 1000):
        """
        Args:
            points (Sequence[float]): curve type code followed by interleaved
                                      x, y coordinates, x strictly increasing in [0, 1].
            ppn (int): targeted polyline point number, clamped to 65500.
        """
        self.ppn = min(int(ppn), MAX_PPN)
        self._x = _readonly(np.empty(0, dtype=np.float64))
        self._y = self._x
        self._ypp = self._x

        p = np.asarray(points, dtype=np.float64).ravel()
        if p.size < 3:
            self.declared_kind = CurveKind.EMPTY
            self.kind = CurveKind.EMPTY
            return

        self.declared_kind = _decode_kind(p[0])
        self.kind = self.declared_kind

        if self.declared_kind == CurveKind.PARAMETRIC:
            raise UnsupportedCurveError("Parametric curves are not implemented")

        if self.declared_kind not in _POINT_KINDS:
            self.kind = CurveKind.EMPTY
            return

        coords = p[1:]
        if coords.size % 2:
            logger.warning("Ignoring malformed %s curve: odd number of coordinates (%d)",
                           self.declared_kind.name.lower(), coords.size)
            self.kind = CurveKind.EMPTY
            return

        x = coords[0::2].copy()
        y = coords[1::2].copy()
        n = len(x)

        identity = bool(np.all(np.abs(x - y) < IDENTITY_TOLERANCE))
        # all points on the identity line but not reaching the limits
        if x[0] != 0.0 or x[n - 1] != 1.0:
            identity = False

        if n >= 2:
            if x[0] == 0.0 and x[1] == 0.0:
                logger.debug("First two points at x = 0, moving the second one to 0.01")
                x[1] = 0.01
            if x[0] == 1.0 and x[1] == 1.0:
                logger.debug("First two points at x = 1, moving the first one to 0.99")
                x[0] = 0.99

        if identity:
            self.kind = CurveKind.EMPTY
            return

        if self.declared_kind in UNIMPLEMENTED_KINDS:
            raise UnsupportedCurveError(f"{self.declared_kind.name.lower()} curves are not implemented")

        self._x = _readonly(x)
        self._y = _readonly(y)
        if self.declared_kind == CurveKind.SPLINE and n > 2:
            self._ypp = _readonly(spline_cubic_set(x, y))
        else:
            if self.declared_kind == CurveKind.SPLINE:
                logger.debug("Spline curve with %d point(s) evaluated as linear", n)
            self.kind = CurveKind.LINEAR

    @classmethod
    def from_control_points(cls,
                            control_points_x: Sequence[float],
                            control_points_y: Sequence[float],
                            kind=CurveKind.SPLINE,
                            ppn: int = 1000) -> "CurveModel":
        if len(control_points_x) != len(control_points_y):
            raise ValueError("x and y lists must be of the same size.")
        points = [float(CurveKind.parse(kind))]
        for x, y in zip(control_points_x, control_points_y):
            points.extend((float(x), float(y)))
        return cls(points, ppn=ppn)

    @property
    def is_identity(self) -> bool:
        return self.kind == CurveKind.EMPTY

    @property
    def x(self) -> np.ndarray:
        return self._x

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def ypp(self) -> np.ndarray:
        """Spline second derivatives; empty unless the curve is a spline."""
        return self._ypp

    @property
    def n_points(self) -> int:
        return len(self._x)

    def get_val(self, t: float) -> float:
        """Curve value at t; identity curves return t unchanged."""
        return float(_curve_value(int(self.kind), self._x, self._y, self._ypp, float(t)))

    def get_vals(self, ts: np.ndarray) -> np.ndarray:
        """Vectorised get_val, shape preserved."""
        ts = np.asarray(ts, dtype=np.float64)
        flat = np.ascontiguousarray(ts.ravel())
        out = np.empty(flat.shape[0], dtype=np.float64)
        _curve_values(int(self.kind), self._x, self._y, self._ypp, flat, out)
        return out.reshape(ts.shape)

    def __call__(self, t: float) -> float:
        return self.get_val(t)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.name}, n_points={self.n_points})"
