"""
lut - Fast 1-D lookup table with clamped integer and interpolated float access.

A port of darktable's LUT helper: a float buffer indexed either by an integer
(clamped to the table) or by a float (linearly interpolated between the two
neighbouring cells, clamped at both ends).
"""

import logging
from typing import Optional, Sequence

import numpy as np
from numba import njit

from tonelut.core.datatypes import LookupTableError

logger = logging.getLogger(__name__)

# Extra trailing cells so data[idx + 1] stays inside the buffer at the last
# interpolated index.
_PADDING = 3


@njit(error_model="numpy")
def lut_lookup(data, max_fractional, upper_bound, index):
    """
    Interpolated lookup, usable from other numba kernels.

    `max_fractional` is size - 2 and `upper_bound` is size - 1.
    """
    if index < 0.0:
        return data[0]
    if index > max_fractional:
        return data[upper_bound]
    if index != index:  # NaN
        return data[0]
    idx = int(index)
    diff = index - idx
    p1 = data[idx]
    return p1 + (data[idx + 1] - p1) * diff


@njit(error_model="numpy")
def _lookup_many(data, max_fractional, upper_bound, indices, out):
    for i in range(indices.shape[0]):
        out[i] = lut_lookup(data, max_fractional, upper_bound, indices[i])
    return out


class FastLookupTable:
    """
    Dense float32 table with guarded bounds.

    `table[i]` with an integer clamps `i` to [0, size - 1]; `table[f]` with a
    float interpolates and clamps to the first/last cell outside
    [0, size - 2]. Writes through `table[i] = v` use the same integer clamp.
    """

    def __init__(self, size: Optional[int] = None):
        self._data = None
        self._size = 0
        self._upper_bound = 0
        self._max_fractional = 0.0
        if size is not None:
            self.init(size)

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "FastLookupTable":
        values = np.asarray(values, dtype=np.float32).ravel()
        table = cls(len(values))
        table._data[:table._size] = values
        return table

    def init(self, size: int) -> None:
        """(Re)allocate the table with `size` zeroed cells."""
        size = int(size)
        if size < 1:
            raise ValueError(f"Lookup table size must be positive, got {size}")
        # np.zeros raises MemoryError on exhaustion; that is left to the caller.
        self._data = np.zeros(size + _PADDING, dtype=np.float32)
        self._size = size
        self._upper_bound = size - 1
        self._max_fractional = float(size - 2)

    def reset(self) -> None:
        """Release the storage. The table is unusable until init() is called."""
        self._data = None
        self._size = 0
        self._upper_bound = 0
        self._max_fractional = 0.0

    def clear(self) -> None:
        if self._data is not None and self._size:
            self._data[:self._size] = 0.0

    @property
    def is_allocated(self) -> bool:
        return self._data is not None

    @property
    def size(self) -> int:
        return self._size

    @property
    def upper_bound(self) -> int:
        return self._upper_bound

    @property
    def max_fractional(self) -> float:
        return self._max_fractional

    @property
    def values(self) -> np.ndarray:
        """Writable view on the logical cells (padding excluded)."""
        return self._buffer()[:self._size]

    def __len__(self) -> int:
        return self._size

    def _buffer(self) -> np.ndarray:
        if self._data is None:
            raise LookupTableError("Lookup table has been reset and must be re-initialised before use")
        return self._data

    def _clamp(self, index: int) -> int:
        if index < 0:
            return 0
        if index > self._upper_bound:
            return self._upper_bound
        return index

    def __getitem__(self, index) -> float:
        data = self._buffer()
        if isinstance(index, (int, np.integer)):
            return float(data[self._clamp(int(index))])
        return float(lut_lookup(data, self._max_fractional, self._upper_bound, float(index)))

    def __setitem__(self, index, value: float) -> None:
        data = self._buffer()
        data[self._clamp(int(index))] = value

    def lookup_array(self, indices: np.ndarray) -> np.ndarray:
        """Interpolated lookup of every element of `indices`, shape preserved."""
        data = self._buffer()
        indices = np.asarray(indices, dtype=np.float64)
        flat = np.ascontiguousarray(indices.ravel())
        out = np.empty(flat.shape[0], dtype=np.float64)
        _lookup_many(data, self._max_fractional, self._upper_bound, flat, out)
        return out.reshape(indices.shape)

    def __repr__(self) -> str:
        state = f"size={self._size}" if self.is_allocated else "reset"
        return f"{type(self).__name__}({state})"
