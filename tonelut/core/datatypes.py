"""
Core data types for the tone curve engine.

Mirrors darktable's curve definitions: the curve type enum that prefixes a
flat control point list, the tone curve parameter block and the exception
hierarchy shared by every module.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Union


class CurveKind(IntEnum):
    """Curve type codes, as stored in the first value of a point list."""
    EMPTY = -1          # also used for identity curves
    LINEAR = 0
    SPLINE = 1
    PARAMETRIC = 2
    NURBS = 3
    CATMULL_ROM = 4
    UNCHANGED = 5       # must remain the last code

    @classmethod
    def parse(cls, value: Union["CurveKind", int, str]) -> "CurveKind":
        """Accept a member, an integer code or a name such as 'spline'."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper().replace("-", "_")
            if name == "IDENTITY":
                return cls.EMPTY
            try:
                return cls[name]
            except KeyError:
                raise ValueError(
                    f"'{value}' is not a valid curve kind. "
                    f"Available kinds are: {[k.name.lower() for k in cls]}"
                ) from None
        return cls(int(value))


UNIMPLEMENTED_KINDS = (CurveKind.PARAMETRIC, CurveKind.NURBS, CurveKind.CATMULL_ROM)


@dataclass
class ToneCurveParams:
    """tonecurve module parameters"""
    kind: CurveKind = CurveKind.SPLINE
    control_points_x: List[float] = field(default_factory=lambda: [0.0, 1.0])
    control_points_y: List[float] = field(default_factory=lambda: [0.0, 1.0])
    gamma: float = 0.0      # only 0 (or <= 0) and 1 build the LUT
    ppn: int = 1000         # targeted polyline point number
    preserve_hue: bool = True
    enabled: bool = True

    def __post_init__(self):
        self.kind = CurveKind.parse(self.kind)
        if len(self.control_points_x) != len(self.control_points_y):
            raise ValueError("control_points_x and control_points_y must be of the same size.")
        if not self.control_points_x:
            raise ValueError("At least one control point is required.")

    def to_points(self) -> List[float]:
        """Flat [kind, x0, y0, x1, y1, ...] list, as consumed by CurveModel."""
        points = [float(self.kind)]
        for x, y in zip(self.control_points_x, self.control_points_y):
            points.extend((float(x), float(y)))
        return points


class PipelineError(Exception):
    """Base class for tone curve processing errors"""
    pass


class InvalidDataError(PipelineError):
    """Image data an IOP cannot process"""
    pass


class UnsupportedCurveError(PipelineError, NotImplementedError):
    """A curve kind that is declared but has no evaluation strategy"""
    pass


class LookupTableError(PipelineError):
    """A lookup table used after reset()"""
    pass


class ConfigError(PipelineError):
    """Malformed pipeline configuration"""
    pass
