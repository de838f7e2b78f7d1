"""
Shared fixtures for the tone curve tests.
"""

import numpy as np
import pytest

from tonelut.core.curves import CurveModel
from tonelut.core.datatypes import CurveKind
from tonelut.iop.tonecurve import HuePreservingToneCurve

# Classic contrast 'S-curve'
S_CURVE_X = [0.0, 0.25, 0.75, 1.0]
S_CURVE_Y = [0.0, 0.15, 0.85, 1.0]


def flat_points(kind, xs, ys):
    points = [float(kind)]
    for x, y in zip(xs, ys):
        points.extend((x, y))
    return points


@pytest.fixture(scope="session")
def identity_curve() -> CurveModel:
    return CurveModel(flat_points(CurveKind.SPLINE, [0.0, 0.5, 1.0], [0.0, 0.5, 1.0]))


@pytest.fixture(scope="session")
def s_curve() -> CurveModel:
    return CurveModel.from_control_points(S_CURVE_X, S_CURVE_Y, kind=CurveKind.SPLINE)


@pytest.fixture(scope="session")
def lift_curve() -> CurveModel:
    """Strictly increasing linear curve, brightens the shadows."""
    return CurveModel.from_control_points([0.0, 0.3, 1.0], [0.0, 0.5, 1.0], kind=CurveKind.LINEAR)


@pytest.fixture(scope="session")
def identity_mapper(identity_curve) -> HuePreservingToneCurve:
    mapper = HuePreservingToneCurve()
    mapper.build(identity_curve, gamma=0.0)
    return mapper


@pytest.fixture(scope="session")
def lift_mapper(lift_curve) -> HuePreservingToneCurve:
    mapper = HuePreservingToneCurve()
    mapper.build(lift_curve)
    return mapper


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
