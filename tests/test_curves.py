import numpy as np
import pytest
from scipy.interpolate import CubicSpline

from conftest import S_CURVE_X, S_CURVE_Y, flat_points
from tonelut.core.curves import CurveModel, spline_cubic_set
from tonelut.core.datatypes import CurveKind, UnsupportedCurveError


# ---------- construction ---------- #
@pytest.mark.parametrize("points", [[], [1.0], [1.0, 0.5]])
def test_too_few_values_is_identity(points):
    curve = CurveModel(points)
    assert curve.kind == CurveKind.EMPTY
    assert curve.get_val(0.3) == 0.3


def test_odd_number_of_coordinates_is_identity():
    curve = CurveModel([1.0, 0.0, 0.2, 0.5, 0.6, 1.0])
    assert curve.is_identity
    assert curve.get_val(0.7) == 0.7


@pytest.mark.parametrize("code", [-1.0, 5.0, 17.0, float("nan")])
def test_unknown_or_empty_kind_is_passthrough(code):
    curve = CurveModel([code, 0.0, 0.3, 1.0, 0.8])
    assert curve.is_identity
    assert curve.get_val(0.25) == 0.25


@pytest.mark.parametrize("kind", [CurveKind.LINEAR, CurveKind.SPLINE, CurveKind.NURBS, CurveKind.CATMULL_ROM])
def test_points_on_diagonal_become_identity(kind):
    curve = CurveModel(flat_points(kind, [0.0, 0.2, 0.6, 1.0], [0.0, 0.200005, 0.6, 1.0]))
    assert curve.kind == CurveKind.EMPTY
    assert curve.declared_kind == kind
    for t in np.linspace(-0.5, 1.5, 41):
        assert curve.get_val(t) == t


def test_diagonal_not_reaching_limits_is_not_identity():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.1, 0.9], [0.1, 0.9]))
    assert curve.kind == CurveKind.LINEAR
    # flat extrapolation instead of passthrough
    assert curve.get_val(0.0) == pytest.approx(0.1)
    assert curve.get_val(1.0) == pytest.approx(0.9)


def test_off_diagonal_point_disables_identity():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.0, 0.5, 1.0], [0.0, 0.50001, 1.0]))
    assert curve.kind == CurveKind.LINEAR


def test_spline_with_two_points_is_demoted_to_linear():
    curve = CurveModel(flat_points(CurveKind.SPLINE, [0.0, 1.0], [0.2, 0.8]))
    assert curve.declared_kind == CurveKind.SPLINE
    assert curve.kind == CurveKind.LINEAR
    assert curve.ypp.size == 0
    assert curve.get_val(0.5) == pytest.approx(0.5)


def test_parametric_kind_fails_fast():
    with pytest.raises(UnsupportedCurveError):
        CurveModel([2.0, 0.1, 0.2, 0.3, 0.4])


@pytest.mark.parametrize("kind", [CurveKind.NURBS, CurveKind.CATMULL_ROM])
def test_unimplemented_point_kinds_fail_fast(kind):
    with pytest.raises(NotImplementedError):
        CurveModel(flat_points(kind, [0.0, 0.5, 1.0], [0.0, 0.7, 1.0]))


def test_ppn_is_clamped():
    assert CurveModel([], ppn=100000).ppn == 65500
    assert CurveModel([], ppn=20).ppn == 20


def test_arrays_are_read_only(s_curve):
    with pytest.raises(ValueError):
        s_curve.x[0] = 0.5
    with pytest.raises(ValueError):
        s_curve.ypp[1] = 0.0


def test_from_control_points_requires_matching_lengths():
    with pytest.raises(ValueError):
        CurveModel.from_control_points([0.0, 1.0], [0.0])


def test_from_control_points_accepts_kind_names():
    curve = CurveModel.from_control_points([0.0, 0.5, 1.0], [0.0, 0.8, 1.0], kind="linear")
    assert curve.kind == CurveKind.LINEAR


# ---------- degenerate boundaries ---------- #
def test_two_points_at_zero_are_separated():
    curve = CurveModel(flat_points(CurveKind.SPLINE, [0.0, 0.0, 1.0], [0.1, 0.2, 1.0]))
    assert curve.kind == CurveKind.SPLINE
    np.testing.assert_array_equal(curve.x, [0.0, 0.01, 1.0])
    assert np.all(np.diff(curve.x) > 0)
    assert np.all(np.isfinite(curve.ypp))
    assert np.all(np.isfinite(curve.get_vals(np.linspace(0, 1, 101))))


def test_two_points_at_one_move_the_first():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [1.0, 1.0], [0.2, 0.9]))
    np.testing.assert_array_equal(curve.x, [0.99, 1.0])
    assert curve.get_val(0.995) == pytest.approx(0.55)


def test_single_point_curve_is_constant():
    curve = CurveModel([0.0, 0.4, 0.7])
    assert curve.kind == CurveKind.LINEAR
    for t in (0.0, 0.4, 1.0):
        assert curve.get_val(t) == pytest.approx(0.7)


# ---------- spline solve ---------- #
def test_natural_boundary_second_derivatives_are_zero(s_curve):
    assert s_curve.kind == CurveKind.SPLINE
    assert s_curve.ypp[0] == 0.0
    assert s_curve.ypp[-1] == 0.0


@pytest.mark.parametrize("xs, ys", [
    (S_CURVE_X, S_CURVE_Y),
    ([0.0, 0.1, 0.35, 0.6, 0.9, 1.0], [0.05, 0.2, 0.3, 0.7, 0.8, 0.95]),
    ([0.0, 0.5, 1.0], [0.0, 0.7, 1.0]),
])
def test_second_derivatives_match_scipy_natural_spline(xs, ys):
    ypp = spline_cubic_set(np.array(xs), np.array(ys))
    reference = CubicSpline(xs, ys, bc_type='natural')
    np.testing.assert_allclose(ypp, reference(xs, 2), atol=1e-9)


def test_spline_values_match_scipy_inside_unit_range(s_curve):
    ts = np.linspace(0.0, 1.0, 257)
    reference = np.clip(CubicSpline(S_CURVE_X, S_CURVE_Y, bc_type='natural')(ts), 0.0, 1.0)
    np.testing.assert_allclose(s_curve.get_vals(ts), reference, atol=1e-12)


# ---------- evaluation ---------- #
def test_linear_identity_segment_and_flat_extrapolation():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.0, 1.0], [0.0, 1.0]))
    # points on y = x from 0 to 1 are detected as identity, evaluation passes through
    assert curve.get_val(0.5) == 0.5

    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.0, 0.5, 1.0], [0.0, 0.25, 1.0]))
    assert curve.get_val(0.25) == pytest.approx(0.125)
    assert curve.get_val(0.75) == pytest.approx(0.625)
    assert curve.get_val(-1.0) == 0.0
    assert curve.get_val(2.0) == 1.0


def test_diagonal_linear_curve_passes_through_outside_unit_range():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.0, 1.0], [0.0, 1.0]))
    assert curve.is_identity
    assert curve.get_val(-1.0) == -1.0
    assert curve.get_val(2.0) == 2.0


def test_linear_two_point_curve_flat_extrapolation():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.0, 1.0], [0.1, 0.9]))
    assert curve.get_val(0.5) == pytest.approx(0.5)
    assert curve.get_val(-1.0) == pytest.approx(0.1)
    assert curve.get_val(2.0) == pytest.approx(0.9)


def test_linear_output_is_not_clamped():
    curve = CurveModel(flat_points(CurveKind.LINEAR, [0.0, 1.0], [-0.5, 1.5]))
    assert curve.get_val(0.0) == pytest.approx(-0.5)
    assert curve.get_val(1.0) == pytest.approx(1.5)


def test_spline_output_is_clamped_to_unit_range():
    # overshooting spline
    curve = CurveModel(flat_points(CurveKind.SPLINE, [0.0, 0.1, 0.2, 1.0], [0.0, 0.95, 1.0, 1.0]))
    values = curve.get_vals(np.linspace(0.0, 1.0, 1001))
    assert values.min() >= 0.0
    assert values.max() <= 1.0


def test_curve_passes_through_control_points(s_curve):
    for x, y in zip(S_CURVE_X, S_CURVE_Y):
        assert s_curve.get_val(x) == pytest.approx(y, abs=1e-12)


def test_get_vals_matches_get_val(s_curve):
    ts = np.array([[-0.2, 0.0, 0.1], [0.5, 0.99, 1.3]])
    expected = np.array([[s_curve.get_val(t) for t in row] for row in ts])
    np.testing.assert_array_equal(s_curve.get_vals(ts), expected)


def test_binary_search_finds_every_interval():
    xs = np.linspace(0.0, 1.0, 11)
    ys = xs ** 2
    curve = CurveModel.from_control_points(xs, ys, kind=CurveKind.LINEAR)
    for lo, hi in zip(range(10), range(1, 11)):
        t = (xs[lo] + xs[hi]) / 2
        assert curve.get_val(t) == pytest.approx((ys[lo] + ys[hi]) / 2)
