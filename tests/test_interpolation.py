"""
Unit tests for interpolation schemes.
"""

import numpy as np
import pytest

from curvelib.config import InterpolationMethod
from curvelib.curves.interpolation import (
    LOG_DF,
    ZERO_RATE,
    CubicSplineInterpolator,
    FlatForwardInterpolator,
    LinearInterpolator,
    MonotonicCubicInterpolator,
    create_interpolator,
    value_space,
)


@pytest.fixture
def sample_data():
    """Zero-rate style knots."""
    x = np.array([0.25, 0.5, 1.0, 2.0, 5.0, 10.0])
    y = np.array([0.051, 0.052, 0.053, 0.050, 0.048, 0.045])
    return x, y


def _fd_weights(cls, x, y, t, h=1e-6):
    out = []
    for k in range(len(x)):
        up, down = y.copy(), y.copy()
        up[k] += h
        down[k] -= h
        a, b = cls(), cls()
        a.fit(x, up)
        b.fit(x, down)
        out.append((a(t) - b(t)) / (2 * h))
    return np.array(out)


class TestLinearInterpolator:

    def test_exact_and_between(self, sample_data):
        x, y = sample_data
        interp = LinearInterpolator()
        interp.fit(x, y)
        assert abs(interp(1.0) - 0.053) < 1e-15
        assert abs(interp(1.5) - 0.0515) < 1e-15

    def test_flat_outside(self, sample_data):
        x, y = sample_data
        interp = LinearInterpolator()
        interp.fit(x, y)
        assert interp(0.1) == y[0]
        assert interp(30.0) == y[-1]
        assert interp.derivative(30.0) == 0.0

    def test_weights(self, sample_data):
        x, y = sample_data
        interp = LinearInterpolator()
        interp.fit(x, y)
        w = interp.weights(1.5)
        assert abs(w[2] - 0.5) < 1e-15 and abs(w[3] - 0.5) < 1e-15
        assert abs(w.sum() - 1.0) < 1e-15
        assert abs(w @ y - interp(1.5)) < 1e-15

    def test_unsorted_input_is_sorted(self):
        interp = LinearInterpolator()
        interp.fit(np.array([2.0, 1.0]), np.array([0.2, 0.1]))
        assert abs(interp(1.5) - 0.15) < 1e-15

    def test_validation(self):
        interp = LinearInterpolator()
        with pytest.raises(ValueError):
            interp.fit(np.array([1.0]), np.array([0.1]))
        with pytest.raises(ValueError):
            interp.fit(np.array([1.0, 1.0]), np.array([0.1, 0.2]))
        with pytest.raises(ValueError):
            interp.fit(np.array([1.0, 2.0]), np.array([0.1]))

    def test_not_fitted(self):
        with pytest.raises(RuntimeError):
            LinearInterpolator().interpolate(1.0)


class TestFlatForwardInterpolator:

    def test_same_values_as_linear(self, sample_data):
        x, y = sample_data
        linear, flat = LinearInterpolator(), FlatForwardInterpolator()
        linear.fit(x, y)
        flat.fit(x, y)
        for t in (0.3, 0.75, 1.0, 3.3, 7.0):
            assert linear(t) == flat(t)

    def test_derivative_jumps_at_knots(self, sample_data):
        x, y = sample_data
        flat = FlatForwardInterpolator()
        flat.fit(x, y)
        right = flat.derivative(1.0)
        left = flat.derivative(1.0, side="left")
        assert abs(right - (y[3] - y[2]) / (x[3] - x[2])) < 1e-15
        assert abs(left - (y[2] - y[1]) / (x[2] - x[1])) < 1e-15
        assert left != right


class TestCubicSplineInterpolator:

    def test_exact_points(self, sample_data):
        x, y = sample_data
        interp = CubicSplineInterpolator()
        interp.fit(x, y)
        for xi, yi in zip(x, y):
            assert abs(interp(xi) - yi) < 1e-14

    def test_natural_boundary(self, sample_data):
        x, y = sample_data
        interp = CubicSplineInterpolator()
        interp.fit(x, y)
        assert abs(interp.coefficients[0, 2]) < 1e-14
        assert interp.second_derivative(x[0]) == 0.0

    def test_smooth_first_derivative(self, sample_data):
        x, y = sample_data
        interp = CubicSplineInterpolator()
        interp.fit(x, y)
        eps = 1e-7
        assert abs(interp.derivative(2.0 - eps) - interp.derivative(2.0 + eps)) < 1e-5

    def test_two_points_is_linear(self):
        interp = CubicSplineInterpolator()
        interp.fit(np.array([1.0, 3.0]), np.array([0.01, 0.03]))
        assert abs(interp(2.0) - 0.02) < 1e-15

    def test_basis_weights_exact(self, sample_data):
        """The spline is linear in its knots: weights reproduce the value."""
        x, y = sample_data
        interp = CubicSplineInterpolator()
        interp.fit(x, y)
        for t in (0.4, 1.7, 6.0):
            w = interp.weights(t)
            assert abs(w @ y - interp(t)) < 1e-14
            assert np.allclose(w, _fd_weights(CubicSplineInterpolator, x, y, t), atol=1e-8)

    def test_not_local(self):
        assert not CubicSplineInterpolator().is_local
        assert LinearInterpolator().is_local


class TestMonotonicCubicInterpolator:

    def test_preserves_monotonicity(self):
        x = np.array([0.0, 0.5, 1.0, 2.0, 5.0, 10.0])
        y = -np.array([0.0, 0.02, 0.045, 0.1, 0.26, 0.5])
        interp = MonotonicCubicInterpolator()
        interp.fit(x, y)
        grid = np.linspace(0.0, 10.0, 401)
        values = np.array([interp(t) for t in grid])
        assert np.all(np.diff(values) <= 1e-15)

    def test_weights_match_finite_differences(self, sample_data):
        x, y = sample_data
        interp = MonotonicCubicInterpolator()
        interp.fit(x, y)
        w = interp.weights(1.7)
        assert np.allclose(w, _fd_weights(MonotonicCubicInterpolator, x, y, 1.7), atol=1e-5)

    def test_flat_outside(self, sample_data):
        x, y = sample_data
        interp = MonotonicCubicInterpolator()
        interp.fit(x, y)
        assert interp(20.0) == y[-1]
        assert interp.derivative(20.0) == 0.0


class TestFactory:

    @pytest.mark.parametrize("method,cls,space", [
        (InterpolationMethod.LOG_LINEAR, LinearInterpolator, LOG_DF),
        (InterpolationMethod.FLAT_FORWARD, FlatForwardInterpolator, LOG_DF),
        (InterpolationMethod.MONOTONIC_CUBIC, MonotonicCubicInterpolator, LOG_DF),
        (InterpolationMethod.LINEAR_ZERO_RATE, LinearInterpolator, ZERO_RATE),
        (InterpolationMethod.NATURAL_CUBIC, CubicSplineInterpolator, ZERO_RATE),
    ])
    def test_create(self, method, cls, space):
        assert type(create_interpolator(method)) is cls
        assert value_space(method.value) == space

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_interpolator("akima")
