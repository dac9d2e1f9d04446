"""
Interpolation methods for bootstrapped curves.

Provides:
- LinearInterpolator: Linear interpolation (log discount factors or zero rates)
- FlatForwardInterpolator: Linear in log discount factor, read as piecewise flat forwards
- CubicSplineInterpolator: Natural cubic spline (zero rates)
- MonotonicCubicInterpolator: Shape-preserving PCHIP cubic (log discount factors)

All interpolators work with year fractions as x-coordinates. Besides the
value and its slope, each one reports ``weights(t)``: the derivative of the
interpolated value with respect to every knot value. The bootstrapper
chains these weights into residual derivatives and the adjoint Jacobian.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple, Union
import numpy as np
from scipy.interpolate import PchipInterpolator

from ..config import InterpolationMethod

LOG_DF = "log_df"
ZERO_RATE = "zero_rate"


class Interpolator(ABC):
    """Abstract base class for curve interpolation."""

    # A local scheme's value on [t_i, t_i+1] depends only on knots i and i+1
    is_local: bool = True

    def __init__(self):
        self.times: Optional[np.ndarray] = None
        self.values: Optional[np.ndarray] = None

    @abstractmethod
    def fit(self, times: np.ndarray, values: np.ndarray) -> None:
        """
        Fit the interpolator to data points.

        Args:
            times: Array of year fractions (must be sorted ascending)
            values: Array of values (zero rates or log discount factors)
        """
        pass

    @abstractmethod
    def interpolate(self, t: float) -> float:
        """Interpolated value at t (flat beyond the knots)."""
        pass

    def __call__(self, t: float) -> float:
        """Convenience method to call interpolate."""
        return self.interpolate(t)

    @abstractmethod
    def derivative(self, t: float) -> float:
        """First derivative with respect to t."""
        pass

    @abstractmethod
    def weights(self, t: float) -> np.ndarray:
        """Derivative of interpolate(t) with respect to each knot value."""
        pass

    def _prepare(self, times, values) -> None:
        if len(times) != len(values):
            raise ValueError("Times and values must have same length")
        if len(times) < 2:
            raise ValueError("Need at least 2 points for interpolation")
        idx = np.argsort(times)
        self.times = np.array(times, dtype=np.float64)[idx]
        self.values = np.array(values, dtype=np.float64)[idx]
        if np.any(np.diff(self.times) <= 0):
            raise ValueError("Interpolation times must be distinct")

    def _check_fitted(self) -> None:
        if self.times is None:
            raise RuntimeError("Interpolator not fitted")

    def _interval(self, t: float) -> int:
        idx = np.searchsorted(self.times, t, side='right') - 1
        return int(max(0, min(idx, len(self.times) - 2)))


class LinearInterpolator(Interpolator):
    """
    Linear interpolation.

    Simple linear interpolation between knot points.
    Extrapolates flat beyond boundaries.
    """

    def fit(self, times: np.ndarray, values: np.ndarray) -> None:
        """Fit linear interpolator."""
        self._prepare(times, values)

    def interpolate(self, t: float) -> float:
        """Linear interpolation with flat extrapolation."""
        self._check_fitted()

        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            return float(self.values[-1])

        idx = self._interval(t)
        t0, t1 = self.times[idx], self.times[idx + 1]
        v0, v1 = self.values[idx], self.values[idx + 1]

        w = (t - t0) / (t1 - t0)
        return float(v0 + w * (v1 - v0))

    def derivative(self, t: float) -> float:
        """Derivative of linear interpolation (piecewise constant)."""
        self._check_fitted()

        if t < self.times[0] or t > self.times[-1]:
            return 0.0

        idx = self._interval(t)
        t0, t1 = self.times[idx], self.times[idx + 1]
        v0, v1 = self.values[idx], self.values[idx + 1]

        return float((v1 - v0) / (t1 - t0))

    def weights(self, t: float) -> np.ndarray:
        self._check_fitted()
        w = np.zeros(len(self.times))
        if t <= self.times[0]:
            w[0] = 1.0
        elif t >= self.times[-1]:
            w[-1] = 1.0
        else:
            idx = self._interval(t)
            u = (t - self.times[idx]) / (self.times[idx + 1] - self.times[idx])
            w[idx] = 1.0 - u
            w[idx + 1] = u
        return w


class FlatForwardInterpolator(LinearInterpolator):
    """
    Piecewise flat instantaneous forward rates.

    Fitted on log discount factors this is numerically the same curve as
    log-linear interpolation; the scheme is kept separate because its
    derivative is reported per interval.

    Known limitation: the forward rate (the slope of log DF) jumps at every
    knot, so the first derivative is discontinuous at pillar boundaries.
    ``derivative`` returns the right-hand limit at a knot unless
    ``side="left"``; sensitivities that pass through a knot derivative are
    one-sided there.
    """

    def derivative(self, t: float, side: str = "right") -> float:
        self._check_fitted()
        if side == "left" and t > self.times[0]:
            idx = int(np.searchsorted(self.times, t, side='left')) - 1
            idx = max(0, min(idx, len(self.times) - 2))
            return float(
                (self.values[idx + 1] - self.values[idx])
                / (self.times[idx + 1] - self.times[idx])
            )
        return super().derivative(t)


def _natural_spline_coefficients(times: np.ndarray, values: np.ndarray) -> np.ndarray:
    """
    Natural cubic spline coefficients [a, b, c, d] per interval.

    ``values`` may carry trailing dimensions; each column is splined
    independently, so passing the identity yields the basis splines.
    """
    n = len(times)
    h = np.diff(times)

    if n == 2:
        # Degenerate to linear
        slope = (values[1] - values[0]) / h[0]
        zero = np.zeros_like(values[0])
        return np.array([[values[0], slope, zero, zero]])

    # Tridiagonal system for second derivatives, M[0] = M[n-1] = 0
    A = np.zeros((n, n))
    b = np.zeros(values.shape)

    A[0, 0] = 1.0
    A[n-1, n-1] = 1.0

    for i in range(1, n-1):
        A[i, i-1] = h[i-1]
        A[i, i] = 2 * (h[i-1] + h[i])
        A[i, i+1] = h[i]
        b[i] = 6 * ((values[i+1] - values[i]) / h[i] -
                    (values[i] - values[i-1]) / h[i-1])

    M = np.linalg.solve(A, b)

    # S_i(x) = a_i + b_i*(x-x_i) + c_i*(x-x_i)^2 + d_i*(x-x_i)^3
    coefficients = np.zeros((n-1, 4) + values.shape[1:])
    for i in range(n-1):
        coefficients[i, 0] = values[i]
        coefficients[i, 1] = (values[i+1] - values[i]) / h[i] - h[i] * (M[i+1] + 2*M[i]) / 6
        coefficients[i, 2] = M[i] / 2
        coefficients[i, 3] = (M[i+1] - M[i]) / (6 * h[i])
    return coefficients


class CubicSplineInterpolator(Interpolator):
    """
    Cubic spline interpolation.

    Uses natural cubic splines (second derivative = 0 at boundaries).
    Provides smooth first and second derivatives. Not local: moving one
    knot moves the whole spline.
    """

    is_local = False

    def __init__(self):
        super().__init__()
        self.coefficients: Optional[np.ndarray] = None  # Shape: (n-1, 4) for [a, b, c, d]
        self._basis: Optional[np.ndarray] = None

    def fit(self, times: np.ndarray, values: np.ndarray) -> None:
        """
        Fit natural cubic spline.

        Solves tridiagonal system for second derivatives,
        then computes polynomial coefficients for each interval.
        """
        self._prepare(times, values)
        self.coefficients = _natural_spline_coefficients(self.times, self.values)
        self._basis = None

    def interpolate(self, t: float) -> float:
        """Evaluate cubic spline at point t."""
        self._check_fitted()

        # Flat extrapolation
        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            return float(self.values[-1])

        idx = self._interval(t)
        dx = t - self.times[idx]
        a, b, c, d = self.coefficients[idx]

        return float(a + b*dx + c*dx**2 + d*dx**3)

    def derivative(self, t: float) -> float:
        """First derivative of cubic spline at point t."""
        self._check_fitted()

        if t < self.times[0] or t > self.times[-1]:
            return 0.0

        idx = self._interval(t)
        dx = t - self.times[idx]
        _, b, c, d = self.coefficients[idx]

        return float(b + 2*c*dx + 3*d*dx**2)

    def second_derivative(self, t: float) -> float:
        """Second derivative of cubic spline at point t."""
        self._check_fitted()

        if t <= self.times[0] or t >= self.times[-1]:
            return 0.0

        idx = self._interval(t)
        dx = t - self.times[idx]
        _, _, c, d = self.coefficients[idx]

        return float(2*c + 6*d*dx)

    def weights(self, t: float) -> np.ndarray:
        """Exact knot weights: the spline is linear in its knot values."""
        self._check_fitted()
        n = len(self.times)
        if t <= self.times[0]:
            return np.eye(n)[0]
        if t >= self.times[-1]:
            return np.eye(n)[-1]
        if self._basis is None:
            self._basis = _natural_spline_coefficients(self.times, np.eye(n))
        idx = self._interval(t)
        dx = t - self.times[idx]
        powers = np.array([1.0, dx, dx**2, dx**3])
        return powers @ self._basis[idx]


class MonotonicCubicInterpolator(Interpolator):
    """
    Monotone piecewise cubic Hermite interpolation (PCHIP).

    Preserves the monotonicity of the knot values, so decreasing log
    discount factors stay decreasing between pillars. C1 but not local:
    knot slopes depend on the neighbouring intervals.

    Knot weights are not linear in the values; they are taken by central
    differences, with the perturbed interpolators built once per fit.
    """

    is_local = False
    bump = 1e-7

    def __init__(self):
        super().__init__()
        self._pchip: Optional[PchipInterpolator] = None
        self._perturbed: Optional[List[Tuple[PchipInterpolator, PchipInterpolator, float]]] = None

    def fit(self, times: np.ndarray, values: np.ndarray) -> None:
        self._prepare(times, values)
        self._pchip = PchipInterpolator(self.times, self.values, extrapolate=False)
        self._perturbed = None

    def interpolate(self, t: float) -> float:
        self._check_fitted()
        if t <= self.times[0]:
            return float(self.values[0])
        if t >= self.times[-1]:
            return float(self.values[-1])
        return float(self._pchip(t))

    def derivative(self, t: float) -> float:
        self._check_fitted()
        if t < self.times[0] or t > self.times[-1]:
            return 0.0
        return float(self._pchip(t, 1))

    def weights(self, t: float) -> np.ndarray:
        self._check_fitted()
        n = len(self.times)
        if t <= self.times[0]:
            return np.eye(n)[0]
        if t >= self.times[-1]:
            return np.eye(n)[-1]
        if self._perturbed is None:
            self._perturbed = []
            for k in range(n):
                h = self.bump * max(1.0, abs(self.values[k]))
                up = self.values.copy()
                down = self.values.copy()
                up[k] += h
                down[k] -= h
                self._perturbed.append((
                    PchipInterpolator(self.times, up, extrapolate=False),
                    PchipInterpolator(self.times, down, extrapolate=False),
                    h,
                ))
        return np.array([(up(t) - down(t)) / (2 * h) for up, down, h in self._perturbed], dtype=float)


_SCHEMES: Dict[InterpolationMethod, Tuple[type, str]] = {
    InterpolationMethod.LOG_LINEAR: (LinearInterpolator, LOG_DF),
    InterpolationMethod.FLAT_FORWARD: (FlatForwardInterpolator, LOG_DF),
    InterpolationMethod.MONOTONIC_CUBIC: (MonotonicCubicInterpolator, LOG_DF),
    InterpolationMethod.LINEAR_ZERO_RATE: (LinearInterpolator, ZERO_RATE),
    InterpolationMethod.NATURAL_CUBIC: (CubicSplineInterpolator, ZERO_RATE),
}


def create_interpolator(method: Union[str, InterpolationMethod]) -> Interpolator:
    """
    Factory function to create an interpolator by name.

    Args:
        method: An InterpolationMethod or its name ("log_linear", "cubic", ...)

    Returns:
        Unfitted interpolator instance
    """
    cls, _ = _SCHEMES[InterpolationMethod.from_string(method)]
    return cls()


def value_space(method: Union[str, InterpolationMethod]) -> str:
    """Which quantity a scheme interpolates: LOG_DF or ZERO_RATE."""
    return _SCHEMES[InterpolationMethod.from_string(method)][1]


__all__ = [
    "LOG_DF",
    "ZERO_RATE",
    "Interpolator",
    "LinearInterpolator",
    "FlatForwardInterpolator",
    "CubicSplineInterpolator",
    "MonotonicCubicInterpolator",
    "create_interpolator",
    "value_space",
]
