"""
Bootstrapped yield curve.

BootstrappedCurve provides:
- Discount factor P(0,t)
- Zero rate z(t)
- Forward rate f(t1, t2)
- Instantaneous forward rate f(t)
- Node sensitivities dP(0,t)/dP(0,t_j) for every pillar j

The curve is immutable: its arrays are read-only and every "update"
(with_pillar) returns a new curve, so one instance can be queried from
many threads without locking. PillarSet is the mutable builder used while
a single bootstrap is running.

Conventions:
    - Zero rates are continuously compounded
    - Times are year fractions from anchor date
    - Discount factor at t=0 is 1.0
    - Beyond the last pillar the zero rate is held flat (or an
      OutOfDomainError is raised when extrapolation is off)
"""

from datetime import date
from typing import List, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd

from ..config import InterpolationMethod
from ..conventions import CompoundingConvention, DayCount, year_fraction
from ..errors import InvalidInstrumentError, OutOfDomainError
from .interpolation import LOG_DF, create_interpolator, value_space

TimeLike = Union[float, date]

# Relative slack when comparing a query time with the last pillar
_EDGE = 1e-12


class BootstrappedCurve:
    """
    Discount curve defined by solved pillars and an interpolation scheme.

    Attributes:
        pillars: Pillar maturities (year fractions, strictly increasing)
        discount_factors: Discount factor at each pillar
        interpolation: Interpolation scheme
        allow_extrapolation: Flat zero-rate extrapolation beyond the last pillar
        is_partial: The bootstrap stopped early; queries past the last
            solved pillar always raise
        anchor_date: Optional valuation date, needed for date queries
        day_count: Day count converting dates to times
        name: Label used in diagnostics and sensitivity records
    """

    def __init__(
        self,
        pillars: Sequence[float],
        discount_factors: Sequence[float],
        interpolation: Union[str, InterpolationMethod] = InterpolationMethod.LOG_LINEAR,
        allow_extrapolation: bool = True,
        is_partial: bool = False,
        anchor_date: Optional[date] = None,
        day_count: DayCount = DayCount.ACT_365,
        name: str = "curve"
    ):
        times = np.array(pillars, dtype=np.float64)
        dfs = np.array(discount_factors, dtype=np.float64)
        if times.ndim != 1 or times.shape != dfs.shape:
            raise ValueError("Pillars and discount factors must be 1-d and the same length")
        if len(times) == 0:
            raise ValueError("A curve needs at least one pillar")
        if np.any(times <= 0):
            raise ValueError("Pillar maturities must be positive")
        if np.any(np.diff(times) <= 0):
            raise ValueError("Pillar maturities must be strictly increasing")
        if np.any(~np.isfinite(dfs)) or np.any(dfs <= 0):
            raise ValueError(f"Discount factors must be positive and finite: {dfs}")

        times.flags.writeable = False
        dfs.flags.writeable = False
        self._times = times
        self._dfs = dfs
        self.interpolation = InterpolationMethod.from_string(interpolation)
        self.allow_extrapolation = allow_extrapolation
        self.is_partial = is_partial
        self.anchor_date = anchor_date
        self.day_count = day_count
        self.name = name

        self._space = value_space(self.interpolation)
        zero_rates = -np.log(dfs) / times
        zero_rates.flags.writeable = False
        self._zero_rates = zero_rates

        if self._space == LOG_DF:
            knot_times = np.concatenate(([0.0], times))
            knot_values = np.concatenate(([0.0], np.log(dfs)))
        else:
            knot_times, knot_values = times, zero_rates

        self._interpolator = None
        if len(knot_times) >= 2:
            self._interpolator = create_interpolator(self.interpolation)
            self._interpolator.fit(knot_times, knot_values)
        self._frozen = True

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise AttributeError(f"BootstrappedCurve is immutable; cannot set {name!r}")
        super().__setattr__(name, value)

    def __delattr__(self, name):
        raise AttributeError(f"BootstrappedCurve is immutable; cannot delete {name!r}")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def pillars(self) -> np.ndarray:
        return self._times

    @property
    def discount_factors_at_pillars(self) -> np.ndarray:
        return self._dfs

    @property
    def zero_rates_at_pillars(self) -> np.ndarray:
        return self._zero_rates

    @property
    def max_time(self) -> float:
        return float(self._times[-1])

    @property
    def is_local(self) -> bool:
        """Whether each interval depends only on its two end pillars."""
        return self._interpolator is None or self._interpolator.is_local

    def __len__(self) -> int:
        return len(self._times)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _to_time(self, t: TimeLike) -> float:
        if isinstance(t, date):
            if self.anchor_date is None:
                raise ValueError("Curve has no anchor_date; query with year fractions")
            return year_fraction(self.anchor_date, t, self.day_count)
        return float(t)

    def _check_domain(self, t: float) -> bool:
        """True if t lies beyond the last pillar (and that is allowed)."""
        if t < 0:
            raise OutOfDomainError(t, 0.0, self.max_time, self.is_partial)
        if t <= self.max_time * (1 + _EDGE) + _EDGE:
            return False
        if self.is_partial or not self.allow_extrapolation:
            raise OutOfDomainError(t, 0.0, self.max_time, self.is_partial)
        return True

    def log_discount_factor(self, t: TimeLike) -> float:
        """log P(0,t)."""
        t = self._to_time(t)
        if self._check_domain(t):
            return float(-self._zero_rates[-1] * t)
        if t <= 0:
            return 0.0
        if self._space == LOG_DF:
            return self._interpolator.interpolate(t)
        if t <= self._times[0] or self._interpolator is None:
            return float(-self._zero_rates[0] * t)
        return float(-self._interpolator.interpolate(t) * t)

    def discount_factor(self, t: TimeLike) -> float:
        """
        Get discount factor P(0,t).

        Args:
            t: Year fraction or date

        Returns:
            Discount factor

        Raises:
            OutOfDomainError: t < 0, or t beyond the last pillar on a partial
                curve or a curve without extrapolation
        """
        return float(np.exp(self.log_discount_factor(t)))

    def discount_factors(self, times: Sequence[TimeLike]) -> np.ndarray:
        """Vector of discount factors."""
        return np.array([self.discount_factor(t) for t in times])

    def zero_rate(
        self,
        t: TimeLike,
        compounding: CompoundingConvention = CompoundingConvention.CONTINUOUS
    ) -> float:
        """
        Get zero rate z(t).

        At t=0 the continuously compounded zero rate is its limit, the
        instantaneous forward at 0.

        Args:
            t: Year fraction or date
            compounding: Compounding convention for output

        Returns:
            Zero rate (default continuously compounded)
        """
        t = self._to_time(t)
        if t <= 0:
            self._check_domain(t)
            zr_cont = self.instantaneous_forward(0.0)
            if compounding in (CompoundingConvention.CONTINUOUS, CompoundingConvention.SIMPLE):
                return zr_cont
        else:
            zr_cont = -self.log_discount_factor(t) / t

        if compounding == CompoundingConvention.CONTINUOUS:
            return zr_cont
        if compounding == CompoundingConvention.SIMPLE:
            return float(np.expm1(zr_cont * t) / t)
        m = compounding.periods_per_year
        return float(m * np.expm1(zr_cont / m))

    def forward_rate(
        self,
        t1: TimeLike,
        t2: TimeLike,
        compounding: CompoundingConvention = CompoundingConvention.SIMPLE
    ) -> float:
        """
        Get forward rate f(t1, t2) from the ratio of two discount factors.

        Args:
            t1: Start time (year fraction or date)
            t2: End time (year fraction or date)
            compounding: SIMPLE (default) or CONTINUOUS

        Returns:
            Forward rate between t1 and t2
        """
        t1 = self._to_time(t1)
        t2 = self._to_time(t2)

        if t2 <= t1:
            raise ValueError("t2 must be greater than t1")

        delta = t2 - t1
        log_ratio = self.log_discount_factor(t1) - self.log_discount_factor(t2)

        if compounding == CompoundingConvention.CONTINUOUS:
            return float(log_ratio / delta)
        if compounding == CompoundingConvention.SIMPLE:
            return float(np.expm1(log_ratio) / delta)
        raise ValueError(f"Unsupported forward compounding: {compounding}")

    def instantaneous_forward(self, t: TimeLike) -> float:
        """
        Instantaneous forward rate f(t) = -d/dt log P(0,t).

        For flat-forward curves this is the right-hand limit at a pillar.
        """
        t = self._to_time(t)
        if self._check_domain(t):
            return float(self._zero_rates[-1])
        if self._interpolator is None:
            return float(self._zero_rates[0])
        if self._space == LOG_DF:
            return -self._interpolator.derivative(max(t, 0.0))
        if t <= self._times[0]:
            return float(self._zero_rates[0])
        z = self._interpolator.interpolate(t)
        return float(z + t * self._interpolator.derivative(t))

    # ------------------------------------------------------------------
    # Sensitivities
    # ------------------------------------------------------------------

    def node_sensitivities(self, t: TimeLike) -> np.ndarray:
        """
        dP(0,t)/dP(0,t_j) for every pillar j.

        Log-DF schemes: P(t) * w_j(t) / P_j, with w the knot weights of the
        interpolator (the t=0 anchor knot is fixed). Zero-rate schemes:
        P(t) * t * w_j(t) / (t_j * P_j).
        """
        t = self._to_time(t)
        n = len(self._times)
        out = np.zeros(n)
        beyond = self._check_domain(t)
        if t <= 0:
            return out
        df = self.discount_factor(t)

        if beyond:
            out[-1] = df * t / (self._times[-1] * self._dfs[-1])
            return out

        if self._space == LOG_DF:
            w = self._interpolator.weights(t)[1:]
            return df * w / self._dfs

        if t <= self._times[0] or self._interpolator is None:
            out[0] = df * t / (self._times[0] * self._dfs[0])
            return out
        w = self._interpolator.weights(t)
        return df * t * w / (self._times * self._dfs)

    def node_sensitivity_matrix(self, times: Sequence[TimeLike]) -> np.ndarray:
        """Rows of node_sensitivities for several times."""
        return np.vstack([self.node_sensitivities(t) for t in times]) if len(times) else \
            np.zeros((0, len(self._times)))

    # ------------------------------------------------------------------
    # Derived curves and views
    # ------------------------------------------------------------------

    def pillar_index(self, t: float, tol: float = 1e-10) -> Optional[int]:
        """Index of the pillar at t, or None."""
        idx = int(np.argmin(np.abs(self._times - t)))
        return idx if abs(self._times[idx] - t) <= tol else None

    def with_pillar(self, t: float, df: float, **overrides) -> "BootstrappedCurve":
        """New curve with a pillar inserted, or replaced if one exists at t."""
        times = list(self._times)
        dfs = list(self._dfs)
        idx = self.pillar_index(t)
        if idx is not None:
            dfs[idx] = df
        else:
            pos = int(np.searchsorted(self._times, t))
            times.insert(pos, t)
            dfs.insert(pos, df)
        return self._replace(times, dfs, **overrides)

    def with_discount_factors(self, dfs: Sequence[float], **overrides) -> "BootstrappedCurve":
        """New curve on the same pillars with different discount factors."""
        return self._replace(list(self._times), list(dfs), **overrides)

    def _replace(self, times, dfs, **overrides) -> "BootstrappedCurve":
        kwargs = dict(
            interpolation=self.interpolation,
            allow_extrapolation=self.allow_extrapolation,
            is_partial=self.is_partial,
            anchor_date=self.anchor_date,
            day_count=self.day_count,
            name=self.name,
        )
        kwargs.update(overrides)
        return BootstrappedCurve(times, dfs, **kwargs)

    def to_frame(self) -> pd.DataFrame:
        """Pillar table: time, discount factor, zero rate, forward to next pillar."""
        knots = np.concatenate(([0.0], self._times))
        forwards = [self.forward_rate(a, b, CompoundingConvention.CONTINUOUS)
                    for a, b in zip(knots[:-1], knots[1:])]
        frame = pd.DataFrame({
            "time": self._times,
            "discount_factor": self._dfs,
            "zero_rate": self._zero_rates,
            "forward_rate": forwards,
        })
        if self.anchor_date is not None:
            frame.insert(0, "anchor_date", self.anchor_date)
        return frame

    def __repr__(self) -> str:
        partial = ", partial" if self.is_partial else ""
        return (f"BootstrappedCurve(name={self.name!r}, pillars={len(self)}, "
                f"method={self.interpolation.value}{partial})")


class PillarSet:
    """
    Ordered (maturity, discount factor) pairs built up during one bootstrap.

    Not shared: each bootstrap owns its PillarSet and freezes it into a
    BootstrappedCurve at the end.
    """

    def __init__(
        self,
        interpolation: Union[str, InterpolationMethod] = InterpolationMethod.LOG_LINEAR,
        allow_extrapolation: bool = True,
        anchor_date: Optional[date] = None,
        day_count: DayCount = DayCount.ACT_365,
        name: str = "curve"
    ):
        self.interpolation = InterpolationMethod.from_string(interpolation)
        self.allow_extrapolation = allow_extrapolation
        self.anchor_date = anchor_date
        self.day_count = day_count
        self.name = name
        self.times: List[float] = []
        self.discount_factors: List[float] = []

    def __len__(self) -> int:
        return len(self.times)

    @property
    def last(self) -> Tuple[float, float]:
        """Last (time, discount factor), or the (0, 1) anchor when empty."""
        if not self.times:
            return 0.0, 1.0
        return self.times[-1], self.discount_factors[-1]

    def append(self, t: float, df: float) -> None:
        if t <= 0:
            raise InvalidInstrumentError("Maturity must be positive", t)
        if df <= 0 or not np.isfinite(df):
            raise ValueError(f"Discount factor must be positive, got {df}")
        if self.times and t <= self.times[-1]:
            raise ValueError(
                f"New maturity {t} must be greater than last maturity {self.times[-1]}"
            )
        self.times.append(float(t))
        self.discount_factors.append(float(df))

    def set(self, index: int, df: float) -> None:
        """Overwrite one pillar's discount factor (global re-solve passes)."""
        self.discount_factors[index] = float(df)

    def freeze(self, is_partial: bool = False, allow_extrapolation: Optional[bool] = None) -> BootstrappedCurve:
        return BootstrappedCurve(
            self.times,
            self.discount_factors,
            interpolation=self.interpolation,
            allow_extrapolation=self.allow_extrapolation if allow_extrapolation is None
            else allow_extrapolation,
            is_partial=is_partial,
            anchor_date=self.anchor_date,
            day_count=self.day_count,
            name=self.name,
        )

    def with_trial(self, t: float, df: float) -> BootstrappedCurve:
        """
        Curve of the solved pillars plus a trial pillar at t.

        Extrapolation is always on for trial curves: cash flows short of the
        trial pillar are covered, and nothing beyond it is priced.
        """
        times = list(self.times)
        dfs = list(self.discount_factors)
        if times and abs(times[-1] - t) <= 1e-10:
            dfs[-1] = df
        elif times and t < times[-1]:
            pos = int(np.searchsorted(times, t))
            if abs(times[pos] - t) <= 1e-10:
                dfs[pos] = df
            else:
                times.insert(pos, t)
                dfs.insert(pos, df)
        else:
            times.append(t)
            dfs.append(df)
        return BootstrappedCurve(
            times, dfs,
            interpolation=self.interpolation,
            allow_extrapolation=True,
            anchor_date=self.anchor_date,
            day_count=self.day_count,
            name=self.name,
        )


def create_flat_curve(
    rate: float,
    max_tenor_years: float = 30.0,
    interpolation: Union[str, InterpolationMethod] = InterpolationMethod.LOG_LINEAR,
    anchor_date: Optional[date] = None,
    name: str = "flat"
) -> BootstrappedCurve:
    """
    Create a flat continuously compounded curve.

    Args:
        rate: Flat continuously compounded rate
        max_tenor_years: Maximum tenor in years
    """
    times = [t for t in (0.25, 0.5, 1, 2, 5, 10, 20) if t < max_tenor_years] + [max_tenor_years]
    dfs = [np.exp(-rate * t) for t in times]
    return BootstrappedCurve(times, dfs, interpolation, anchor_date=anchor_date, name=name)


__all__ = [
    "BootstrappedCurve",
    "PillarSet",
    "create_flat_curve",
]
