"""
Curve instruments for bootstrapping.

The closed set of instruments a curve can be built from:
- OISSwap: Overnight index swaps (compounded overnight leg vs fixed)
- InterestRateSwap: Fixed vs term-rate floating swaps
- FRA: Forward rate agreements
- Future: Interest rate futures (price quoted, convexity adjusted)

Each instrument is immutable and knows how to:
1. Report its maturity (the pillar it pins down) and quoted rate
2. Imply its par rate from a projection curve and, for swaps, a
   discounting curve
3. Give the residual (implied - quoted) of a trial pillar discount factor
   and its derivative
4. Give the gradient of its implied rate with respect to every pillar
   discount factor of the curves it reads

Times are year fractions from the curve anchor. When no payment times are
given, swap schedules run forward from t=0 in regular periods with a final
short stub ending at the maturity.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..config import NegativeRatePolicy
from ..conventions import Frequency
from ..errors import (
    DuplicateMaturityError,
    InsufficientInstrumentsError,
    InvalidInstrumentError,
    NegativeRateError,
    format_maturity,
)

Partials = Dict[float, float]

# Maturities closer than this are the same pillar
MATURITY_TOLERANCE = 1e-10


class InstrumentType(Enum):
    """Instrument kind tag."""
    OIS = "OIS"
    IRS = "IRS"
    FRA = "FRA"
    FUTURE = "FUT"


def _trial_curve(reference, t: float, df: float):
    """The reference curve with a trial pillar (t, df)."""
    if hasattr(reference, "with_trial"):
        return reference.with_trial(t, df)
    return reference.with_pillar(t, df, allow_extrapolation=True, is_partial=False)


def _add(partials: Partials, t: float, value: float) -> None:
    if t > 0.0:
        partials[t] = partials.get(t, 0.0) + value


def regular_schedule(maturity: float, frequency: Frequency) -> Tuple[float, ...]:
    """Payment times every 1/frequency years from 0, ending with a stub at maturity."""
    period = frequency.period_years
    n_full = int(np.floor(maturity / period + 1e-9))
    times = [period * k for k in range(1, n_full + 1) if period * k < maturity - 1e-8]
    times.append(maturity)
    return tuple(times)


def _check_times(times: Sequence[float], maturity: float, label: str) -> Tuple[float, ...]:
    times = tuple(float(t) for t in times)
    if not times:
        raise InvalidInstrumentError(f"{label} payment times are empty", maturity)
    if times[0] <= 0 or any(b <= a for a, b in zip(times[:-1], times[1:])):
        raise InvalidInstrumentError(
            f"{label} payment times must be positive and strictly increasing: {times}", maturity
        )
    if abs(times[-1] - maturity) > MATURITY_TOLERANCE:
        raise InvalidInstrumentError(
            f"{label} payment times end at {times[-1]}, not at maturity {maturity}", maturity
        )
    return times


class CurveInstrument(ABC):
    """
    Abstract base for curve construction instruments.

    Subclasses are frozen dataclasses exposing ``maturity``, ``rate`` (the
    quoted rate in decimal) and an optional ``name``.
    """

    kind: InstrumentType

    @property
    @abstractmethod
    def maturity(self) -> float:
        """Pillar time this instrument determines."""

    @property
    @abstractmethod
    def rate(self) -> float:
        """Quoted rate (decimal)."""

    @abstractmethod
    def _label(self) -> str:
        pass

    @property
    def instrument_id(self) -> str:
        return self.name or self._label()

    @abstractmethod
    def implied_rate(self, curve, discount_curve=None) -> float:
        """
        Par rate implied by the curves.

        Args:
            curve: Projection curve (also the discounting curve when
                discount_curve is None)
            discount_curve: Optional separate discounting curve
        """

    @abstractmethod
    def rate_partials(self, curve, discount_curve=None) -> Tuple[Partials, Partials]:
        """
        Partial derivatives of the implied rate with respect to discount
        factors at cash-flow times.

        Returns:
            ({t: dR/dP(t)} on the projection curve,
             {t: dR/dD(t)} on the discounting curve)
        """

    def cash_flow_times(self) -> Tuple[float, ...]:
        """Every time at which the instrument reads a curve."""
        return (self.maturity,)

    def discount_times(self) -> Tuple[float, ...]:
        """Times at which the instrument reads the discounting curve."""
        return ()

    # ------------------------------------------------------------------
    # Residual interface used by the solver
    # ------------------------------------------------------------------

    def residual(self, trial_df: float, reference, discount_curve=None) -> float:
        """
        Implied minus quoted rate with the pillar at this maturity set to trial_df.

        Args:
            trial_df: Trial discount factor at the maturity
            reference: Curve built so far (PillarSet or BootstrappedCurve)
            discount_curve: Optional separate discounting curve
        """
        trial = _trial_curve(reference, self.maturity, trial_df)
        return self.implied_rate(trial, discount_curve) - self.rate

    def residual_derivative(self, trial_df: float, reference, discount_curve=None) -> float:
        """d residual / d trial_df."""
        trial = _trial_curve(reference, self.maturity, trial_df)
        idx = trial.pillar_index(self.maturity)
        return float(self.pillar_gradient(trial, discount_curve)[idx])

    def rate_derivative(self) -> float:
        """d residual / d quoted rate."""
        return -1.0

    def pillar_gradient(self, curve, discount_curve=None) -> np.ndarray:
        """dR/dx_j for every pillar discount factor x_j of ``curve``."""
        projection, discounting = self.rate_partials(curve, discount_curve)
        gradient = np.zeros(len(curve))
        for t, value in projection.items():
            gradient += value * curve.node_sensitivities(t)
        if discount_curve is None:
            for t, value in discounting.items():
                gradient += value * curve.node_sensitivities(t)
        return gradient

    def discount_gradient(self, curve, discount_curve) -> np.ndarray:
        """dR/dz_k for every pillar discount factor z_k of ``discount_curve``."""
        _, discounting = self.rate_partials(curve, discount_curve)
        gradient = np.zeros(len(discount_curve))
        for t, value in discounting.items():
            gradient += value * discount_curve.node_sensitivities(t)
        return gradient

    def initial_guess(self, previous_time: float, previous_df: float) -> float:
        """Discount factor accruing the quote simply from the previous pillar."""
        guess = previous_df / (1.0 + self.rate * (self.maturity - previous_time))
        return guess if guess > 0 else 0.5 * previous_df

    # ------------------------------------------------------------------
    # Validation and bumping
    # ------------------------------------------------------------------

    def validate(self, max_maturity: float) -> None:
        """Bootstrap-time checks beyond construction."""
        if self.maturity > max_maturity:
            raise InvalidInstrumentError(
                f"Maturity {self.maturity:.6g}y exceeds the maximum of {max_maturity:.6g}y",
                self.maturity, self.instrument_id
            )

    def bumped(self, amount: float) -> "CurveInstrument":
        """Copy with the quoted rate shifted by ``amount`` (decimal)."""
        return replace(self, quote=self.quote + amount)

    def _check_maturity(self, maturity: float) -> None:
        if not np.isfinite(maturity) or maturity <= 0:
            raise InvalidInstrumentError(
                f"Maturity must be positive, got {maturity}", maturity, self.name
            )


def _swap_legs(curve, discount_curve, fixed_times, float_times):
    """Annuity and float leg value plus their period data."""
    disc = discount_curve if discount_curve is not None else curve
    fixed_starts = (0.0,) + fixed_times[:-1]
    float_starts = (0.0,) + float_times[:-1]

    annuity = 0.0
    for s, e in zip(fixed_starts, fixed_times):
        annuity += (e - s) * disc.discount_factor(e)

    floating = 0.0
    periods = []
    for s, e in zip(float_starts, float_times):
        p_s = curve.discount_factor(s)
        p_e = curve.discount_factor(e)
        d_e = disc.discount_factor(e)
        floating += (p_s / p_e - 1.0) * d_e
        periods.append((s, e, p_s, p_e, d_e))
    return annuity, floating, periods


def _swap_partials(curve, discount_curve, fixed_times, float_times) -> Tuple[Partials, Partials]:
    annuity, floating, periods = _swap_legs(curve, discount_curve, fixed_times, float_times)
    par = floating / annuity
    projection: Partials = {}
    discounting: Partials = {}
    for s, e, p_s, p_e, d_e in periods:
        _add(projection, s, d_e / (p_e * annuity))
        _add(projection, e, -p_s * d_e / (p_e * p_e * annuity))
        _add(discounting, e, (p_s / p_e - 1.0) / annuity)
    fixed_starts = (0.0,) + fixed_times[:-1]
    for s, e in zip(fixed_starts, fixed_times):
        _add(discounting, e, -par * (e - s) / annuity)
    return projection, discounting


def _forward_partials(curve, start: float, end: float) -> Partials:
    tau = end - start
    p_s = curve.discount_factor(start)
    p_e = curve.discount_factor(end)
    partials: Partials = {}
    _add(partials, start, 1.0 / (p_e * tau))
    _add(partials, end, -p_s / (p_e * p_e * tau))
    return partials


@dataclass(frozen=True)
class OISSwap(CurveInstrument):
    """
    Overnight Index Swap.

    Fixed leg pays the quote on each period; the floating leg pays the
    compounded overnight rate over the same periods, worth
    P(s)/P(e) - 1 per period on the projection curve.

    Par rate: R = sum((P(s_i)/P(e_i) - 1) * D(e_i)) / sum(tau_i * D(e_i)).
    Self-discounted (D = P) this is the familiar (1 - P(T)) / annuity.
    """
    maturity_years: float
    quote: float
    payment_frequency: Frequency = Frequency.ANNUAL
    payment_times: Optional[Tuple[float, ...]] = None
    name: Optional[str] = None

    kind = InstrumentType.OIS

    def __post_init__(self):
        self._check_maturity(self.maturity_years)
        if isinstance(self.payment_frequency, str):
            object.__setattr__(self, "payment_frequency", Frequency.from_string(self.payment_frequency))
        if self.payment_times is not None:
            object.__setattr__(
                self, "payment_times",
                _check_times(self.payment_times, self.maturity_years, self._label())
            )

    @property
    def maturity(self) -> float:
        return self.maturity_years

    @property
    def rate(self) -> float:
        return self.quote

    def _label(self) -> str:
        return f"OIS {format_maturity(self.maturity_years)}"

    @property
    def schedule(self) -> Tuple[float, ...]:
        if self.payment_times is not None:
            return self.payment_times
        return regular_schedule(self.maturity_years, self.payment_frequency)

    def cash_flow_times(self) -> Tuple[float, ...]:
        return self.schedule

    def discount_times(self) -> Tuple[float, ...]:
        return self.schedule

    def implied_rate(self, curve, discount_curve=None) -> float:
        annuity, floating, _ = _swap_legs(curve, discount_curve, self.schedule, self.schedule)
        return floating / annuity

    def rate_partials(self, curve, discount_curve=None) -> Tuple[Partials, Partials]:
        return _swap_partials(curve, discount_curve, self.schedule, self.schedule)


@dataclass(frozen=True)
class InterestRateSwap(CurveInstrument):
    """
    Vanilla fixed-for-floating swap.

    Fixed leg on ``fixed_frequency`` periods, floating leg projecting the
    term rate on ``float_frequency`` periods. Same par-rate formula as the
    OIS with separate leg schedules.
    """
    maturity_years: float
    quote: float
    fixed_frequency: Frequency = Frequency.ANNUAL
    float_frequency: Frequency = Frequency.QUARTERLY
    fixed_times: Optional[Tuple[float, ...]] = None
    float_times: Optional[Tuple[float, ...]] = None
    name: Optional[str] = None

    kind = InstrumentType.IRS

    def __post_init__(self):
        self._check_maturity(self.maturity_years)
        for attr in ("fixed_frequency", "float_frequency"):
            value = getattr(self, attr)
            if isinstance(value, str):
                object.__setattr__(self, attr, Frequency.from_string(value))
        for attr in ("fixed_times", "float_times"):
            value = getattr(self, attr)
            if value is not None:
                object.__setattr__(self, attr, _check_times(value, self.maturity_years, self._label()))

    @property
    def maturity(self) -> float:
        return self.maturity_years

    @property
    def rate(self) -> float:
        return self.quote

    def _label(self) -> str:
        return f"IRS {format_maturity(self.maturity_years)}"

    @property
    def fixed_schedule(self) -> Tuple[float, ...]:
        if self.fixed_times is not None:
            return self.fixed_times
        return regular_schedule(self.maturity_years, self.fixed_frequency)

    @property
    def float_schedule(self) -> Tuple[float, ...]:
        if self.float_times is not None:
            return self.float_times
        return regular_schedule(self.maturity_years, self.float_frequency)

    def cash_flow_times(self) -> Tuple[float, ...]:
        return tuple(sorted(set(self.fixed_schedule) | set(self.float_schedule)))

    def discount_times(self) -> Tuple[float, ...]:
        return self.cash_flow_times()

    def implied_rate(self, curve, discount_curve=None) -> float:
        annuity, floating, _ = _swap_legs(
            curve, discount_curve, self.fixed_schedule, self.float_schedule
        )
        return floating / annuity

    def rate_partials(self, curve, discount_curve=None) -> Tuple[Partials, Partials]:
        return _swap_partials(curve, discount_curve, self.fixed_schedule, self.float_schedule)


@dataclass(frozen=True)
class FRA(CurveInstrument):
    """
    Forward Rate Agreement on [start, end].

    Implied rate: F = (P(start)/P(end) - 1) / (end - start), simple
    compounding on the projection curve. Determines the pillar at ``end``.
    """
    start: float
    end: float
    quote: float
    name: Optional[str] = None

    kind = InstrumentType.FRA

    def __post_init__(self):
        self._check_maturity(self.end)
        if self.start < 0 or self.start >= self.end:
            raise InvalidInstrumentError(
                f"FRA needs 0 <= start < end, got start={self.start}, end={self.end}",
                self.end, self.name
            )

    @property
    def maturity(self) -> float:
        return self.end

    @property
    def rate(self) -> float:
        return self.quote

    def _label(self) -> str:
        return f"FRA {format_maturity(self.start) if self.start > 0 else '0M'}x{format_maturity(self.end)}"

    def cash_flow_times(self) -> Tuple[float, ...]:
        return (self.start, self.end) if self.start > 0 else (self.end,)

    def implied_rate(self, curve, discount_curve=None) -> float:
        return curve.forward_rate(self.start, self.end)

    def rate_partials(self, curve, discount_curve=None) -> Tuple[Partials, Partials]:
        return _forward_partials(curve, self.start, self.end), {}


@dataclass(frozen=True)
class Future(CurveInstrument):
    """
    Interest rate future.

    Quoted as a price; the futures rate is (100 - price) / 100. The implied
    futures rate is the simple forward over [expiry, expiry + period] plus
    the convexity adjustment. Determines the pillar at expiry + period.
    """
    expiry: float
    price: float
    convexity_adjustment: float = 0.0
    period: float = 0.25
    name: Optional[str] = None

    kind = InstrumentType.FUTURE

    def __post_init__(self):
        self._check_maturity(self.expiry + self.period)
        if self.expiry < 0 or self.period <= 0:
            raise InvalidInstrumentError(
                f"Future needs expiry >= 0 and period > 0, got {self.expiry}, {self.period}",
                self.expiry + self.period, self.name
            )
        if not 0.0 < self.price < 200.0:
            raise InvalidInstrumentError(
                f"Future price {self.price} outside (0, 200)", self.expiry + self.period, self.name
            )

    @classmethod
    def from_rate(cls, expiry: float, rate: float, **kwargs) -> "Future":
        """Build from a futures rate (decimal) instead of a price."""
        return cls(expiry=expiry, price=100.0 * (1.0 - rate), **kwargs)

    @property
    def maturity(self) -> float:
        return self.expiry + self.period

    @property
    def rate(self) -> float:
        return (100.0 - self.price) / 100.0

    @property
    def quote(self) -> float:
        return self.rate

    def _label(self) -> str:
        return f"FUT {format_maturity(self.expiry) if self.expiry > 0 else '0M'}+{format_maturity(self.period)}"

    def cash_flow_times(self) -> Tuple[float, ...]:
        return (self.expiry, self.maturity) if self.expiry > 0 else (self.maturity,)

    def implied_rate(self, curve, discount_curve=None) -> float:
        return curve.forward_rate(self.expiry, self.maturity) + self.convexity_adjustment

    def rate_partials(self, curve, discount_curve=None) -> Tuple[Partials, Partials]:
        return _forward_partials(curve, self.expiry, self.maturity), {}

    def bumped(self, amount: float) -> "Future":
        """A rate bump of +amount is a price move of -100 * amount."""
        return replace(self, price=self.price - 100.0 * amount)


def validate_instruments(
    instruments: Iterable[CurveInstrument],
    max_maturity: float = 50.0,
    negative_rate_policy: NegativeRatePolicy = NegativeRatePolicy.REJECT,
    minimum: int = 1,
) -> Tuple[List[CurveInstrument], List[str]]:
    """
    Check an instrument collection before any solving.

    Returns:
        (instruments sorted by maturity, warnings for accepted negative quotes)

    Raises:
        InsufficientInstrumentsError: Fewer than ``minimum`` instruments
        InvalidInstrumentError: Maturity beyond ``max_maturity``
        DuplicateMaturityError: Two instruments share a maturity
        NegativeRateError: Negative quote under the REJECT policy
    """
    instruments = list(instruments)
    if len(instruments) < minimum:
        raise InsufficientInstrumentsError(minimum, len(instruments))

    for inst in instruments:
        if not isinstance(inst, CurveInstrument):
            raise InvalidInstrumentError(f"Not a curve instrument: {inst!r}")
        inst.validate(max_maturity)

    ordered = sorted(instruments, key=lambda inst: inst.maturity)
    for prev, cur in zip(ordered[:-1], ordered[1:]):
        if abs(cur.maturity - prev.maturity) <= MATURITY_TOLERANCE:
            clash = [i.instrument_id for i in ordered
                     if abs(i.maturity - cur.maturity) <= MATURITY_TOLERANCE]
            raise DuplicateMaturityError(cur.maturity, clash)

    warnings = []
    for inst in ordered:
        if inst.rate < 0:
            if negative_rate_policy == NegativeRatePolicy.REJECT:
                raise NegativeRateError(inst.maturity, inst.rate, inst.instrument_id)
            warnings.append(
                f"Negative quoted rate {inst.rate:.6%} for {inst.instrument_id} accepted"
            )
    return ordered, warnings


__all__ = [
    "MATURITY_TOLERANCE",
    "InstrumentType",
    "CurveInstrument",
    "OISSwap",
    "InterestRateSwap",
    "FRA",
    "Future",
    "regular_schedule",
    "validate_instruments",
]
