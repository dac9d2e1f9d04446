"""
Build curve instruments from market quote dictionaries.

Quotes are given against tenors from a valuation (anchor) date. Dates are
rolled with the business day calendar and converted to curve times with
the curve's day count, so the instruments only ever see year fractions.

Example quote format:
    {"instrument_type": "OIS", "tenor": "5Y", "quote": 0.0415}
    {"instrument_type": "IRS", "tenor": "10Y", "quote": 0.043,
     "fixed_freq": "ANNUAL", "float_freq": "QUARTERLY"}
    {"instrument_type": "FRA", "start_tenor": "3M", "tenor": "6M", "quote": 0.0452}
    {"instrument_type": "FUT", "tenor": "6M", "quote": 95.40, "convexity": 0.0001}
"""

from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
import logging

from ..config import BootstrapConfig
from ..conventions import (
    BusinessDayConvention,
    DayCount,
    Frequency,
    adjust_business_day,
    year_fraction
)
from ..dates import DateUtils
from ..errors import CollaboratorError, InvalidInstrumentError
from .bootstrap import BootstrapOutcome, CurveBootstrapper
from .curve import BootstrappedCurve
from .instruments import FRA, CurveInstrument, Future, InterestRateSwap, OISSwap

logger = logging.getLogger(__name__)


def _call(collaborator: str, func: Callable, *args, **kwargs) -> Any:
    """Run a calendar/day-count/schedule function, wrapping its failures."""
    try:
        return func(*args, **kwargs)
    except (ValueError, TypeError, OverflowError) as exc:
        raise CollaboratorError(collaborator, str(exc)) from exc


class _QuoteReader:
    """Date arithmetic for one anchor date and calendar."""

    def __init__(
        self,
        anchor_date: date,
        day_count: DayCount,
        convention: BusinessDayConvention,
        holidays: Optional[set]
    ):
        self.anchor_date = anchor_date
        self.day_count = day_count
        self.convention = convention
        self.holidays = holidays

    def roll(self, start: date, tenor: str) -> date:
        unadjusted = _call("DateUtils.add_tenor", DateUtils.add_tenor, start, tenor, self.holidays)
        return _call("adjust_business_day", adjust_business_day,
                     unadjusted, self.convention, self.holidays)

    def time(self, d: date) -> float:
        return _call("year_fraction", year_fraction, self.anchor_date, d, self.day_count)

    def schedule(self, end_tenor: str, frequency: Frequency) -> List[float]:
        end = _call("DateUtils.add_tenor", DateUtils.add_tenor,
                    self.anchor_date, end_tenor, self.holidays)
        return _call(
            "DateUtils.payment_times", DateUtils.payment_times,
            self.anchor_date, self.anchor_date, end, frequency,
            self.day_count, self.convention, self.holidays
        )


def _frequency(q: Mapping[str, Any], key: str, default: Frequency) -> Frequency:
    value = q.get(key)
    if value is None:
        return default
    try:
        return Frequency.from_string(value) if isinstance(value, str) else Frequency(value)
    except ValueError as exc:
        raise InvalidInstrumentError(f"Bad {key} {value!r}: {exc}") from exc


def instrument_from_quote(
    q: Mapping[str, Any],
    anchor_date: date,
    day_count: DayCount = DayCount.ACT_365,
    convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
    holidays: Optional[set] = None
) -> CurveInstrument:
    """
    Turn one quote dictionary into an instrument.

    Keys: instrument_type (OIS, IRS/SWAP, FRA, FUT/FUTURE), tenor, quote,
    and optionally start_tenor (FRA), pay_freq (OIS), fixed_freq and
    float_freq (IRS), convexity and period (futures), name.

    Raises:
        InvalidInstrumentError: Missing or unusable fields
        CollaboratorError: The calendar or day count rejected a date
    """
    reader = _QuoteReader(anchor_date, day_count, convention, holidays)
    inst_type = str(q.get("instrument_type", "")).upper().strip()
    tenor = q.get("tenor")
    if not tenor:
        raise InvalidInstrumentError(f"Quote without a tenor: {dict(q)}")
    if q.get("quote") is None:
        raise InvalidInstrumentError(f"Quote without a value: {dict(q)}")
    try:
        quote = float(q["quote"])
    except (TypeError, ValueError) as exc:
        raise InvalidInstrumentError(f"Quote value {q['quote']!r} is not a number") from exc

    if inst_type == "OIS":
        times = reader.schedule(tenor, _frequency(q, "pay_freq", Frequency.ANNUAL))
        return OISSwap(
            maturity_years=times[-1],
            quote=quote,
            payment_times=tuple(times),
            name=q.get("name") or f"OIS {tenor}",
        )

    if inst_type in ("IRS", "SWAP"):
        fixed = reader.schedule(tenor, _frequency(q, "fixed_freq", Frequency.ANNUAL))
        floating = reader.schedule(tenor, _frequency(q, "float_freq", Frequency.QUARTERLY))
        return InterestRateSwap(
            maturity_years=fixed[-1],
            quote=quote,
            fixed_times=tuple(fixed),
            float_times=tuple(floating),
            name=q.get("name") or f"IRS {tenor}",
        )

    if inst_type == "FRA":
        start_tenor = q.get("start_tenor", "0D")
        start = reader.roll(anchor_date, start_tenor) if start_tenor != "0D" else anchor_date
        end = reader.roll(anchor_date, tenor)
        return FRA(
            start=reader.time(start),
            end=reader.time(end),
            quote=quote,
            name=q.get("name") or f"FRA {start_tenor}x{tenor}",
        )

    if inst_type in ("FUT", "FUTURE"):
        expiry = reader.roll(anchor_date, tenor)
        accrual_end = reader.roll(expiry, q.get("period", "3M"))
        t_expiry = reader.time(expiry)
        return Future(
            expiry=t_expiry,
            price=quote,
            convexity_adjustment=float(q.get("convexity", 0.0)),
            period=reader.time(accrual_end) - t_expiry,
            name=q.get("name") or f"FUT {tenor}",
        )

    raise InvalidInstrumentError(
        f"Unknown instrument type {inst_type!r}: use OIS, IRS, FRA or FUT"
    )


def instruments_from_quotes(
    anchor_date: date,
    quotes: Iterable[Mapping[str, Any]],
    day_count: DayCount = DayCount.ACT_365,
    convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
    holidays: Optional[set] = None
) -> List[CurveInstrument]:
    """Instruments for a list of quote dictionaries, in input order."""
    instruments = [
        instrument_from_quote(q, anchor_date, day_count, convention, holidays)
        for q in quotes
    ]
    logger.debug("Built %d instruments from quotes as of %s", len(instruments), anchor_date)
    return instruments


def bootstrap_outcome_from_quotes(
    anchor_date: date,
    quotes: Iterable[Mapping[str, Any]],
    config: Optional[BootstrapConfig] = None,
    discount_curve=None,
    name: str = "curve",
    day_count: DayCount = DayCount.ACT_365,
    holidays: Optional[set] = None
) -> BootstrapOutcome:
    """Bootstrap quote dictionaries, returning the full outcome."""
    instruments = instruments_from_quotes(anchor_date, quotes, day_count, holidays=holidays)
    bootstrapper = CurveBootstrapper(
        config,
        discount_curve=discount_curve,
        name=name,
        anchor_date=anchor_date,
        day_count=day_count,
    )
    return bootstrapper.bootstrap(instruments)


def bootstrap_from_quotes(
    anchor_date: date,
    quotes: Iterable[Mapping[str, Any]],
    config: Optional[BootstrapConfig] = None,
    discount_curve=None,
    name: str = "curve",
    day_count: DayCount = DayCount.ACT_365,
    holidays: Optional[set] = None
) -> BootstrappedCurve:
    """
    Convenience function to bootstrap a curve from quote dictionaries.

    Args:
        anchor_date: Valuation date
        quotes: List of dicts with keys: instrument_type, tenor, quote, ...
        config: Bootstrap settings
        discount_curve: Separate discounting curve (or its outcome)
        name: Curve label
        day_count: Day count converting dates to curve times
        holidays: Holiday calendar

    Returns:
        Bootstrapped curve, dated at anchor_date

    Raises:
        BootstrapError: Any failure, including a partial bootstrap
    """
    outcome = bootstrap_outcome_from_quotes(
        anchor_date, quotes, config, discount_curve, name, day_count, holidays
    )
    if outcome.is_partial:
        raise outcome.failure.to_error()
    return outcome.curve


__all__ = [
    "instrument_from_quote",
    "instruments_from_quotes",
    "bootstrap_outcome_from_quotes",
    "bootstrap_from_quotes",
]
