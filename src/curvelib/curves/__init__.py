"""
Curves package - yield curve bootstrapping.

Provides:
- BootstrappedCurve: Immutable curve of pillar discount factors with interpolation
- CurveBootstrapper: Sequential Newton/Brent bootstrap with diagnostics
- MultiCurveBuilder: Discounting curve plus per-tenor projection curves
- Curve instruments: OIS, interest rate swaps, FRAs, futures
"""

from .curve import BootstrappedCurve, PillarSet, create_flat_curve
from .interpolation import (
    Interpolator,
    LinearInterpolator,
    FlatForwardInterpolator,
    CubicSplineInterpolator,
    MonotonicCubicInterpolator,
    create_interpolator,
)
from .instruments import (
    InstrumentType,
    CurveInstrument,
    OISSwap,
    InterestRateSwap,
    FRA,
    Future,
    validate_instruments,
)
from .bootstrap import (
    PillarDiagnostics,
    BootstrapFailure,
    BootstrapOutcome,
    CurveBootstrapper,
    find_arbitrage,
    check_monotonic,
    bootstrap,
    bootstrap_many,
)
from .multi_curve import Tenor, CurveSet, MultiCurveBuilder
from .quotes import (
    instrument_from_quote,
    instruments_from_quotes,
    bootstrap_outcome_from_quotes,
    bootstrap_from_quotes,
)

__all__ = [
    "BootstrappedCurve",
    "PillarSet",
    "create_flat_curve",
    "Interpolator",
    "LinearInterpolator",
    "FlatForwardInterpolator",
    "CubicSplineInterpolator",
    "MonotonicCubicInterpolator",
    "create_interpolator",
    "InstrumentType",
    "CurveInstrument",
    "OISSwap",
    "InterestRateSwap",
    "FRA",
    "Future",
    "validate_instruments",
    "PillarDiagnostics",
    "BootstrapFailure",
    "BootstrapOutcome",
    "CurveBootstrapper",
    "find_arbitrage",
    "check_monotonic",
    "bootstrap",
    "bootstrap_many",
    "Tenor",
    "CurveSet",
    "MultiCurveBuilder",
    "instrument_from_quote",
    "instruments_from_quotes",
    "bootstrap_outcome_from_quotes",
    "bootstrap_from_quotes",
]
