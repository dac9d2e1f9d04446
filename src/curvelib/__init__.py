"""
CurveLib: Yield Curve Bootstrapping with Adjoint Sensitivities

A library for:
- Bootstrapping discount and projection curves from OIS, swap, FRA and
  futures quotes (Newton-Raphson with a Brent fallback per pillar)
- Querying discount factors, zero rates and forward rates under several
  interpolation schemes
- Sensitivities of the curve to every input quote via the implicit
  function theorem, across discounting/projection curve chains
- Multi-curve construction: one discounting curve plus per-tenor
  projection curves
"""

__version__ = "0.1.0"

# Core modules
from .conventions import DayCount, BusinessDayConvention, CompoundingConvention, Frequency, year_fraction
from .dates import DateUtils
from .config import BootstrapConfig, InterpolationMethod, NegativeRatePolicy
from .errors import (
    BootstrapError,
    InstrumentValidationError,
    InvalidInstrumentError,
    DuplicateMaturityError,
    InsufficientInstrumentsError,
    NegativeRateError,
    ConvergenceError,
    RepricingError,
    ArbitrageViolationError,
    OutOfDomainError,
    CollaboratorError,
)

# Solvers
from .solvers import AdjointSolver, AdjointSolverConfig, SolveResult, SolverMethod

# Curves
from .curves import (
    BootstrappedCurve,
    create_flat_curve,
    OISSwap,
    InterestRateSwap,
    FRA,
    Future,
    CurveBootstrapper,
    BootstrapOutcome,
    bootstrap,
    bootstrap_many,
    Tenor,
    CurveSet,
    MultiCurveBuilder,
    instruments_from_quotes,
    bootstrap_from_quotes,
)

# Risk
from .risk import BumpEngine, SensitivityRecord

__all__ = [
    "__version__",
    "DayCount",
    "BusinessDayConvention",
    "CompoundingConvention",
    "Frequency",
    "year_fraction",
    "DateUtils",
    "BootstrapConfig",
    "InterpolationMethod",
    "NegativeRatePolicy",
    "BootstrapError",
    "InstrumentValidationError",
    "InvalidInstrumentError",
    "DuplicateMaturityError",
    "InsufficientInstrumentsError",
    "NegativeRateError",
    "ConvergenceError",
    "RepricingError",
    "ArbitrageViolationError",
    "OutOfDomainError",
    "CollaboratorError",
    "AdjointSolver",
    "AdjointSolverConfig",
    "SolveResult",
    "SolverMethod",
    "BootstrappedCurve",
    "create_flat_curve",
    "OISSwap",
    "InterestRateSwap",
    "FRA",
    "Future",
    "CurveBootstrapper",
    "BootstrapOutcome",
    "bootstrap",
    "bootstrap_many",
    "Tenor",
    "CurveSet",
    "MultiCurveBuilder",
    "instruments_from_quotes",
    "bootstrap_from_quotes",
    "BumpEngine",
    "SensitivityRecord",
]
