"""
Error taxonomy for curve construction.

Every error carries the offending maturity (or rate) and a message that
names the corrective action. The hierarchy mirrors the four failure
families of the bootstrapper:

- Input validation (raised before any solving): InvalidInstrumentError,
  DuplicateMaturityError, InsufficientInstrumentsError, NegativeRateError
- Convergence: ConvergenceError, RepricingError
- Structural: ArbitrageViolationError
- Collaborators (calendar, day count, schedule): CollaboratorError

OutOfDomainError is raised by curve queries rather than by the bootstrap.
"""

from typing import Optional, Sequence, Tuple


def format_maturity(t: float) -> str:
    """Render a maturity in years as a tenor label ("5Y", "3M", "2.37Y")."""
    if t is None:
        return "?"
    years = round(t)
    if years >= 1 and abs(t - years) < 1e-9:
        return f"{years}Y"
    months = round(t * 12)
    if months >= 1 and abs(t * 12 - months) < 1e-6:
        return f"{months}M"
    return f"{t:.4g}Y"


def _restore_error(cls, args, state):
    error = Exception.__new__(cls)
    error.args = args
    error.__dict__.update(state)
    return error


class BootstrapError(Exception):
    """Base class for every error raised by curve construction."""

    def __init__(self, message: str, maturity: Optional[float] = None):
        self.maturity = maturity
        super().__init__(message)

    def __reduce__(self):
        # Keyword-rich constructors do not survive the default pickling path
        # used when errors cross a process pool.
        return _restore_error, (type(self), self.args, self.__dict__)


# =============================================================================
# INPUT VALIDATION
# =============================================================================

class InstrumentValidationError(BootstrapError, ValueError):
    """Base class for input errors detected before any solving begins."""


class InvalidInstrumentError(InstrumentValidationError):
    """An instrument is malformed (non-positive maturity, bad dates, bad price)."""

    def __init__(
        self,
        message: str,
        maturity: Optional[float] = None,
        instrument_id: Optional[str] = None
    ):
        self.instrument_id = instrument_id
        prefix = f"[{instrument_id}] " if instrument_id else ""
        super().__init__(f"{prefix}{message}", maturity)


class DuplicateMaturityError(InstrumentValidationError):
    """Two or more instruments share the same maturity."""

    def __init__(self, maturity: float, instrument_ids: Sequence[str] = ()):
        self.instrument_ids = tuple(instrument_ids)
        label = format_maturity(maturity)
        listed = f" ({', '.join(self.instrument_ids)})" if self.instrument_ids else ""
        super().__init__(
            f"Duplicate maturity {maturity:.6g}y{listed}: "
            f"remove or replace the duplicate {label} instrument",
            maturity
        )


class InsufficientInstrumentsError(InstrumentValidationError):
    """Not enough instruments for the requested curve structure."""

    def __init__(self, required: int, provided: int, context: str = "curve"):
        self.required = required
        self.provided = provided
        super().__init__(
            f"Insufficient instruments for {context}: {required} required, "
            f"{provided} provided"
        )


class NegativeRateError(InstrumentValidationError):
    """A negative quoted or implied rate was rejected by policy."""

    def __init__(
        self,
        maturity: float,
        rate: float,
        instrument_id: Optional[str] = None,
        implied: bool = False
    ):
        self.rate = rate
        self.instrument_id = instrument_id
        self.implied = implied
        source = "implied zero rate" if implied else "quoted rate"
        who = f" for {instrument_id}" if instrument_id else ""
        super().__init__(
            f"Negative {source} {rate:.6%}{who} at {format_maturity(maturity)}: "
            f"check the quote or set negative_rate_policy='warn'",
            maturity
        )


# =============================================================================
# CONVERGENCE
# =============================================================================

class ConvergenceError(BootstrapError, RuntimeError):
    """Primary and fallback solvers both failed at a pillar."""

    def __init__(
        self,
        maturity: float,
        residual: float,
        iterations: int,
        instrument_id: Optional[str] = None,
        attempts: Tuple[str, ...] = ()
    ):
        self.residual = residual
        self.iterations = iterations
        self.instrument_id = instrument_id
        self.attempts = tuple(attempts)
        who = f" ({instrument_id})" if instrument_id else ""
        tried = f" after {'/'.join(self.attempts)}" if self.attempts else ""
        super().__init__(
            f"Failed to solve pillar {format_maturity(maturity)}{who}{tried}: "
            f"last residual {residual:.3e} after {iterations} iterations; "
            f"check the quote against its neighbours",
            maturity
        )


class RepricingError(BootstrapError, RuntimeError):
    """The assembled curve does not reprice an input instrument."""

    def __init__(self, instrument_id: str, maturity: float, error: float, tolerance: float):
        self.instrument_id = instrument_id
        self.error = error
        self.tolerance = tolerance
        super().__init__(
            f"{instrument_id} reprices with error {error * 1e4:.4f}bp, above "
            f"tolerance {tolerance * 1e4:.4f}bp",
            maturity
        )


# =============================================================================
# STRUCTURAL
# =============================================================================

class ArbitrageViolationError(BootstrapError):
    """Discount factors increase with maturity."""

    def __init__(
        self,
        maturity: float,
        discount_factor: float,
        previous_maturity: float,
        previous_discount_factor: float
    ):
        self.discount_factor = discount_factor
        self.previous_maturity = previous_maturity
        self.previous_discount_factor = previous_discount_factor
        super().__init__(
            f"Discount factor rises from {previous_discount_factor:.10f} at "
            f"{format_maturity(previous_maturity)} to {discount_factor:.10f} at "
            f"{format_maturity(maturity)}: the quotes around {format_maturity(maturity)} "
            f"are economically inconsistent",
            maturity
        )


# =============================================================================
# QUERIES AND COLLABORATORS
# =============================================================================

class OutOfDomainError(BootstrapError, ValueError):
    """A curve was queried outside the maturities it can answer for."""

    def __init__(self, t: float, lower: float, upper: float, partial: bool = False):
        self.t = t
        self.lower = lower
        self.upper = upper
        self.partial = partial
        if t < lower:
            reason = "query time precedes the curve anchor"
        elif partial:
            reason = "curve is partial (bootstrap stopped early)"
        else:
            reason = "extrapolation is disabled"
        super().__init__(
            f"Time {t:.6g} outside curve domain [{lower:.6g}, {upper:.6g}]: {reason}",
            t
        )


class CollaboratorError(BootstrapError):
    """A calendar, day-count or schedule function raised."""

    def __init__(self, collaborator: str, message: str, maturity: Optional[float] = None):
        self.collaborator = collaborator
        super().__init__(f"{collaborator} failed: {message}", maturity)


__all__ = [
    "format_maturity",
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
]
