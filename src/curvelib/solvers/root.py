"""Root-finding primitives: Newton-Raphson with a Brent fallback."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple
import logging
import math

import numpy as np
from scipy.optimize import brentq

logger = logging.getLogger(__name__)

Func = Callable[[float], float]


class SolverMethod(Enum):
    """Which underlying method produced a root."""
    NEWTON = "newton"
    BRENT = "brent"


@dataclass(frozen=True)
class RootResult:
    root: float
    iterations: int
    residual: float
    method: SolverMethod


class SolverFailure(RuntimeError):
    """Raised when a solver attempt does not converge."""

    def __init__(
        self,
        message: str,
        method: Optional[SolverMethod] = None,
        last_x: float = float("nan"),
        residual: float = float("nan"),
        iterations: int = 0
    ):
        self.method = method
        self.last_x = last_x
        self.residual = residual
        self.iterations = iterations
        super().__init__(message)


def newton_raphson(
    func: Func,
    fprime: Func,
    x0: float,
    *,
    tolerance: float = 1e-12,
    max_iterations: int = 100,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    min_derivative: float = 1e-30,
) -> RootResult:
    """Newton-Raphson iteration ``x <- x - f(x)/f'(x)`` until ``|f(x)| < tolerance``.

    Parameters
    ----------
    func, fprime:
        The residual and its derivative.
    x0:
        Initial guess.
    lower, upper:
        Optional open bounds. A step that leaves them is halved back toward
        the current iterate.
    min_derivative:
        Derivatives smaller than this in magnitude abort the iteration.

    Raises
    ------
    SolverFailure
        On a near-zero or non-finite derivative, a non-finite iterate, or an
        exhausted iteration budget.
    """
    x = float(x0)
    value = float(func(x))
    for iteration in range(max_iterations + 1):
        if not math.isfinite(value):
            raise SolverFailure(
                f"Newton residual not finite at x={x}",
                SolverMethod.NEWTON, x, value, iteration
            )
        if abs(value) < tolerance:
            logger.debug("Newton converged: x=%s residual=%.3e iterations=%s", x, value, iteration)
            return RootResult(x, iteration, value, SolverMethod.NEWTON)
        if iteration == max_iterations:
            break

        deriv = float(fprime(x))
        logger.debug("Newton iter %s: x=%s value=%s deriv=%s", iteration + 1, x, value, deriv)
        if not math.isfinite(deriv) or abs(deriv) < min_derivative:
            raise SolverFailure(
                f"Newton derivative near zero ({deriv}) at x={x}",
                SolverMethod.NEWTON, x, value, iteration
            )

        x_new = x - value / deriv
        if lower is not None and x_new <= lower:
            x_new = 0.5 * (x + lower)
        if upper is not None and x_new >= upper:
            x_new = 0.5 * (x + upper)
        if not math.isfinite(x_new):
            raise SolverFailure(
                f"Newton iterate diverged from x={x}",
                SolverMethod.NEWTON, x, value, iteration + 1
            )
        x = x_new
        value = float(func(x))

    raise SolverFailure(
        f"Newton did not converge in {max_iterations} iterations (residual {value:.3e})",
        SolverMethod.NEWTON, x, value, max_iterations
    )


def find_bracket(func: Func, lower: float, upper: float, scan_points: int = 32) -> Tuple[float, float]:
    """Find a sub-interval of ``[lower, upper]`` on which ``func`` changes sign.

    The end points are tried first, then a uniform scan.
    """
    if not upper > lower:
        raise SolverFailure(f"Empty bracket [{lower}, {upper}]", SolverMethod.BRENT)
    f_lower = func(lower)
    f_upper = func(upper)
    if np.sign(f_lower) * np.sign(f_upper) <= 0 and math.isfinite(f_lower) and math.isfinite(f_upper):
        return lower, upper

    grid = np.linspace(lower, upper, scan_points + 1)
    values = [func(x) for x in grid]
    for a, b, fa, fb in zip(grid[:-1], grid[1:], values[:-1], values[1:]):
        if math.isfinite(fa) and math.isfinite(fb) and np.sign(fa) * np.sign(fb) <= 0:
            return float(a), float(b)

    raise SolverFailure(
        f"No sign change in [{lower}, {upper}] (f={f_lower:.3e}, {f_upper:.3e})",
        SolverMethod.BRENT, upper, f_upper, scan_points
    )


def brent(
    func: Func,
    lower: float,
    upper: float,
    *,
    tolerance: float = 1e-12,
    max_iterations: int = 100,
) -> RootResult:
    """Brent's method on a bracket with a sign change.

    The bracket is shrunk to machine precision; ``tolerance`` is then checked
    against the residual at the root.
    """
    try:
        root, info = brentq(
            func, lower, upper,
            xtol=1e-300, rtol=4 * np.finfo(float).eps,
            maxiter=max_iterations, full_output=True, disp=False
        )
    except ValueError as exc:
        raise SolverFailure(
            f"Brent bracket [{lower}, {upper}] invalid: {exc}", SolverMethod.BRENT
        ) from exc

    residual = float(func(root))
    logger.debug(
        "Brent finished: x=%s residual=%.3e iterations=%s converged=%s",
        root, residual, info.iterations, info.converged
    )
    if not info.converged:
        raise SolverFailure(
            f"Brent did not converge in {max_iterations} iterations: {info.flag}",
            SolverMethod.BRENT, float(root), residual, info.iterations
        )
    # Accept a residual at the resolution of the residual function itself
    jump = abs(func(np.nextafter(root, np.inf)) - func(np.nextafter(root, -np.inf)))
    if abs(residual) > max(tolerance, min(jump, 1e-10)):
        raise SolverFailure(
            f"Brent bracket collapsed at x={root} with residual {residual:.3e}",
            SolverMethod.BRENT, float(root), residual, info.iterations
        )
    return RootResult(float(root), info.iterations, residual, SolverMethod.BRENT)


__all__ = [
    "SolverMethod",
    "RootResult",
    "SolverFailure",
    "newton_raphson",
    "find_bracket",
    "brent",
]
