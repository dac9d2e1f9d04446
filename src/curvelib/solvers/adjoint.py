"""
Adjoint solver: a Newton primary with a mandatory Brent fallback, plus
implicit-function-theorem sensitivities of the root.

Once a root x* of f(x, theta) = 0 is found, the sensitivity to any input
parameter is

    dx*/dtheta = -(df/dtheta) / (df/dx)

evaluated once at the converged point. No iteration history is kept, so the
cost of a sensitivity is independent of how many iterations were needed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union
import logging
import math

import numpy as np

from .root import SolverFailure, SolverMethod, brent, find_bracket, newton_raphson

logger = logging.getLogger(__name__)


class SolverState(Enum):
    """States of a single pillar solve."""
    INIT = "init"
    ATTEMPTING_PRIMARY = "attempting_primary"
    ATTEMPTING_FALLBACK = "attempting_fallback"
    CONVERGED = "converged"
    FAILED = "failed"


@dataclass(frozen=True)
class AdjointSolverConfig:
    """
    Attributes:
        tolerance: Absolute residual tolerance
        max_iterations: Iteration budget per attempt
        bracket_floor: Lower end of the fallback bracket (discount factors are positive)
        bracket_ceiling: Upper end of the widened fallback bracket
        compute_adjoints: Evaluate df/dx at the root for sensitivities
    """
    tolerance: float = 1e-12
    max_iterations: int = 100
    bracket_floor: float = 1e-10
    bracket_ceiling: float = 2.0
    compute_adjoints: bool = True


@dataclass(frozen=True)
class SolveResult:
    """Outcome of one root solve."""
    solution: float
    method: SolverMethod
    iterations: int
    residual: float
    derivative: float
    fallback_reason: Optional[str] = None
    states: Tuple[SolverState, ...] = field(default=(), repr=False)

    @property
    def used_fallback(self) -> bool:
        return self.method == SolverMethod.BRENT

    @property
    def adjoint_factor(self) -> float:
        """1 / (df/dx) at the root."""
        if self.derivative == 0.0 or not math.isfinite(self.derivative):
            return float("nan")
        return 1.0 / self.derivative

    def sensitivity(self, df_dtheta: float) -> float:
        """dx*/dtheta for a parameter with residual partial ``df_dtheta``."""
        return implicit_sensitivity(self.derivative, df_dtheta)


class SolverExhausted(SolverFailure):
    """Both the primary and the fallback solver failed (terminal FAILED state)."""

    def __init__(self, message, last_x, residual, iterations, states, reasons):
        self.states = tuple(states)
        self.reasons = tuple(reasons)
        super().__init__(message, SolverMethod.BRENT, last_x, residual, iterations)


def implicit_sensitivity(df_dx: float, df_dtheta: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """dx*/dtheta = -(df/dtheta)/(df/dx) at a converged root."""
    if df_dx == 0.0 or not math.isfinite(df_dx):
        raise ZeroDivisionError(f"Residual derivative {df_dx} is not invertible at the root")
    return -np.asarray(df_dtheta, dtype=float) / df_dx if np.ndim(df_dtheta) else -df_dtheta / df_dx


class AdjointSolver:
    """
    Newton-then-Brent solver with implicit-function sensitivities.

    The solve walks INIT -> ATTEMPTING_PRIMARY -> CONVERGED, or on primary
    failure -> ATTEMPTING_FALLBACK -> CONVERGED | FAILED. The fallback
    bracket is (floor, upper]; if that has no sign change it is widened to
    (floor, ceiling].
    """

    def __init__(self, config: Optional[AdjointSolverConfig] = None):
        self.config = config or AdjointSolverConfig()

    def solve(
        self,
        func: Callable[[float], float],
        fprime: Callable[[float], float],
        x0: float,
        upper: Optional[float] = None,
        lower: Optional[float] = None,
    ) -> SolveResult:
        """
        Find x with func(x) = 0.

        Args:
            func: Residual function
            fprime: Its derivative with respect to x
            x0: Initial guess for the primary solver
            upper: Natural upper end of the fallback bracket (e.g. the
                previous pillar's discount factor)
            lower: Lower end of the fallback bracket (defaults to the floor)

        Raises:
            SolverExhausted: Both solvers failed
        """
        cfg = self.config
        states: List[SolverState] = [SolverState.INIT, SolverState.ATTEMPTING_PRIMARY]
        floor = cfg.bracket_floor if lower is None else lower
        ceiling = cfg.bracket_ceiling
        iterations = 0

        try:
            result = newton_raphson(
                func, fprime, x0,
                tolerance=cfg.tolerance,
                max_iterations=cfg.max_iterations,
                lower=floor,
            )
            states.append(SolverState.CONVERGED)
            return self._finish(result.root, SolverMethod.NEWTON, result.iterations,
                                result.residual, fprime, None, states)
        except SolverFailure as exc:
            reason = str(exc)
            iterations += exc.iterations
            last_x, last_residual = exc.last_x, exc.residual
            logger.warning("Newton failed (%s); falling back to Brent", reason)

        states.append(SolverState.ATTEMPTING_FALLBACK)
        reasons = [reason]
        brackets = []
        if upper is not None and upper > floor:
            brackets.append((floor, float(upper)))
        if not brackets or brackets[-1][1] < ceiling:
            brackets.append((floor, max(ceiling, floor * 2.0)))

        for lo, hi in brackets:
            try:
                a, b = find_bracket(func, lo, hi)
                result = brent(func, a, b, tolerance=cfg.tolerance,
                               max_iterations=cfg.max_iterations)
            except SolverFailure as exc:
                reasons.append(str(exc))
                iterations += exc.iterations
                if math.isfinite(exc.residual):
                    last_x, last_residual = exc.last_x, exc.residual
                logger.debug("Brent on [%s, %s] failed: %s", lo, hi, exc)
                continue
            states.append(SolverState.CONVERGED)
            return self._finish(result.root, SolverMethod.BRENT, iterations + result.iterations,
                                result.residual, fprime, reason, states)

        states.append(SolverState.FAILED)
        raise SolverExhausted(
            f"Newton and Brent both failed: {'; '.join(reasons)}",
            last_x, last_residual, iterations, states, reasons
        )

    def solve_with_sensitivities(
        self,
        func: Callable[[float], float],
        fprime: Callable[[float], float],
        x0: float,
        parameter_partials: Callable[[float], Mapping[str, float]],
        upper: Optional[float] = None,
        lower: Optional[float] = None,
    ) -> Tuple[SolveResult, Dict[str, float]]:
        """
        Solve, then differentiate the root with respect to named parameters.

        Args:
            parameter_partials: Callable returning {name: df/dtheta} at a point;
                called once, at the root

        Returns:
            (result, {name: dx*/dtheta})
        """
        result = self.solve(func, fprime, x0, upper=upper, lower=lower)
        partials = parameter_partials(result.solution)
        return result, {name: result.sensitivity(value) for name, value in partials.items()}

    def _finish(self, root, method, iterations, residual, fprime, reason, states) -> SolveResult:
        derivative = float(fprime(root)) if self.config.compute_adjoints else float("nan")
        return SolveResult(
            solution=float(root),
            method=method,
            iterations=int(iterations),
            residual=float(residual),
            derivative=derivative,
            fallback_reason=reason,
            states=tuple(states),
        )


__all__ = [
    "SolverState",
    "AdjointSolverConfig",
    "SolveResult",
    "SolverExhausted",
    "AdjointSolver",
    "implicit_sensitivity",
]
