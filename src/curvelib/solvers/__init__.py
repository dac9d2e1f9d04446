"""
Solvers package - one-dimensional root finding for pillar solves.

Provides:
- newton_raphson: Derivative-based primary solver
- brent: Bracketing fallback solver (scipy brentq)
- AdjointSolver: Primary/fallback state machine with implicit-function sensitivities
"""

from .root import (
    SolverMethod,
    RootResult,
    SolverFailure,
    newton_raphson,
    brent,
    find_bracket,
)
from .adjoint import (
    SolverState,
    AdjointSolverConfig,
    SolveResult,
    SolverExhausted,
    AdjointSolver,
    implicit_sensitivity,
)

__all__ = [
    "SolverMethod",
    "RootResult",
    "SolverFailure",
    "newton_raphson",
    "brent",
    "find_bracket",
    "SolverState",
    "AdjointSolverConfig",
    "SolveResult",
    "SolverExhausted",
    "AdjointSolver",
    "implicit_sensitivity",
]
