"""
Adjoint sensitivities of bootstrapped curves to their input quotes.

At the final curve every instrument residual vanishes:

    r_i(x, q) = R_i(x) - q_i = 0

so by the implicit-function theorem dx/dq = J^-1 with J = dR/dx. For
local interpolation J is lower triangular (instrument i reads no pillar
beyond its own) and the solve is forward substitution, the per-pillar
implicit step applied in maturity order. Non-local schemes solve the full
system.

A projection curve y built on a discounting curve z picks up

    dy/dq_z = -J_y^-1 G dz/dq_z,   G = dR_y/dz

Single-maturity queries run in reverse (adjoint) mode: one transposed
solve per curve gives dP(t)/dq for every quote at once.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.linalg import solve_triangular

Key = Tuple[str, str]


@dataclass(frozen=True)
class SensitivityEntry:
    """dP(0,t)/dq for one input quote."""
    curve: str
    instrument_id: str
    value: float


@dataclass(frozen=True)
class SensitivityRecord:
    """
    Sensitivity of one discount factor to every input quote.

    Values are per unit of rate (decimal); multiply by 1e-4 for a
    per-basis-point figure. Futures are differentiated with respect to
    their futures rate, not their price.
    """
    curve: str
    maturity: float
    discount_factor: float
    entries: Tuple[SensitivityEntry, ...]

    def __iter__(self) -> Iterator[SensitivityEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, instrument_id: str, curve: Optional[str] = None) -> float:
        """Sensitivity to one instrument (optionally on a named curve)."""
        for entry in self.entries:
            if entry.instrument_id == instrument_id and (curve is None or entry.curve == curve):
                return entry.value
        raise KeyError(f"No sensitivity to {instrument_id!r}" + (f" on {curve!r}" if curve else ""))

    def values(self) -> np.ndarray:
        return np.array([e.value for e in self.entries])

    def to_dict(self) -> Dict[Key, float]:
        return {(e.curve, e.instrument_id): e.value for e in self.entries}

    def to_series(self) -> pd.Series:
        index = pd.MultiIndex.from_tuples(
            [(e.curve, e.instrument_id) for e in self.entries], names=["curve", "instrument"]
        )
        return pd.Series(self.values(), index=index, name=f"dP({self.maturity:g})/dq")


def residual_jacobian(outcome) -> np.ndarray:
    """J[i, j] = dR_i/dx_j for the solved instruments on the final curve."""
    curve = outcome.curve
    rows = [inst.pillar_gradient(curve, outcome.discount_curve)
            for inst in outcome.solved_instruments]
    return np.vstack(rows) if rows else np.zeros((0, 0))


def discount_jacobian(outcome) -> np.ndarray:
    """G[i, k] = dR_i/dz_k against the discounting curve's pillars."""
    curve, disc = outcome.curve, outcome.discount_curve
    return np.vstack([inst.discount_gradient(curve, disc) for inst in outcome.solved_instruments])


def _solve(outcome, rhs: np.ndarray, transpose: bool = False) -> np.ndarray:
    J = outcome.residual_jacobian()
    if outcome.curve.is_local:
        return solve_triangular(J, rhs, lower=True, trans="T" if transpose else "N")
    return np.linalg.solve(J.T if transpose else J, rhs)


def pillar_jacobian(outcome) -> np.ndarray:
    """dx/dq for the curve's own quotes (dR/dq = I, so dx/dq = J^-1)."""
    n = len(outcome.solved_instruments)
    return _solve(outcome, np.eye(n))


def _keys(outcome) -> List[Key]:
    return [(outcome.name, inst.instrument_id) for inst in outcome.solved_instruments]


def input_jacobian(outcome) -> Tuple[np.ndarray, List[Key]]:
    """
    dx/dq against every quote the curve depends on, following the chain of
    discounting curves.

    Returns:
        (matrix, column keys as (curve, instrument_id))
    """
    matrix = outcome.pillar_jacobian()
    keys = _keys(outcome)
    upstream = outcome.discount_outcome
    if upstream is not None and upstream.curve is not None:
        up_matrix, up_keys = input_jacobian(upstream)
        G = discount_jacobian(outcome)
        chained = -_solve(outcome, G @ up_matrix)
        matrix = np.hstack([matrix, chained])
        keys = keys + up_keys
    return matrix, keys


def _adjoint(outcome, seed: np.ndarray) -> List[SensitivityEntry]:
    adjoint = _solve(outcome, seed, transpose=True)
    entries = [SensitivityEntry(curve, inst_id, float(v))
               for (curve, inst_id), v in zip(_keys(outcome), adjoint)]
    upstream = outcome.discount_outcome
    if upstream is not None and upstream.curve is not None:
        G = discount_jacobian(outcome)
        entries += _adjoint(upstream, -G.T @ adjoint)
    return entries


def sensitivity_record(outcome, t: float) -> SensitivityRecord:
    """
    dP(0,t)/dq for every input quote of the curve (and of its discounting
    curve chain), tagged by curve and instrument.
    """
    curve = outcome.curve
    if curve is None:
        raise ValueError("Outcome has no curve to differentiate")
    seed = curve.node_sensitivities(t)
    return SensitivityRecord(
        curve=outcome.name,
        maturity=float(t),
        discount_factor=curve.discount_factor(t),
        entries=tuple(_adjoint(outcome, seed)),
    )


__all__ = [
    "SensitivityEntry",
    "SensitivityRecord",
    "residual_jacobian",
    "discount_jacobian",
    "pillar_jacobian",
    "input_jacobian",
    "sensitivity_record",
]
