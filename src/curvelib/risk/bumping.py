"""
Bump-and-rebootstrap sensitivities.

The finite-difference counterpart of the adjoint sensitivities: each
input quote is bumped up and down, the curve (and any discounting curve
it is built on) is bootstrapped again, and the discount factor change is
read off. Costs two bootstraps per quote, so it serves as a check on the
adjoint figures rather than as the production path.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..curves.bootstrap import BootstrapOutcome, CurveBootstrapper
from .sensitivities import Key, SensitivityEntry, SensitivityRecord, input_jacobian


@dataclass(frozen=True)
class SensitivityCheck:
    """Adjoint against finite difference for one quote."""
    curve: str
    instrument_id: str
    adjoint: float
    finite_difference: float
    abs_diff: float
    rel_diff: float
    passed: bool


@dataclass(frozen=True)
class SensitivityVerification:
    """Outcome of comparing adjoint and bumped sensitivities at one maturity."""
    maturity: float
    tolerance: float
    checks: Tuple[SensitivityCheck, ...]

    @property
    def max_abs_diff(self) -> float:
        return max((c.abs_diff for c in self.checks), default=0.0)

    @property
    def max_rel_diff(self) -> float:
        return max((c.rel_diff for c in self.checks), default=0.0)

    @property
    def within_tolerance(self) -> bool:
        return all(c.passed for c in self.checks)

    def failures(self) -> List[SensitivityCheck]:
        return [c for c in self.checks if not c.passed]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([c.__dict__ for c in self.checks])


class BumpEngine:
    """
    Central-difference sensitivities by re-bootstrapping.

    Attributes:
        outcome: The base bootstrap
        bump: Rate bump in decimal (1e-5 = 0.1bp)
    """

    def __init__(self, outcome: BootstrapOutcome, bump: float = 1e-5):
        if outcome.curve is None or outcome.is_partial:
            raise ValueError("Bump sensitivities need a complete bootstrap")
        if bump <= 0:
            raise ValueError(f"Bump must be positive, got {bump}")
        self.outcome = outcome
        self.bump = bump
        _, self.keys = input_jacobian(outcome)

    def rebuild(self, bumps: Dict[Key, float], outcome: Optional[BootstrapOutcome] = None) -> BootstrapOutcome:
        """
        Bootstrap again with some quotes shifted.

        Args:
            bumps: {(curve, instrument_id): rate shift}
            outcome: Bootstrap to rebuild (defaults to the base outcome)
        """
        outcome = outcome or self.outcome
        discount = outcome.discount_curve
        if outcome.discount_outcome is not None:
            discount = self.rebuild(bumps, outcome.discount_outcome)

        instruments = [
            inst.bumped(bumps[(outcome.name, inst.instrument_id)])
            if (outcome.name, inst.instrument_id) in bumps else inst
            for inst in outcome.instruments
        ]
        curve = outcome.curve
        return CurveBootstrapper(
            outcome.config,
            discount_curve=discount,
            name=outcome.name,
            anchor_date=curve.anchor_date,
            day_count=curve.day_count,
        ).bootstrap(instruments)

    def _central(self, key: Key, measure) -> float:
        up = measure(self.rebuild({key: self.bump}))
        down = measure(self.rebuild({key: -self.bump}))
        return (up - down) / (2 * self.bump)

    def finite_difference(self, t: float) -> SensitivityRecord:
        """dP(0,t)/dq for every input quote by central differences."""
        def measure(o: BootstrapOutcome) -> float:
            return o.curve.discount_factor(t)

        entries = tuple(
            SensitivityEntry(curve, inst_id, self._central((curve, inst_id), measure))
            for curve, inst_id in self.keys
        )
        return SensitivityRecord(
            curve=self.outcome.name,
            maturity=float(t),
            discount_factor=self.outcome.curve.discount_factor(t),
            entries=entries,
        )

    def pillar_jacobian(self) -> pd.DataFrame:
        """dx/dq by central differences, laid out like BootstrapOutcome.jacobian()."""
        n = len(self.outcome.diagnostics)
        matrix = np.zeros((n, len(self.keys)))
        for j, key in enumerate(self.keys):
            up = self.rebuild({key: self.bump}).curve.discount_factors_at_pillars
            down = self.rebuild({key: -self.bump}).curve.discount_factors_at_pillars
            matrix[:, j] = (up - down) / (2 * self.bump)
        return pd.DataFrame(
            matrix,
            index=[d.instrument_id for d in self.outcome.diagnostics],
            columns=pd.MultiIndex.from_tuples(self.keys, names=["curve", "instrument"]),
        )

    def verify_sensitivities(self, t: float, tolerance: float = 1e-6) -> SensitivityVerification:
        """
        Compare adjoint and finite-difference dP(0,t)/dq.

        A quote passes when either the absolute or the relative difference
        is within ``tolerance``.
        """
        adjoint = self.outcome.sensitivities(t)
        bumped = self.finite_difference(t)
        checks = []
        for a, b in zip(adjoint.entries, bumped.entries):
            abs_diff = abs(a.value - b.value)
            scale = max(abs(a.value), abs(b.value))
            rel_diff = abs_diff / scale if scale > 0 else 0.0
            checks.append(SensitivityCheck(
                curve=a.curve,
                instrument_id=a.instrument_id,
                adjoint=a.value,
                finite_difference=b.value,
                abs_diff=abs_diff,
                rel_diff=rel_diff,
                passed=abs_diff <= tolerance or rel_diff <= tolerance,
            ))
        return SensitivityVerification(float(t), tolerance, tuple(checks))


__all__ = [
    "SensitivityCheck",
    "SensitivityVerification",
    "BumpEngine",
]
