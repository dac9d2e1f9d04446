"""
Curve bootstrapping engine.

Implements the sequential bootstrap:
1. Validate and sort instruments by maturity (fail fast, before any solving)
2. Solve each pillar's discount factor with Newton, falling back to Brent,
   against the curve built so far
3. For non-local interpolation (natural cubic, monotonic cubic) re-solve
   every pillar on the full curve until all residuals vanish
4. Check the arbitrage-free invariant and verify repricing

Supports OIS swaps, interest rate swaps, FRAs and futures, on their own
curve (self-discounting) or projected against a separate, already built
discounting curve.
"""

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import logging
import math

import numpy as np
import pandas as pd

from ..config import BootstrapConfig, NegativeRatePolicy
from ..conventions import DayCount
from ..errors import (
    ArbitrageViolationError,
    BootstrapError,
    ConvergenceError,
    InvalidInstrumentError,
    NegativeRateError,
    RepricingError,
    format_maturity,
)
from ..solvers import AdjointSolver, AdjointSolverConfig, SolverExhausted, SolverMethod
from .curve import BootstrappedCurve, PillarSet
from .interpolation import create_interpolator
from .instruments import MATURITY_TOLERANCE, CurveInstrument, validate_instruments

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PillarDiagnostics:
    """How one pillar was solved."""
    maturity: float
    instrument_id: str
    discount_factor: float
    solver: SolverMethod
    iterations: int
    residual: float
    adjoint_factor: float
    fallback_reason: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.solver == SolverMethod.BRENT


@dataclass(frozen=True)
class BootstrapFailure:
    """Where and why a bootstrap stopped."""
    maturity: float
    instrument_id: str
    residual: float
    iterations: int
    reason: str

    def to_error(self) -> ConvergenceError:
        return ConvergenceError(
            self.maturity, self.residual, self.iterations, self.instrument_id,
            attempts=("newton", "brent")
        )


@dataclass(frozen=True)
class BootstrapOutcome:
    """
    Result of one curve bootstrap.

    Attributes:
        curve: The bootstrapped curve (partial if the bootstrap stopped early;
            None if not even the first pillar was solved)
        instruments: Input instruments sorted by maturity
        diagnostics: One record per solved pillar
        config: Settings used
        discount_curve: Separate discounting curve, if any
        discount_outcome: Bootstrap that produced the discounting curve, if known
        repricing_errors: {instrument_id: implied - quoted} on the final curve
        warnings: Non-fatal notices (accepted negative rates, pass budget)
        failure: Failure detail when a partial curve was returned
        passes: Global re-solve passes run for non-local interpolation
    """
    curve: Optional[BootstrappedCurve]
    instruments: Tuple[CurveInstrument, ...]
    diagnostics: Tuple[PillarDiagnostics, ...]
    config: BootstrapConfig
    discount_curve: Optional[BootstrappedCurve] = None
    discount_outcome: Optional["BootstrapOutcome"] = None
    repricing_errors: Dict[str, float] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    failure: Optional[BootstrapFailure] = None
    passes: int = 0
    _cache: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def success(self) -> bool:
        return self.failure is None

    @property
    def is_partial(self) -> bool:
        return self.failure is not None

    @property
    def name(self) -> str:
        return self.curve.name if self.curve is not None else ""

    @property
    def solved_instruments(self) -> Tuple[CurveInstrument, ...]:
        return self.instruments[:len(self.diagnostics)]

    @property
    def max_repricing_error(self) -> float:
        if not self.repricing_errors:
            return 0.0
        return max(abs(e) for e in self.repricing_errors.values())

    def diagnostics_frame(self) -> pd.DataFrame:
        """Per-pillar diagnostics as a DataFrame."""
        rows = [{
            "instrument_id": d.instrument_id,
            "maturity": d.maturity,
            "discount_factor": d.discount_factor,
            "solver": d.solver.value,
            "iterations": d.iterations,
            "residual": d.residual,
            "adjoint_factor": d.adjoint_factor,
            "repricing_error": self.repricing_errors.get(d.instrument_id, float("nan")),
        } for d in self.diagnostics]
        return pd.DataFrame(rows)

    def residual_jacobian(self) -> np.ndarray:
        """J[i, j] = d residual_i / d x_j on the final curve."""
        from ..risk.sensitivities import residual_jacobian
        if "residual_jacobian" not in self._cache:
            self._cache["residual_jacobian"] = residual_jacobian(self)
        return self._cache["residual_jacobian"]

    def pillar_jacobian(self) -> np.ndarray:
        """dx_i / dq_j: pillar discount factors against this curve's own quotes."""
        from ..risk.sensitivities import pillar_jacobian
        if "pillar_jacobian" not in self._cache:
            self._cache["pillar_jacobian"] = pillar_jacobian(self)
        return self._cache["pillar_jacobian"]

    def jacobian(self) -> pd.DataFrame:
        """
        Pillar discount factors against every input quote, including the
        quotes of the discounting curve. Columns are a (curve, instrument)
        MultiIndex.
        """
        from ..risk.sensitivities import input_jacobian
        if "input_jacobian" not in self._cache:
            self._cache["input_jacobian"] = input_jacobian(self)
        matrix, keys = self._cache["input_jacobian"]
        index = [d.instrument_id for d in self.diagnostics]
        columns = pd.MultiIndex.from_tuples(keys, names=["curve", "instrument"])
        return pd.DataFrame(matrix, index=index, columns=columns)

    def sensitivities(self, t: float):
        """SensitivityRecord of P(0,t) against every input quote."""
        from ..risk.sensitivities import sensitivity_record
        return sensitivity_record(self, t)


class CurveBootstrapper:
    """
    Bootstrap a discount or projection curve from instruments.

    The bootstrapper:
    1. Validates the instruments and sorts them by maturity
    2. Sequentially solves for each discount factor
    3. Checks monotonicity and verifies that instruments reprice

    Attributes:
        config: Bootstrap settings
        discount_curve: Curve discounting swap cash flows; None means the
            curve being built discounts itself
        name: Curve label in diagnostics and sensitivity records
        anchor_date: Optional valuation date carried onto the curve
        day_count: Day count carried onto the curve
    """

    def __init__(
        self,
        config: Optional[BootstrapConfig] = None,
        discount_curve: Union[BootstrappedCurve, BootstrapOutcome, None] = None,
        name: str = "curve",
        anchor_date: Optional[date] = None,
        day_count: DayCount = DayCount.ACT_365
    ):
        self.config = config or BootstrapConfig()
        if isinstance(discount_curve, BootstrapOutcome):
            self.discount_outcome = discount_curve
            self.discount_curve = discount_curve.curve
        else:
            self.discount_outcome = None
            self.discount_curve = discount_curve
        self.name = name
        self.anchor_date = anchor_date
        self.day_count = day_count
        self._solver = AdjointSolver(AdjointSolverConfig(
            tolerance=self.config.tolerance,
            max_iterations=self.config.max_iterations,
        ))

    def bootstrap(self, instruments: Sequence[CurveInstrument]) -> BootstrapOutcome:
        """
        Bootstrap a curve from instruments.

        Args:
            instruments: Curve instruments in any order

        Returns:
            BootstrapOutcome with the curve and diagnostics

        Raises:
            InstrumentValidationError: Bad input, before any solving
            ConvergenceError: A pillar could not be solved (unless
                partial_on_failure is set)
            ArbitrageViolationError: Discount factors increase
            RepricingError: The final curve misprices an input
        """
        cfg = self.config
        ordered, warnings = validate_instruments(
            instruments, cfg.max_maturity, cfg.negative_rate_policy
        )
        for message in warnings:
            logger.warning("%s: %s", self.name, message)
        self._check_discount_coverage(ordered)

        disc = self.discount_curve
        pillars = PillarSet(
            interpolation=cfg.interpolation,
            allow_extrapolation=cfg.allow_extrapolation,
            anchor_date=self.anchor_date,
            day_count=self.day_count,
            name=self.name,
        )
        diagnostics: List[PillarDiagnostics] = []

        for inst in ordered:
            prev_t, prev_df = pillars.last
            try:
                result = self._solver.solve(
                    lambda x, inst=inst: inst.residual(x, pillars, disc),
                    lambda x, inst=inst: inst.residual_derivative(x, pillars, disc),
                    inst.initial_guess(prev_t, prev_df),
                    upper=prev_df,
                )
            except SolverExhausted as exc:
                failure = BootstrapFailure(
                    inst.maturity, inst.instrument_id, exc.residual, exc.iterations, str(exc)
                )
                if not cfg.partial_on_failure:
                    raise failure.to_error() from exc
                logger.warning(
                    "%s: stopping at %s, returning %d solved pillars",
                    self.name, inst.instrument_id, len(pillars)
                )
                return self._finish(ordered, pillars, diagnostics, warnings, 0, failure)

            df = result.solution
            self._check_implied_rate(inst, df, warnings)
            pillars.append(inst.maturity, df)
            diagnostics.append(self._diagnostic(inst, result))
            logger.debug(
                "%s: %s df=%.12f via %s in %d iterations (residual %.2e)",
                self.name, inst.instrument_id, df, result.method.value,
                result.iterations, result.residual
            )

        passes = 0
        if not create_interpolator(cfg.interpolation).is_local:
            passes = self._global_passes(ordered, pillars, diagnostics, warnings)

        return self._finish(ordered, pillars, diagnostics, warnings, passes, None)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_discount_coverage(self, ordered: List[CurveInstrument]) -> None:
        disc = self.discount_curve
        if disc is None or (disc.allow_extrapolation and not disc.is_partial):
            return
        limit = disc.max_time + MATURITY_TOLERANCE
        for inst in ordered:
            times = inst.discount_times()
            if times and max(times) > limit:
                raise InvalidInstrumentError(
                    f"Discounts cash flows to {format_maturity(max(times))}, beyond the "
                    f"discounting curve {disc.name!r} ending at {format_maturity(disc.max_time)}",
                    inst.maturity, inst.instrument_id
                )

    def _check_implied_rate(self, inst: CurveInstrument, df: float, warnings: List[str]) -> None:
        zero = -math.log(df) / inst.maturity
        if zero >= 0:
            return
        if self.config.negative_rate_policy == NegativeRatePolicy.REJECT:
            raise NegativeRateError(inst.maturity, zero, inst.instrument_id, implied=True)
        message = (f"Negative implied zero rate {zero:.6%} at "
                   f"{format_maturity(inst.maturity)} ({inst.instrument_id}) accepted")
        logger.warning("%s: %s", self.name, message)
        warnings.append(message)

    def _diagnostic(self, inst: CurveInstrument, result) -> PillarDiagnostics:
        return PillarDiagnostics(
            maturity=inst.maturity,
            instrument_id=inst.instrument_id,
            discount_factor=result.solution,
            solver=result.method,
            iterations=result.iterations,
            residual=result.residual,
            adjoint_factor=result.adjoint_factor,
            fallback_reason=result.fallback_reason,
        )

    def _global_passes(
        self,
        ordered: List[CurveInstrument],
        pillars: PillarSet,
        diagnostics: List[PillarDiagnostics],
        warnings: List[str]
    ) -> int:
        """
        Gauss-Seidel passes: re-solve each pillar on the full curve, holding
        the others, until every residual is within tolerance.
        """
        cfg = self.config
        disc = self.discount_curve
        for n_pass in range(1, cfg.max_passes + 1):
            curve = pillars.freeze(allow_extrapolation=True)
            residuals = [inst.implied_rate(curve, disc) - inst.rate for inst in ordered]
            worst = max(abs(r) for r in residuals)
            if worst <= cfg.tolerance:
                logger.debug("%s: global passes converged after %d", self.name, n_pass - 1)
                return n_pass - 1

            for i, inst in enumerate(ordered):
                df = pillars.discount_factors[i]
                upper = pillars.discount_factors[i - 1] if i > 0 else 1.0
                try:
                    result = self._solver.solve(
                        lambda x, inst=inst: inst.residual(x, pillars, disc),
                        lambda x, inst=inst: inst.residual_derivative(x, pillars, disc),
                        df,
                        upper=upper,
                    )
                except SolverExhausted as exc:
                    raise ConvergenceError(
                        inst.maturity, exc.residual, exc.iterations, inst.instrument_id,
                        attempts=("newton", "brent")
                    ) from exc
                pillars.set(i, result.solution)
                previous = diagnostics[i]
                diagnostics[i] = PillarDiagnostics(
                    maturity=previous.maturity,
                    instrument_id=previous.instrument_id,
                    discount_factor=result.solution,
                    solver=result.method,
                    iterations=previous.iterations + result.iterations,
                    residual=result.residual,
                    adjoint_factor=result.adjoint_factor,
                    fallback_reason=result.fallback_reason or previous.fallback_reason,
                )

        curve = pillars.freeze(allow_extrapolation=True)
        worst = max(abs(inst.implied_rate(curve, disc) - inst.rate) for inst in ordered)
        if worst > cfg.tolerance:
            message = (f"Global passes stopped after {cfg.max_passes} with max residual "
                       f"{worst:.3e}")
            logger.warning("%s: %s", self.name, message)
            warnings.append(message)
        return cfg.max_passes

    def _finish(
        self,
        ordered: List[CurveInstrument],
        pillars: PillarSet,
        diagnostics: List[PillarDiagnostics],
        warnings: List[str],
        passes: int,
        failure: Optional[BootstrapFailure]
    ) -> BootstrapOutcome:
        cfg = self.config
        curve = pillars.freeze(is_partial=failure is not None) if len(pillars) else None

        if curve is not None:
            violations = find_arbitrage(curve)
            if violations:
                raise violations[0]

        repricing_errors: Dict[str, float] = {}
        if curve is not None and cfg.verify:
            for inst in ordered[:len(pillars)]:
                repricing_errors[inst.instrument_id] = (
                    inst.implied_rate(curve, self.discount_curve) - inst.rate
                )
            for inst in ordered[:len(pillars)]:
                error = repricing_errors[inst.instrument_id]
                if not abs(error) <= cfg.repricing_tolerance:
                    raise RepricingError(inst.instrument_id, inst.maturity, error,
                                         cfg.repricing_tolerance)

        outcome = BootstrapOutcome(
            curve=curve,
            instruments=tuple(ordered),
            diagnostics=tuple(diagnostics),
            config=cfg,
            discount_curve=self.discount_curve,
            discount_outcome=self.discount_outcome,
            repricing_errors=repricing_errors,
            warnings=tuple(warnings),
            failure=failure,
            passes=passes,
        )
        if failure is None:
            fallbacks = sum(d.used_fallback for d in diagnostics)
            logger.info(
                "%s: bootstrapped %d pillars to %s (max repricing error %.2e, %d fallback solves)",
                self.name, len(diagnostics), format_maturity(ordered[-1].maturity),
                outcome.max_repricing_error, fallbacks
            )
        return outcome


def find_arbitrage(curve: BootstrappedCurve) -> List[ArbitrageViolationError]:
    """Every pillar whose discount factor exceeds its predecessor's."""
    times = curve.pillars
    dfs = curve.discount_factors_at_pillars
    return [
        ArbitrageViolationError(times[i], dfs[i], times[i - 1], dfs[i - 1])
        for i in range(1, len(dfs)) if dfs[i] > dfs[i - 1]
    ]


def check_monotonic(curve: BootstrappedCurve) -> None:
    """Raise ArbitrageViolationError if discount factors increase anywhere."""
    violations = find_arbitrage(curve)
    if violations:
        raise violations[0]


def bootstrap(
    instruments: Sequence[CurveInstrument],
    config: Optional[BootstrapConfig] = None,
    **kwargs
) -> BootstrapOutcome:
    """Bootstrap with a one-off CurveBootstrapper."""
    return CurveBootstrapper(config, **kwargs).bootstrap(instruments)


def _bootstrap_one(instruments, config, name):
    return CurveBootstrapper(config, name=name).bootstrap(instruments)


def bootstrap_many(
    instrument_sets: Union[Sequence[Sequence[CurveInstrument]], Mapping[str, Sequence[CurveInstrument]]],
    config: Optional[BootstrapConfig] = None,
    max_workers: Optional[int] = None,
    use_processes: bool = False,
    return_exceptions: bool = False
) -> Union[List[Any], Dict[str, Any]]:
    """
    Bootstrap independent instrument sets concurrently.

    Each set is bootstrapped on its own with no shared state; the results
    come back in input order (or keyed like the input mapping).

    Args:
        instrument_sets: Sequence of instrument collections, or a mapping
            of curve name to instrument collection
        config: Settings shared by every bootstrap
        max_workers: Pool size (executor default when None)
        use_processes: Use a process pool instead of threads
        return_exceptions: Put a BootstrapError in place of the outcome of a
            failing set instead of raising it

    Returns:
        List (or dict) of BootstrapOutcome / BootstrapError
    """
    config = config or BootstrapConfig()
    if isinstance(instrument_sets, Mapping):
        names = list(instrument_sets)
        sets = [list(instrument_sets[name]) for name in names]
    else:
        sets = [list(s) for s in instrument_sets]
        names = [f"curve_{i}" for i in range(len(sets))]

    executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor
    results: List[Any] = []
    with executor_cls(max_workers=max_workers) as executor:
        futures = [executor.submit(_bootstrap_one, s, config, name) for s, name in zip(sets, names)]
        for name, future in zip(names, futures):
            try:
                results.append(future.result())
            except BootstrapError as exc:
                if not return_exceptions:
                    raise
                logger.warning("%s: bootstrap failed: %s", name, exc)
                results.append(exc)

    if isinstance(instrument_sets, Mapping):
        return dict(zip(names, results))
    return results


__all__ = [
    "PillarDiagnostics",
    "BootstrapFailure",
    "BootstrapOutcome",
    "CurveBootstrapper",
    "find_arbitrage",
    "check_monotonic",
    "bootstrap",
    "bootstrap_many",
]
