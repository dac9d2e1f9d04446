"""
Multi-curve construction.

A curve set holds one discounting curve and a projection (forward) curve
per floating-rate tenor. Construction is dependency ordered:

1. The discounting curve is bootstrapped first; any failure here aborts
   the whole build.
2. Each tenor curve is then bootstrapped against the frozen discounting
   curve. Tenor curves do not depend on one another, so they may run
   concurrently; a failing tenor is recorded and the others carry on
   unless ``fail_fast`` is set.

Without discounting instruments the builder falls back to single-curve
mode: each tenor curve discounts itself, and the first tenor curve also
serves as the set's discounting curve.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union
import logging

from ..config import BootstrapConfig
from ..conventions import DayCount
from ..errors import BootstrapError, InsufficientInstrumentsError
from .bootstrap import BootstrapOutcome, CurveBootstrapper
from .curve import BootstrappedCurve
from .instruments import CurveInstrument

logger = logging.getLogger(__name__)

DISCOUNT = "discount"


class Tenor(Enum):
    """Floating-rate index tenor."""
    ON = "ON"
    M1 = "1M"
    M3 = "3M"
    M6 = "6M"
    M12 = "12M"

    @property
    def period_years(self) -> float:
        return {
            Tenor.ON: 1.0 / 365.0,
            Tenor.M1: 1.0 / 12.0,
            Tenor.M3: 0.25,
            Tenor.M6: 0.5,
            Tenor.M12: 1.0,
        }[self]

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def default(cls) -> "Tenor":
        return cls.M3

    @classmethod
    def from_string(cls, s: Union[str, "Tenor"]) -> "Tenor":
        """Parse "3M", "ON", "1Y", ..."""
        if isinstance(s, cls):
            return s
        key = str(s).upper().strip()
        aliases = {"O/N": "ON", "OVERNIGHT": "ON", "1Y": "12M", "3MO": "3M"}
        key = aliases.get(key, key)
        for tenor in cls:
            if tenor.value == key:
                return tenor
        raise ValueError(f"Unknown tenor: {s}")


@dataclass(frozen=True)
class CurveSet:
    """
    One discounting curve plus forward curves keyed by tenor.

    Forward curves reference the discounting curve they were built on; the
    discounting curve is never copied.

    Attributes:
        discount_curve: Curve used to discount cash flows
        forward_curves: Read-only {Tenor: curve}
        outcomes: Read-only {curve name: BootstrapOutcome}
        failures: Read-only {Tenor: error} for tenors that failed
        self_discounting: Built in single-curve mode
    """
    discount_curve: BootstrappedCurve
    forward_curves: Mapping[Tenor, BootstrappedCurve] = field(default_factory=dict)
    outcomes: Mapping[str, BootstrapOutcome] = field(default_factory=dict)
    failures: Mapping[Tenor, BootstrapError] = field(default_factory=dict)
    self_discounting: bool = False

    def __post_init__(self):
        for attr in ("forward_curves", "outcomes", "failures"):
            object.__setattr__(self, attr, MappingProxyType(dict(getattr(self, attr))))

    @classmethod
    def single_curve(cls, curve: BootstrappedCurve, outcome: Optional[BootstrapOutcome] = None) -> "CurveSet":
        """A set in which one curve both discounts and projects."""
        outcomes = {curve.name: outcome} if outcome is not None else {}
        return cls(discount_curve=curve, outcomes=outcomes, self_discounting=True)

    @property
    def tenors(self) -> Tuple[Tenor, ...]:
        return tuple(self.forward_curves)

    @property
    def success(self) -> bool:
        return not self.failures

    def has_forward_curve(self, tenor: Union[str, Tenor]) -> bool:
        return Tenor.from_string(tenor) in self.forward_curves

    def forward_curve(self, tenor: Union[str, Tenor] = Tenor.M3) -> BootstrappedCurve:
        """Projection curve for a tenor, falling back to the discounting curve."""
        return self.forward_curves.get(Tenor.from_string(tenor), self.discount_curve)

    def forward_rate(self, tenor: Union[str, Tenor], t1: float, t2: float) -> float:
        """Simple forward rate projected off the tenor's curve."""
        return self.forward_curve(tenor).forward_rate(t1, t2)

    def discount_factor(self, t: float) -> float:
        return self.discount_curve.discount_factor(t)

    def outcome(self, tenor: Union[str, Tenor, None] = None) -> BootstrapOutcome:
        """Bootstrap outcome of a tenor curve, or of the discounting curve."""
        if tenor is None:
            return self.outcomes[self.discount_curve.name]
        return self.outcomes[Tenor.from_string(tenor).value]


class MultiCurveBuilder:
    """
    Build a CurveSet in dependency order.

    Attributes:
        config: Settings shared by every curve in the set
        fail_fast: Abort on the first failing tenor instead of recording it
        max_workers: Worker threads for tenor curves (1 runs them in turn)
        anchor_date: Valuation date carried onto every curve
        day_count: Day count carried onto every curve
    """

    def __init__(
        self,
        config: Optional[BootstrapConfig] = None,
        fail_fast: bool = False,
        max_workers: Optional[int] = None,
        anchor_date: Optional[date] = None,
        day_count: DayCount = DayCount.ACT_365
    ):
        self.config = config or BootstrapConfig()
        self.fail_fast = fail_fast
        self.max_workers = max_workers
        self.anchor_date = anchor_date
        self.day_count = day_count

    def _bootstrapper(self, name: str, discount=None) -> CurveBootstrapper:
        return CurveBootstrapper(
            self.config,
            discount_curve=discount,
            name=name,
            anchor_date=self.anchor_date,
            day_count=self.day_count,
        )

    def build(
        self,
        discount_instruments: Optional[Sequence[CurveInstrument]],
        forward_instruments: Optional[Mapping[Union[str, Tenor], Sequence[CurveInstrument]]] = None
    ) -> CurveSet:
        """
        Build the discounting curve, then each tenor's forward curve.

        Args:
            discount_instruments: Instruments of the discounting curve; empty
                or None selects single-curve mode
            forward_instruments: {tenor: instruments} for projection curves

        Returns:
            CurveSet

        Raises:
            BootstrapError: The discounting stage failed, a tenor failed with
                fail_fast set, or nothing could be built
        """
        forward = {Tenor.from_string(k): list(v) for k, v in (forward_instruments or {}).items()}
        discount_instruments = list(discount_instruments or [])

        if not discount_instruments:
            if not forward:
                raise InsufficientInstrumentsError(1, 0, "curve set")
            return self._build_self_discounting(forward)

        discount_outcome = self._bootstrapper(DISCOUNT).bootstrap(discount_instruments)
        if discount_outcome.is_partial:
            raise discount_outcome.failure.to_error()
        logger.info("Discount curve built with %d pillars", len(discount_outcome.diagnostics))

        outcomes, failures = self._build_tenors(forward, discount_outcome)
        outcomes = {DISCOUNT: discount_outcome, **outcomes}
        return CurveSet(
            discount_curve=discount_outcome.curve,
            forward_curves={t: outcomes[t.value].curve for t in forward if t.value in outcomes},
            outcomes=outcomes,
            failures=failures,
            self_discounting=False,
        )

    def build_single_curve(self, instruments: Sequence[CurveInstrument], name: str = DISCOUNT) -> CurveSet:
        """One self-discounting curve wrapped as a CurveSet."""
        outcome = self._bootstrapper(name).bootstrap(instruments)
        if outcome.is_partial:
            raise outcome.failure.to_error()
        return CurveSet.single_curve(outcome.curve, outcome)

    def build_many(
        self,
        requests: Mapping[str, Tuple[Optional[Sequence[CurveInstrument]],
                                     Optional[Mapping[Union[str, Tenor], Sequence[CurveInstrument]]]]]
    ) -> Dict[str, CurveSet]:
        """
        Build independent curve sets (e.g. one per currency) concurrently.

        Args:
            requests: {set name: (discount instruments, forward instruments)}
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {name: executor.submit(self.build, disc, fwd)
                       for name, (disc, fwd) in requests.items()}
            return {name: future.result() for name, future in futures.items()}

    # ------------------------------------------------------------------

    def _build_tenors(
        self,
        forward: Dict[Tenor, List[CurveInstrument]],
        discount: Optional[BootstrapOutcome]
    ) -> Tuple[Dict[str, BootstrapOutcome], Dict[Tenor, BootstrapError]]:
        outcomes: Dict[str, BootstrapOutcome] = {}
        failures: Dict[Tenor, BootstrapError] = {}
        if not forward:
            return outcomes, failures

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                tenor: executor.submit(self._bootstrapper(tenor.value, discount).bootstrap, instruments)
                for tenor, instruments in forward.items()
            }
            for tenor, future in futures.items():
                try:
                    outcome = future.result()
                except BootstrapError as exc:
                    if self.fail_fast:
                        raise
                    logger.warning("%s forward curve failed: %s", tenor.value, exc)
                    failures[tenor] = exc
                    continue
                outcomes[tenor.value] = outcome
                if outcome.is_partial:
                    failures[tenor] = outcome.failure.to_error()
        return outcomes, failures

    def _build_self_discounting(self, forward: Dict[Tenor, List[CurveInstrument]]) -> CurveSet:
        outcomes, failures = self._build_tenors(forward, None)
        built = [t for t in forward if t.value in outcomes and not outcomes[t.value].is_partial]
        if not built:
            raise next(iter(failures.values()))
        logger.info("No discount instruments: %s curve discounts the set", built[0].value)
        return CurveSet(
            discount_curve=outcomes[built[0].value].curve,
            forward_curves={t: outcomes[t.value].curve for t in forward if t.value in outcomes},
            outcomes=outcomes,
            failures=failures,
            self_discounting=True,
        )


__all__ = [
    "DISCOUNT",
    "Tenor",
    "CurveSet",
    "MultiCurveBuilder",
]
