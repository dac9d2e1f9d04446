"""
Bootstrap configuration.

BootstrapConfig is frozen: build a variant with dataclasses.replace or one
of the presets rather than mutating a shared instance.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Union


class InterpolationMethod(Enum):
    """Curve interpolation scheme."""
    LOG_LINEAR = "log_linear"
    LINEAR_ZERO_RATE = "linear_zero_rate"
    NATURAL_CUBIC = "natural_cubic"
    MONOTONIC_CUBIC = "monotonic_cubic"
    FLAT_FORWARD = "flat_forward"

    @classmethod
    def from_string(cls, s: Union[str, "InterpolationMethod"]) -> "InterpolationMethod":
        """Parse an interpolation name ("log-linear", "cubic", "pchip", ...)."""
        if isinstance(s, cls):
            return s
        mapping = {
            "LOG_LINEAR": cls.LOG_LINEAR,
            "LOGLINEAR": cls.LOG_LINEAR,
            "LOG_DF": cls.LOG_LINEAR,
            "LINEAR_ZERO_RATE": cls.LINEAR_ZERO_RATE,
            "LINEAR_ZERO": cls.LINEAR_ZERO_RATE,
            "LINEAR": cls.LINEAR_ZERO_RATE,
            "NATURAL_CUBIC": cls.NATURAL_CUBIC,
            "CUBIC": cls.NATURAL_CUBIC,
            "CUBIC_SPLINE": cls.NATURAL_CUBIC,
            "MONOTONIC_CUBIC": cls.MONOTONIC_CUBIC,
            "MONOTONE_CUBIC": cls.MONOTONIC_CUBIC,
            "PCHIP": cls.MONOTONIC_CUBIC,
            "FLAT_FORWARD": cls.FLAT_FORWARD,
            "PIECEWISE_CONSTANT_FORWARD": cls.FLAT_FORWARD,
        }
        key = str(s).upper().strip().replace("-", "_").replace(" ", "_")
        if key in mapping:
            return mapping[key]
        raise ValueError(f"Unknown interpolation method: {s}")


class NegativeRatePolicy(Enum):
    """What to do with a negative quoted or implied rate."""
    REJECT = "reject"
    WARN = "warn"

    @classmethod
    def from_string(cls, s: Union[str, "NegativeRatePolicy"]) -> "NegativeRatePolicy":
        if isinstance(s, cls):
            return s
        key = str(s).lower().strip().replace("-", "_")
        if key in ("reject", "raise", "error"):
            return cls.REJECT
        if key in ("warn", "warn_and_continue", "allow"):
            return cls.WARN
        raise ValueError(f"Unknown negative rate policy: {s}")


@dataclass(frozen=True)
class BootstrapConfig:
    """
    Settings for a single curve bootstrap.

    Attributes:
        tolerance: Absolute residual tolerance for both solvers
        max_iterations: Iteration budget per solver attempt
        interpolation: Interpolation scheme of the produced curve
        allow_extrapolation: Hold the zero rate flat beyond the last pillar
            instead of raising OutOfDomainError
        negative_rate_policy: Reject negative rates or accept them with a warning
        partial_on_failure: Return the solved prefix instead of raising on
            a convergence failure
        max_maturity: Largest accepted instrument maturity in years
        repricing_tolerance: Maximum repricing error of the final curve
            (decimal, 1e-4 = 1bp)
        max_passes: Global re-solve passes for non-local interpolation
        verify: Run the repricing check after assembly
    """
    tolerance: float = 1e-12
    max_iterations: int = 100
    interpolation: InterpolationMethod = InterpolationMethod.LOG_LINEAR
    allow_extrapolation: bool = True
    negative_rate_policy: NegativeRatePolicy = NegativeRatePolicy.REJECT
    partial_on_failure: bool = False
    max_maturity: float = 50.0
    repricing_tolerance: float = 1e-4
    max_passes: int = 25
    verify: bool = True

    def __post_init__(self):
        # Frozen: coerce through object.__setattr__
        object.__setattr__(
            self, "interpolation", InterpolationMethod.from_string(self.interpolation)
        )
        object.__setattr__(
            self, "negative_rate_policy", NegativeRatePolicy.from_string(self.negative_rate_policy)
        )
        if not self.tolerance > 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not self.max_maturity > 0:
            raise ValueError(f"max_maturity must be positive, got {self.max_maturity}")
        if not self.repricing_tolerance > 0:
            raise ValueError(
                f"repricing_tolerance must be positive, got {self.repricing_tolerance}"
            )
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {self.max_passes}")

    @property
    def allow_negative_rates(self) -> bool:
        return self.negative_rate_policy == NegativeRatePolicy.WARN

    @classmethod
    def high_precision(cls, **overrides) -> "BootstrapConfig":
        """Tight tolerance with a generous iteration budget."""
        return cls(**{"tolerance": 1e-14, "max_iterations": 500, **overrides})

    @classmethod
    def fast(cls, **overrides) -> "BootstrapConfig":
        """Loose tolerance for quick indicative curves."""
        return cls(**{"tolerance": 1e-8, "max_iterations": 50, **overrides})

    def with_overrides(self, **changes) -> "BootstrapConfig":
        """Copy with some fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BootstrapConfig":
        """Build from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping with enums rendered as their values."""
        out = asdict(self)
        out["interpolation"] = self.interpolation.value
        out["negative_rate_policy"] = self.negative_rate_policy.value
        return out


__all__ = [
    "InterpolationMethod",
    "NegativeRatePolicy",
    "BootstrapConfig",
]
