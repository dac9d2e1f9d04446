"""
Risk package - sensitivities of bootstrapped curves to their input quotes.

Provides:
- Adjoint pillar Jacobians (implicit function theorem)
- Per-maturity sensitivity records across chained curves
- Bump-and-rebootstrap finite differences for verification
"""

from .sensitivities import (
    SensitivityEntry,
    SensitivityRecord,
    residual_jacobian,
    pillar_jacobian,
    input_jacobian,
    sensitivity_record,
)
from .bumping import (
    BumpEngine,
    SensitivityCheck,
    SensitivityVerification,
)

__all__ = [
    "SensitivityEntry",
    "SensitivityRecord",
    "residual_jacobian",
    "pillar_jacobian",
    "input_jacobian",
    "sensitivity_record",
    "BumpEngine",
    "SensitivityCheck",
    "SensitivityVerification",
]
