"""Run acceptance policy."""

from vigil.acceptance.policy import (
    POLICY_VERSION,
    accept_run,
    assess_trace,
    evaluate_run,
    missing_code,
)
from vigil.acceptance.readiness import ReadinessReport, check_readiness

__all__ = [
    "POLICY_VERSION",
    "accept_run",
    "assess_trace",
    "evaluate_run",
    "missing_code",
    "ReadinessReport",
    "check_readiness",
]
