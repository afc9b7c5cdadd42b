"""Expected-vs-actual backend service coverage."""

from vigil.coverage.inference import (
    AUTH_SERVICE,
    INGRESS_SERVICE,
    PLATFORM_SERVICES,
    SERVICE_NAMES,
    SESSION_TOOL,
    actual_services,
    infer_expected_services,
    missing_services,
)

__all__ = [
    "AUTH_SERVICE",
    "INGRESS_SERVICE",
    "PLATFORM_SERVICES",
    "SERVICE_NAMES",
    "SESSION_TOOL",
    "actual_services",
    "infer_expected_services",
    "missing_services",
]
