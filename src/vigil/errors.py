"""Exception types shared across the harness.

Configuration errors disable the telemetry subsystem, query errors are
recovered locally as "zero events", and missing artifacts are fatal for
the trace being addressed.
"""

from __future__ import annotations


class VigilError(Exception):
    """Base class for harness errors."""


class TelemetryConfigError(VigilError):
    """Raised when telemetry credentials are missing."""


class TelemetryQueryError(VigilError):
    """Raised when a single telemetry query fails.

    Carries the service name and, when the API answered, its HTTP status.
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ArtifactNotFoundError(VigilError, FileNotFoundError):
    """Raised when a persisted run or trace artifact is absent."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Artifact not found: {path}")
        self.path = path


class ScenarioLoadError(VigilError):
    """Raised when a scenario file cannot be parsed or validated."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
