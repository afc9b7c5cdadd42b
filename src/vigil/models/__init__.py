"""Vigil data models - re-exports all public model classes."""

from vigil.models.acceptance import (
    AcceptanceSummary,
    FinalStatus,
    PolicyReason,
    TraceAssessment,
)
from vigil.models.config import HarnessConfig, ReenrichConfig, TelemetryConfig
from vigil.models.run import RunManifest, RunSummary, ScenarioOutcome, TraceRef
from vigil.models.scenario import Scenario
from vigil.models.trace import (
    CapturedToolCall,
    EnrichmentMetadata,
    LlmResponse,
    LogEvent,
    ServiceLogs,
    TokenUsage,
    TraceArtifact,
)

__all__ = [
    "AcceptanceSummary",
    "CapturedToolCall",
    "EnrichmentMetadata",
    "FinalStatus",
    "HarnessConfig",
    "LlmResponse",
    "LogEvent",
    "PolicyReason",
    "ReenrichConfig",
    "RunManifest",
    "RunSummary",
    "Scenario",
    "ScenarioOutcome",
    "ServiceLogs",
    "TelemetryConfig",
    "TokenUsage",
    "TraceArtifact",
    "TraceAssessment",
    "TraceRef",
]
