"""Scenario execution: retry, single-scenario runner, and run orchestration."""

from vigil.execution.retry import retry_with_backoff
from vigil.execution.runner import ScenarioRunner, build_mcp_headers
from vigil.execution.suite import SuiteOutcome, SuiteRunner

__all__ = [
    "ScenarioRunner",
    "SuiteOutcome",
    "SuiteRunner",
    "build_mcp_headers",
    "retry_with_backoff",
]
