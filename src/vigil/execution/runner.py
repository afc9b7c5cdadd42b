"""ScenarioRunner: execute one scenario and capture its trace artifact.

Builds the MCP request headers that tag every tool call with the run
and trace ids, invokes the adapter with transient-error retry, and
converts the result into a TraceArtifact.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from vigil.adapters.base import AdapterConfig, BaseAdapter, InferenceResult, ToolEndpoint
from vigil.execution.retry import retry_with_backoff
from vigil.loader.scenarios import load_instructions
from vigil.models.config import HarnessConfig
from vigil.models.scenario import Scenario
from vigil.models.trace import CapturedToolCall, LlmResponse, TokenUsage, TraceArtifact

logger = logging.getLogger(__name__)

RUN_HEADER = "X-Flaim-Eval-Run"
TRACE_HEADER = "X-Flaim-Eval-Trace"
MCP_ACCEPT = "application/json, text/event-stream"
SERVER_LABEL = "flaim"
PREVIEW_LEN = 200


def build_mcp_headers(access_token: str, run_id: str, trace_id: str) -> dict[str, str]:
    """Per-request headers for the remote tool server."""
    return {
        "Authorization": f"Bearer {access_token}",
        "Accept": MCP_ACCEPT,
        RUN_HEADER: run_id,
        TRACE_HEADER: trace_id,
    }


def preview_text(text: str, max_len: int = PREVIEW_LEN) -> str:
    """Truncate a tool result for the artifact preview field."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScenarioRunner:
    """Runs single scenarios through an adapter with the MCP server attached."""

    def __init__(
        self,
        adapter: BaseAdapter,
        config: HarnessConfig,
        access_token: str,
        project_root: Path,
        max_retries: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._adapter = adapter
        self._config = config
        self._access_token = access_token
        self._project_root = project_root
        self._max_retries = max_retries
        self._clock = clock

    async def run(self, scenario: Scenario, run_id: str, trace_id: str) -> TraceArtifact:
        """Execute the scenario once and return its trace artifact.

        Raises:
            Exception: Whatever the adapter raised once retries are exhausted.
        """
        instructions = load_instructions(scenario, self._project_root)
        endpoint = ToolEndpoint(
            url=self._config.mcp_url,
            label=SERVER_LABEL,
            headers=build_mcp_headers(self._access_token, run_id, trace_id),
        )
        adapter_config = AdapterConfig(model=self._config.model)

        start = time.perf_counter()
        result, retries_used, error_types = await retry_with_backoff(
            lambda: self._adapter.run_prompt(
                scenario.prompt, instructions, endpoint, adapter_config
            ),
            max_retries=self._max_retries,
        )
        duration_ms = int((time.perf_counter() - start) * 1000)

        artifact = self._to_artifact(scenario, run_id, trace_id, result, duration_ms)
        if retries_used:
            artifact.notes.append(
                f"Inference retried {retries_used} time(s): {', '.join(error_types)}."
            )
        return artifact

    def _to_artifact(
        self,
        scenario: Scenario,
        run_id: str,
        trace_id: str,
        result: InferenceResult,
        duration_ms: int,
    ) -> TraceArtifact:
        tool_calls = [
            CapturedToolCall(
                tool_name=call.name,
                args=call.arguments,
                result_preview=preview_text(call.output) if call.output else "",
                result_full=call.output,
            )
            for call in result.tool_calls
        ]
        return TraceArtifact(
            run_id=run_id,
            trace_id=trace_id,
            scenario_id=scenario.id,
            timestamp_utc=self._clock(),
            model=self._config.model,
            prompt=scenario.prompt,
            instructions_file=scenario.instructions,
            expected_tools=list(scenario.expected_tools),
            llm_response=LlmResponse(
                response_id=result.response_id,
                tool_calls=tool_calls,
                final_text=result.final_text,
                raw_output=result.raw_output,
                usage=TokenUsage(
                    input_tokens=result.usage.input_tokens,
                    output_tokens=result.usage.output_tokens,
                    total_tokens=result.usage.total_tokens,
                ),
            ),
            duration_ms=duration_ms,
        )
