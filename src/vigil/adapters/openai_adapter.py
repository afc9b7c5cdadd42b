"""OpenAI adapter using the Responses API with a remote MCP tool.

The model calls the MCP server directly; the adapter only extracts the
``mcp_call`` items and assistant text from the response output.
"""

from __future__ import annotations

import json
from typing import Any

from vigil.adapters.base import (
    AdapterConfig,
    BaseAdapter,
    InferenceResult,
    TokenUsage,
    ToolEndpoint,
    ToolInvocation,
)


def _field(item: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK object or a plain dict."""
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _parse_arguments(raw: Any) -> Any:
    if raw is None or raw == "":
        return {}
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {}


class OpenAIResponsesAdapter(BaseAdapter):
    """Adapter for the OpenAI Responses API.

    Uses a lazily-initialized AsyncOpenAI client that reads
    OPENAI_API_KEY from the environment.
    """

    def __init__(self) -> None:
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the AsyncOpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI()
        return self._client

    def _build_input(self, prompt: str, instructions: str | None) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if instructions:
            messages.append({"role": "developer", "content": instructions})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _build_tools(self, endpoint: ToolEndpoint) -> list[dict[str, Any]]:
        return [
            {
                "type": "mcp",
                "server_url": endpoint.url,
                "server_label": endpoint.label,
                "headers": dict(endpoint.headers),
                "require_approval": "never",
            }
        ]

    def _extract_tool_calls(self, output: list[Any]) -> list[ToolInvocation]:
        calls: list[ToolInvocation] = []
        for item in output:
            if _field(item, "type") != "mcp_call":
                continue
            calls.append(
                ToolInvocation(
                    name=_field(item, "name", ""),
                    arguments=_parse_arguments(_field(item, "arguments")),
                    output=_field(item, "output") or "",
                )
            )
        return calls

    def _extract_final_text(self, output: list[Any]) -> str:
        texts: list[str] = []
        for item in output:
            if _field(item, "type") != "message" or _field(item, "role") != "assistant":
                continue
            for part in _field(item, "content") or []:
                if _field(part, "type") == "output_text":
                    texts.append(_field(part, "text", ""))
        return "\n".join(texts)

    async def run_prompt(
        self,
        prompt: str,
        instructions: str | None,
        endpoint: ToolEndpoint,
        config: AdapterConfig,
    ) -> InferenceResult:
        """Send the prompt to the Responses API with the MCP tool attached."""
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": config.model,
            "input": self._build_input(prompt, instructions),
            "tools": self._build_tools(endpoint),
            "store": True,
            "parallel_tool_calls": config.parallel_tool_calls,
        }
        kwargs.update(config.extras)

        response = await client.responses.create(**kwargs)
        output = list(response.output or [])
        usage = response.usage

        return InferenceResult(
            response_id=response.id,
            tool_calls=self._extract_tool_calls(output),
            final_text=self._extract_final_text(output),
            raw_output=[
                item.model_dump() if hasattr(item, "model_dump") else item for item in output
            ],
            usage=TokenUsage(
                input_tokens=_field(usage, "input_tokens", 0) or 0,
                output_tokens=_field(usage, "output_tokens", 0) or 0,
                total_tokens=_field(usage, "total_tokens", 0) or 0,
            ),
        )

    def provider_name(self) -> str:
        """Return the provider name."""
        return "openai"
