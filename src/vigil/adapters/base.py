"""BaseAdapter ABC and the inference boundary dataclasses.

An adapter runs one prompt against a hosted model that has a remote
MCP tool server attached, and reports back the tool invocations the
model made. Provider adapters subclass BaseAdapter and implement
run_prompt().

These are plain dataclasses (not Pydantic); the runner converts them
into persisted trace models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolInvocation:
    """A remote tool call made by the model during the response."""

    name: str
    arguments: Any
    output: str = ""


@dataclass
class TokenUsage:
    """Token usage counts for one inference call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ToolEndpoint:
    """Remote tool server descriptor handed to the model provider."""

    url: str
    label: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class InferenceResult:
    """Result of a single run_prompt() call."""

    response_id: str
    tool_calls: list[ToolInvocation]
    final_text: str
    raw_output: list[Any]
    usage: TokenUsage


@dataclass
class AdapterConfig:
    """Configuration passed to an adapter for a single call."""

    model: str
    parallel_tool_calls: bool = False
    extras: dict[str, Any] = field(default_factory=dict)


class BaseAdapter(ABC):
    """Abstract base class for inference adapters."""

    @abstractmethod
    async def run_prompt(
        self,
        prompt: str,
        instructions: str | None,
        endpoint: ToolEndpoint,
        config: AdapterConfig,
    ) -> InferenceResult:
        """Run one prompt with the remote tool server attached.

        Args:
            prompt: User prompt text.
            instructions: Optional developer/system instructions.
            endpoint: Remote tool server URL, label and request headers.
            config: Model name and provider extras.

        Returns:
            InferenceResult with tool invocations and final text.
        """
        ...

    def provider_name(self) -> str:
        """Return the provider name for this adapter.

        Default implementation returns the class name.
        """
        return type(self).__name__
