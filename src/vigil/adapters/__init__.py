"""Vigil adapters - inference provider abstraction layer."""

from vigil.adapters.base import (
    AdapterConfig,
    BaseAdapter,
    InferenceResult,
    TokenUsage,
    ToolEndpoint,
    ToolInvocation,
)
from vigil.adapters.registry import get_adapter

__all__ = [
    "AdapterConfig",
    "BaseAdapter",
    "InferenceResult",
    "TokenUsage",
    "ToolEndpoint",
    "ToolInvocation",
    "get_adapter",
]
