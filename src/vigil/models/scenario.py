"""Scenario definition model.

A scenario is one evaluation question: a prompt, optional instructions
file, and the tools the model is expected to call.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Scenario(BaseModel):
    """A scenario loaded from scenarios/*.json or *.yaml."""

    model_config = {"extra": "forbid"}

    id: str
    prompt: str
    description: str = ""
    expected_tools: list[str] = Field(default_factory=list)
    instructions: str | None = None  # path relative to the project root
    tags: list[str] = Field(default_factory=list)
