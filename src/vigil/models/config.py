"""Harness configuration model for Vigil.

Captures vigil.yaml fields with defaults, overlaid by environment
values (.env file first, then the process environment). The loaded
HarnessConfig is built once at process start and passed explicitly to
every component; nothing else reads the environment.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr

DEFAULT_MCP_URL = "https://api.flaim.app/mcp"
DEFAULT_MODEL = "gpt-5-mini-2025-08-07"
DEFAULT_TELEMETRY_API_BASE = "https://api.cloudflare.com/client/v4"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class TelemetryConfig(BaseModel):
    """Credentials and query settings for the telemetry API.

    Both account_id and api_token must be set for log enrichment to run.
    """

    model_config = {"extra": "forbid"}

    account_id: str | None = None
    api_token: SecretStr | None = None
    api_base: str = DEFAULT_TELEMETRY_API_BASE
    allow_run_fallback: bool = False
    query_limit: int = Field(default=200, ge=1)
    time_padding_ms: int = Field(default=30_000, ge=0)
    request_timeout_s: float = Field(default=20.0, gt=0)

    @property
    def is_configured(self) -> bool:
        return bool(self.account_id) and bool(
            self.api_token and self.api_token.get_secret_value()
        )


class ReenrichConfig(BaseModel):
    """Retry loop settings for log re-enrichment."""

    model_config = {"extra": "forbid"}

    attempts: int = Field(default=6, ge=1)
    delay_ms: int = Field(default=15_000, ge=0)
    window_expand_ms: int = Field(default=30_000, ge=0)
    initial_attempts: int = Field(default=2, ge=1)


class HarnessConfig(BaseModel):
    """Project-level configuration loaded from vigil.yaml and the environment."""

    model_config = {"extra": "forbid"}

    adapter: str = "openai"
    mcp_url: str = DEFAULT_MCP_URL
    model: str = DEFAULT_MODEL
    scenarios_dir: str = "scenarios"
    runs_dir: str = "runs"
    eval_api_key: SecretStr | None = None
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    reenrich: ReenrichConfig = Field(default_factory=ReenrichConfig)


def parse_positive_int(value: str | None, fallback: int) -> int:
    """Parse a positive integer setting, returning fallback when invalid.

    Floats are floored; zero, negatives and garbage yield the fallback.
    """
    if value is None:
        return fallback
    try:
        parsed = float(value)
    except ValueError:
        return fallback
    if not math.isfinite(parsed) or parsed <= 0:
        return fallback
    return int(parsed)


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for vigil.yaml or runs/.

    Args:
        start: Starting path (file or directory). Defaults to cwd.

    Returns:
        Path to the project root directory, or cwd if none is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / "vigil.yaml").exists() or (current / "runs").is_dir():
            return current
        current = current.parent
    return Path.cwd()


def _apply_env(raw: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Overlay environment values onto the raw yaml mapping."""
    telemetry = dict(raw.get("telemetry") or {})
    reenrich = dict(raw.get("reenrich") or {})

    if env.get("VIGIL_MCP_URL"):
        raw["mcp_url"] = env["VIGIL_MCP_URL"]
    if env.get("VIGIL_MODEL"):
        raw["model"] = env["VIGIL_MODEL"]
    if env.get("VIGIL_EVAL_API_KEY"):
        raw["eval_api_key"] = env["VIGIL_EVAL_API_KEY"]

    if env.get("CLOUDFLARE_ACCOUNT_ID"):
        telemetry["account_id"] = env["CLOUDFLARE_ACCOUNT_ID"]
    if env.get("CLOUDFLARE_API_TOKEN"):
        telemetry["api_token"] = env["CLOUDFLARE_API_TOKEN"]
    if "VIGIL_ALLOW_RUN_FALLBACK" in env:
        telemetry["allow_run_fallback"] = (
            env["VIGIL_ALLOW_RUN_FALLBACK"].strip().lower() in _TRUE_VALUES
        )

    defaults = ReenrichConfig()
    for env_key, field_name in (
        ("VIGIL_REENRICH_ATTEMPTS", "attempts"),
        ("VIGIL_REENRICH_DELAY_MS", "delay_ms"),
        ("VIGIL_REENRICH_WINDOW_EXPAND_MS", "window_expand_ms"),
    ):
        if env_key in env:
            fallback = reenrich.get(field_name, getattr(defaults, field_name))
            reenrich[field_name] = parse_positive_int(env[env_key], fallback)

    raw["telemetry"] = telemetry
    raw["reenrich"] = reenrich
    return raw


def load_harness_config(
    project_root: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> HarnessConfig:
    """Load HarnessConfig from vigil.yaml plus environment overrides.

    Args:
        project_root: Path to the project root directory. If None,
            uses find_project_root() to locate it.
        env: Environment mapping to read. If None, values from
            <project_root>/.env are merged under os.environ.

    Returns:
        Validated HarnessConfig instance.
    """
    if project_root is None:
        project_root = find_project_root()

    raw: dict[str, Any] = {}
    config_path = project_root / "vigil.yaml"
    if config_path.exists():
        import yaml

        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if loaded:
            raw = dict(loaded)

    if env is None:
        from dotenv import dotenv_values

        file_values = {
            key: value
            for key, value in dotenv_values(project_root / ".env").items()
            if value is not None
        }
        env = {**file_values, **os.environ}

    return HarnessConfig.model_validate(_apply_env(raw, env))
