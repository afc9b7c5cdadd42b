"""Scenario and instruction file loading.

Scenarios live as one JSON or YAML document per file in the scenarios
directory. Instruction files are referenced by path relative to the
project root.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from vigil.errors import ScenarioLoadError
from vigil.models.scenario import Scenario

logger = logging.getLogger(__name__)

SCENARIO_SUFFIXES = (".json", ".yaml", ".yml")


def _parse_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_scenario_file(path: Path) -> Scenario:
    """Parse and validate a single scenario file.

    Raises:
        ScenarioLoadError: On syntax errors or schema violations.
    """
    try:
        data = _parse_file(path)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ScenarioLoadError(str(path), f"invalid syntax: {exc}") from exc

    if not isinstance(data, dict):
        raise ScenarioLoadError(str(path), "expected a mapping at the top level")

    try:
        return Scenario.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '(root)'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ScenarioLoadError(str(path), problems) from exc


def load_scenarios(
    scenarios_dir: Path,
    filter_ids: Sequence[str] | None = None,
) -> list[Scenario]:
    """Load every scenario in scenarios_dir, sorted by file name.

    Args:
        scenarios_dir: Directory holding scenario files.
        filter_ids: When non-empty, keep only scenarios with these ids.

    Returns:
        Loaded scenarios, or an empty list if the directory is missing.

    Raises:
        ScenarioLoadError: If any scenario file is invalid.
    """
    if not scenarios_dir.is_dir():
        logger.warning("Scenarios directory not found: %s", scenarios_dir)
        return []

    files = sorted(
        p for p in scenarios_dir.iterdir() if p.is_file() and p.suffix in SCENARIO_SUFFIXES
    )
    scenarios = [load_scenario_file(p) for p in files]

    if filter_ids:
        wanted = set(filter_ids)
        scenarios = [s for s in scenarios if s.id in wanted]
    return scenarios


def load_instructions(scenario: Scenario, project_root: Path) -> str | None:
    """Return the scenario's instruction text, or None.

    A referenced file that does not exist is logged and treated as no
    instructions.
    """
    if not scenario.instructions:
        return None

    path = (project_root / scenario.instructions).resolve()
    if not path.is_file():
        logger.warning("Instructions file not found: %s", path)
        return None
    return path.read_text(encoding="utf-8")
