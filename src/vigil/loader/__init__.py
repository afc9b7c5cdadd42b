"""Scenario loading."""

from vigil.loader.scenarios import load_instructions, load_scenario_file, load_scenarios

__all__ = ["load_instructions", "load_scenario_file", "load_scenarios"]
