"""Deterministic run and trace identifiers."""

from vigil.tracing.ids import create_run_id, create_trace_id, slugify

__all__ = ["create_run_id", "create_trace_id", "slugify"]
