"""Run and trace identifier generation.

Trace ids are deterministic so a re-run of the same scenario list maps
to predictable directories, and carry a short run-scope digest when a
run id is supplied so ids from different runs never collide in shared
log storage.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone

TRACE_PREFIX = "trace"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SLUG_MAX_LEN = 48


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumerics to '_', trim, cap at 48 chars."""
    slug = _NON_ALNUM.sub("_", value.lower()).strip("_")
    return slug[:_SLUG_MAX_LEN]


def create_trace_id(scenario_id: str, index: int, run_scope: str | None = None) -> str:
    """Build a deterministic per-question trace id.

    Args:
        scenario_id: Scenario identifier (any characters).
        index: Zero-based ordinal of the scenario within the run.
        run_scope: Optional run identifier mixed into a short digest suffix.

    Returns:
        ``trace_<slug>_<NNN>`` or ``trace_<slug>_<NNN>_<hash8>``.
    """
    safe_scenario = slugify(scenario_id) or "scenario"
    trace_id = f"{TRACE_PREFIX}_{safe_scenario}_{index:03d}"
    if run_scope:
        digest = hashlib.sha256(
            f"{run_scope}:{scenario_id}:{index}".encode("utf-8")
        ).hexdigest()[:8]
        trace_id = f"{trace_id}_{digest}"
    return trace_id


def create_run_id(now: datetime | None = None) -> str:
    """Format the run start instant as ``YYYY-MM-DDTHH-MM-SSZ``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")
