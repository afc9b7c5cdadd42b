"""Tests for vigil.tracing.ids - run and trace id generation."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from vigil.tracing.ids import create_run_id, create_trace_id, slugify


class TestSlugify:
    """Tests for scenario id slugging."""

    def test_lowercases_and_collapses(self):
        assert slugify("ESPN  Roster--Check!") == "espn_roster_check"

    def test_strips_edge_underscores(self):
        assert slugify("__hello__") == "hello"

    def test_caps_length(self):
        assert len(slugify("a" * 100)) == 48

    def test_all_symbols_is_empty(self):
        assert slugify("!!!") == ""


class TestCreateTraceId:
    """Tests for create_trace_id."""

    def test_unscoped_format(self):
        assert create_trace_id("Who is on my roster?", 3) == "trace_who_is_on_my_roster_003"

    def test_empty_slug_falls_back(self):
        assert create_trace_id("???", 0) == "trace_scenario_000"

    def test_scoped_has_hash_suffix(self):
        trace_id = create_trace_id("roster", 1, "2026-02-07T12-00-00Z")
        assert re.fullmatch(r"trace_roster_001_[0-9a-f]{8}", trace_id)

    def test_scoped_is_deterministic(self):
        a = create_trace_id("roster", 1, "run-a")
        b = create_trace_id("roster", 1, "run-a")
        assert a == b

    def test_different_runs_differ(self):
        a = create_trace_id("roster", 1, "run-a")
        b = create_trace_id("roster", 1, "run-b")
        assert a != b

    def test_different_index_differs(self):
        assert create_trace_id("roster", 0, "run") != create_trace_id("roster", 1, "run")


class TestCreateRunId:
    """Tests for create_run_id."""

    def test_format(self):
        now = datetime(2026, 2, 7, 9, 5, 3, 123456, tzinfo=timezone.utc)
        assert create_run_id(now) == "2026-02-07T09-05-03Z"

    def test_default_matches_pattern(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}Z", create_run_id())
