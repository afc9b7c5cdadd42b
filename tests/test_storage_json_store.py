"""Tests for the JSON storage layer (JsonArtifactStore)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from vigil.errors import ArtifactNotFoundError
from vigil.models.run import RunManifest, RunSummary, TraceRef
from vigil.models.trace import LlmResponse, LogEvent, TraceArtifact
from vigil.storage.json_store import JsonArtifactStore

RUN = "2026-02-07T12-00-00Z"
STAMP = datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc)


def _artifact(trace_id: str = "trace_a_000", services: tuple[str, ...] = ()) -> TraceArtifact:
    logs = {
        service: [LogEvent(timestamp=STAMP, service=service, trace_id=trace_id)]
        for service in services
    }
    return TraceArtifact(
        run_id=RUN,
        trace_id=trace_id,
        scenario_id="a",
        timestamp_utc=STAMP,
        model="gpt-5-mini",
        prompt="q",
        llm_response=LlmResponse(response_id="r"),
        server_logs=logs or None,
    )


class TestTraceArtifacts:
    """Tests for get/put of trace artifacts."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """put then get returns an equal artifact."""
        store = JsonArtifactStore(tmp_path)
        artifact = _artifact(services=("fantasy-mcp",))
        store.put(RUN, artifact)
        assert store.get(RUN, artifact.trace_id) == artifact

    def test_get_missing_raises(self, tmp_path: Path) -> None:
        """get of an unknown trace raises ArtifactNotFoundError."""
        store = JsonArtifactStore(tmp_path)
        with pytest.raises(ArtifactNotFoundError) as info:
            store.get(RUN, "trace_nope_000")
        assert isinstance(info.value, FileNotFoundError)

    def test_writes_per_service_logs(self, tmp_path: Path) -> None:
        """Each service gets its own log file without null fields."""
        store = JsonArtifactStore(tmp_path)
        store.put(RUN, _artifact(services=("fantasy-mcp", "auth-worker")))
        logs_dir = store.trace_dir(RUN, "trace_a_000") / "logs"
        assert sorted(p.name for p in logs_dir.iterdir()) == [
            "auth-worker.json",
            "fantasy-mcp.json",
        ]
        [entry] = json.loads((logs_dir / "fantasy-mcp.json").read_text(encoding="utf-8"))
        assert entry["service"] == "fantasy-mcp"
        assert "status" not in entry

    def test_orphan_log_files_removed(self, tmp_path: Path) -> None:
        """Rewriting with fewer services deletes stale log files."""
        store = JsonArtifactStore(tmp_path)
        store.put(RUN, _artifact(services=("fantasy-mcp", "espn-client")))
        store.put(RUN, _artifact(services=("fantasy-mcp",)))
        logs_dir = store.trace_dir(RUN, "trace_a_000") / "logs"
        assert [p.name for p in logs_dir.iterdir()] == ["fantasy-mcp.json"]

    def test_no_tmp_files_left(self, tmp_path: Path) -> None:
        """Atomic writes leave no .tmp files behind."""
        store = JsonArtifactStore(tmp_path)
        store.put(RUN, _artifact(services=("fantasy-mcp",)))
        assert list(tmp_path.rglob("*.tmp")) == []


class TestResolveTraceIds:
    """Tests for trace id resolution order."""

    def test_explicit_id_wins(self, tmp_path: Path) -> None:
        store = JsonArtifactStore(tmp_path)
        assert store.resolve_trace_ids(RUN, "trace_x_000") == ["trace_x_000"]

    def test_manifest_order(self, tmp_path: Path) -> None:
        store = JsonArtifactStore(tmp_path)
        store.save_manifest(
            RunManifest(
                run_id=RUN,
                traces=[
                    TraceRef(scenario_id="b", trace_id="trace_b_001"),
                    TraceRef(scenario_id="a", trace_id="trace_a_000"),
                ],
            )
        )
        assert store.resolve_trace_ids(RUN) == ["trace_b_001", "trace_a_000"]

    def test_directory_scan_fallback(self, tmp_path: Path) -> None:
        store = JsonArtifactStore(tmp_path)
        store.put(RUN, _artifact("trace_b_001"))
        store.put(RUN, _artifact("trace_a_000"))
        (store.run_dir(RUN) / "notes").mkdir()
        assert store.resolve_trace_ids(RUN) == ["trace_a_000", "trace_b_001"]

    def test_unknown_run(self, tmp_path: Path) -> None:
        store = JsonArtifactStore(tmp_path)
        assert store.resolve_trace_ids("nope") == []
        assert store.run_exists("nope") is False


class TestRunRecords:
    """Tests for manifest and summary persistence."""

    def test_manifest_missing_is_none(self, tmp_path: Path) -> None:
        assert JsonArtifactStore(tmp_path).load_manifest(RUN) is None

    def test_summary_round_trip(self, tmp_path: Path) -> None:
        store = JsonArtifactStore(tmp_path)
        summary = RunSummary(run_id=RUN, total_scenarios=2, completed=1, errored=1)
        store.save_summary(summary)
        assert store.load_summary(RUN) == summary

    def test_summary_missing_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ArtifactNotFoundError):
            JsonArtifactStore(tmp_path).load_summary(RUN)

    def test_acceptance_missing_is_none(self, tmp_path: Path) -> None:
        assert JsonArtifactStore(tmp_path).load_acceptance(RUN) is None

    def test_latest_run_id(self, tmp_path: Path) -> None:
        store = JsonArtifactStore(tmp_path / "runs")
        assert store.latest_run_id() is None
        for run_id in ("2026-02-07T12-00-00Z", "2026-02-08T09-30-00Z", "2026-01-31T23-59-59Z"):
            store.save_summary(RunSummary(run_id=run_id, total_scenarios=0, completed=0, errored=0))
        (store.runs_root / "stray.txt").write_text("x", encoding="utf-8")
        assert store.latest_run_id() == "2026-02-08T09-30-00Z"
