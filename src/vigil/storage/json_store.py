"""JSON file storage layer for run and trace artifacts.

Stores every record of a run under runs/{run-id}/. Trace artifacts are
rewritten wholesale on each mutation, together with one log file per
service. Uses atomic writes to prevent corruption.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from vigil.errors import ArtifactNotFoundError
from vigil.models.acceptance import AcceptanceSummary
from vigil.models.run import RunManifest, RunSummary
from vigil.models.trace import TraceArtifact

TRACE_FILE = "trace.json"
LOGS_DIR = "logs"
MANIFEST_FILE = "manifest.json"
SUMMARY_FILE = "summary.json"
ACCEPTANCE_FILE = "acceptance-summary.json"


class ArtifactStore(Protocol):
    """Narrow key-value view of trace persistence used by the core."""

    def get(self, run_id: str, trace_id: str) -> TraceArtifact: ...

    def put(self, run_id: str, artifact: TraceArtifact) -> None: ...


def _atomic_write(path: Path, content: str) -> None:
    """Write to {path}.tmp then rename over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    tmp_path.write_text(content, encoding="utf-8")
    tmp_path.replace(path)


def _write_model(path: Path, model: BaseModel) -> None:
    _atomic_write(path, model.model_dump_json(indent=2))


class JsonArtifactStore:
    """Persist and query run artifacts as JSON files.

    File layout:
        runs/
            {run-id}/
                manifest.json             # Scenario -> trace id plan
                summary.json              # Completion counters
                acceptance-summary.json   # Latest acceptance verdict
                {trace-id}/
                    trace.json            # Full TraceArtifact
                    logs/{service}.json   # Events per service

    Writes are atomic (write to .tmp, then rename) to prevent partial files.
    """

    def __init__(self, runs_root: Path) -> None:
        self.runs_root = runs_root

    def run_dir(self, run_id: str) -> Path:
        return self.runs_root / run_id

    def trace_dir(self, run_id: str, trace_id: str) -> Path:
        return self.run_dir(run_id) / trace_id

    def run_exists(self, run_id: str) -> bool:
        return self.run_dir(run_id).is_dir()

    def latest_run_id(self) -> str | None:
        """Most recent run id; run ids are timestamps, so they sort by name."""
        if not self.runs_root.is_dir():
            return None
        run_ids = sorted(entry.name for entry in self.runs_root.iterdir() if entry.is_dir())
        return run_ids[-1] if run_ids else None

    # -- Trace artifacts --

    def get(self, run_id: str, trace_id: str) -> TraceArtifact:
        """Load a TraceArtifact.

        Raises:
            ArtifactNotFoundError: If the trace.json file does not exist.
        """
        trace_path = self.trace_dir(run_id, trace_id) / TRACE_FILE
        if not trace_path.exists():
            raise ArtifactNotFoundError(str(trace_path))
        return TraceArtifact.model_validate_json(trace_path.read_text(encoding="utf-8"))

    def put(self, run_id: str, artifact: TraceArtifact) -> None:
        """Write trace.json and regenerate logs/{service}.json files.

        Log files for services no longer present in server_logs are removed.
        """
        trace_dir = self.trace_dir(run_id, artifact.trace_id)
        _write_model(trace_dir / TRACE_FILE, artifact)

        logs_dir = trace_dir / LOGS_DIR
        server_logs = artifact.server_logs or {}
        expected_files = {f"{service}.json" for service in server_logs}

        for service, events in server_logs.items():
            content = json.dumps(
                [event.model_dump(mode="json", exclude_none=True) for event in events],
                indent=2,
                ensure_ascii=False,
            )
            _atomic_write(logs_dir / f"{service}.json", content)

        if logs_dir.is_dir():
            for log_file in logs_dir.glob("*.json"):
                if log_file.name not in expected_files:
                    log_file.unlink()

    def resolve_trace_ids(self, run_id: str, requested: str | None = None) -> list[str]:
        """Trace ids for a run: explicit id, else manifest order, else trace_* dirs."""
        if requested:
            return [requested]

        manifest = self.load_manifest(run_id)
        if manifest is not None and manifest.traces:
            return [ref.trace_id for ref in manifest.traces]

        run_dir = self.run_dir(run_id)
        if not run_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in run_dir.iterdir()
            if entry.is_dir() and entry.name.startswith("trace_")
        )

    # -- Run records --

    def save_manifest(self, manifest: RunManifest) -> None:
        _write_model(self.run_dir(manifest.run_id) / MANIFEST_FILE, manifest)

    def load_manifest(self, run_id: str) -> RunManifest | None:
        """Load the run manifest, or None if the run has none."""
        path = self.run_dir(run_id) / MANIFEST_FILE
        if not path.exists():
            return None
        return RunManifest.model_validate_json(path.read_text(encoding="utf-8"))

    def save_summary(self, summary: RunSummary) -> None:
        _write_model(self.run_dir(summary.run_id) / SUMMARY_FILE, summary)

    def load_summary(self, run_id: str) -> RunSummary:
        """Load the run summary.

        Raises:
            ArtifactNotFoundError: If summary.json does not exist.
        """
        path = self.run_dir(run_id) / SUMMARY_FILE
        if not path.exists():
            raise ArtifactNotFoundError(str(path))
        return RunSummary.model_validate_json(path.read_text(encoding="utf-8"))

    def save_acceptance(self, summary: AcceptanceSummary) -> Path:
        """Write acceptance-summary.json, replacing any previous version."""
        path = self.run_dir(summary.run_id) / ACCEPTANCE_FILE
        _write_model(path, summary)
        return path

    def load_acceptance(self, run_id: str) -> AcceptanceSummary | None:
        """Load the latest acceptance verdict, or None if the run was never judged."""
        path = self.run_dir(run_id) / ACCEPTANCE_FILE
        if not path.exists():
            return None
        return AcceptanceSummary.model_validate_json(path.read_text(encoding="utf-8"))
