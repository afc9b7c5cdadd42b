"""Artifact persistence."""

from vigil.storage.json_store import ArtifactStore, JsonArtifactStore

__all__ = ["ArtifactStore", "JsonArtifactStore"]
