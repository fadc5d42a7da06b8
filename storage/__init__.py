from .memory import TaskStore
from .artifacts import ArtifactStore, JsonArtifactStore

__all__ = ["TaskStore", "ArtifactStore", "JsonArtifactStore"]
