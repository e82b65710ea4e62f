"""Memory module - batch store, audit log, and screenshot artifacts."""

from .store import BatchStore
from .artifacts import ArtifactStore

__all__ = [
    "BatchStore",
    "ArtifactStore",
]
