"""
Artifact registry: stores, link access, path resolution and errors.
"""

from .errors import (
    ArtifactRegistryError,
    PathCollisionError,
    TargetOccupiedError,
    ArtifactNotFoundError,
    RelocationNoOpError,
    CorruptArtifactError,
)
from .paths import normalize_path, expected_artifact_path, sanitize_identifier, has_extension
from .store import ArtifactStore, FileArtifactStore, InMemoryArtifactStore
from .accessor import LinkAccessor, DocumentLinkAccessor
from .registry import ArtifactRegistry, RegistrySnapshot

__all__ = [
    "ArtifactRegistryError",
    "PathCollisionError",
    "TargetOccupiedError",
    "ArtifactNotFoundError",
    "RelocationNoOpError",
    "CorruptArtifactError",
    "normalize_path",
    "expected_artifact_path",
    "sanitize_identifier",
    "has_extension",
    "ArtifactStore",
    "FileArtifactStore",
    "InMemoryArtifactStore",
    "LinkAccessor",
    "DocumentLinkAccessor",
    "ArtifactRegistry",
    "RegistrySnapshot",
]
