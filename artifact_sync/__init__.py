"""
artifact-sync - keeps derived artifacts linked to their source files.

Watches a project tree and maintains exactly one generated artifact per
qualifying source, following sources through renames and moves.
"""

__version__ = "1.0.0"

from core.models.artifacts import DerivedArtifact, SourceFile, SourceHandle
from core.models.config import SyncConfig
from core.models.outcomes import BatchReport, SyncAction, SyncOutcome
from core.sync.engine import SyncEngine

__all__ = [
    "DerivedArtifact",
    "SourceFile",
    "SourceHandle",
    "SyncConfig",
    "BatchReport",
    "SyncAction",
    "SyncOutcome",
    "SyncEngine",
    "__version__",
]
