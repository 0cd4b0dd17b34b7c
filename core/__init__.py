"""
artifact-sync core package

Keeps generated artifacts linked one-to-one with their source files.
"""

__version__ = "1.0.0"

from .models import SourceHandle, SourceFile, DerivedArtifact, SyncConfig, BatchReport

__all__ = [
    "SourceHandle",
    "SourceFile",
    "DerivedArtifact",
    "SyncConfig",
    "BatchReport"
]
