"""
Core data models for artifact-sync

All Pydantic models for sources, artifacts, outcomes and configuration.
"""

from .artifacts import SourceHandle, SourceFile, DerivedArtifact
from .outcomes import SyncAction, SyncOutcome, BatchReport, ErrorKind
from .config import SyncConfig, GlobalSettings

__all__ = [
    # Sources and artifacts
    "SourceHandle",
    "SourceFile",
    "DerivedArtifact",

    # Outcomes
    "SyncAction",
    "SyncOutcome",
    "BatchReport",
    "ErrorKind",

    # Configuration
    "SyncConfig",
    "GlobalSettings",
]
