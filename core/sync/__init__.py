"""
Source-Artifact Synchronization System.

Keeps derived artifacts linked one-to-one with qualifying source files as
sources are created, imported, renamed and moved.

Key Components:
- FileSystemEvent / EventBatch: Lifecycle event models delivered by a host
- SyncEngine: Batch protocol (filter, create, relocate, report)
- RegistryConsistencyValidator: Read-only audit of the registry
- SourceTreeWatcher: watchdog-based host delivering debounced batches
"""

from .events import FileSystemEvent, EventType, EventBatch
from .engine import SyncEngine
from .validator import RegistryConsistencyValidator, ValidationResult, ValidationStatus, ConsistencyIssue
from .watcher import SourceTreeWatcher

__all__ = [
    "FileSystemEvent",
    "EventType",
    "EventBatch",
    "SyncEngine",
    "RegistryConsistencyValidator",
    "ValidationResult",
    "ValidationStatus",
    "ConsistencyIssue",
    "SourceTreeWatcher",
]
