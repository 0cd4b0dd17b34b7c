"""
File System Event Models.

Defines the individual file system events a host observes and the event
batch the synchronization engine consumes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import uuid

from ..registry.paths import normalize_path


class EventType(Enum):
    """Types of file system events a host reports"""
    CREATED = "created"     # New file created or imported
    MODIFIED = "modified"   # Existing file re-imported
    DELETED = "deleted"     # File deleted
    MOVED = "moved"         # File moved/renamed


class FileSystemEvent(BaseModel):
    """
    A single file system event, with root-relative paths.

    Hosts accumulate these and turn them into an EventBatch.
    """

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: EventType

    file_path: str
    old_path: Optional[str] = None  # For move events

    timestamp: datetime = Field(default_factory=datetime.now)

    @field_validator('file_path', 'old_path')
    @classmethod
    def validate_paths(cls, v: Optional[str]) -> Optional[str]:
        """Store paths in canonical forward-slash form"""
        return normalize_path(v) if v is not None else None

    @model_validator(mode='after')
    def validate_move_has_old_path(self) -> 'FileSystemEvent':
        if self.event_type == EventType.MOVED and self.old_path is None:
            raise ValueError('Move events require old_path')
        return self

    @classmethod
    def create_file_created(cls, file_path: str, **kwargs) -> 'FileSystemEvent':
        """Create a file creation event"""
        return cls(event_type=EventType.CREATED, file_path=file_path, **kwargs)

    @classmethod
    def create_file_modified(cls, file_path: str, **kwargs) -> 'FileSystemEvent':
        """Create a file modification event"""
        return cls(event_type=EventType.MODIFIED, file_path=file_path, **kwargs)

    @classmethod
    def create_file_deleted(cls, file_path: str, **kwargs) -> 'FileSystemEvent':
        """Create a file deletion event"""
        return cls(event_type=EventType.DELETED, file_path=file_path, **kwargs)

    @classmethod
    def create_file_moved(cls, old_path: str, new_path: str, **kwargs) -> 'FileSystemEvent':
        """Create a file move/rename event"""
        return cls(event_type=EventType.MOVED, file_path=new_path, old_path=old_path, **kwargs)

    def __str__(self) -> str:
        """String representation for logging"""
        old_part = f" (from {self.old_path})" if self.old_path else ""
        return f"{self.event_type.value.upper()}: {self.file_path}{old_part}"


class EventBatch(BaseModel):
    """
    One delivery of lifecycle events to the engine.

    ``moved`` and ``moved_from`` are index-aligned: ``moved[i]`` is the new
    path of the file previously at ``moved_from[i]``. ``deleted`` is
    accepted but not acted upon. The camel-case ``movedFrom`` key is
    accepted as an alias.
    """
    model_config = ConfigDict(populate_by_name=True)

    batch_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)
    moved: List[str] = Field(default_factory=list)
    moved_from: List[str] = Field(default_factory=list, alias="movedFrom")
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator('created', 'deleted', 'moved', 'moved_from')
    @classmethod
    def validate_paths(cls, v: List[str]) -> List[str]:
        return [normalize_path(path) for path in v]

    @model_validator(mode='after')
    def validate_move_pairs(self) -> 'EventBatch':
        """Moves are delivered as parallel sequences of equal length"""
        if len(self.moved) != len(self.moved_from):
            raise ValueError(
                f'moved and moved_from must have the same length '
                f'({len(self.moved)} != {len(self.moved_from)})'
            )
        return self

    @classmethod
    def from_events(cls, events: Iterable[FileSystemEvent]) -> 'EventBatch':
        """
        Build a batch from individual events, preserving their order.

        Created and modified events both become ``created`` entries
        (re-imports are harmless for an idempotent engine); duplicates are
        collapsed.
        """
        created: List[str] = []
        deleted: List[str] = []
        moved: List[str] = []
        moved_from: List[str] = []

        for event in events:
            if event.event_type in (EventType.CREATED, EventType.MODIFIED):
                if event.file_path not in created:
                    created.append(event.file_path)
            elif event.event_type == EventType.DELETED:
                if event.file_path not in deleted:
                    deleted.append(event.file_path)
            elif event.event_type == EventType.MOVED:
                moved.append(event.file_path)
                moved_from.append(event.old_path)

        return cls(created=created, deleted=deleted, moved=moved, moved_from=moved_from)

    @property
    def move_pairs(self) -> List[tuple]:
        """(old_path, new_path) pairs in delivery order"""
        return list(zip(self.moved_from, self.moved))

    @property
    def event_count(self) -> int:
        return len(self.created) + len(self.deleted) + len(self.moved)

    def is_empty(self) -> bool:
        return self.event_count == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "batch_id": self.batch_id,
            "created": list(self.created),
            "deleted": list(self.deleted),
            "moved": list(self.moved),
            "movedFrom": list(self.moved_from),
            "created_at": self.created_at.isoformat(),
        }
