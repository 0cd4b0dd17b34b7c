"""
Source and artifact models for artifact-sync.

Defines the identity handle of a source file, the source file itself and
the derived artifact that links back to it.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceHandle(BaseModel):
    """
    Identity handle of a source file.

    The handle survives path changes: two handles denote the same source
    whenever their ``source_id`` values are equal, regardless of the type
    information captured when they were resolved. ``base_names`` holds the
    ancestors of ``type_name`` known at resolution time, direct bases first.
    """
    model_config = ConfigDict(frozen=True)

    source_id: str = Field(..., min_length=1)
    type_name: Optional[str] = None
    base_names: Tuple[str, ...] = ()

    def same_source(self, other: Optional['SourceHandle']) -> bool:
        """Check whether ``other`` refers to the same source"""
        return other is not None and other.source_id == self.source_id

    def __str__(self) -> str:
        type_part = f" ({self.type_name})" if self.type_name else ""
        return f"{self.source_id}{type_part}"


class SourceFile(BaseModel):
    """A resolved source file: its canonical path plus its identity handle"""
    model_config = ConfigDict(frozen=True)

    path: str
    handle: SourceHandle

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Source paths are stored with forward slashes only"""
        return v.replace('\\', '/')

    @property
    def stem(self) -> str:
        """File name without its extension"""
        name = self.path.rsplit('/', 1)[-1]
        return name.rsplit('.', 1)[0] if '.' in name else name


class DerivedArtifact(BaseModel):
    """
    A generated artifact linked to at most one source file.

    ``path`` is the artifact's own identity inside the registry scope.
    ``link`` is the single-valued link field; it stays unchanged when the
    artifact is relocated.
    """
    model_config = ConfigDict(validate_assignment=True)

    path: str
    identifier: str
    link: Optional[SourceHandle] = None
    created_at: datetime = Field(default_factory=datetime.now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Artifact paths are stored with forward slashes only"""
        return v.replace('\\', '/')

    @property
    def is_linked(self) -> bool:
        return self.link is not None

    def links_to(self, handle: SourceHandle) -> bool:
        """Check whether this artifact is linked to the given source"""
        return handle.same_source(self.link)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "path": self.path,
            "identifier": self.identifier,
            "link": self.link.source_id if self.link else None,
            "created_at": self.created_at.isoformat(),
        }
