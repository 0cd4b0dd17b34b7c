"""
Outcome models for synchronization batches.

Every candidate the engine looks at produces one ``SyncOutcome``; a batch
produces an ordered ``BatchReport``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field


class SyncAction(Enum):
    """What the engine did for a single item"""
    CREATED = "created"
    RELOCATED = "relocated"
    SKIPPED = "skipped"
    WARNING = "warning"
    ERROR = "error"


class ErrorKind(Enum):
    """
    Error taxonomy shared by the registry and the engine.

    Only UNEXPECTED errors are reported as ERROR outcomes; conflicts become
    warnings and the remaining kinds are expected states.
    """
    TRANSIENT = "transient"     # Source unreadable or not yet parseable
    CONFLICT = "conflict"       # Path collision / occupied target
    NOT_FOUND = "not_found"     # Expected-absent artifact
    NO_OP = "no_op"             # Nothing to do
    UNEXPECTED = "unexpected"   # I/O failure, corrupt document, anything else


class SyncOutcome(BaseModel):
    """Outcome of one item in a batch"""
    model_config = ConfigDict(frozen=True)

    path: str
    action: SyncAction
    detail: str = ""
    source_path: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def created(cls, path: str, source_path: str) -> 'SyncOutcome':
        return cls(
            path=path,
            action=SyncAction.CREATED,
            detail=f"created for {source_path}",
            source_path=source_path
        )

    @classmethod
    def relocated(cls, from_path: str, to_path: str, source_path: str) -> 'SyncOutcome':
        return cls(
            path=to_path,
            action=SyncAction.RELOCATED,
            detail=f"moved from {from_path}",
            source_path=source_path
        )

    @classmethod
    def skipped(
        cls,
        path: str,
        detail: str,
        source_path: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None
    ) -> 'SyncOutcome':
        return cls(
            path=path,
            action=SyncAction.SKIPPED,
            detail=detail,
            source_path=source_path,
            error_kind=error_kind
        )

    @classmethod
    def warning(cls, path: str, detail: str, source_path: Optional[str] = None) -> 'SyncOutcome':
        return cls(
            path=path,
            action=SyncAction.WARNING,
            detail=detail,
            source_path=source_path,
            error_kind=ErrorKind.CONFLICT
        )

    @classmethod
    def error(cls, path: str, detail: str, source_path: Optional[str] = None) -> 'SyncOutcome':
        return cls(
            path=path,
            action=SyncAction.ERROR,
            detail=detail,
            source_path=source_path,
            error_kind=ErrorKind.UNEXPECTED
        )

    def __str__(self) -> str:
        detail_part = f" - {self.detail}" if self.detail else ""
        return f"{self.action.value.upper()}: {self.path}{detail_part}"


class BatchReport(BaseModel):
    """Ordered outcomes of a processed batch"""

    outcomes: List[SyncOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def add(self, outcome: SyncOutcome) -> None:
        self.outcomes.append(outcome)

    def extend(self, outcomes: List[SyncOutcome]) -> None:
        self.outcomes.extend(outcomes)

    def mark_completed(self) -> None:
        """Mark batch as completed"""
        self.completed_at = datetime.now()

    def by_action(self, action: SyncAction) -> List[SyncOutcome]:
        """Get all outcomes with a specific action"""
        return [outcome for outcome in self.outcomes if outcome.action == action]

    def counts(self) -> Dict[SyncAction, int]:
        """Number of outcomes per action"""
        stats = {action: 0 for action in SyncAction}
        for outcome in self.outcomes:
            stats[outcome.action] += 1
        return stats

    @computed_field
    @property
    def has_errors(self) -> bool:
        return any(outcome.action == SyncAction.ERROR for outcome in self.outcomes)

    @property
    def processing_time_ms(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    @property
    def paths(self) -> List[str]:
        return [outcome.path for outcome in self.outcomes]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization"""
        return {
            "outcomes": [
                {
                    "path": outcome.path,
                    "action": outcome.action.value,
                    "detail": outcome.detail,
                    "source_path": outcome.source_path,
                }
                for outcome in self.outcomes
            ],
            "counts": {action.value: count for action, count in self.counts().items()},
            "has_errors": self.has_errors,
            "processing_time_ms": self.processing_time_ms,
        }
