"""
Registry Consistency Validator.

Audits the registry against the current source tree: duplicate links,
unlinked artifacts, links to sources that no longer exist and artifacts
that are not at their source's expected path. Conflicts are reported for
manual resolution, never repaired automatically.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..registry.paths import expected_artifact_path
from ..registry.registry import ArtifactRegistry
from ..sources.resolver import SourceResolver

logger = logging.getLogger(__name__)


class ValidationStatus(Enum):
    """Status of a validation operation."""
    HEALTHY = "healthy"
    ISSUES_FOUND = "issues_found"
    ERROR = "error"


@dataclass
class ConsistencyIssue:
    """A consistency issue found during validation."""
    issue_type: str  # "duplicate_link", "unlinked_artifact", "dangling_link", "misplaced_artifact"
    artifact_path: str
    description: str
    source_id: Optional[str] = None
    source_path: Optional[str] = None
    severity: str = "medium"  # "low", "medium", "high"


@dataclass
class ValidationResult:
    """Result of a consistency validation run."""

    status: ValidationStatus
    validation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    artifacts_checked: int = 0
    sources_scanned: int = 0
    unreadable_artifacts: List[str] = field(default_factory=list)
    issues: List[ConsistencyIssue] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def is_healthy(self) -> bool:
        return self.status == ValidationStatus.HEALTHY

    def issues_of_type(self, issue_type: str) -> List[ConsistencyIssue]:
        return [issue for issue in self.issues if issue.issue_type == issue_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "validation_id": self.validation_id,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration_seconds,
            "artifacts_checked": self.artifacts_checked,
            "sources_scanned": self.sources_scanned,
            "unreadable_artifacts": list(self.unreadable_artifacts),
            "issues": [
                {
                    "type": issue.issue_type,
                    "artifact_path": issue.artifact_path,
                    "source_path": issue.source_path,
                    "severity": issue.severity,
                    "description": issue.description,
                }
                for issue in self.issues
            ],
            "errors": list(self.errors),
        }


class RegistryConsistencyValidator:
    """
    Validates the registry against the source tree.

    Source paths are enumerated once per run and resolved to learn which
    source ids currently exist and where they live.
    """

    def __init__(
        self,
        registry: ArtifactRegistry,
        resolver: SourceResolver,
        source_paths: Iterable[str],
        artifact_extension: str = ".asset"
    ):
        """
        Initialize the validator.

        Args:
            registry: Registry to audit
            resolver: Resolver used to identify current sources
            source_paths: Source paths to consider (typically the discovered tree)
            artifact_extension: Extension of derived artifacts
        """
        self.registry = registry
        self.resolver = resolver
        self.source_paths = list(source_paths)
        self.artifact_extension = artifact_extension

    def validate(self) -> ValidationResult:
        """Run a full, read-only consistency check."""
        result = ValidationResult(status=ValidationStatus.HEALTHY)

        try:
            # source_id -> current source path
            current_sources: Dict[str, str] = {}
            for path in self.source_paths:
                source = self.resolver.resolve(path)
                if source is not None:
                    current_sources.setdefault(source.handle.source_id, source.path)
            result.sources_scanned = len(self.source_paths)

            snapshot = self.registry.snapshot()
            result.artifacts_checked = len(snapshot)
            result.unreadable_artifacts = list(snapshot.unreadable_paths)

            for artifact in snapshot.unlinked():
                result.issues.append(ConsistencyIssue(
                    issue_type="unlinked_artifact",
                    artifact_path=artifact.path,
                    description="Artifact has no source link",
                    severity="low"
                ))

            for source_id, artifacts in snapshot.by_source().items():
                source_path = current_sources.get(source_id)

                if len(artifacts) > 1:
                    paths = ", ".join(artifact.path for artifact in artifacts)
                    for artifact in artifacts:
                        result.issues.append(ConsistencyIssue(
                            issue_type="duplicate_link",
                            artifact_path=artifact.path,
                            source_id=source_id,
                            source_path=source_path,
                            description=f"Source linked by several artifacts: {paths}",
                            severity="high"
                        ))

                if source_path is None:
                    for artifact in artifacts:
                        result.issues.append(ConsistencyIssue(
                            issue_type="dangling_link",
                            artifact_path=artifact.path,
                            source_id=source_id,
                            description="Linked source not found in the tree"
                        ))
                    continue

                expected = expected_artifact_path(source_path, self.artifact_extension)
                for artifact in artifacts:
                    if artifact.path != expected:
                        result.issues.append(ConsistencyIssue(
                            issue_type="misplaced_artifact",
                            artifact_path=artifact.path,
                            source_id=source_id,
                            source_path=source_path,
                            description=f"Expected at {expected}"
                        ))

            if result.issues:
                result.status = ValidationStatus.ISSUES_FOUND

        except Exception as e:
            error_msg = f"Validation failed: {e}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            result.status = ValidationStatus.ERROR

        result.end_time = datetime.now()
        logger.info(
            f"Validation {result.validation_id}: {result.status.value}, "
            f"{result.artifacts_checked} artifacts, {len(result.issues)} issues"
        )
        return result
