"""
Artifact Synchronization Engine.

Applies batches of source lifecycle events to the artifact registry so that
every qualifying source has exactly one linked artifact, and artifacts
follow their sources when those are renamed or moved.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models.artifacts import SourceFile
from ..models.config import SyncConfig
from ..models.outcomes import BatchReport, ErrorKind, SyncOutcome
from ..registry.errors import (
    ArtifactNotFoundError,
    PathCollisionError,
    RelocationNoOpError,
    TargetOccupiedError,
)
from ..registry.accessor import DocumentLinkAccessor
from ..registry.paths import expected_artifact_path, has_extension, normalize_path, sanitize_identifier
from ..registry.registry import ArtifactRegistry
from ..registry.store import FileArtifactStore
from ..sources.qualifier import BaseClassQualifier, Qualifier
from ..sources.resolver import PythonSourceResolver, SourceResolver
from .events import EventBatch

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Batch-driven synchronization between sources and derived artifacts.

    The engine keeps no state between batches: each batch re-derives the
    world from the registry. Every candidate is processed in isolation, so
    one failing item never prevents the others from being attempted.

    Batch protocol:
    1. Filter created/moved paths to the source extension
    2. For each created path: resolve, classify, look up the linked
       artifact, then create one at the expected path if the slot is free
    3. For each move: run step 2 on the new path, then relocate the
       artifact at the old expected path to the new expected path
    4. Return all outcomes in order
    """

    def __init__(
        self,
        registry: ArtifactRegistry,
        resolver: SourceResolver,
        qualifier: Qualifier,
        source_extension: str = ".py",
        artifact_extension: str = ".asset",
        max_workers: int = 1
    ):
        """
        Initialize the synchronization engine.

        Args:
            registry: Registry of existing artifacts
            resolver: Resolves source paths to source handles
            qualifier: Decides whether a source warrants an artifact
            source_extension: Extension of qualifying source files
            artifact_extension: Extension of derived artifacts
            max_workers: Worker threads for create candidates (1 = sequential)
        """
        self.registry = registry
        self.resolver = resolver
        self.qualifier = qualifier
        self.source_extension = source_extension.lower()
        self.artifact_extension = artifact_extension.lower()
        self.max_workers = max(1, max_workers)

        # Batches are processed one at a time
        self._batch_lock = threading.Lock()

        logger.debug(
            f"Initialized SyncEngine ({self.source_extension} -> {self.artifact_extension}, "
            f"workers={self.max_workers})"
        )

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        registry: ArtifactRegistry,
        resolver: SourceResolver,
        qualifier: Qualifier
    ) -> 'SyncEngine':
        return cls(
            registry=registry,
            resolver=resolver,
            qualifier=qualifier,
            source_extension=config.source_extension,
            artifact_extension=config.artifact_extension,
            max_workers=config.max_workers
        )

    @classmethod
    def for_project(cls, config: SyncConfig) -> 'SyncEngine':
        """Wire the filesystem store, Python resolver and base-class qualifier for a project"""
        store = FileArtifactStore(
            root=config.root,
            artifact_extension=config.artifact_extension,
            ignored_directories=config.ignored_directories
        )
        registry = ArtifactRegistry(store, DocumentLinkAccessor(config.link_field))
        return cls.from_config(
            config,
            registry=registry,
            resolver=PythonSourceResolver(config.root, index_file=config.get_source_index_file()),
            qualifier=BaseClassQualifier(config.base_classes)
        )

    def expected_artifact_path(self, source_path: str) -> str:
        return expected_artifact_path(source_path, self.artifact_extension)

    def is_candidate(self, path: str) -> bool:
        """Check whether a path has the qualifying source extension"""
        return has_extension(path, self.source_extension)

    def process_batch(self, batch: Union[EventBatch, Dict[str, Any]]) -> BatchReport:
        """
        Process one batch of lifecycle events.

        Args:
            batch: EventBatch, or its dictionary form
                (``created``/``deleted``/``moved``/``movedFrom``)

        Returns:
            BatchReport with one outcome per processed item, in order
        """
        if not isinstance(batch, EventBatch):
            batch = EventBatch.model_validate(batch)

        with self._batch_lock, self.registry.batch():
            report = BatchReport()

            created = [path for path in batch.created if self.is_candidate(path)]
            moves = [(old, new) for old, new in batch.move_pairs if self.is_candidate(new)]

            if batch.deleted:
                logger.debug(f"Ignoring {len(batch.deleted)} deleted paths")

            logger.debug(
                f"Processing batch {batch.batch_id}: {len(created)} created, {len(moves)} moved "
                f"({len(batch.created) - len(created) + len(batch.moved) - len(moves)} filtered)"
            )

            report.extend(self._process_creates(created))

            for old_path, new_path in moves:
                report.extend(self._process_move(old_path, new_path))

            report.mark_completed()

        summary = ", ".join(
            f"{count} {action.value}" for action, count in report.counts().items() if count
        )
        logger.info(f"Batch {batch.batch_id} complete: {summary or 'nothing to do'}")
        return report

    def _process_creates(self, paths: List[str]) -> List[SyncOutcome]:
        if self.max_workers == 1 or len(paths) < 2:
            return [self.process_created(path) for path in paths]

        # map() yields results in input order
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.process_created, paths))

    def process_created(self, path: str, display_name: Optional[str] = None) -> SyncOutcome:
        """
        Ensure a created or imported source has its artifact.

        Never raises; every failure becomes an outcome.

        Args:
            path: Root-relative source path
            display_name: Optional human-entered name for the artifact
                identifier (sanitized before use)

        Returns:
            Outcome for this source
        """
        path = normalize_path(path)
        try:
            source = self.resolver.resolve(path)
        except Exception as e:
            logger.error(f"Error resolving source '{path}': {e}")
            return SyncOutcome.error(path, f"resolve failed: {e}", source_path=path)

        if source is None:
            logger.debug(f"Skipping unresolvable source {path}")
            return SyncOutcome.skipped(
                path, "source not resolvable", source_path=path, error_kind=ErrorKind.TRANSIENT
            )

        if not self._qualifies(source):
            return SyncOutcome.skipped(path, "source does not qualify", source_path=path)

        artifact_path = self.expected_artifact_path(source.path)
        identifier = sanitize_identifier(display_name) if display_name else None

        try:
            with self.registry.locked():
                existing = self.registry.find_linked_artifact(source)
                if existing is not None:
                    logger.info(f"Artifact already exists for {source.path}: {existing.path}")
                    return SyncOutcome.skipped(
                        existing.path, "already synchronized", source_path=source.path
                    )

                if self.registry.artifact_exists(artifact_path):
                    logger.warning(f"Artifact path already occupied: {artifact_path}")
                    return SyncOutcome.warning(
                        artifact_path, "expected path occupied by an unrelated artifact",
                        source_path=source.path
                    )

                artifact = self.registry.create_artifact(source, artifact_path, identifier=identifier)

        except PathCollisionError as e:
            logger.warning(f"Artifact path already occupied: {e}")
            return SyncOutcome.warning(artifact_path, str(e), source_path=source.path)
        except Exception as e:
            logger.error(f"Failed to create artifact for '{source.path}': {e}")
            return SyncOutcome.error(artifact_path, str(e), source_path=source.path)

        logger.info(f"Created artifact: {artifact.path} for source: {source.path}")
        return SyncOutcome.created(artifact.path, source.path)

    def _qualifies(self, source: SourceFile) -> bool:
        try:
            return bool(self.qualifier.qualifies(source.handle))
        except Exception as e:
            logger.warning(f"Qualification failed for {source.path}, treating as not qualifying: {e}")
            return False

    def _process_move(self, old_path: str, new_path: str) -> List[SyncOutcome]:
        """
        Process one move pair.

        The new path is first treated as a created source (it may be entering
        the tree for the first time); then any artifact at the old expected
        path follows the source to the new expected path. The resolver is
        told about the move first so the source keeps its identity.
        """
        try:
            self.resolver.record_move(normalize_path(old_path), normalize_path(new_path))
        except Exception as e:
            logger.warning(f"Failed to record move {old_path} -> {new_path}: {e}")

        outcomes = [self.process_created(new_path)]

        old_artifact_path = self.expected_artifact_path(old_path)
        new_artifact_path = self.expected_artifact_path(new_path)

        if old_artifact_path == new_artifact_path:
            return outcomes

        try:
            with self.registry.locked():
                if not self.registry.artifact_exists(old_artifact_path):
                    return outcomes
                artifact = self.registry.relocate_artifact(old_artifact_path, new_artifact_path)

        except (ArtifactNotFoundError, RelocationNoOpError) as e:
            logger.debug(f"Nothing to relocate for {old_path}: {e}")
            return outcomes
        except TargetOccupiedError as e:
            logger.warning(f"Failed to move artifact {old_artifact_path}: {e}")
            outcomes.append(SyncOutcome.warning(new_artifact_path, str(e), source_path=new_path))
            return outcomes
        except Exception as e:
            logger.error(f"Error processing moved source '{new_path}': {e}")
            outcomes.append(SyncOutcome.error(old_artifact_path, str(e), source_path=new_path))
            return outcomes

        logger.info(f"Moved artifact: {old_artifact_path} -> {artifact.path}")
        outcomes.append(SyncOutcome.relocated(old_artifact_path, artifact.path, new_path))
        return outcomes

    def sync_paths(self, paths: Iterable[str]) -> BatchReport:
        """Process ``paths`` as a created batch"""
        return self.process_batch(EventBatch(created=list(paths)))

    def process_move(self, old_path: str, new_path: str) -> BatchReport:
        """Process a single move as its own batch"""
        return self.process_batch(EventBatch(moved=[new_path], moved_from=[old_path]))

    def create_for_source(self, path: str, display_name: Optional[str] = None) -> BatchReport:
        """
        Process a single source as its own batch, optionally naming the
        artifact from a human-entered display name.
        """
        path = normalize_path(path)
        with self._batch_lock, self.registry.batch():
            report = BatchReport()
            if self.is_candidate(path):
                report.add(self.process_created(path, display_name=display_name))
            report.mark_completed()
        return report
