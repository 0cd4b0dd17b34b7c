"""
Artifact Registry.

Answers queries about the universe of existing artifacts and performs the
two mutations the synchronization engine needs: creation and relocation.
The registry holds no state across batches; every query re-enumerates the
store unless a batch-scoped memo is active.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from ..models.artifacts import DerivedArtifact, SourceFile, SourceHandle
from .accessor import DocumentLinkAccessor, LinkAccessor
from .errors import (
    ArtifactNotFoundError,
    CorruptArtifactError,
    PathCollisionError,
    RelocationNoOpError,
    TargetOccupiedError,
)
from .paths import normalize_path
from .store import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass
class RegistrySnapshot:
    """Point-in-time view of every readable artifact in scope"""

    artifacts: List[DerivedArtifact] = field(default_factory=list)
    unreadable_paths: List[str] = field(default_factory=list)
    taken_at: datetime = field(default_factory=datetime.now)

    def __iter__(self) -> Iterator[DerivedArtifact]:
        return iter(self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)

    def linked_to(self, handle: SourceHandle) -> List[DerivedArtifact]:
        """All artifacts whose link denotes ``handle``"""
        return [artifact for artifact in self.artifacts if artifact.links_to(handle)]

    def unlinked(self) -> List[DerivedArtifact]:
        return [artifact for artifact in self.artifacts if not artifact.is_linked]

    def by_source(self) -> Dict[str, List[DerivedArtifact]]:
        """Group linked artifacts by source id"""
        groups: Dict[str, List[DerivedArtifact]] = {}
        for artifact in self.artifacts:
            if artifact.link is not None:
                groups.setdefault(artifact.link.source_id, []).append(artifact)
        return groups


class ArtifactRegistry:
    """
    Registry of derived artifacts backed by an ArtifactStore.

    Check-then-act sequences (find, check the slot, create or move) must
    run inside ``locked()`` so that two candidates can never both observe
    "no artifact" and both create one.
    """

    def __init__(
        self,
        store: ArtifactStore,
        link_accessor: Optional[LinkAccessor] = None
    ):
        """
        Initialize the registry.

        Args:
            store: Store holding the artifact documents
            link_accessor: Accessor for the link field (defaults to
                DocumentLinkAccessor with the ``source_link`` field)
        """
        self.store = store
        self.link_accessor = link_accessor or DocumentLinkAccessor()

        self._lock = threading.RLock()

        # Batch-scoped memo: source_id -> artifact path
        self._memo: Optional[Dict[str, str]] = None
        self._batch_depth = 0

    @contextmanager
    def locked(self) -> Iterator['ArtifactRegistry']:
        """Scope-wide mutual exclusion for check-then-act sequences"""
        with self._lock:
            yield self

    @contextmanager
    def batch(self) -> Iterator['ArtifactRegistry']:
        """
        Enable the per-batch lookup memo.

        The memo is built lazily on the first lookup, kept current by
        create/relocate, and discarded when the outermost batch ends.
        """
        with self._lock:
            self._batch_depth += 1
        try:
            yield self
        finally:
            with self._lock:
                self._batch_depth -= 1
                if self._batch_depth == 0:
                    self._memo = None

    def _decode(self, path: str, document: Dict[str, Any]) -> DerivedArtifact:
        try:
            data: Dict[str, Any] = {
                "path": path,
                "identifier": document.get("identifier") or path.rsplit('/', 1)[-1].rsplit('.', 1)[0],
                "link": self.link_accessor.get_link(document),
                "metadata": document.get("metadata") or {},
            }
            if document.get("created_at"):
                data["created_at"] = document["created_at"]
            return DerivedArtifact.model_validate(data)
        except ValidationError as e:
            raise CorruptArtifactError(f"Invalid artifact document {path}: {e}", path=path) from e

    def _encode(self, artifact: DerivedArtifact) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "identifier": artifact.identifier,
            "created_at": artifact.created_at.isoformat(),
            "metadata": artifact.metadata,
        }
        self.link_accessor.set_link(document, artifact.link)
        return document

    def get_artifact(self, path: str) -> DerivedArtifact:
        """
        Load the artifact stored at ``path``.

        Raises:
            ArtifactNotFoundError: Nothing is stored at ``path``
            CorruptArtifactError: The stored document cannot be decoded
        """
        path = normalize_path(path)
        return self._decode(path, self.store.load(path))

    def artifact_exists(self, path: str) -> bool:
        return self.store.exists(normalize_path(path))

    def snapshot(self) -> RegistrySnapshot:
        """
        Enumerate every artifact in scope.

        Built fresh on each call. Documents that cannot be decoded are
        listed in ``unreadable_paths`` and otherwise ignored.
        """
        snapshot = RegistrySnapshot()
        for path in self.store.iter_paths():
            try:
                snapshot.artifacts.append(self.get_artifact(path))
            except ArtifactNotFoundError:
                # Moved away while enumerating
                continue
            except CorruptArtifactError as e:
                logger.warning(f"Skipping unreadable artifact: {e}")
                snapshot.unreadable_paths.append(path)
        return snapshot

    def _build_memo(self) -> Dict[str, str]:
        memo: Dict[str, str] = {}
        for artifact in self.snapshot():
            if artifact.link is not None:
                memo.setdefault(artifact.link.source_id, artifact.path)
        logger.debug(f"Built registry memo with {len(memo)} linked artifacts")
        return memo

    def find_linked_artifact(self, source: SourceFile) -> Optional[DerivedArtifact]:
        """
        Find the artifact linked to ``source``.

        Args:
            source: Resolved source file

        Returns:
            The first artifact whose link denotes the source, or None
        """
        with self._lock:
            if self._batch_depth > 0:
                if self._memo is None:
                    self._memo = self._build_memo()
                path = self._memo.get(source.handle.source_id)
                if path is None:
                    return None
                try:
                    artifact = self.get_artifact(path)
                except (ArtifactNotFoundError, CorruptArtifactError):
                    artifact = None
                if artifact is not None and artifact.links_to(source.handle):
                    return artifact
                # Memo went stale through an outside change; fall back to a scan
                self._memo = self._build_memo()
                path = self._memo.get(source.handle.source_id)
                return self.get_artifact(path) if path else None

        for artifact in self.snapshot():
            if artifact.links_to(source.handle):
                return artifact
        return None

    def create_artifact(
        self,
        source: SourceFile,
        path: str,
        identifier: Optional[str] = None
    ) -> DerivedArtifact:
        """
        Create an artifact at ``path`` linked to ``source``.

        Args:
            source: Source the new artifact links to
            path: Registry path for the artifact
            identifier: Display identifier (defaults to the source stem)

        Returns:
            The created artifact

        Raises:
            PathCollisionError: An artifact already exists at ``path``
        """
        path = normalize_path(path)
        with self._lock:
            if self.store.exists(path):
                raise PathCollisionError(f"Artifact already exists at {path}", path=path)

            artifact = DerivedArtifact(
                path=path,
                identifier=identifier or source.stem,
                link=source.handle,
                metadata={"source_path": source.path}
            )
            self.store.create(path, self._encode(artifact))

            if self._memo is not None:
                self._memo.setdefault(source.handle.source_id, path)

        logger.debug(f"Registered artifact {path} -> {source.handle}")
        return artifact

    def relocate_artifact(self, from_path: str, to_path: str) -> DerivedArtifact:
        """
        Move an artifact, keeping its link unchanged.

        Returns:
            The artifact at its new path

        Raises:
            ArtifactNotFoundError: Nothing exists at ``from_path``
            RelocationNoOpError: ``from_path`` and ``to_path`` are equal
            TargetOccupiedError: A different artifact occupies ``to_path``
        """
        from_path = normalize_path(from_path)
        to_path = normalize_path(to_path)

        with self._lock:
            if not self.store.exists(from_path):
                raise ArtifactNotFoundError(f"No artifact at {from_path}", path=from_path)
            if from_path == to_path:
                raise RelocationNoOpError(f"Artifact already at {to_path}", path=to_path)
            if self.store.exists(to_path):
                raise TargetOccupiedError(
                    f"Cannot move {from_path}: {to_path} is occupied by another artifact",
                    path=to_path
                )

            self.store.move(from_path, to_path)

            if self._memo is not None:
                for source_id, memo_path in list(self._memo.items()):
                    if memo_path == from_path:
                        self._memo[source_id] = to_path

            return self.get_artifact(to_path)
