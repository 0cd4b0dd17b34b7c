"""
Artifact stores.

An artifact store persists artifact documents at registry paths. The
registry never depends on how documents are stored; it only needs to
enumerate, read, create and move them.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Protocol, runtime_checkable

from .errors import (
    ArtifactNotFoundError,
    CorruptArtifactError,
    PathCollisionError,
    TargetOccupiedError,
)
from .paths import has_extension, normalize_path

logger = logging.getLogger(__name__)


@runtime_checkable
class ArtifactStore(Protocol):
    """Protocol that all artifact stores must implement"""

    def iter_paths(self) -> Iterator[str]:
        """Enumerate every artifact path in scope"""
        ...

    def exists(self, path: str) -> bool:
        """Check whether an artifact is stored at ``path``"""
        ...

    def load(self, path: str) -> Dict[str, Any]:
        """Read the document stored at ``path``"""
        ...

    def create(self, path: str, document: Dict[str, Any]) -> None:
        """Persist a new document; never overwrites"""
        ...

    def move(self, from_path: str, to_path: str) -> None:
        """Move a document; never overwrites"""
        ...


class FileArtifactStore:
    """
    Stores one JSON document per artifact below a project root.

    Paths handed to and returned from the store are root-relative and
    forward-slash normalized.
    """

    def __init__(
        self,
        root: Path,
        artifact_extension: str = ".asset",
        ignored_directories: Optional[Iterable[str]] = None
    ):
        self.root = Path(root).resolve()
        self.artifact_extension = artifact_extension.lower()
        self.ignored_directories = set(ignored_directories or ())

    def _full_path(self, path: str) -> Path:
        return self.root / normalize_path(path)

    def iter_paths(self) -> Iterator[str]:
        for dirpath, dirnames, filenames in os.walk(self.root):
            # Prune ignored directories in place
            dirnames[:] = sorted(d for d in dirnames if d not in self.ignored_directories)
            for filename in sorted(filenames):
                if has_extension(filename, self.artifact_extension):
                    yield normalize_path(Path(dirpath) / filename, root=self.root)

    def exists(self, path: str) -> bool:
        return self._full_path(path).is_file()

    def load(self, path: str) -> Dict[str, Any]:
        full_path = self._full_path(path)
        if not full_path.is_file():
            raise ArtifactNotFoundError(f"No artifact at {path}", path=path)

        try:
            with open(full_path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptArtifactError(f"Unreadable artifact document {path}: {e}", path=path) from e

        if not isinstance(document, dict):
            raise CorruptArtifactError(f"Artifact document {path} is not an object", path=path)
        return document

    def create(self, path: str, document: Dict[str, Any]) -> None:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            # Exclusive mode refuses to overwrite an existing file
            with open(full_path, 'x', encoding='utf-8') as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except FileExistsError as e:
            raise PathCollisionError(f"Artifact already exists at {path}", path=path) from e

        logger.debug(f"Wrote artifact document {full_path}")

    def move(self, from_path: str, to_path: str) -> None:
        source = self._full_path(from_path)
        target = self._full_path(to_path)

        if not source.is_file():
            raise ArtifactNotFoundError(f"No artifact at {from_path}", path=from_path)
        if target.exists():
            raise TargetOccupiedError(f"Target {to_path} is already occupied", path=to_path)

        target.parent.mkdir(parents=True, exist_ok=True)
        os.rename(source, target)
        logger.debug(f"Moved artifact document {source} -> {target}")


class InMemoryArtifactStore:
    """Keeps artifact documents in a dictionary; useful for embedding and tests"""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        for path, document in (documents or {}).items():
            self._documents[normalize_path(path)] = dict(document)

    def iter_paths(self) -> Iterator[str]:
        with self._lock:
            paths = sorted(self._documents)
        return iter(paths)

    def exists(self, path: str) -> bool:
        with self._lock:
            return normalize_path(path) in self._documents

    def load(self, path: str) -> Dict[str, Any]:
        key = normalize_path(path)
        with self._lock:
            if key not in self._documents:
                raise ArtifactNotFoundError(f"No artifact at {path}", path=path)
            return dict(self._documents[key])

    def create(self, path: str, document: Dict[str, Any]) -> None:
        key = normalize_path(path)
        with self._lock:
            if key in self._documents:
                raise PathCollisionError(f"Artifact already exists at {path}", path=path)
            self._documents[key] = dict(document)

    def move(self, from_path: str, to_path: str) -> None:
        source_key = normalize_path(from_path)
        target_key = normalize_path(to_path)
        with self._lock:
            if source_key not in self._documents:
                raise ArtifactNotFoundError(f"No artifact at {from_path}", path=from_path)
            if target_key in self._documents:
                raise TargetOccupiedError(f"Target {to_path} is already occupied", path=to_path)
            self._documents[target_key] = self._documents.pop(source_key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
