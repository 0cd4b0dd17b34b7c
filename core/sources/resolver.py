"""
Source resolution.

Turns a source path into a SourceFile with an identity handle. Resolution
failures are expected while a file is being written or does not parse yet;
resolvers report them by returning None.
"""

import ast
import json
import logging
import os
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Set, Tuple

from ..models.artifacts import SourceFile, SourceHandle
from ..models.config import CONFIG_DIR_NAME, SOURCE_INDEX_FILE_NAME
from ..registry.paths import has_extension, normalize_path

logger = logging.getLogger(__name__)

# Import hops followed when collecting a class's ancestors
MAX_IMPORT_DEPTH = 8


class SourceResolver(Protocol):
    """Protocol that all source resolvers must implement"""

    def resolve(self, path: str) -> Optional[SourceFile]:
        """Resolve ``path`` to a SourceFile, or None if it is not resolvable yet"""
        ...

    def record_move(self, old_path: str, new_path: str) -> None:
        """Carry the identity of the source at ``old_path`` over to ``new_path``"""
        ...


def _base_name(node: ast.expr) -> Optional[str]:
    """Name of a base class expression: ``Foo``, ``pkg.Foo`` or ``Foo[T]``"""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Subscript):
        return _base_name(node.value)
    return None


def _local_base_name(node: ast.expr) -> Optional[str]:
    """Bare module-level name a base refers to, if it is one (``Foo`` or ``Foo[T]``)"""
    if isinstance(node, ast.Subscript):
        return _local_base_name(node.value)
    if isinstance(node, ast.Name):
        return node.id
    return None


def file_key_for(stat_result: os.stat_result) -> str:
    """Device and inode pair of a file; stable across renames on one filesystem"""
    return f"{stat_result.st_dev}:{stat_result.st_ino}"


class SourceIdIndex:
    """
    Durable source ids, persisted as JSON next to the project configuration.

    Ids are minted once per source path and follow the source through
    ``record_move``. Saving through a temporary file and renaming it over
    the original (as most editors do) therefore keeps the id, and so does
    copying the whole project tree, since the index is copied with it.

    The last seen device/inode pair is stored per entry. A path the index
    has never seen adopts the id of an entry with the same pair whose path
    no longer exists, which covers renames nobody reported.
    """

    VERSION = 1

    def __init__(self, index_file: Path):
        self.index_file = Path(index_file)
        self._lock = threading.RLock()
        self._entries: Dict[str, Dict[str, str]] = self._load()

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self.index_file.is_file():
            return {}

        try:
            with open(self.index_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable source index {self.index_file}: {e}")
            return {}

        sources = data.get("sources") if isinstance(data, dict) else None
        if not isinstance(sources, dict):
            logger.warning(f"Ignoring malformed source index {self.index_file}")
            return {}

        entries = {}
        for path, entry in sources.items():
            if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"]:
                entries[normalize_path(path)] = {
                    "id": entry["id"],
                    "file_key": str(entry.get("file_key") or ""),
                }
        return entries

    def _save(self) -> None:
        data = {"version": self.VERSION, "sources": dict(sorted(self._entries.items()))}
        self.index_file.parent.mkdir(parents=True, exist_ok=True)

        temp_file = self.index_file.with_name(f"{self.index_file.name}.{os.getpid()}.tmp")
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(temp_file, self.index_file)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, path: str) -> Optional[str]:
        """Id recorded for ``path``, if any"""
        with self._lock:
            entry = self._entries.get(normalize_path(path))
            return entry["id"] if entry else None

    def id_for(
        self,
        path: str,
        file_key: str,
        exists: Optional[Callable[[str], bool]] = None
    ) -> str:
        """
        Get the durable id for the source at ``path``, minting one if needed.

        Args:
            path: Root-relative source path
            file_key: Current device/inode pair of the file
            exists: ``path -> bool`` check used to tell whether an entry
                with a matching file key has been left behind by a rename

        Returns:
            Source id
        """
        path = normalize_path(path)
        with self._lock:
            entry = self._entries.get(path)
            if entry is not None:
                if entry["file_key"] != file_key:
                    # Replaced in place (atomic save) or copied with the tree
                    entry["file_key"] = file_key
                    self._save()
                return entry["id"]

            if exists is not None:
                for old_path, old_entry in list(self._entries.items()):
                    if old_entry["file_key"] == file_key and not exists(old_path):
                        logger.info(f"Source {old_path} was renamed to {path}, keeping its id")
                        self._entries[path] = self._entries.pop(old_path)
                        self._save()
                        return old_entry["id"]

            source_id = uuid.uuid4().hex
            self._entries[path] = {"id": source_id, "file_key": file_key}
            self._save()
            logger.debug(f"Assigned source id {source_id} to {path}")
            return source_id

    def record_move(self, old_path: str, new_path: str) -> bool:
        """
        Move the entry for ``old_path`` to ``new_path``.

        Returns:
            True if an entry was moved
        """
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if old_path == new_path:
            return False

        with self._lock:
            entry = self._entries.pop(old_path, None)
            if entry is None:
                return False
            self._entries[new_path] = entry
            self._save()

        logger.debug(f"Source id {entry['id']} follows {old_path} -> {new_path}")
        return True


@dataclass
class _ModuleInfo:
    """Top-level classes and ``from ... import`` bindings of one module"""
    path: Path
    classes: Dict[str, ast.ClassDef] = field(default_factory=dict)
    # local name -> (relative level, module, imported name)
    imports: Dict[str, Tuple[int, str, str]] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, path: Path, tree: ast.Module) -> '_ModuleInfo':
        info = cls(path=path)
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                info.classes[node.name] = node
            elif isinstance(node, ast.ImportFrom):
                for alias in node.names:
                    if alias.name != '*':
                        info.imports[alias.asname or alias.name] = (node.level, node.module or "", alias.name)
        return info


class PythonSourceResolver:
    """
    Resolves Python source files below a project root.

    The primary type of a module is the top-level class named after the
    file stem, or the first top-level class when none matches. Its
    ``base_names`` lists every ancestor name that can be found: the direct
    bases first, then the bases of classes defined in the same module or
    imported with ``from ... import`` from a module inside the root.

    Handle ids come from a SourceIdIndex, stored in the project's
    configuration directory unless ``index_file`` says otherwise.
    """

    def __init__(self, root: Path, encoding: str = "utf-8", index_file: Optional[Path] = None):
        self.root = Path(root).resolve()
        self.encoding = encoding
        self.index = SourceIdIndex(index_file or self.root / CONFIG_DIR_NAME / SOURCE_INDEX_FILE_NAME)

        self._module_cache: Dict[Path, Tuple[int, Optional[_ModuleInfo]]] = {}
        self._cache_lock = threading.Lock()

    def _full_path(self, path: str) -> Path:
        return self.root / normalize_path(path, root=self.root)

    def _exists(self, path: str) -> bool:
        return self._full_path(path).exists()

    @staticmethod
    def primary_class(tree: ast.Module, stem: str) -> Optional[ast.ClassDef]:
        """Pick the class that represents the module"""
        classes = [node for node in tree.body if isinstance(node, ast.ClassDef)]
        for node in classes:
            if node.name == stem:
                return node
        return classes[0] if classes else None

    def resolve(self, path: str) -> Optional[SourceFile]:
        relative = normalize_path(path, root=self.root)
        full_path = self.root / relative

        try:
            stat_result = full_path.stat()
            source_text = full_path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Source not readable yet {relative}: {e}")
            return None

        try:
            tree = ast.parse(source_text, filename=str(full_path))
        except (SyntaxError, ValueError) as e:
            logger.debug(f"Source does not parse {relative}: {e}")
            return None

        class_node = self.primary_class(tree, full_path.stem)
        if class_node is None:
            logger.debug(f"No class declared in {relative}")
            return None

        module = _ModuleInfo.from_tree(full_path, tree)
        handle = SourceHandle(
            source_id=self.index.id_for(relative, file_key_for(stat_result), exists=self._exists),
            type_name=class_node.name,
            base_names=self.ancestor_names(module, class_node)
        )
        return SourceFile(path=relative, handle=handle)

    def record_move(self, old_path: str, new_path: str) -> None:
        self.index.record_move(
            normalize_path(old_path, root=self.root),
            normalize_path(new_path, root=self.root)
        )

    def ancestor_names(self, module: _ModuleInfo, class_node: ast.ClassDef) -> Tuple[str, ...]:
        """
        Collect the names of every ancestor of ``class_node`` that can be found.

        Breadth-first, so direct bases come first. A base imported under an
        alias contributes both the alias and the imported name. Bases that
        cannot be located (third-party or dynamic) end the walk along their
        branch but are still listed.
        """
        names: List[str] = []
        seen: Set[Tuple[Path, str]] = {(module.path, class_node.name)}
        queue = deque([(module, class_node, 0)])

        while queue:
            current, node, depth = queue.popleft()
            for base in node.bases:
                name = _base_name(base)
                if name is None:
                    continue
                if name not in names:
                    names.append(name)

                local_name = _local_base_name(base)
                if local_name is None:
                    continue

                found = self._find_class(current, local_name, depth, names)
                if found is None:
                    continue
                owner, base_node, base_depth = found
                if (owner.path, base_node.name) in seen:
                    continue
                seen.add((owner.path, base_node.name))
                queue.append((owner, base_node, base_depth))

        return tuple(names)

    def _find_class(
        self,
        module: _ModuleInfo,
        name: str,
        depth: int,
        names: List[str]
    ) -> Optional[Tuple[_ModuleInfo, ast.ClassDef, int]]:
        """Locate the class bound to ``name`` in ``module``, following re-exports"""
        visited: Set[Tuple[Path, str]] = set()

        while (module.path, name) not in visited:
            visited.add((module.path, name))

            if name in module.classes:
                return module, module.classes[name], depth

            binding = module.imports.get(name)
            if binding is None or depth >= MAX_IMPORT_DEPTH:
                return None

            level, module_name, imported_name = binding
            if imported_name not in names:
                names.append(imported_name)

            target = self._load_module(self._locate_module(module.path, level, module_name))
            if target is None:
                return None
            module, name, depth = target, imported_name, depth + 1

        return None

    def _locate_module(self, importer: Path, level: int, module_name: str) -> Optional[Path]:
        """File providing ``module_name`` for an import in ``importer``, if inside the root"""
        parts = [part for part in module_name.split('.') if part]

        if level:
            base = importer.parent
            for _ in range(level - 1):
                base = base.parent
            search_dirs = [base]
        else:
            search_dirs = [self.root, importer.parent]

        for directory in search_dirs:
            target = directory.joinpath(*parts)
            candidates = [target / "__init__.py"]
            if parts:
                candidates.insert(0, target.parent / f"{target.name}.py")

            for candidate in candidates:
                try:
                    candidate.resolve().relative_to(self.root)
                except ValueError:
                    continue
                if candidate.is_file():
                    return candidate
        return None

    def _load_module(self, path: Optional[Path]) -> Optional[_ModuleInfo]:
        """Parse a module for ancestor lookups; cached until the file changes"""
        if path is None:
            return None

        try:
            mtime_ns = path.stat().st_mtime_ns
        except OSError:
            return None

        with self._cache_lock:
            cached = self._module_cache.get(path)
            if cached is not None and cached[0] == mtime_ns:
                return cached[1]

        try:
            tree = ast.parse(path.read_text(encoding=self.encoding), filename=str(path))
            info: Optional[_ModuleInfo] = _ModuleInfo.from_tree(path, tree)
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as e:
            logger.debug(f"Cannot follow bases into {path}: {e}")
            info = None

        with self._cache_lock:
            self._module_cache[path] = (mtime_ns, info)
        return info

    def discover(
        self,
        extension: str,
        ignored_directories: Optional[Iterable[str]] = None
    ) -> Iterator[str]:
        """
        Enumerate every source path with ``extension`` below the root.

        Only used for explicit full-tree passes (initial sync, audits).
        """
        ignored = set(ignored_directories or ())
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in ignored)
            for filename in sorted(filenames):
                if has_extension(filename, extension):
                    yield normalize_path(Path(dirpath) / filename, root=self.root)


class StaticSourceResolver:
    """Resolves from a fixed path -> handle mapping; useful for embedding and tests"""

    def __init__(self, handles: Optional[Dict[str, SourceHandle]] = None):
        self._handles: Dict[str, SourceHandle] = {}
        for path, handle in (handles or {}).items():
            self.add(path, handle)

    def add(self, path: str, handle: SourceHandle) -> None:
        self._handles[normalize_path(path)] = handle

    def remove(self, path: str) -> None:
        self._handles.pop(normalize_path(path), None)

    def move(self, old_path: str, new_path: str) -> None:
        """Re-register a handle under its new path"""
        handle = self._handles.pop(normalize_path(old_path))
        self._handles[normalize_path(new_path)] = handle

    def record_move(self, old_path: str, new_path: str) -> None:
        """Follow a reported move; unknown old paths are left alone"""
        if normalize_path(old_path) in self._handles and normalize_path(new_path) not in self._handles:
            self.move(old_path, new_path)

    def resolve(self, path: str) -> Optional[SourceFile]:
        key = normalize_path(path)
        handle = self._handles.get(key)
        if handle is None:
            return None
        return SourceFile(path=key, handle=handle)

    def discover(
        self,
        extension: str,
        ignored_directories: Optional[Iterable[str]] = None
    ) -> List[str]:
        return sorted(path for path in self._handles if has_extension(path, extension))
