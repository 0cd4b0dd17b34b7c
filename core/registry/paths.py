"""
Path resolution for derived artifacts.

Pure functions mapping source paths to the path their artifact is expected
at, plus identifier sanitizing for human-entered names.
"""

import posixpath
from pathlib import Path, PurePosixPath
from typing import Optional, Union

# Applied in order; "#" must become "Sharp" before anything else is removed
_IDENTIFIER_REPLACEMENTS = (
    (" ", ""),
    ("#", "Sharp"),
    ("(", ""),
    (")", ""),
    ("*", ""),
    ("<", ""),
    (">", ""),
    ("-", "_"),
    ("!", ""),
    ("$", ""),
    ("@", ""),
    ("+", ""),
)


def normalize_path(path: Union[str, Path], root: Optional[Path] = None) -> str:
    """
    Normalize a path to its canonical forward-slash form.

    Backslashes become forward slashes; ``.`` and ``..`` segments and
    repeated separators are collapsed lexically, so ``Scripts/../Foo.py``
    and ``Foo.py`` are the same path. Leading ``..`` segments that climb
    above a relative path are kept. When ``root`` is given and ``path`` is an
    absolute path below it, the result is relative to ``root``.

    Args:
        path: Path to normalize
        root: Optional project root for absolute paths

    Returns:
        Normalized path string
    """
    raw = str(path).replace('\\', '/')

    if root is not None:
        candidate = Path(raw)
        if candidate.is_absolute():
            try:
                raw = candidate.resolve().relative_to(Path(root).resolve()).as_posix()
            except ValueError:
                # Outside the root, keep it absolute
                raw = candidate.as_posix()

    normalized = posixpath.normpath(raw) if raw else "."
    return "" if normalized == "." else normalized


def expected_artifact_path(source_path: Union[str, Path], artifact_extension: str) -> str:
    """
    Get the path an artifact for ``source_path`` is expected at.

    Same directory as the source, stem unchanged, source extension replaced
    by the artifact extension.

    Example:
        ``expected_artifact_path("Scripts/Foo.py", ".asset")`` returns
        ``"Scripts/Foo.asset"``
    """
    source = PurePosixPath(normalize_path(source_path))
    if not artifact_extension.startswith('.'):
        artifact_extension = f".{artifact_extension}"
    return source.with_name(source.stem + artifact_extension).as_posix()


def has_extension(path: Union[str, Path], extension: str) -> bool:
    """Case-insensitive extension check"""
    return PurePosixPath(normalize_path(path)).suffix.lower() == extension.lower()


def sanitize_identifier(name: str) -> str:
    """
    Sanitize a human-entered name for use as an artifact identifier.

    Spaces and bracket/operator punctuation are removed, ``#`` becomes
    ``Sharp`` and ``-`` becomes ``_``.
    """
    for old, new in _IDENTIFIER_REPLACEMENTS:
        name = name.replace(old, new)
    return name
