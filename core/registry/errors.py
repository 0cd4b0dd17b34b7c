"""
Registry error types.

Each error carries the ErrorKind the engine uses to decide how to report it.
"""

from ..models.outcomes import ErrorKind


class ArtifactRegistryError(Exception):
    """Base class for artifact registry errors"""
    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class PathCollisionError(ArtifactRegistryError):
    """Raised when creating an artifact at a path that is already occupied"""
    kind = ErrorKind.CONFLICT


class TargetOccupiedError(ArtifactRegistryError):
    """Raised when relocating onto a path held by a different artifact"""
    kind = ErrorKind.CONFLICT


class ArtifactNotFoundError(ArtifactRegistryError):
    """Raised when no artifact exists at the given path"""
    kind = ErrorKind.NOT_FOUND


class RelocationNoOpError(ArtifactRegistryError):
    """Raised when source and target of a relocation are the same path"""
    kind = ErrorKind.NO_OP


class CorruptArtifactError(ArtifactRegistryError):
    """Raised when a stored artifact document cannot be decoded"""
    pass
