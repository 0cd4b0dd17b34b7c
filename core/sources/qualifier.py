"""
Qualification predicates.

Decide whether a resolved source warrants a derived artifact.
"""

from typing import Callable, Iterable, Protocol

from ..models.artifacts import SourceHandle


class Qualifier(Protocol):
    """Protocol for qualification predicates"""

    def qualifies(self, handle: SourceHandle) -> bool:
        ...


class BaseClassQualifier:
    """
    Qualifies sources whose primary type derives from a known base class.

    Matches any name in ``SourceHandle.base_names``, which resolvers fill
    with every ancestor they can find, so indirect subclasses qualify too.
    """

    def __init__(self, base_names: Iterable[str]):
        self.base_names = frozenset(base_names)

    def qualifies(self, handle: SourceHandle) -> bool:
        if handle.type_name is None:
            return False
        return any(name in self.base_names for name in handle.base_names)

    def __repr__(self) -> str:
        return f"BaseClassQualifier({sorted(self.base_names)})"


class CallableQualifier:
    """Adapts a plain ``handle -> bool`` function to the Qualifier protocol"""

    def __init__(self, predicate: Callable[[SourceHandle], bool]):
        self.predicate = predicate

    def qualifies(self, handle: SourceHandle) -> bool:
        return bool(self.predicate(handle))
