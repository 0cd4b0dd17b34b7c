"""
Source resolution and qualification.
"""

from .resolver import SourceResolver, PythonSourceResolver, SourceIdIndex, StaticSourceResolver
from .qualifier import Qualifier, BaseClassQualifier, CallableQualifier

__all__ = [
    "SourceResolver",
    "PythonSourceResolver",
    "SourceIdIndex",
    "StaticSourceResolver",
    "Qualifier",
    "BaseClassQualifier",
    "CallableQualifier",
]
