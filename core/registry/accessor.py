"""
Link field accessors.

The registry reads and writes an artifact's link through an accessor so the
engine never depends on how the link is stored.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from ..models.artifacts import SourceHandle

logger = logging.getLogger(__name__)


class LinkAccessor(Protocol):
    """Capability interface over an artifact document's link field"""

    def get_link(self, document: Dict[str, Any]) -> Optional[SourceHandle]:
        ...

    def set_link(self, document: Dict[str, Any], handle: Optional[SourceHandle]) -> None:
        ...


class DocumentLinkAccessor:
    """
    Accesses the link stored under ``link_field`` of a serialized document.

    The typed form is a full handle mapping. Documents written by hand or
    by older tools may hold only the bare source id string, which is
    accepted as a fallback.
    """

    def __init__(self, link_field: str = "source_link"):
        self.link_field = link_field

    def get_link(self, document: Dict[str, Any]) -> Optional[SourceHandle]:
        raw = document.get(self.link_field)
        if raw is None:
            return None

        if isinstance(raw, dict):
            try:
                return SourceHandle.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Invalid link field '{self.link_field}': {e}")
                return None

        if isinstance(raw, str) and raw.strip():
            return SourceHandle(source_id=raw.strip())

        logger.warning(f"Unsupported link field value of type {type(raw).__name__}")
        return None

    def set_link(self, document: Dict[str, Any], handle: Optional[SourceHandle]) -> None:
        if handle is None:
            document.pop(self.link_field, None)
            return
        document[self.link_field] = handle.model_dump(mode='json')
