"""Internal $ref pointer resolution against a loaded OpenAPI document."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional


logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Resolves ``#/...`` pointers to the raw node they target.

    One resolver belongs to one document load. Hits are memoized per
    reference string; the document must not change while the resolver is
    in use.
    """

    def __init__(self, document: Mapping[str, Any]) -> None:
        self.document = document
        self._cache: Dict[str, Any] = {}

    def resolve(self, ref: str) -> Optional[Any]:
        if not isinstance(ref, str) or not (ref == "#" or ref.startswith("#/")):
            logger.warning("Unsupported or invalid reference: %s", ref)
            return None

        if ref in self._cache:
            return self._cache[ref]

        current: Any = self.document
        for part in ref[1:].split("/")[1:]:
            segment = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(current, Mapping) or segment not in current:
                logger.warning("Failed to resolve reference %s at part: %s", ref, segment)
                return None
            current = current[segment]

        if current is None:
            logger.warning("Reference %s points at an empty node", ref)
            return None

        self._cache[ref] = current
        return current

    def deref(self, node: Any) -> Optional[Any]:
        """Follow a chain of ``$ref`` nodes until a concrete node is reached."""
        seen = set()
        while isinstance(node, Mapping) and "$ref" in node:
            ref = node["$ref"]
            if ref in seen:
                logger.warning("Reference cycle while dereferencing %s", ref)
                return None
            seen.add(ref)
            node = self.resolve(ref)
        return node
