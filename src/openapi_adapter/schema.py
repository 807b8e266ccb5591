"""Schema normalization: $ref expansion, compositions and file-upload fields."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from .references import ReferenceResolver


logger = logging.getLogger(__name__)


CONTENT_TYPE_PRIORITY = (
    "application/json",
    "application/xml",
    "text/xml",
    "application/x-www-form-urlencoded",
    "multipart/form-data",
    "text/plain",
)

_COPIED_KEYS = (
    "description",
    "example",
    "default",
    "minimum",
    "maximum",
    "minLength",
    "maxLength",
    "pattern",
    "format",
)

_COMPOSITIONS = (("oneOf", "one of"), ("anyOf", "any of"), ("allOf", "all of"))

FILE_PATH_DESCRIPTION = "Absolute file path to upload"


def sort_content_types(content_types: Iterable[str]) -> List[str]:
    """Order media types by modeling priority, unknown ones lexically last."""

    def key(content_type: str) -> tuple:
        if content_type in CONTENT_TYPE_PRIORITY:
            return (0, CONTENT_TYPE_PRIORITY.index(content_type), "")
        return (1, 0, content_type)

    return sorted(content_types, key=key)


def permissive_schema(description: str) -> Dict[str, Any]:
    return {"type": "object", "description": description, "additionalProperties": True}


def transform_file_upload_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    original = schema.get("description") or ""
    if schema.get("type") == "array":
        return {
            "type": "array",
            "items": {"type": "string", "description": FILE_PATH_DESCRIPTION},
            "description": f"Array of file paths to upload. {original}".strip(),
        }
    return {
        "type": "string",
        "description": f"{FILE_PATH_DESCRIPTION}. {original}".strip(),
    }


class SchemaResolver:
    """Turns raw schema nodes into self-contained resolved schemas.

    The in-flight set only lives for the duration of one top-level
    ``resolve`` call; a reference met again while it is still being
    expanded is a cycle and is cut with a permissive placeholder.
    Nothing here raises: broken references degrade to placeholders.
    """

    def __init__(self, source: Union[Mapping[str, Any], ReferenceResolver]) -> None:
        if isinstance(source, ReferenceResolver):
            self.references = source
        else:
            self.references = ReferenceResolver(source)
        self._in_flight: Set[str] = set()

    def resolve(self, node: Any) -> Dict[str, Any]:
        if not isinstance(node, Mapping):
            return permissive_schema("Unsupported schema node")

        if "$ref" in node:
            return self._resolve_ref(node["$ref"])

        resolved: Dict[str, Any] = {}
        has_composition = any(key in node for key, _ in _COMPOSITIONS)
        explicit_type = node.get("type")
        if explicit_type:
            resolved["type"] = explicit_type
        elif node.get("properties") or has_composition:
            resolved["type"] = "object"
        else:
            resolved["type"] = "string"

        for key in _COPIED_KEYS:
            if node.get(key) is not None:
                resolved[key] = node[key]
        if node.get("nullable"):
            resolved["nullable"] = True

        if node.get("enum"):
            resolved["enum"] = list(node["enum"])
            resolved["description"] = _append(
                resolved.get("description"),
                "Allowed values: " + ", ".join(f"'{_render(v)}'" for v in node["enum"]),
            )

        properties = node.get("properties")
        if isinstance(properties, Mapping):
            resolved["properties"] = {}
            for name, prop in properties.items():
                resolved_prop = self.resolve(prop)
                if self.is_file_upload(prop):
                    resolved_prop = transform_file_upload_schema(resolved_prop)
                resolved["properties"][name] = resolved_prop

        additional = node.get("additionalProperties")
        if isinstance(additional, bool):
            resolved["additionalProperties"] = additional
        elif additional is not None:
            resolved["additionalProperties"] = self.resolve(additional)

        if resolved["type"] == "array" and node.get("items"):
            resolved["items"] = self.resolve(node["items"])

        if isinstance(node.get("required"), list):
            resolved["required"] = list(node["required"])

        for key, label in _COMPOSITIONS:
            branches = node.get(key)
            if isinstance(branches, list):
                resolved[key] = [self.resolve(branch) for branch in branches]
                resolved["description"] = _append(
                    resolved.get("description"),
                    f"Schema supports {label} the following options",
                )

        return resolved

    def is_file_upload(self, node: Any) -> bool:
        """Binary format, or an array that is binary itself or has binary items."""
        schema = self.references.deref(node)
        if not isinstance(schema, Mapping):
            return False
        if schema.get("format") == "binary":
            return True
        if schema.get("type") == "array":
            items = self.references.deref(schema.get("items"))
            if isinstance(items, Mapping) and items.get("format") == "binary":
                return True
        return False

    def _resolve_ref(self, ref: Any) -> Dict[str, Any]:
        if not isinstance(ref, str):
            return permissive_schema(f"Referenced schema: {ref!r}")
        if ref in self._in_flight:
            logger.debug("Circular reference detected: %s", ref)
            return permissive_schema(f"Circular reference detected: {ref}")

        target = self.references.resolve(ref)
        if target is None:
            return permissive_schema(f"Referenced schema: {ref}")

        self._in_flight.add(ref)
        try:
            return self.resolve(target)
        finally:
            self._in_flight.discard(ref)


def _append(description: Optional[str], clause: str) -> str:
    return f"{description}\n\n{clause}" if description else clause


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)
