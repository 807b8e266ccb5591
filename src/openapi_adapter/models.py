"""Internal models for operation contracts and tool definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ParameterContract:
    name: str
    location: str  # path / query / header
    required: bool
    schema: Dict[str, Any]
    description: Optional[str] = None


@dataclass(frozen=True)
class RequestBodyContract:
    required: Optional[bool]  # None when the document leaves it unspecified
    primary_content_type: str
    content_types: Tuple[str, ...]
    schema: Dict[str, Any]
    raw_schema: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None


@dataclass(frozen=True)
class OperationContract:
    operation_id: str
    method: str
    path: str
    parameters: Tuple[ParameterContract, ...] = ()
    request_body: Optional[RequestBodyContract] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    responses: Dict[str, Any] = field(default_factory=dict)
    security: Optional[List[Dict[str, Any]]] = None
    deprecated: bool = False

    def parameter(self, name: str) -> Optional[ParameterContract]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
