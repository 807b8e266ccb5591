"""Operation catalog: one resolved contract per OpenAPI path/method pair."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .models import OperationContract, ParameterContract, RequestBodyContract
from .references import ReferenceResolver
from .schema import SchemaResolver, sort_content_types


logger = logging.getLogger(__name__)


HTTP_METHODS = ("get", "post", "put", "patch", "delete", "options", "head")
SUPPORTED_LOCATIONS = {"path", "query", "header"}


def synthesize_operation_id(method: str, path: str) -> str:
    return f"{method.lower()}_{re.sub(r'[^a-zA-Z0-9]', '_', path)}"


class OperationCatalog:
    def __init__(self, document: Mapping[str, Any]) -> None:
        self.document = document
        self.references = ReferenceResolver(document)
        self.resolver = SchemaResolver(self.references)
        self._operations: Dict[str, OperationContract] = {}
        self.collisions: List[Tuple[str, str, str]] = []

    @classmethod
    def build(cls, document: Mapping[str, Any]) -> "OperationCatalog":
        catalog = cls(document)
        catalog._extract_operations()
        logger.info("Built operation catalog with %s operations", len(catalog))
        return catalog

    @property
    def operations(self) -> List[OperationContract]:
        return list(self._operations.values())

    def lookup(self, operation_id: str) -> Optional[OperationContract]:
        return self._operations.get(operation_id)

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._operations

    def __iter__(self) -> Iterator[OperationContract]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self._operations)

    def _extract_operations(self) -> None:
        paths = self.document.get("paths") or {}
        for path, path_item in paths.items():
            if not isinstance(path_item, Mapping):
                continue
            shared_parameters = path_item.get("parameters") or []
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, Mapping):
                    continue
                contract = self._build_contract(method, path, operation, shared_parameters)
                self._register(contract)

    def _register(self, contract: OperationContract) -> None:
        existing = self._operations.pop(contract.operation_id, None)
        if existing is not None:
            replaced = f"{existing.method} {existing.path}"
            kept = f"{contract.method} {contract.path}"
            logger.warning(
                "Duplicate operation id %s: %s replaces %s",
                contract.operation_id,
                kept,
                replaced,
            )
            self.collisions.append((contract.operation_id, replaced, kept))
        self._operations[contract.operation_id] = contract

    def _build_contract(
        self,
        method: str,
        path: str,
        operation: Mapping[str, Any],
        shared_parameters: List[Any],
    ) -> OperationContract:
        operation_id = operation.get("operationId") or synthesize_operation_id(method, path)
        raw_parameters = [*shared_parameters, *(operation.get("parameters") or [])]

        return OperationContract(
            operation_id=operation_id,
            method=method.upper(),
            path=path,
            parameters=tuple(self._build_parameters(operation_id, raw_parameters)),
            request_body=self._build_request_body(operation.get("requestBody")),
            summary=operation.get("summary"),
            description=operation.get("description"),
            tags=tuple(operation.get("tags") or ()),
            responses=dict(operation.get("responses") or {}),
            security=operation.get("security"),
            deprecated=bool(operation.get("deprecated", False)),
        )

    def _build_parameters(
        self, operation_id: str, raw_parameters: List[Any]
    ) -> List[ParameterContract]:
        parameters: List[ParameterContract] = []
        for raw in raw_parameters:
            parameter = self.references.deref(raw)
            if not isinstance(parameter, Mapping) or not parameter.get("name"):
                logger.warning("Skipping unusable parameter on %s: %s", operation_id, raw)
                continue
            location = parameter.get("in", "query")
            if location not in SUPPORTED_LOCATIONS:
                logger.debug(
                    "Dropping %s parameter %s on %s", location, parameter["name"], operation_id
                )
                continue

            if parameter.get("schema"):
                schema = self.resolver.resolve(parameter["schema"])
            else:
                schema = {"type": "string", "description": f"{location} parameter"}

            parameters.append(
                ParameterContract(
                    name=parameter["name"],
                    location=location,
                    required=bool(parameter.get("required", False)),
                    schema=schema,
                    description=parameter.get("description"),
                )
            )
        return parameters

    def _build_request_body(self, raw: Any) -> Optional[RequestBodyContract]:
        request_body = self.references.deref(raw)
        if not isinstance(request_body, Mapping):
            return None
        content = request_body.get("content") or {}
        if not isinstance(content, Mapping) or not content:
            return None

        content_types = sort_content_types(content.keys())
        primary = content_types[0]
        media = content.get(primary) or {}
        raw_schema = media.get("schema") if isinstance(media, Mapping) else None
        if not raw_schema:
            return None

        return RequestBodyContract(
            required=request_body.get("required"),
            primary_content_type=primary,
            content_types=tuple(content_types),
            schema=self.resolver.resolve(raw_schema),
            raw_schema=dict(raw_schema),
            description=request_body.get("description"),
        )
