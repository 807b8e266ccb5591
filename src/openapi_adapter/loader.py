"""OpenAPI document loading, structural validation and normalization."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
import yaml

from .catalog import HTTP_METHODS, synthesize_operation_id
from .exceptions import SchemaLoadError


logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML or JSON OpenAPI file and return it normalized."""
    file_path = Path(path)
    if not file_path.exists():
        raise SchemaLoadError(f"Schema file not found: {file_path}")

    suffix = file_path.suffix.lower()
    text = file_path.read_text(encoding="utf-8")
    try:
        if suffix in (".yaml", ".yml"):
            document = yaml.safe_load(text)
        elif suffix == ".json":
            document = json.loads(text)
        else:
            raise SchemaLoadError(
                f"Unsupported schema file format: {suffix}. Only JSON and YAML are supported."
            )
    except (yaml.YAMLError, ValueError) as exc:
        raise SchemaLoadError(f"Failed to parse schema file: {exc}") from exc

    return prepare_document(document)


async def fetch_document(url: str, timeout_seconds: float = 30) -> Dict[str, Any]:
    """Download an OpenAPI document over HTTP (JSON or YAML body)."""
    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise SchemaLoadError(f"Failed to fetch OpenAPI schema: {url} ({exc})") from exc
    if response.status_code != 200:
        raise SchemaLoadError(f"Failed to fetch OpenAPI schema: {url} ({response.status_code})")

    try:
        if "json" in response.headers.get("content-type", "") or url.lower().endswith(".json"):
            document = response.json()
        else:
            document = yaml.safe_load(response.text)
    except (yaml.YAMLError, ValueError) as exc:
        raise SchemaLoadError(f"Failed to parse schema from {url}: {exc}") from exc
    return prepare_document(document)


def prepare_document(document: Any) -> Dict[str, Any]:
    if not isinstance(document, dict):
        raise SchemaLoadError("Invalid OpenAPI schema:\nDocument root must be a mapping")

    validation = validate_document(document)
    if not validation.valid:
        raise SchemaLoadError("Invalid OpenAPI schema:\n" + "\n".join(validation.errors))
    for warning in validation.warnings:
        logger.warning("Schema validation warning: %s", warning)

    if str(document.get("swagger", "")).startswith("2."):
        raise SchemaLoadError(
            "Swagger 2.0 is not supported. Please convert to OpenAPI 3.0+ "
            "using tools like swagger2openapi"
        )

    return normalize_document(document)


def validate_document(document: Dict[str, Any]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not document.get("openapi") and not document.get("swagger"):
        errors.append("Missing required field: openapi or swagger version")

    info = document.get("info")
    if not info:
        errors.append("Missing required field: info")
    else:
        if not info.get("title"):
            errors.append("Missing required field: info.title")
        if not info.get("version"):
            errors.append("Missing required field: info.version")

    paths = document.get("paths")
    if paths is None:
        errors.append("Missing required field: paths")
    elif not isinstance(paths, dict):
        errors.append("Invalid paths field: must be an object")
    elif not paths:
        warnings.append("No paths defined in schema")

    version = document.get("openapi")
    if version and not str(version).startswith("3."):
        errors.append(f"Unsupported OpenAPI version: {version}. Only OpenAPI 3.x is supported")

    servers = document.get("servers")
    if servers is None:
        warnings.append("No servers defined - you must provide a base URL")
    elif not isinstance(servers, list):
        errors.append("Invalid servers field: must be an array")
    elif not servers:
        warnings.append("Empty servers array - no base URL will be available")
    else:
        for index, server in enumerate(servers):
            if not isinstance(server, dict) or not server.get("url"):
                errors.append(f"Missing server URL at index {index}")

    schemas = (document.get("components") or {}).get("schemas") or {}
    if schemas:
        names = list(schemas)
        logger.info(
            "Found %s schema definitions: %s%s",
            len(names),
            ", ".join(names[:5]),
            "..." if len(names) > 5 else "",
        )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def normalize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in paths/components, operation ids and default responses."""
    if not document.get("paths"):
        document["paths"] = {}
    if not document.get("components"):
        document["components"] = {}

    for path, path_item in document["paths"].items():
        if not isinstance(path_item, dict):
            continue
        for method in HTTP_METHODS:
            if method not in path_item:
                continue
            operation: Optional[Dict[str, Any]] = path_item[method]
            if operation is None:
                path_item[method] = {
                    "operationId": synthesize_operation_id(method, path),
                    "responses": {"200": {"description": "Success"}},
                }
                continue
            if not isinstance(operation, dict):
                continue
            if not operation.get("operationId"):
                operation["operationId"] = synthesize_operation_id(method, path)
            if not operation.get("responses"):
                operation["responses"] = {"200": {"description": "Success"}}

    return document
