"""Execution layer: tool arguments in, one HTTP exchange out."""

from __future__ import annotations

import json
import logging
import math
import os
import re
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union
from urllib.parse import quote

import httpx

from .catalog import OperationCatalog
from .exceptions import (
    FileNotFound,
    InvalidFilePathType,
    InvalidParameterType,
    MissingRequiredParameters,
    NoBaseUrl,
    NotAFile,
    OperationNotFound,
    RequestFailed,
)
from .logging import redact_payload
from .models import OperationContract, ParameterContract, RequestBodyContract

logger = logging.getLogger(__name__)


DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".ico": "image/x-icon",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
    ".html": "text/html",
    ".htm": "text/html",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}

_SERVER_VARIABLE = re.compile(r"\{([^}]+)\}")


def guess_mime_type(path: str) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


def resolve_base_url(document: Mapping[str, Any], configured: Optional[str] = None) -> str:
    """Configured URL wins, else the first server entry of the document."""
    if configured:
        return configured
    servers = document.get("servers") or []
    if servers and isinstance(servers[0], Mapping) and servers[0].get("url"):
        server = servers[0]
        variables = server.get("variables") or {}

        def substitute(match: "re.Match[str]") -> str:
            variable = variables.get(match.group(1)) or {}
            return str(variable.get("default", match.group(0)))

        return _SERVER_VARIABLE.sub(substitute, server["url"])
    raise NoBaseUrl()


@dataclass(frozen=True)
class Coercion:
    value: Any = None
    error: Optional[InvalidParameterType] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def coerce_parameter(param: ParameterContract, value: Any) -> Coercion:
    schema_type = param.schema.get("type")

    if schema_type in ("integer", "number"):
        number = _to_number(value)
        if number is None:
            return Coercion(error=InvalidParameterType(param.name, param.location, "valid number", value))
        return Coercion(number)

    if schema_type == "boolean":
        if isinstance(value, bool):
            return Coercion(value)
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return Coercion(value.strip().lower() == "true")
        return Coercion(error=InvalidParameterType(param.name, param.location, "boolean", value))

    if schema_type == "array":
        if isinstance(value, (list, tuple)):
            return Coercion(list(value))
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return Coercion(parsed)
            return Coercion([item.strip() for item in value.split(",")])
        return Coercion([value])

    return Coercion(_stringify(value))


class OperationInvoker:
    def __init__(
        self,
        catalog: OperationCatalog,
        base_url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        auth: Optional[httpx.Auth] = None,
    ) -> None:
        self.catalog = catalog
        self.base_url = base_url.rstrip("/")
        self.default_headers = dict(headers or {})
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self.auth = auth

    @classmethod
    def create(
        cls,
        catalog: OperationCatalog,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        **kwargs: Any,
    ) -> "OperationInvoker":
        auth = httpx.BasicAuth(username, password or "") if username else None
        return cls(catalog, resolve_base_url(catalog.document, base_url), auth=auth, **kwargs)

    async def invoke(
        self, operation_id: str, arguments: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        contract = self.catalog.lookup(operation_id)
        if contract is None:
            raise OperationNotFound(operation_id)
        arguments = dict(arguments or {})

        url = self.base_url + contract.path
        headers = httpx.Headers(self.default_headers)
        explicit_headers: Dict[str, str] = {}
        query: Dict[str, Any] = {}
        missing: List[str] = []
        invalid: List[InvalidParameterType] = []

        for param in contract.parameters:
            value = arguments.get(param.name)
            if value is None:
                if param.required:
                    missing.append(f"{param.name} ({param.location})")
                continue

            outcome = coerce_parameter(param, value)
            if not outcome.ok:
                invalid.append(outcome.error)
                continue

            if param.location == "path":
                url = url.replace(f"{{{param.name}}}", quote(_simple_style(outcome.value), safe=""))
            elif param.location == "query":
                query[param.name] = outcome.value
            elif param.location == "header":
                headers[param.name] = _simple_style(outcome.value)
                explicit_headers[param.name.lower()] = _simple_style(outcome.value)

        if missing:
            raise MissingRequiredParameters(contract.operation_id, missing)
        if invalid:
            raise invalid[0]

        method = contract.method
        logger.info("Invoking %s: %s %s", contract.operation_id, method, url)
        logger.debug("Arguments for %s: %s", contract.operation_id, redact_payload(arguments))

        with ExitStack() as stack:
            content: Dict[str, Any] = {}
            body = arguments.get("body")
            if contract.request_body is not None and body is not None:
                content = self._encode_body(contract, body, headers, explicit_headers, stack)

            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout_seconds, verify=self.verify_ssl, auth=self.auth
                ) as client:
                    response = await client.request(method, url, params=query, headers=headers, **content)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.warning("Request for %s failed: %s", contract.operation_id, exc)
                raise RequestFailed(
                    f"Request failed: {exc or type(exc).__name__}", url=url, method=method
                ) from exc

        return self._normalize_response(contract, response, method)

    def _encode_body(
        self,
        contract: OperationContract,
        body: Any,
        headers: httpx.Headers,
        explicit_headers: Mapping[str, str],
        stack: ExitStack,
    ) -> Dict[str, Any]:
        request_body = contract.request_body
        content_type = explicit_headers.get("content-type") or request_body.primary_content_type
        media_type = content_type.split(";")[0].strip().lower()

        if media_type == "multipart/form-data":
            # httpx writes its own header carrying the boundary
            headers.pop("Content-Type", None)
            parts = self._multipart_parts(contract, body, stack)
            if parts:
                return {"files": parts}
            # httpx sends nothing for an empty files list
            boundary = os.urandom(16).hex()
            headers["Content-Type"] = f"multipart/form-data; boundary={boundary}"
            return {"content": f"--{boundary}--\r\n".encode()}

        headers["Content-Type"] = content_type
        if media_type == "application/json":
            if isinstance(body, str):
                try:
                    body = json.loads(body)
                except ValueError:
                    return {"content": body}
            return {"json": body}

        if media_type == "application/x-www-form-urlencoded":
            form = _decode_object(body)
            if form is None:
                return {"content": _stringify(body)}
            return {"data": {key: _stringify(value) for key, value in form.items() if value is not None}}

        if isinstance(body, (str, bytes)):
            return {"content": body}
        return {"content": json.dumps(body)}

    def _multipart_parts(
        self, contract: OperationContract, body: Any, stack: ExitStack
    ) -> List[Tuple[str, Tuple[Any, ...]]]:
        form = _decode_object(body)
        if form is None:
            raise InvalidParameterType("body", "body", "object", body)

        file_fields = self._file_fields(contract.request_body)
        parts: List[Tuple[str, Tuple[Any, ...]]] = []
        for name, value in form.items():
            if name in file_fields:
                if isinstance(value, str):
                    parts.append((name, self._file_part(name, value, stack)))
                elif isinstance(value, (list, tuple)):
                    for item in value:
                        if not isinstance(item, str):
                            raise InvalidFilePathType(name, item)
                        parts.append((name, self._file_part(name, item, stack)))
                else:
                    raise InvalidFilePathType(name, value)
            elif value is not None:
                parts.append((name, (None, _stringify(value))))
        return parts

    def _file_fields(self, request_body: RequestBodyContract) -> Set[str]:
        schema = self.catalog.references.deref(request_body.raw_schema)
        if not isinstance(schema, Mapping):
            return set()
        properties = schema.get("properties") or {}
        return {name for name, prop in properties.items() if self.catalog.resolver.is_file_upload(prop)}

    def _file_part(self, field: str, path: str, stack: ExitStack) -> Tuple[str, Any, str]:
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFound(path, field)
        if not file_path.is_file():
            raise NotAFile(path, field)
        handle = stack.enter_context(file_path.open("rb"))
        return (file_path.name, handle, guess_mime_type(path))

    def _normalize_response(
        self, contract: OperationContract, response: httpx.Response, method: str
    ) -> Dict[str, Any]:
        url = str(response.request.url)
        data = _response_data(response)
        if response.status_code >= 400:
            detail = data if isinstance(data, str) else json.dumps(data, separators=(",", ":"))
            message = f"HTTP {response.status_code}: {response.reason_phrase}"
            if data is not None:
                message += f" - {detail}"
            logger.warning("Operation %s returned %s", contract.operation_id, response.status_code)
            raise RequestFailed(
                message,
                url=url,
                method=method,
                status_code=response.status_code,
                status_text=response.reason_phrase,
                response_body=data,
            )

        return {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "data": data,
            "url": url,
            "method": method,
        }


def _response_data(response: httpx.Response) -> Any:
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


def _decode_object(body: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return None
    return body if isinstance(body, Mapping) else None


def _to_number(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _simple_style(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return _stringify(value)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
