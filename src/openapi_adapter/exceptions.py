"""Error taxonomy for loading documents and invoking operations."""

from __future__ import annotations

from typing import Any, List, Optional


class AdapterError(Exception):
    pass


class SchemaLoadError(AdapterError):
    pass


class NoBaseUrl(AdapterError):
    def __init__(self) -> None:
        super().__init__("No server URL found in OpenAPI schema and no base URL provided")


class InvocationError(AdapterError):
    """Raised while turning one tool call into an HTTP exchange."""


class OperationNotFound(InvocationError):
    def __init__(self, operation_id: str) -> None:
        self.operation_id = operation_id
        super().__init__(f"Operation {operation_id} not found")


class MissingRequiredParameters(InvocationError):
    def __init__(self, operation_id: str, missing: List[str]) -> None:
        self.operation_id = operation_id
        self.missing = list(missing)
        super().__init__(f"Missing required parameters: {', '.join(self.missing)}")


class InvalidParameterType(InvocationError):
    def __init__(self, name: str, location: str, expected: str, value: Any) -> None:
        self.parameter = name
        self.location = location
        self.expected = expected
        self.value = value
        article = "an" if expected[:1] in "aeiou" else "a"
        super().__init__(
            f"Parameter {name} must be {article} {expected} "
            f"({location} parameter, got {value!r})"
        )


class FileNotFound(InvocationError):
    def __init__(self, path: str, field: str) -> None:
        self.path = path
        self.field = field
        super().__init__(f"File not found: {path} (field '{field}')")


class NotAFile(InvocationError):
    def __init__(self, path: str, field: str) -> None:
        self.path = path
        self.field = field
        super().__init__(f"Path is not a file: {path} (field '{field}')")


class InvalidFilePathType(InvocationError):
    def __init__(self, field: str, value: Any) -> None:
        self.field = field
        self.value = value
        super().__init__(
            f"File field '{field}' expects a file path string or a list of paths, "
            f"got {type(value).__name__}"
        )


class RequestFailed(InvocationError):
    def __init__(
        self,
        message: str,
        url: str,
        method: str,
        status_code: Optional[int] = None,
        status_text: Optional[str] = None,
        response_body: Any = None,
    ) -> None:
        self.url = url
        self.method = method
        self.status_code = status_code
        self.status_text = status_text
        self.response_body = response_body
        super().__init__(f"{message} ({method} {url})")
