"""MCP server setup for the OpenAPI adapter."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from .catalog import OperationCatalog
from .config import Settings
from .invoker import OperationInvoker
from .loader import fetch_document, load_document
from .models import ToolDefinition
from .service import AdapterService
from .tools import ToolMapper

logger = logging.getLogger(__name__)


HTTP_TRANSPORTS: Dict[str, Dict[str, Any]] = {
    "http": {"transport": "http", "stateless_http": True, "json_response": True},
    "streamable-http": {"transport": "streamable-http", "stateless_http": True, "json_response": True},
    "streamablehttp": {"transport": "streamable-http", "stateless_http": True, "json_response": True},
    "sse": {"transport": "sse"},
}


class OperationTool(Tool):
    """An MCP tool backed by one catalog operation, with its exact input schema."""

    def __init__(self, definition: ToolDefinition, service: AdapterService) -> None:
        super().__init__(
            name=definition.name,
            description=definition.description,
            parameters=definition.input_schema,
        )
        self._service = service

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        result = await self._service.execute(self.name, arguments)
        text = result["content"][0]["text"]
        if result.get("isError"):
            raise ToolError(text)
        return ToolResult(content=[TextContent(type="text", text=text)])


async def load_schema(settings: Settings) -> Dict[str, Any]:
    source = settings.schema_path
    if not source:
        raise ValueError("No OpenAPI schema configured (set OPENAPI_MCP_SCHEMA_PATH or --schema)")
    if source.startswith(("http://", "https://")):
        return await fetch_document(source, timeout_seconds=settings.timeout_seconds)
    return load_document(source)


def build_service(
    document: Mapping[str, Any], settings: Settings
) -> tuple[AdapterService, list[ToolDefinition]]:
    catalog = OperationCatalog.build(document)
    invoker = OperationInvoker.create(
        catalog,
        base_url=settings.base_url,
        username=settings.username,
        password=settings.password,
        headers=settings.headers(),
        timeout_seconds=settings.timeout_seconds,
        verify_ssl=settings.verify_ssl,
    )
    tools = ToolMapper().build_tools(catalog.operations)
    return AdapterService(invoker, max_concurrency=settings.max_concurrency), tools


async def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    document = await load_schema(settings)
    service, tools = build_service(document, settings)

    mcp = FastMCP(settings.service_name, instructions=_instructions(document))
    for definition in tools:
        mcp.add_tool(OperationTool(definition, service))
        logger.info("Registered tool: %s", definition.name)

    app = _get_http_app(mcp, settings)
    _attach_healthcheck(app)
    logger.info("OpenAPI MCP server ready with %s tools", len(tools))
    return mcp, app


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return

    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions(document: Mapping[str, Any]) -> str:
    info = document.get("info") or {}
    title = info.get("title") or "the described API"
    return (
        f"Tools generated from the OpenAPI schema of {title}. "
        "Each tool performs one HTTP operation; file upload fields take absolute file paths."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    options = HTTP_TRANSPORTS.get(settings.transport.lower())
    if options is None:
        return None
    app = mcp.http_app(**options)
    _attach_cors(app)
    return app


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
