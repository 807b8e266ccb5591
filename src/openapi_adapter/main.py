"""CLI entry point for the OpenAPI MCP adapter."""

from __future__ import annotations

import asyncio
from typing import Optional

import click
import uvicorn

from .config import Settings, get_settings
from .logging import configure_logging
from .server import HTTP_TRANSPORTS, build_server


def _settings_from_options(
    schema: Optional[str],
    base_url: Optional[str],
    headers: Optional[str],
    transport: Optional[str],
) -> Settings:
    overrides = {
        "schema_path": schema,
        "base_url": base_url,
        "additional_headers": headers,
        "transport": transport,
    }
    return get_settings().model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )


async def _run(settings: Settings) -> None:
    mcp, app = await build_server(settings)
    transport = settings.transport.lower()

    if transport in HTTP_TRANSPORTS:
        if not app:
            raise RuntimeError(f"HTTP app unavailable for transport={transport}")
        config = uvicorn.Config(app, host=settings.host, port=settings.port)
        server = uvicorn.Server(config)
        await server.serve()
        return
    await mcp.run_stdio_async()


@click.command()
@click.option("-s", "--schema", default=None, help="Path or URL of the OpenAPI schema (JSON or YAML).")
@click.option("-b", "--base-url", default=None, help="Override base URL from schema.")
@click.option("-H", "--headers", default=None, help="Additional headers as JSON string.")
@click.option(
    "--transport",
    default=None,
    type=click.Choice(["stdio", *HTTP_TRANSPORTS], case_sensitive=False),
    help="MCP transport to serve.",
)
def main(
    schema: Optional[str],
    base_url: Optional[str],
    headers: Optional[str],
    transport: Optional[str],
) -> None:
    """Expose any REST API as an MCP server based on its OpenAPI schema."""
    settings = _settings_from_options(schema, base_url, headers, transport)
    try:
        settings.headers()
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="'-H' / '--headers'") from exc

    configure_logging(settings.log_level)
    asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
