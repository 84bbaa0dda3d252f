"""MCP server wiring for github-repo-mcp.

Exposes the tool registry over stdio, or over HTTP with two equivalent MCP endpoints
(`/mcp` streamable HTTP, `/sse` legacy SSE) plus a health check.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
from collections.abc import AsyncIterator
from typing import Any

try:
    from mcp.server import Server
    from mcp.server.sse import SseServerTransport
    from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
    from mcp.types import CallToolResult, Resource, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from . import __version__
from .envelope import error_result
from .errors import ToolError
from .tools import TOOL_METADATA, Runtime, dispatch_tool, initialize_runtime_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "GitHub Repository MCP"
HTTP_ENDPOINTS = ["/mcp", "/sse"]

server = Server("github-repo-mcp", version=__version__)


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]
    logger.info("Listed %s tools", len(tools))
    return tools


# Arguments are validated by the tool registry, not by the SDK.
@server.call_tool(validate_input=False)
async def call_tool(name: str, arguments: dict[str, Any] | None) -> CallToolResult:
    """Execute a tool and return its envelope as an MCP CallToolResult."""
    logger.info("Tool called: %s", name)

    try:
        result = await dispatch_tool(name, arguments)
    except ToolError as err:
        logger.error("Tool %s could not run: %s", name, err.message)
        return error_result(f"Server is not configured: {err.message}").to_call_tool_result()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.exception("Tool %s failed", name)
        return error_result(f"Tool {name} failed unexpectedly ({type(exc).__name__})").to_call_tool_result()

    return result.to_call_tool_result()


_STATUS_URI = "github-repo-mcp://server-status"
_CAPABILITIES_URI = "github-repo-mcp://capabilities"


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=_STATUS_URI,
            name="Server Status",
            description="Non-secret server configuration and limits",
        ),
        Resource(
            uri=_CAPABILITIES_URI,
            name="Capabilities",
            description="Available operations and the repository they are bound to",
        ),
    ]


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    uri_s = uri if isinstance(uri, str) else str(uri)

    if uri_s == _CAPABILITIES_URI:
        caps = {
            "server": "github-repo-mcp",
            "version": __version__,
            "operations": list(TOOL_METADATA),
            "http_endpoints": HTTP_ENDPOINTS,
        }
        return json.dumps(caps, indent=2)

    if uri_s == _STATUS_URI:
        status: dict[str, Any] = {
            "server": "github-repo-mcp",
            "version": __version__,
            "tools_available": len(TOOL_METADATA),
            "configured": False,
        }
        try:
            runtime = initialize_runtime_from_env()
        except ToolError:
            return json.dumps(status, indent=2)

        config = runtime.config
        status["configured"] = True
        status["repository"] = config.full_name
        status["default_branch"] = config.default_branch
        status["token_configured"] = config.has_token
        status["limits"] = {
            "timeout_s": config.limits.timeout_s,
            "search_page_size": config.limits.search_page_size,
            "branches_page_size": config.limits.branches_page_size,
            "pulls_page_size": config.limits.pulls_page_size,
        }
        status["audit"] = {"file_sink_enabled": config.audit_log_path is not None}
        return json.dumps(status, indent=2)

    return json.dumps({"ok": False, "code": "NotFound", "message": "Unknown resource"}, indent=2)


def _startup_runtime() -> Runtime:
    # Fail fast on an invalid repository binding; a missing token is only logged.
    try:
        runtime = initialize_runtime_from_env()
    except ToolError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise
    logging.getLogger().setLevel(runtime.config.log_level)
    return runtime


async def run_server() -> None:
    """Run the server over stdio."""
    _startup_runtime()

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


# -----------------------------------------------------------------------------
# HTTP host
# -----------------------------------------------------------------------------


def health_payload() -> dict[str, Any]:
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": __version__,
        "endpoints": HTTP_ENDPOINTS,
    }


async def _health(_request: Request) -> JSONResponse:
    return JSONResponse(health_payload())


class _StreamableHTTPEndpoint:
    """ASGI adapter so `/mcp` is served without a trailing-slash redirect."""

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self._session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._session_manager.handle_request(scope, receive, send)


def build_http_app() -> Starlette:
    """Build the ASGI app: health check, `/mcp`, and `/sse`. Other paths are 404."""
    session_manager = StreamableHTTPSessionManager(app=server)
    sse = SseServerTransport("/sse/messages/")

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        return Response()

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            logger.info("Streamable HTTP session manager started")
            yield

    return Starlette(
        routes=[
            Route("/", endpoint=_health, methods=["GET"]),
            Route("/health", endpoint=_health, methods=["GET"]),
            Route("/mcp", endpoint=_StreamableHTTPEndpoint(session_manager)),
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/sse/messages/", app=sse.handle_post_message),
        ],
        lifespan=lifespan,
    )


def run_http_server(host: str, port: int) -> None:
    """Serve the HTTP app with uvicorn."""
    import uvicorn

    runtime = _startup_runtime()
    logger.info("Starting %s for %s on %s:%s", SERVICE_NAME, runtime.config.full_name, host, port)
    uvicorn.run(build_http_app(), host=host, port=port, log_level=runtime.config.log_level.lower())


async def test_server() -> None:
    """Lightweight self-test to ensure tool/resource listing works."""
    tools = [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]
    resources = await list_resources()
    print(f"{len(tools)} tools, {len(resources)} resources OK", file=sys.stderr)
