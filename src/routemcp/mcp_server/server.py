"""MCP plugin for FastAPI applications.

``McpPlugin`` is the composition root: it owns the route registry, the filter,
the tool converter, the request handler and the session manager of one
application, builds the MCP ``Server`` with list/call handlers, and installs the
transport endpoints under the configured mount path.

    app = FastAPI()
    McpPlugin(app, McpConfig(name="Todo API", add_debug_endpoint=True))
"""

from __future__ import annotations

import logging

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

from fastapi import FastAPI
from mcp import types
from mcp.server import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send

from routemcp.config import McpConfig
from routemcp.errors import ToolNotFoundError
from routemcp.mcp_server.request_handler import ASGIRequestExecutor, RequestExecutor, RequestHandler
from routemcp.mcp_server.route_collector import FastApiRouteCollector
from routemcp.mcp_server.route_filter import RouteFilter
from routemcp.mcp_server.route_registry import RouteRegistry
from routemcp.mcp_server.session_manager import SessionTransportManager
from routemcp.mcp_server.tool_converter import ToolConverter
from routemcp.mcp_utils.debug_logger import DebugLogger
from routemcp.models import RouteDescriptor

logger = logging.getLogger(__name__)

STREAMABLE_HTTP = "streamableHttp"

_JSONRPC_INTERNAL_ERROR: dict[str, Any] = {
    "jsonrpc": "2.0",
    "error": {"code": -32603, "message": "Internal server error"},
    "id": None,
}


class _SseASGI:
    def __init__(self, sessions: SessionTransportManager):
        self._sessions = sessions

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._sessions.handle_sse(scope, receive, send)


class _MessagesASGI:
    def __init__(self, sessions: SessionTransportManager):
        self._sessions = sessions

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._sessions.handle_post_message(scope, receive, send)


class _StreamableHTTPASGI:
    """Forwards ``POST {mount}`` to the stateless streamable HTTP manager."""

    def __init__(self, plugin: McpPlugin):
        self._plugin = plugin

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            manager = self._plugin.streamable_manager
            if manager is None:
                raise RuntimeError("Streamable HTTP transport is not running; was the app lifespan started?")
            await manager.handle_request(scope, receive, tracking_send)
        except Exception as e:
            logger.error("Error handling MCP request: %s", e, exc_info=True)
            if not response_started:
                await JSONResponse(_JSONRPC_INTERNAL_ERROR, status_code=500)(scope, receive, send)


def normalize_mount_path(path: str | None) -> str:
    """Leading ``/``, no trailing ``/``; the root mount is the empty string."""
    path = (path or "").strip()
    if not path.startswith("/"):
        path = f"/{path}"
    return path.rstrip("/")


class McpPlugin:
    """Exposes the routes of a FastAPI application as MCP tools."""

    def __init__(
        self,
        app: FastAPI,
        config: McpConfig | None = None,
        executor: RequestExecutor | None = None,
    ) -> None:
        self.app: FastAPI = app
        self.config: McpConfig = McpConfig() if config is None else config
        self.mount_path: str = normalize_mount_path(self.config.mount_path)

        self.registry: RouteRegistry = RouteRegistry(to_json_schema=self.config.to_json_schema)
        self.collector: FastApiRouteCollector = FastApiRouteCollector(app, self.registry)
        self.route_filter: RouteFilter = RouteFilter(
            skip_head_routes=self.config.skip_head_routes,
            skip_options_routes=self.config.skip_options_routes,
            predicate=self.config.filter,
        )
        self.converter: ToolConverter = ToolConverter(describe_full_schema=self.config.describe_full_schema)
        self.request_handler: RequestHandler = RequestHandler(executor or ASGIRequestExecutor(app))

        self.server: Server = self._create_mcp_server()
        self.sessions: SessionTransportManager = SessionTransportManager(self.server, f"{self.mount_path}/messages")
        self.streamable_manager: StreamableHTTPSessionManager | None = None
        app.state.mcp_plugin = self

        self.collect_routes()
        self._setup_routes()
        self._install_lifespan()

    @property
    def is_stateless(self) -> bool:
        return self.config.transport_type == STREAMABLE_HTTP

    def _create_mcp_server(self) -> Server:
        """Create the MCP server instance."""
        server = Server(name=self.config.name, version=self.config.version, instructions=self.config.description)

        @server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return self.list_tools()

        # Arguments are classified by the route's own schemas, not validated against the tool schema
        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
            return await self.call_tool(name, arguments)

        return server

    def collect_routes(self) -> int:
        return self.collector.collect()

    def available_routes(self) -> list[RouteDescriptor]:
        self.collect_routes()
        return self.route_filter.filter_routes(self.registry)

    def list_tools(self) -> list[types.Tool]:
        """Current catalogue: registry -> filter -> converter, recomputed on every call."""
        tools = [self.converter.convert_route_to_tool(route) for route in self.available_routes()]
        DebugLogger.debug(self, f"Listing {len(tools)} tool(s)")
        return tools

    def find_route(self, name: str) -> RouteDescriptor:
        for route in self.available_routes():
            if self.converter.build_tool_name(route) == name:
                return route
        raise ToolNotFoundError(name)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        try:
            route = self.find_route(name)
            return await self.request_handler.handle_tool_call(route, arguments)
        except ToolNotFoundError:
            logger.error("Tool '%s' not found", name)
            raise
        except Exception as e:
            logger.error("Error calling tool '%s': %s", name, e, exc_info=True)
            raise

    def health(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "server": self.config.name,
            "version": self.config.version,
            "transport": self.config.transport_type,
            "sessions": len(self.sessions),
            "routes": len(self.registry),
        }

    def _setup_routes(self) -> None:
        """Install the transport and debug endpoints under the mount path."""
        mount = self.mount_path
        if self.is_stateless:
            self.app.add_route(mount or "/", _StreamableHTTPASGI(self), methods=["POST"], include_in_schema=False)
        else:
            self.app.add_route(f"{mount}/sse", _SseASGI(self.sessions), methods=["GET"], include_in_schema=False)
            self.app.add_route(f"{mount}/messages", _MessagesASGI(self.sessions), methods=["POST"], include_in_schema=False)

        async def health_check() -> dict[str, Any]:
            """Health check endpoint."""
            return self.health()

        self.app.add_api_route(f"{mount}/health", health_check, methods=["GET"], include_in_schema=False)

        if self.config.add_debug_endpoint:

            async def list_tools_debug() -> list[dict[str, Any]]:
                return [tool.model_dump(exclude_none=True) for tool in self.list_tools()]

            self.app.add_api_route(f"{mount}/tools", list_tools_debug, methods=["GET"], include_in_schema=False)

        logger.info("MCP endpoints mounted at %s (%s transport)", mount or "/", self.config.transport_type)

    @asynccontextmanager
    async def lifespan(self) -> AsyncIterator[None]:
        """Startup/shutdown of the transports; installed around the app's own lifespan."""
        self.collect_routes()
        async with AsyncExitStack() as stack:
            if self.is_stateless:
                # StreamableHTTPSessionManager.run() can only be entered once per instance
                manager = StreamableHTTPSessionManager(
                    app=self.server,
                    json_response=self.config.json_response,
                    stateless=True,
                )
                await stack.enter_async_context(manager.run())
                self.streamable_manager = manager
                DebugLogger.debug(self, "Streamable HTTP session manager started")
            try:
                yield
            finally:
                self.streamable_manager = None
                await self.sessions.close_all()
                DebugLogger.debug(self, "MCP transports shut down")

    def _install_lifespan(self) -> None:
        app_lifespan = self.app.router.lifespan_context

        @asynccontextmanager
        async def lifespan(app: Any) -> AsyncIterator[Any]:
            async with self.lifespan():
                async with app_lifespan(app) as state:
                    yield state

        self.app.router.lifespan_context = lifespan
