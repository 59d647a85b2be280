"""routemcp - expose the HTTP routes of a FastAPI application as MCP tools.

    from fastapi import FastAPI
    from routemcp import McpConfig, McpPlugin

    app = FastAPI()
    McpPlugin(app, McpConfig(name="My API"))

Clients then connect to ``/mcp/sse`` (or ``POST /mcp`` with
``transport_type="streamableHttp"``).
"""

from importlib.metadata import PackageNotFoundError, version as _package_version

try:
    __version__ = _package_version("routemcp")
except PackageNotFoundError:
    # Fallback version if not installed
    __version__ = "0.0.0.dev0"

from routemcp.config import ConfigManager, McpConfig
from routemcp.errors import InvalidAppError, RouteMcpError, SessionNotFoundError, ToolNotFoundError
from routemcp.mcp_server import McpPlugin, RouteRegistry
from routemcp.models import ExecutedResponse, RouteDescriptor, RouteOptions, ToolRequest

__all__ = [
    "ConfigManager",
    "ExecutedResponse",
    "InvalidAppError",
    "McpConfig",
    "McpPlugin",
    "RouteDescriptor",
    "RouteMcpError",
    "RouteOptions",
    "RouteRegistry",
    "SessionNotFoundError",
    "ToolNotFoundError",
    "ToolRequest",
    "__version__",
]
