"""Route -> MCP tool bridge for FastAPI applications.

The registry, filter, converter and request handler are framework neutral;
``McpPlugin`` and ``FastApiRouteCollector`` tie them to a FastAPI app.
"""

from .request_handler import ASGIRequestExecutor, RequestExecutor, RequestHandler
from .route_collector import FastApiRouteCollector
from .route_filter import RouteFilter
from .route_registry import RouteRegistry
from .server import McpPlugin
from .session_manager import SessionTransportManager, SseSessionChannel
from .tool_converter import ToolConverter

__all__ = [
    "ASGIRequestExecutor",
    "FastApiRouteCollector",
    "McpPlugin",
    "RequestExecutor",
    "RequestHandler",
    "RouteFilter",
    "RouteRegistry",
    "SessionTransportManager",
    "SseSessionChannel",
    "ToolConverter",
]
