"""Tool call -> synthetic HTTP request -> MCP content.

Flow:
  1. ``prepare_tool_payload`` sorts every argument into exactly one of the
     path / query / header / body buckets, by which schema group declares it.
  2. Path parameters are substituted into the URL template.
  3. The request executor runs the request against the application.
  4. ``format_tool_response`` wraps the response body as a text content block,
     pretty-printed when it parses as JSON.
"""

from __future__ import annotations

import json
import logging
import re

from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from mcp import types

from routemcp.mcp_utils.debug_logger import DebugLogger
from routemcp.models import ExecutedResponse, RouteDescriptor, ToolPayload, ToolRequest

logger = logging.getLogger(__name__)

RequestExecutor = Callable[[ToolRequest], Awaitable[ExecutedResponse]]

# characters encodeURIComponent leaves alone besides the unreserved set
_URI_COMPONENT_SAFE = "!~*'()"


def _declares(group: dict[str, Any] | None, key: str) -> bool:
    if not isinstance(group, dict):
        return False
    properties = group.get("properties")
    return isinstance(properties, dict) and key in properties


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def _query_value(value: Any) -> Any:
    if isinstance(value, list):
        return [_to_text(v) for v in value]
    return _to_text(value)


def prepare_tool_payload(route: RouteDescriptor, arguments: dict[str, Any]) -> ToolPayload:
    """Classify each argument: path params, then query, then headers, else body."""
    payload = ToolPayload()
    for key, value in arguments.items():
        if _declares(route.params, key):
            payload.params[key] = value
        elif _declares(route.querystring, key):
            payload.query[key] = value
        elif _declares(route.headers, key):
            payload.headers[key] = value
        else:
            payload.body[key] = value
    return payload


def substitute_path_params(url: str, params: dict[str, Any]) -> str:
    """Replace ``:key`` and ``{key}`` placeholders with URL-encoded values."""
    for key, value in params.items():
        encoded = quote(_to_text(value), safe=_URI_COMPONENT_SAFE)
        escaped = re.escape(key)
        url = re.sub(r"\{" + escaped + r"(?::[^}]*)?\}", lambda _m: encoded, url)
        url = re.sub(r":" + escaped + r"(?![A-Za-z0-9_])", lambda _m: encoded, url)
    return url


def build_tool_request(route: RouteDescriptor, arguments: dict[str, Any]) -> ToolRequest:
    payload = prepare_tool_payload(route, arguments)
    return ToolRequest(
        method=route.primary_method,
        url=substitute_path_params(route.url, payload.params),
        query={k: _query_value(v) for k, v in payload.query.items() if v is not None},
        headers={k: _to_text(v) for k, v in payload.headers.items() if v is not None},
        body=payload.body or None,
    )


def format_tool_response(response_body: str) -> list[types.TextContent]:
    try:
        parsed = json.loads(response_body)
    except ValueError:
        return [types.TextContent(type="text", text=response_body)]
    return [types.TextContent(type="text", text=json.dumps(parsed, indent=2, ensure_ascii=False))]


class ASGIRequestExecutor:
    """Runs tool requests in-process against an ASGI application through httpx."""

    def __init__(self, app: Any, base_url: str = "http://routemcp.local") -> None:
        self._app: Any = app
        self._base_url: str = base_url

    async def __call__(self, request: ToolRequest) -> ExecutedResponse:
        transport = httpx.ASGITransport(app=self._app)
        async with httpx.AsyncClient(transport=transport, base_url=self._base_url) as client:
            response = await client.request(
                request.method,
                request.url,
                params=request.query or None,
                headers=request.headers or None,
                json=request.body,
            )
        return ExecutedResponse(status_code=response.status_code, body=response.text)


class RequestHandler:
    """Dispatches tool calls to their routes through a ``RequestExecutor``."""

    def __init__(self, executor: RequestExecutor) -> None:
        self.executor: RequestExecutor = executor

    async def handle_tool_call(self, route: RouteDescriptor, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        request = build_tool_request(route, arguments or {})
        with DebugLogger.time_operation(self, route.name):
            result = await self.executor(request)
        logger.debug("Tool %s -> %s %s returned %s", route.name, request.method, request.url, result.status_code)
        return format_tool_response(result.body)
