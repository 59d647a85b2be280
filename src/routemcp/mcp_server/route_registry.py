"""Route registry: the ordered table of routes that can become MCP tools.

``register_route()`` is called once per framework route, synchronously and in
registration order. Each accepted route is stored as an immutable
``RouteDescriptor`` whose schema groups have been run through the schema
resolver with the route's own schema object as the reference root.
"""

from __future__ import annotations

import logging
import re

from collections.abc import Callable, Iterator
from typing import Any

from routemcp.mcp_utils.debug_logger import DebugLogger
from routemcp.mcp_utils.schema_util import resolve_schema_references
from routemcp.models import HTTP_METHODS, RouteDescriptor, RouteOptions

logger = logging.getLogger(__name__)

SchemaConverter = Callable[[Any], dict[str, Any]]

_SLUG_PATTERN = re.compile(r"[/:{}]")


def build_route_name(options: RouteOptions) -> str:
    """Tool name: per-route override, then ``operationId``, then ``METHOD_url`` slug."""
    override = options.mcp_config.get("name")
    if override:
        return str(override)
    operation_id = (options.schema or {}).get("operationId")
    if operation_id:
        return str(operation_id)
    methods = options.method if isinstance(options.method, list) else [options.method]
    return f"{'_'.join(str(m) for m in methods)}_{_SLUG_PATTERN.sub('_', options.url)}"


def _normalize_methods(method: str | list[str] | tuple[str, ...]) -> tuple[str, ...]:
    method_list = [method] if isinstance(method, str) else list(method or [])
    methods: list[str] = []
    for m in method_list:
        upper = str(m).upper()
        if upper in HTTP_METHODS and upper not in methods:
            methods.append(upper)
    return tuple(methods)


def _success_response_schema(response: Any) -> Any:
    if not isinstance(response, dict):
        return None
    for key in (200, "200", "2xx", "2XX"):
        if response.get(key):
            return response[key]
    return None


class RouteRegistry:
    """Ordered, append-only collection of ``RouteDescriptor``s."""

    def __init__(self, to_json_schema: SchemaConverter | None = None) -> None:
        self._routes: list[RouteDescriptor] = []
        self._to_json_schema: SchemaConverter | None = to_json_schema

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[RouteDescriptor]:
        return iter(tuple(self._routes))

    @property
    def routes(self) -> tuple[RouteDescriptor, ...]:
        return tuple(self._routes)

    def _resolve(self, fragment: Any, root: dict[str, Any]) -> Any:
        if fragment and self._to_json_schema is not None:
            fragment = self._to_json_schema(fragment)
        return resolve_schema_references(fragment, root)

    def register_route(self, options: RouteOptions) -> RouteDescriptor | None:
        """Add a route; returns the stored descriptor, or ``None`` when it is skipped."""
        if options.mcp_config.get("hidden"):
            logger.debug("Skipping hidden route %s", options.url)
            return None

        methods = _normalize_methods(options.method)
        if not methods:
            logger.debug("Skipping route with no valid HTTP methods: %s %s", options.method, options.url)
            return None

        schema = options.schema or {}
        raw_tags = schema.get("tags") or []
        tags = tuple(str(t) for t in raw_tags) if isinstance(raw_tags, (list, tuple)) else ()

        descriptor = RouteDescriptor(
            methods=methods,
            url=options.url,
            name=build_route_name(options),
            summary=schema.get("summary") or None,
            description=options.mcp_config.get("description") or schema.get("description") or None,
            tags=tags,
            headers=self._resolve(schema.get("headers"), schema),
            params=self._resolve(schema.get("params"), schema),
            querystring=self._resolve(schema.get("querystring"), schema),
            body=self._resolve(schema.get("body"), schema),
            response=self._resolve(_success_response_schema(schema.get("response")), schema),
        )
        self._routes.append(descriptor)
        DebugLogger.debug(self, f"Registered route {'/'.join(methods)} {options.url} as tool '{descriptor.name}'")
        return descriptor
