"""FastAPI route collection.

FastAPI has no per-route registration hook, so the collector walks
``app.routes`` and registers every ``APIRoute`` it has not seen yet, in the
order the application declared them. Parameter groups come from the route's
OpenAPI operation: ``in: header|path|query`` parameters are folded into
object schemas, the JSON request body becomes the body group and ``components``
is kept alongside so ``$ref`` pointers resolve against the route's own schema.

Per-route options are read from ``openapi_extra={"x-mcp": {...}}``::

    @app.get("/hello", openapi_extra={"x-mcp": {"name": "my_hello", "hidden": False}})
"""

from __future__ import annotations

import logging

from enum import Enum
from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from fastapi.routing import APIRoute

from routemcp.mcp_server.route_registry import RouteRegistry
from routemcp.models import HTTP_METHODS, RouteOptions

logger = logging.getLogger(__name__)

MCP_EXTENSION_KEY = "x-mcp"

_PARAMETER_LOCATIONS: dict[str, str] = {
    "header": "headers",
    "path": "params",
    "query": "querystring",
}


def _sorted_methods(methods: set[str] | None) -> list[str]:
    upper = {m.upper() for m in methods or ()}
    ordered = [m for m in HTTP_METHODS if m in upper]
    return ordered + sorted(upper - set(ordered))


def _tag_name(tag: Any) -> str:
    return str(tag.value) if isinstance(tag, Enum) else str(tag)


def parameters_to_groups(parameters: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Fold OpenAPI parameter objects into ``headers``/``params``/``querystring`` object schemas."""
    groups: dict[str, dict[str, Any]] = {}
    for parameter in parameters:
        group_name = _PARAMETER_LOCATIONS.get(parameter.get("in", ""))
        name = parameter.get("name")
        if group_name is None or not name:
            continue
        group = groups.setdefault(group_name, {"type": "object", "properties": {}})
        prop = dict(parameter.get("schema") or {})
        if parameter.get("description"):
            prop["description"] = parameter["description"]
        group["properties"][name] = prop
        if parameter.get("required"):
            group.setdefault("required", []).append(name)
    return groups


def request_body_schema(request_body: dict[str, Any] | None) -> dict[str, Any] | None:
    content = (request_body or {}).get("content") or {}
    if not content:
        return None
    media = content.get("application/json") or next(iter(content.values()))
    return (media or {}).get("schema")


def response_schemas(responses: dict[str, Any] | None) -> dict[str, Any]:
    schemas: dict[str, Any] = {}
    for status_code, response in (responses or {}).items():
        content = (response or {}).get("content") or {}
        media = content.get("application/json") or (next(iter(content.values())) if content else None)
        if media and media.get("schema") is not None:
            schemas[str(status_code)] = media["schema"]
    return schemas


class FastApiRouteCollector:
    """Feeds a FastAPI application's routes into a ``RouteRegistry``, each route once."""

    def __init__(self, app: FastAPI, registry: RouteRegistry) -> None:
        self._app: FastAPI = app
        self._registry: RouteRegistry = registry
        # Starlette routes define __eq__ without __hash__, so track identity
        self._seen: dict[int, APIRoute] = {}

    def collect(self) -> int:
        """Register routes added since the last call; returns how many were stored."""
        stored = 0
        for route in list(self._app.routes):
            if not isinstance(route, APIRoute) or id(route) in self._seen:
                continue
            self._seen[id(route)] = route
            options = self.route_options(route)
            if options is None:
                continue
            if self._registry.register_route(options) is not None:
                stored += 1
        if stored:
            logger.info("Collected %d new route(s) from %s", stored, self._app.title)
        return stored

    def route_options(self, route: APIRoute) -> RouteOptions | None:
        if not route.include_in_schema:
            logger.debug("Skipping route excluded from schema: %s", route.path)
            return None

        methods = _sorted_methods(route.methods)
        openapi = get_openapi(title=self._app.title, version=self._app.version, routes=[route])
        path_item = (openapi.get("paths") or {}).get(route.path_format) or {}
        operation = next((path_item[m.lower()] for m in methods if m.lower() in path_item), {})

        schema: dict[str, Any] = {"components": openapi.get("components") or {}}
        if route.operation_id:
            schema["operationId"] = route.operation_id
        if route.summary:
            schema["summary"] = route.summary
        if route.description:
            schema["description"] = route.description
        if route.tags:
            schema["tags"] = [_tag_name(t) for t in route.tags]
        schema.update(parameters_to_groups(operation.get("parameters") or []))
        body = request_body_schema(operation.get("requestBody"))
        if body is not None:
            schema["body"] = body
        responses = response_schemas(operation.get("responses"))
        if responses:
            schema["response"] = responses

        extra = (route.openapi_extra or {}).get(MCP_EXTENSION_KEY)
        config = {"mcp": dict(extra)} if isinstance(extra, dict) else {}

        return RouteOptions(method=methods, url=route.path_format, schema=schema, config=config)
