from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class HTTPMethod(str, Enum):
    """HTTP methods a route may expose as a tool."""

    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"
    OPTIONS = "OPTIONS"


HTTP_METHODS: tuple[str, ...] = tuple(m.value for m in HTTPMethod)


@dataclass
class RouteOptions:
    """Registration event for a single framework route.

    ``schema`` is JSON-Schema shaped: ``operationId``, ``summary``,
    ``description``, ``tags``, ``headers``, ``params``, ``querystring``, ``body``
    and ``response`` (keyed by status code), plus any definitions that ``$ref``
    pointers target. ``config`` carries per-route options under the ``mcp`` key
    (``hidden``, ``name``, ``description``).
    """

    method: str | list[str]
    url: str
    schema: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def mcp_config(self) -> dict[str, Any]:
        mcp = (self.config or {}).get("mcp")
        return mcp if isinstance(mcp, dict) else {}


@dataclass(frozen=True)
class RouteDescriptor:
    """A registered route with its parameter and response schemas already resolved."""

    methods: tuple[str, ...]
    url: str
    name: str
    summary: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    headers: dict[str, Any] | None = None
    params: dict[str, Any] | None = None
    querystring: dict[str, Any] | None = None
    body: dict[str, Any] | None = None
    response: dict[str, Any] | None = None

    @property
    def primary_method(self) -> str:
        return self.methods[0]


@dataclass
class ToolPayload:
    """Tool-call arguments sorted into the parts of a synthetic HTTP request."""

    headers: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolRequest:
    """What the request executor is asked to run."""

    method: str
    url: str
    query: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None


@dataclass(frozen=True)
class ExecutedResponse:
    status_code: int
    body: str
