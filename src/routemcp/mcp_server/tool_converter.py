"""Route -> MCP tool conversion.

Tools are a view over the registry: ``convert_route_to_tool`` is re-run for
every catalogue request, nothing here is cached.
"""

from __future__ import annotations

import json

from typing import Any

from mcp import types

from routemcp.mcp_utils.schema_util import generate_example_from_schema, get_schema_type
from routemcp.models import RouteDescriptor

# (route attribute, default description prefix); later groups overwrite earlier
# ones when two groups declare the same property key.
_PARAMETER_GROUPS: tuple[tuple[str, str], ...] = (
    ("headers", "Header"),
    ("params", "Path parameter"),
    ("querystring", "Query parameter"),
    ("body", "Body parameter"),
)


def as_markdown_json(value: Any) -> str:
    return "```json\n" + json.dumps(value, indent=2, ensure_ascii=False) + "\n```"


class ToolConverter:
    """Builds tool name, description and input schema for a route."""

    def __init__(self, describe_full_schema: bool = False) -> None:
        self.describe_full_schema: bool = describe_full_schema

    def build_tool_name(self, route: RouteDescriptor) -> str:
        return route.name

    def build_tool_description(self, route: RouteDescriptor) -> str:
        parts: list[str | None] = [route.summary, route.description]

        if route.tags:
            parts.append(f"Tags: {', '.join(route.tags)}")

        if self.describe_full_schema and route.response:
            parts.append("### Response:")
            example = generate_example_from_schema(route.response)
            if example is not None:
                parts.append(f"**Example Response:**\n{as_markdown_json(example)}")
            parts.append(f"**Output Schema:**{as_markdown_json(route.response)}")

        return "\n\n".join(p for p in parts if p) or route.name

    def build_tool_input_schema(self, route: RouteDescriptor) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required: list[str] = []

        for attribute, prefix in _PARAMETER_GROUPS:
            group = getattr(route, attribute)
            if not isinstance(group, dict):
                continue
            group_required = group.get("required") or []
            for key, schema in (group.get("properties") or {}).items():
                description = f"{prefix}: {key}"
                if attribute == "headers" and isinstance(schema, dict) and schema.get("description") is not None:
                    description = schema["description"]
                properties[key] = {
                    "type": get_schema_type(schema),
                    "title": key,
                    "description": description,
                }
                if key in group_required and key not in required:
                    required.append(key)

        input_schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "title": f"{route.name}Parameters",
        }
        if required:
            input_schema["required"] = required
        return input_schema

    def convert_route_to_tool(self, route: RouteDescriptor) -> types.Tool:
        return types.Tool(
            name=self.build_tool_name(route),
            description=self.build_tool_description(route),
            inputSchema=self.build_tool_input_schema(route),
        )
