"""Schema utility functions for routemcp.

Route schemas arrive as plain JSON-shaped values (dicts, lists, scalars). The
helpers here classify schema nodes, inline ``$ref`` pointers against the route's
own schema document, infer a JSON schema type, and synthesize example values
for tool descriptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class SchemaKind(str, Enum):
    """Tagged variant for a JSON-schema node."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    REFERENCE = "reference"
    UNKNOWN = "unknown"


_SCALAR_PLACEHOLDERS: dict[SchemaKind, Any] = {
    SchemaKind.STRING: "string",
    SchemaKind.NUMBER: 0,
    SchemaKind.INTEGER: 0,
    SchemaKind.BOOLEAN: False,
}


def is_reference(node: Any) -> bool:
    return isinstance(node, dict) and isinstance(node.get("$ref"), str)


def get_schema_type(schema: Any) -> str:
    """Infer the JSON schema type of a node.

    Precedence: missing node, explicit ``type``, ``properties``, ``items``,
    then ``"string"``.
    """
    if not schema or not isinstance(schema, dict):
        return "string"
    if schema.get("type"):
        return schema["type"]
    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    return "string"


def classify_schema(schema: Any) -> SchemaKind:
    """Map a schema node onto :class:`SchemaKind`.

    Reference nodes are classified before type inference so callers can decide
    whether to follow them.
    """
    if is_reference(schema):
        return SchemaKind.REFERENCE
    schema_type = get_schema_type(schema)
    if isinstance(schema_type, list):
        # e.g. ["string", "null"]: first non-null entry wins
        schema_type = next((t for t in schema_type if t != "null"), "string")
    try:
        kind = SchemaKind(schema_type)
    except ValueError:
        return SchemaKind.UNKNOWN
    if kind is SchemaKind.REFERENCE:
        return SchemaKind.UNKNOWN
    return kind


def _decode_pointer_segment(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def _follow_reference(ref: str, root_schema: Any) -> tuple[bool, Any]:
    """Walk a ``#/a/b`` pointer through *root_schema*.

    Returns ``(found, value)``; ``found`` is False as soon as a segment is missing.
    """
    path = ref[2:] if ref.startswith("#/") else ref.lstrip("#")
    resolved = root_schema
    for raw_segment in (s for s in path.split("/") if s):
        segment = _decode_pointer_segment(raw_segment)
        if isinstance(resolved, dict) and resolved.get(segment):
            resolved = resolved[segment]
        elif isinstance(resolved, list) and segment.isdigit() and int(segment) < len(resolved):
            resolved = resolved[int(segment)]
        else:
            return False, None
    return True, resolved


def _iter_references(node: Any):
    """Yield every ``$ref`` string reachable in *node* without following them."""
    if is_reference(node):
        yield node["$ref"]
    elif isinstance(node, dict):
        for value in node.values():
            yield from _iter_references(value)
    elif isinstance(node, list):
        for value in node:
            yield from _iter_references(value)


def _is_cyclic_reference(ref: str, root_schema: Any) -> bool:
    """True when the target of *ref* can lead back to *ref* itself."""
    seen: set[str] = set()
    pending = [ref]
    while pending:
        found, target = _follow_reference(pending.pop(), root_schema)
        if not found:
            continue
        for nested in _iter_references(target):
            if nested == ref:
                return True
            if nested not in seen:
                seen.add(nested)
                pending.append(nested)
    return False


def resolve_schema_references(schema: Any, root_schema: Any) -> Any:
    """Inline every ``$ref`` node in *schema* using *root_schema* as the document.

    Unresolvable references and cyclic references (those whose target leads
    back to themselves) are returned unchanged, so resolving an already
    resolved schema gives back an equal value. Containers are rebuilt, so the
    input is never mutated.
    """
    if not schema:
        return schema

    kind = classify_schema(schema)
    if kind is SchemaKind.REFERENCE:
        ref = schema["$ref"]
        if _is_cyclic_reference(ref, root_schema):
            return schema
        found, resolved = _follow_reference(ref, root_schema)
        if not found:
            return schema
        return resolve_schema_references(resolved, root_schema)

    if isinstance(schema, dict):
        return {key: resolve_schema_references(value, root_schema) for key, value in schema.items()}
    if isinstance(schema, list):
        return [resolve_schema_references(value, root_schema) for value in schema]
    return schema


def generate_example_from_schema(schema: Any) -> Any:
    """Build an example value matching *schema*, or ``None`` when there is no schema."""
    if not schema or not isinstance(schema, dict):
        return None

    kind = classify_schema(schema)
    if kind in _SCALAR_PLACEHOLDERS:
        if "example" in schema:
            return schema["example"]
        if "default" in schema:
            return schema["default"]
        return _SCALAR_PLACEHOLDERS[kind]
    if kind is SchemaKind.ARRAY:
        items = schema.get("items")
        if items:
            return [generate_example_from_schema(items)]
        return []
    if kind is SchemaKind.OBJECT:
        properties = schema.get("properties")
        if isinstance(properties, dict) and properties:
            return {key: generate_example_from_schema(prop) for key, prop in properties.items()}
        return {}
    # REFERENCE (left unresolved) and UNKNOWN have no sensible example
    return None
