"""Schema helpers and debug tracing shared by the routemcp server modules."""

from .debug_logger import DebugLogger
from .schema_util import (
    SchemaKind,
    classify_schema,
    generate_example_from_schema,
    get_schema_type,
    is_reference,
    resolve_schema_references,
)

__all__ = [
    "DebugLogger",
    "SchemaKind",
    "classify_schema",
    "generate_example_from_schema",
    "get_schema_type",
    "is_reference",
    "resolve_schema_references",
]
