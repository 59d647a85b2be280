"""Debug logger utility for routemcp.

Tracing lines for route registration, session churn and tool dispatch. Output
is suppressed unless debug mode is switched on, either through
``DebugLogger.set_debug_enabled`` or the ``ROUTEMCP_DEBUG`` environment variable
(see ``routemcp.config.ConfigManager``).
"""

from __future__ import annotations

import logging
import time

from typing import Any

logger = logging.getLogger(__name__)


class DebugLogger:
    """Debug logger utility that respects the debug configuration setting."""

    _debug_enabled: bool = False

    @staticmethod
    def set_debug_enabled(enabled: bool) -> None:
        DebugLogger._debug_enabled = enabled

    @staticmethod
    def is_debug_enabled() -> bool:
        return DebugLogger._debug_enabled

    @staticmethod
    def _source_name(source: Any) -> str:
        return source.__class__.__name__ if source is not None else "-"

    @staticmethod
    def debug(source: Any, message: str) -> None:
        """Log a debug message if debug mode is enabled.

        Args:
            source: The object emitting the message
            message: The message to log
        """
        if DebugLogger._debug_enabled:
            logger.info("[DEBUG] %s: %s", DebugLogger._source_name(source), message)

    @staticmethod
    def debug_connection(source: Any, session_id: str, message: str) -> None:
        """Log a session/connection lifecycle message if debug mode is enabled."""
        if DebugLogger._debug_enabled:
            logger.info("[DEBUG-CONNECTION] session=%s %s", session_id, message)

    @staticmethod
    def debug_performance(source: Any, operation: str, duration_ms: int) -> None:
        if DebugLogger._debug_enabled:
            logger.info("[DEBUG-PERF] %s took %sms", operation, duration_ms)

    @staticmethod
    def debug_tool_execution(source: Any, tool_name: str, status: str, details: str | None = None) -> None:
        """Log a tool execution debug message if debug mode is enabled.

        Args:
            source: The object emitting the message
            tool_name: The name of the tool being executed
            status: START, SUCCESS, ERROR, ...
            details: Additional details (optional)
        """
        if DebugLogger._debug_enabled:
            message = f"[DEBUG-TOOL] {tool_name} - {status}"
            if details:
                message += f": {details}"
            logger.info(message)

    @classmethod
    def time_operation(cls, source: Any, operation_name: str):
        """Context manager that times an operation and logs START/SUCCESS/ERROR.

        Example:
            with DebugLogger.time_operation(self, "GET__hello"):
                result = await executor(request)
        """

        class Timer:
            def __init__(self, src: Any, op: str):
                self.source = src
                self.operation = op
                self.start_time: float | None = None

            def __enter__(self):
                self.start_time = time.perf_counter()
                cls.debug_tool_execution(self.source, self.operation, "START")
                return self

            def __exit__(self, exc_type, exc_val, exc_tb):
                if self.start_time is not None:
                    duration_ms = int((time.perf_counter() - self.start_time) * 1000)
                    cls.debug_performance(self.source, self.operation, duration_ms)
                    if exc_type is None:
                        cls.debug_tool_execution(self.source, self.operation, "SUCCESS")
                    else:
                        cls.debug_tool_execution(self.source, self.operation, "ERROR", str(exc_val))

        return Timer(source, operation_name)
