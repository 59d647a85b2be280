"""Exceptions raised by routemcp."""

from __future__ import annotations


class RouteMcpError(Exception):
    """Base class for routemcp errors."""


class ToolNotFoundError(RouteMcpError):
    """Raised when a tool call names a tool that is not in the filtered catalogue."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name: str = name


class SessionNotFoundError(RouteMcpError):
    """Raised when a message addresses a session id with no live channel."""

    def __init__(self, session_id: str | None):
        super().__init__(f"Session not found: {session_id}")
        self.session_id: str | None = session_id


class InvalidAppError(RouteMcpError):
    """Raised when an ``module:attribute`` reference does not point at an ASGI app."""
