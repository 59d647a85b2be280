"""Configuration for routemcp."""

from .config_manager import ConfigManager, McpConfig, TransportType

__all__ = [
    "ConfigManager",
    "McpConfig",
    "TransportType",
]
