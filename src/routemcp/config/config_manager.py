"""Configuration for routemcp.

``McpConfig`` is the option set the plugin is constructed with. ``ConfigManager``
builds one from an optional JSON file plus ``ROUTEMCP_*`` environment
overrides, for the command line entry point.
"""

from __future__ import annotations

import json
import logging
import os

from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from routemcp.mcp_utils.debug_logger import DebugLogger

logger = logging.getLogger(__name__)

TransportType = Literal["sse", "streamableHttp"]

_TRUTHY = frozenset({"true", "1", "yes", "on"})


class McpConfig(BaseModel):
    """Configuration for the MCP plugin."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = "FastAPI MCP"
    description: str = "MCP server for FastAPI"
    version: str = "1.0.0"
    mount_path: str = "/mcp"
    transport_type: TransportType = "sse"
    describe_full_schema: bool = False
    skip_head_routes: bool = True
    skip_options_routes: bool = True
    add_debug_endpoint: bool = False
    json_response: bool = True
    filter: Callable[[Any], Any] | None = Field(default=None, exclude=True)
    to_json_schema: Callable[[Any], dict[str, Any]] | None = Field(default=None, exclude=True)


class ConfigManager:
    """Loads ``McpConfig`` values from a JSON file and the environment.

    Environment variables take precedence over the file:

    - ROUTEMCP_NAME, ROUTEMCP_DESCRIPTION
    - ROUTEMCP_MOUNT_PATH
    - ROUTEMCP_TRANSPORT (``sse`` or ``streamableHttp``)
    - ROUTEMCP_DESCRIBE_FULL_SCHEMA, ROUTEMCP_DEBUG_ENDPOINT
    - ROUTEMCP_SKIP_HEAD_ROUTES, ROUTEMCP_SKIP_OPTIONS_ROUTES
    - ROUTEMCP_DEBUG (turns on ``DebugLogger`` output)
    """

    _STRING_ENV: dict[str, str] = {
        "ROUTEMCP_NAME": "name",
        "ROUTEMCP_DESCRIPTION": "description",
        "ROUTEMCP_MOUNT_PATH": "mount_path",
        "ROUTEMCP_TRANSPORT": "transport_type",
    }
    _BOOL_ENV: dict[str, str] = {
        "ROUTEMCP_DESCRIBE_FULL_SCHEMA": "describe_full_schema",
        "ROUTEMCP_DEBUG_ENDPOINT": "add_debug_endpoint",
        "ROUTEMCP_SKIP_HEAD_ROUTES": "skip_head_routes",
        "ROUTEMCP_SKIP_OPTIONS_ROUTES": "skip_options_routes",
    }

    def __init__(self, config_file: Path | None = None, environ: dict[str, str] | None = None):
        self.config_file: Path | None = config_file
        self._environ: dict[str, str] = dict(os.environ if environ is None else environ)
        self._values: dict[str, Any] = {}

        self._load_config()
        self._apply_env_overrides()

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def _load_config(self) -> None:
        if self.config_file is None:
            return
        if not self.config_file.exists():
            logger.warning("Config file %s does not exist, using defaults", self.config_file)
            return
        try:
            with open(self.config_file) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load config file %s: %s", self.config_file, e)
            return
        if not isinstance(data, dict):
            logger.warning("Config file %s must contain a JSON object", self.config_file)
            return
        known = set(McpConfig.model_fields) - {"filter", "to_json_schema"}
        for key, value in data.items():
            if key in known:
                self._values[key] = value
            else:
                logger.warning("Ignoring unknown config option %r in %s", key, self.config_file)
        DebugLogger.debug(self, f"Loaded configuration from {self.config_file}")

    def _apply_env_overrides(self) -> None:
        for env_name, field_name in self._STRING_ENV.items():
            value = self._environ.get(env_name, "").strip()
            if value:
                self._values[field_name] = value

        for env_name, field_name in self._BOOL_ENV.items():
            if env_name in self._environ:
                self._values[field_name] = self._environ[env_name].strip().lower() in _TRUTHY

        if "ROUTEMCP_DEBUG" in self._environ:
            DebugLogger.set_debug_enabled(self._environ["ROUTEMCP_DEBUG"].strip().lower() in _TRUTHY)

    def build_config(self, **overrides: Any) -> McpConfig:
        """Merge file/env values with explicit overrides (``None`` overrides are ignored)."""
        values = dict(self._values)
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return McpConfig(**values)
        except ValidationError as e:
            logger.warning("Invalid configuration, falling back to defaults for bad fields: %s", e)
            bad_fields = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
            return McpConfig(**{k: v for k, v in values.items() if k not in bad_fields})

    def save_config(self, config: McpConfig) -> None:
        if self.config_file is None:
            return
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(config.model_dump(), f, indent=2)
        DebugLogger.debug(self, f"Saved configuration to {self.config_file}")
