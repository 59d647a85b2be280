"""routemcp command line interface.

    routemcp serve examples.todo_app:app --port 8000
    routemcp tools examples.todo_app:app --describe-full-schema
    routemcp config --config routemcp.json --transport streamableHttp --save
"""

from __future__ import annotations

import importlib
import json
import logging
import os
import sys

from pathlib import Path
from typing import Any

import click
import uvicorn

from fastapi import FastAPI

from routemcp import __version__
from routemcp.config import ConfigManager, McpConfig
from routemcp.errors import InvalidAppError
from routemcp.mcp_server import McpPlugin
from routemcp.mcp_utils import DebugLogger

logger = logging.getLogger(__name__)


def load_app(reference: str) -> FastAPI:
    """Import ``module:attribute`` (attribute defaults to ``app``) and return the FastAPI app."""
    module_name, _, attribute = reference.partition(":")
    attribute = attribute or "app"
    if not module_name:
        raise InvalidAppError(f"Invalid app reference {reference!r}, expected 'module:attribute'")

    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidAppError(f"Could not import module {module_name!r}: {e}") from e

    app: Any = module
    for part in attribute.split("."):
        try:
            app = getattr(app, part)
        except AttributeError as e:
            raise InvalidAppError(f"Attribute {attribute!r} not found in module {module_name!r}") from e

    if not isinstance(app, FastAPI):
        raise InvalidAppError(f"{reference!r} is a {type(app).__name__}, not a FastAPI application")
    return app


def attach_plugin(app: FastAPI, config: McpConfig) -> McpPlugin:
    """Reuse a plugin the application already mounted, otherwise mount one from ``config``."""
    existing = getattr(app.state, "mcp_plugin", None)
    if isinstance(existing, McpPlugin):
        logger.info("Application already has an MCP plugin at %s, command line options are ignored", existing.mount_path or "/")
        return existing
    return McpPlugin(app, config)


def _build_config(config_file: Path | None, **overrides: Any) -> McpConfig:
    return ConfigManager(config_file).build_config(**overrides)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, "--version", "-V")
def main(verbose: bool) -> None:
    """Expose the routes of a FastAPI application as MCP tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    if verbose:
        DebugLogger.set_debug_enabled(True)


@main.command("serve")
@click.argument("app_ref", metavar="APP")
@click.option("--host", default="127.0.0.1", help="Server host")
@click.option("--port", type=int, default=8000, help="Server port")
@click.option("--name", default=None, help="MCP server name")
@click.option("--mount-path", default=None, help="Path the MCP endpoints are mounted under (default /mcp)")
@click.option(
    "--transport",
    "transport_type",
    type=click.Choice(["sse", "streamableHttp"]),
    default=None,
    help="MCP transport (default sse)",
)
@click.option("--config", "config_file", type=click.Path(path_type=Path), default=None, help="JSON config file")
@click.option("--debug-endpoint", is_flag=True, help="Serve GET {mount}/tools")
@click.option("--describe-full-schema", is_flag=True, help="Add response schemas to tool descriptions")
def serve(
    app_ref: str,
    host: str,
    port: int,
    name: str | None,
    mount_path: str | None,
    transport_type: str | None,
    config_file: Path | None,
    debug_endpoint: bool,
    describe_full_schema: bool,
) -> None:
    """Mount the MCP endpoints on APP (module:attribute) and run it with uvicorn."""
    try:
        app = load_app(app_ref)
    except InvalidAppError as e:
        raise click.ClickException(str(e)) from e

    config = _build_config(
        config_file,
        name=name,
        mount_path=mount_path,
        transport_type=transport_type,
        add_debug_endpoint=debug_endpoint or None,
        describe_full_schema=describe_full_schema or None,
    )
    plugin = attach_plugin(app, config)
    if plugin.is_stateless:
        endpoint = plugin.mount_path or "/"
    else:
        endpoint = f"{plugin.mount_path}/sse"
    click.echo(f"MCP server '{plugin.config.name}' on http://{host}:{port}{endpoint}", err=True)

    uvicorn.run(app, host=host, port=port, log_level="debug" if DebugLogger.is_debug_enabled() else "info")


@main.command("tools")
@click.argument("app_ref", metavar="APP")
@click.option("--config", "config_file", type=click.Path(path_type=Path), default=None, help="JSON config file")
@click.option("--describe-full-schema", is_flag=True, help="Add response schemas to tool descriptions")
def tools(app_ref: str, config_file: Path | None, describe_full_schema: bool) -> None:
    """Print the tool catalogue of APP as JSON without starting a server."""
    try:
        app = load_app(app_ref)
    except InvalidAppError as e:
        raise click.ClickException(str(e)) from e

    plugin = attach_plugin(app, _build_config(config_file, describe_full_schema=describe_full_schema or None))
    catalogue = [tool.model_dump(exclude_none=True) for tool in plugin.list_tools()]
    click.echo(json.dumps(catalogue, indent=2, ensure_ascii=False))


@main.command("config")
@click.option("--config", "config_file", type=click.Path(path_type=Path), default=None, help="JSON config file")
@click.option("--name", default=None, help="MCP server name")
@click.option("--mount-path", default=None, help="Path the MCP endpoints are mounted under")
@click.option("--transport", "transport_type", type=click.Choice(["sse", "streamableHttp"]), default=None)
@click.option("--save", is_flag=True, help="Write the effective configuration back to --config")
def config_command(
    config_file: Path | None,
    name: str | None,
    mount_path: str | None,
    transport_type: str | None,
    save: bool,
) -> None:
    """Print the effective configuration (file, environment and options merged)."""
    if save and config_file is None:
        raise click.UsageError("--save requires --config")

    manager = ConfigManager(config_file)
    config = manager.build_config(name=name, mount_path=mount_path, transport_type=transport_type)
    if save:
        manager.save_config(config)
    click.echo(json.dumps(config.model_dump(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
