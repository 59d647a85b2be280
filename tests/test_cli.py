"""Tests for the routemcp command line interface."""

from __future__ import annotations

import json
import textwrap

from pathlib import Path

import pytest

from click.testing import CliRunner

from routemcp import cli
from routemcp.errors import InvalidAppError
from routemcp.mcp_utils import DebugLogger
from routemcp.mcp_server.server import McpPlugin

pytestmark = pytest.mark.unit

APP_SOURCE = textwrap.dedent(
    """
    from fastapi import FastAPI

    app = FastAPI()
    not_an_app = object()

    @app.get("/ping", operation_id="ping", summary="Ping")
    async def ping() -> dict:
        return {"pong": True}
    """
)


@pytest.fixture(autouse=True)
def restore_debug_flag(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("ROUTEMCP_DEBUG", raising=False)
    enabled = DebugLogger.is_debug_enabled()
    DebugLogger.set_debug_enabled(False)
    yield
    DebugLogger.set_debug_enabled(enabled)


@pytest.fixture
def app_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> str:
    """Write a throwaway FastAPI module and return its import name."""
    module_name = f"cli_app_{request.node.name.replace('[', '_').replace(']', '_')}"
    (tmp_path / f"{module_name}.py").write_text(APP_SOURCE)
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.chdir(tmp_path)
    return module_name


class TestLoadApp:
    def test_loads_module_attribute(self, app_module: str):
        app = cli.load_app(f"{app_module}:app")
        assert app.routes

    def test_attribute_defaults_to_app(self, app_module: str):
        assert cli.load_app(app_module) is cli.load_app(f"{app_module}:app")

    def test_missing_module(self):
        with pytest.raises(InvalidAppError, match="Could not import module"):
            cli.load_app("routemcp_no_such_module:app")

    def test_missing_attribute(self, app_module: str):
        with pytest.raises(InvalidAppError, match="not found"):
            cli.load_app(f"{app_module}:missing")

    def test_not_a_fastapi_app(self, app_module: str):
        with pytest.raises(InvalidAppError, match="not a FastAPI application"):
            cli.load_app(f"{app_module}:not_an_app")


class TestToolsCommand:
    def test_prints_catalogue(self, app_module: str):
        result = CliRunner().invoke(cli.main, ["tools", f"{app_module}:app"])

        assert result.exit_code == 0, result.output
        catalogue = json.loads(result.stdout)
        assert [tool["name"] for tool in catalogue] == ["ping"]
        assert catalogue[0]["description"] == "Ping"
        assert catalogue[0]["inputSchema"]["title"] == "pingParameters"

    def test_describe_full_schema(self, app_module: str):
        result = CliRunner().invoke(cli.main, ["tools", f"{app_module}:app", "--describe-full-schema"])

        assert result.exit_code == 0, result.output
        assert "### Response:" in json.loads(result.stdout)[0]["description"]

    def test_bad_reference(self):
        result = CliRunner().invoke(cli.main, ["tools", "routemcp_no_such_module:app"])

        assert result.exit_code != 0
        assert "Could not import module" in result.output


class TestServeCommand:
    def test_mounts_plugin_and_runs_uvicorn(self, app_module: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        calls: list[dict] = []

        def fake_run(app, **kwargs):
            calls.append({"app": app, **kwargs})

        monkeypatch.setattr(cli.uvicorn, "run", fake_run)
        config_file = tmp_path / "routemcp.json"
        config_file.write_text(json.dumps({"name": "From file"}))

        result = CliRunner().invoke(
            cli.main,
            [
                "serve",
                f"{app_module}:app",
                "--port",
                "9123",
                "--mount-path",
                "/agent",
                "--transport",
                "streamableHttp",
                "--config",
                str(config_file),
                "--debug-endpoint",
            ],
        )

        assert result.exit_code == 0, result.output
        assert len(calls) == 1
        assert calls[0]["port"] == 9123
        plugin = calls[0]["app"].state.mcp_plugin
        assert isinstance(plugin, McpPlugin)
        assert plugin.config.name == "From file"
        assert plugin.mount_path == "/agent"
        assert plugin.is_stateless
        assert plugin.config.add_debug_endpoint is True

    def test_reuses_existing_plugin(self, app_module: str, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: None)
        app = cli.load_app(f"{app_module}:app")
        existing = McpPlugin(app)

        result = CliRunner().invoke(cli.main, ["serve", f"{app_module}:app", "--mount-path", "/other"])

        assert result.exit_code == 0, result.output
        assert app.state.mcp_plugin is existing
        assert existing.mount_path == "/mcp"

    @pytest.mark.parametrize(
        ("args", "environ", "expected"),
        [
            ([], {}, "info"),
            (["-v"], {}, "debug"),
            ([], {"ROUTEMCP_DEBUG": "true"}, "debug"),
        ],
        ids=["default", "verbose", "env"],
    )
    def test_uvicorn_log_level_follows_debug_mode(
        self, app_module: str, monkeypatch: pytest.MonkeyPatch, args: list[str], environ: dict[str, str], expected: str
    ):
        levels: list[str] = []
        monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: levels.append(kwargs["log_level"]))
        for key, value in environ.items():
            monkeypatch.setenv(key, value)

        result = CliRunner().invoke(cli.main, [*args, "serve", f"{app_module}:app"])

        assert result.exit_code == 0, result.output
        assert levels == [expected]


class TestConfigCommand:
    def test_prints_merged_configuration(self, tmp_path: Path):
        config_file = tmp_path / "routemcp.json"
        config_file.write_text(json.dumps({"name": "From file", "mount_path": "/tools"}))

        result = CliRunner().invoke(cli.main, ["config", "--config", str(config_file), "--transport", "streamableHttp"])

        assert result.exit_code == 0, result.output
        printed = json.loads(result.stdout)
        assert printed["name"] == "From file"
        assert printed["mount_path"] == "/tools"
        assert printed["transport_type"] == "streamableHttp"
        assert json.loads(config_file.read_text()) == {"name": "From file", "mount_path": "/tools"}

    def test_save_writes_effective_configuration(self, tmp_path: Path):
        config_file = tmp_path / "nested" / "routemcp.json"

        result = CliRunner().invoke(cli.main, ["config", "--config", str(config_file), "--name", "Saved", "--save"])

        assert result.exit_code == 0, result.output
        saved = json.loads(config_file.read_text())
        assert saved["name"] == "Saved"
        assert saved["transport_type"] == "sse"
        assert "filter" not in saved

    def test_save_requires_config_file(self):
        result = CliRunner().invoke(cli.main, ["config", "--save"])

        assert result.exit_code == 2
        assert "--save requires --config" in result.output
