"""End-to-end tests: a live uvicorn server driven by the MCP SDK clients."""

from __future__ import annotations

import json

import anyio
import httpx
import pytest

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from routemcp.config import McpConfig
from routemcp.mcp_server.server import McpPlugin

from tests.helpers import (
    build_sample_app,
    call_tool_sse,
    list_tools_sse,
    parse_single_text_content,
    run_live_server,
    tools_by_name,
)

pytestmark = pytest.mark.e2e


@pytest.fixture
def sse_server():
    app = build_sample_app()
    McpPlugin(app, McpConfig(name="Sample MCP"))
    with run_live_server(app) as base_url:
        yield base_url


@pytest.fixture
def streamable_server():
    app = build_sample_app()
    McpPlugin(app, McpConfig(name="Sample MCP", transport_type="streamableHttp"))
    with run_live_server(app) as base_url:
        yield base_url


async def _read_endpoint_event(lines) -> str:
    event = None
    async for line in lines:
        if line.startswith("event:"):
            event = line.split(":", 1)[1].strip()
        elif line.startswith("data:") and event == "endpoint":
            return line.split(":", 1)[1].strip()
    raise AssertionError("SSE stream ended before the endpoint event")


class TestSseTransport:
    @pytest.mark.asyncio
    async def test_list_tools(self, sse_server: str):
        tools = tools_by_name(await list_tools_sse(sse_server))

        assert {"GET__hello", "hello", "my_hello", "GET__secure", "get_item", "create_item"} <= set(tools)
        assert "GET__internal" not in tools
        assert tools["hello"].description == "Hello World\n\nSays hello"
        assert tools["my_hello"].description == "Hello World\n\nThe is my hello tool"
        assert tools["GET__secure"].inputSchema["required"] == ["authorization"]

    @pytest.mark.asyncio
    async def test_call_tool(self, sse_server: str):
        result = await call_tool_sse(sse_server, "my_hello")

        assert not result.isError
        assert parse_single_text_content(result.content) == "Hello World"

    @pytest.mark.asyncio
    async def test_call_tool_with_header(self, sse_server: str):
        result = await call_tool_sse(sse_server, "GET__secure", {"authorization": "Bearer abc"})

        assert json.loads(parse_single_text_content(result.content)) == {"authorization": "Bearer abc"}

    @pytest.mark.asyncio
    async def test_unknown_tool_is_error_result(self, sse_server: str):
        result = await call_tool_sse(sse_server, "does_not_exist")

        assert result.isError
        assert "Tool 'does_not_exist' not found" in parse_single_text_content(result.content)

    @pytest.mark.asyncio
    async def test_closed_session_returns_404(self, sse_server: str):
        ping = {"jsonrpc": "2.0", "id": 1, "method": "ping"}

        async with httpx.AsyncClient(base_url=sse_server, timeout=10.0) as client:
            async with client.stream("GET", "/mcp/sse") as stream:
                endpoint = await _read_endpoint_event(stream.aiter_lines())
                assert endpoint.startswith("/mcp/messages?sessionId=")

                accepted = await client.post(endpoint, json=ping)
                assert accepted.status_code == 202

            health = await client.get("/mcp/health")
            for _ in range(50):
                if health.json()["sessions"] == 0:
                    break
                await anyio.sleep(0.05)
                health = await client.get("/mcp/health")
            assert health.json()["sessions"] == 0

            for _ in range(2):
                gone = await client.post(endpoint, json=ping)
                assert gone.status_code == 404
                assert gone.json() == {"error": "Session not found"}


class TestStreamableHttpTransport:
    @pytest.mark.asyncio
    async def test_list_and_call(self, streamable_server: str):
        async with streamablehttp_client(f"{streamable_server}/mcp") as (read_stream, write_stream, _get_session_id):
            async with ClientSession(read_stream, write_stream) as session:
                init = await session.initialize()
                tools = tools_by_name((await session.list_tools()).tools)
                result = await session.call_tool("get_item", {"item_id": 3})

        assert init.serverInfo.name == "Sample MCP"
        assert "my_hello" in tools
        assert json.loads(parse_single_text_content(result.content)) == {"item_id": 3, "verbose": False, "q": None}

    @pytest.mark.asyncio
    async def test_health_reports_transport(self, streamable_server: str):
        async with httpx.AsyncClient(base_url=streamable_server) as client:
            response = await client.get("/mcp/health")

        assert response.json()["transport"] == "streamableHttp"
