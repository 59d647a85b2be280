"""Test helper utilities for routemcp tests.

Provides common functionality used across multiple test modules:
- sample FastAPI applications
- a live uvicorn server running in a background thread
- MCP client calls over the SSE and streamable HTTP transports
- response validation
"""

from __future__ import annotations

import socket
import threading
import time

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import uvicorn

from fastapi import FastAPI, Header
from fastapi.responses import PlainTextResponse
from mcp import ClientSession, types
from pydantic import BaseModel
from sse_starlette import sse as sse_starlette_sse


class Item(BaseModel):
    name: str
    price: float
    tags: list[str] = []


def build_sample_app() -> FastAPI:
    """FastAPI app covering the naming, description and parameter scenarios.

    Routes:
        GET  /hello               -> GET__hello (no operationId)
        GET  /greeting            -> operationId "hello", summary, description
        GET  /custom              -> summary plus x-mcp name/description override
        GET  /secure              -> required authorization header
        GET  /items/{item_id}     -> path + query parameters
        POST /items               -> JSON body
        GET  /internal            -> hidden through x-mcp
    """
    app = FastAPI(title="Sample API", version="0.0.1")

    @app.get("/hello", response_class=PlainTextResponse)
    async def hello() -> str:
        return "Hello World"

    @app.get("/greeting", operation_id="hello", summary="Hello World", response_class=PlainTextResponse)
    async def greeting() -> str:
        """Says hello"""
        return "Hello World"

    @app.get(
        "/custom",
        summary="Hello World",
        response_class=PlainTextResponse,
        openapi_extra={"x-mcp": {"name": "my_hello", "description": "The is my hello tool"}},
    )
    async def custom() -> str:
        return "Hello World"

    @app.get("/secure")
    async def secure(authorization: str = Header(description="Bearer token")) -> dict[str, str]:
        return {"authorization": authorization}

    @app.get("/items/{item_id}", operation_id="get_item", tags=["items"])
    async def get_item(item_id: int, verbose: bool = False, q: str | None = None) -> dict[str, Any]:
        return {"item_id": item_id, "verbose": verbose, "q": q}

    @app.post("/items", operation_id="create_item", tags=["items"])
    async def create_item(item: Item) -> Item:
        return item

    @app.get("/internal", openapi_extra={"x-mcp": {"hidden": True}})
    async def internal() -> dict[str, bool]:
        return {"internal": True}

    return app


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def reset_sse_app_status() -> None:
    """sse-starlette keeps its shutdown flag on a class; every live server gets a fresh one."""
    app_status = getattr(sse_starlette_sse, "AppStatus", None)
    if app_status is None:
        return
    app_status.should_exit = False
    if hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None


@contextmanager
def run_live_server(app: FastAPI, timeout: float = 10.0) -> Iterator[str]:
    """Serve *app* with uvicorn in a daemon thread and yield its base URL."""
    reset_sse_app_status()
    port = find_free_port()
    config = uvicorn.Config(
        app=app,
        host="127.0.0.1",
        port=port,
        log_level="warning",
        lifespan="on",
        timeout_graceful_shutdown=2,
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    start_time = time.time()
    while not server.started:
        if not thread.is_alive() or time.time() - start_time > timeout:
            raise RuntimeError("Server failed to start within timeout")
        time.sleep(0.05)

    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        server.should_exit = True
        thread.join(timeout=timeout)


async def list_tools_sse(base_url: str, mount_path: str = "/mcp") -> list[types.Tool]:
    from mcp.client.sse import sse_client

    async with sse_client(f"{base_url}{mount_path}/sse") as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            result = await session.list_tools()
            return result.tools


async def call_tool_sse(base_url: str, name: str, arguments: dict[str, Any] | None = None, mount_path: str = "/mcp") -> types.CallToolResult:
    from mcp.client.sse import sse_client

    async with sse_client(f"{base_url}{mount_path}/sse") as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            return await session.call_tool(name=name, arguments=arguments or {})


def tools_by_name(tools: list[types.Tool]) -> dict[str, types.Tool]:
    return {tool.name: tool for tool in tools}


def parse_single_text_content(response: list[Any]) -> str:
    assert response is not None
    assert isinstance(response, list)
    assert len(response) == 1
    first = response[0]
    assert first.type == "text"
    assert isinstance(first.text, str)
    return first.text
