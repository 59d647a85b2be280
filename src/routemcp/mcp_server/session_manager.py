"""Session-scoped SSE transport channels for MCP clients.

Each ``GET {mount}/sse`` connection gets its own ``SseSessionChannel`` and a
fresh session id. The ``SessionTransportManager`` is the only holder of the
session-id -> channel map:

  Created  - the SSE connection is accepted, an id is allocated and the channel
             is stored in the map
  Active   - ``POST {mount}/messages?sessionId=<id>`` is delivered to the channel
  Closed   - the SSE connection ends, the mapping is dropped; later messages for
             that id get a 404

Map updates never straddle an ``await``, so a lookup can not observe a half
registered or half removed session.
"""

from __future__ import annotations

import logging

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import anyio

from anyio import BrokenResourceError, ClosedResourceError
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.server import Server
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import Message, Receive, Scope, Send

from routemcp.errors import SessionNotFoundError
from routemcp.mcp_utils.debug_logger import DebugLogger

logger = logging.getLogger(__name__)

SESSION_ID_PARAM = "sessionId"


class SseSessionChannel:
    """Bidirectional channel between one SSE client and the MCP server.

    Inbound JSON-RPC messages are pushed through ``send()``; outbound messages
    written by the server are streamed to the client as ``message`` events.
    """

    def __init__(self, session_id: str, endpoint: str, on_close: Callable[[str], None] | None = None) -> None:
        self.session_id: str = session_id
        self.endpoint: str = endpoint
        self.closed: bool = False
        self._on_close: Callable[[str], None] | None = on_close
        self._read_stream_writer: MemoryObjectSendStream[SessionMessage | Exception] | None = None
        self._write_stream_reader: MemoryObjectReceiveStream[SessionMessage] | None = None

    def message_url(self, root_path: str = "") -> str:
        path = root_path.rstrip("/") + self.endpoint
        return f"{quote(path)}?{SESSION_ID_PARAM}={self.session_id}"

    @asynccontextmanager
    async def connect(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> AsyncIterator[tuple[MemoryObjectReceiveStream[SessionMessage | Exception], MemoryObjectSendStream[SessionMessage]]]:
        """Open the SSE response and yield ``(read_stream, write_stream)`` for ``Server.run``."""
        read_stream_writer, read_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
        write_stream, write_stream_reader = anyio.create_memory_object_stream[SessionMessage](0)
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream[dict[str, Any]](0)
        self._read_stream_writer = read_stream_writer
        self._write_stream_reader = write_stream_reader

        endpoint_data = self.message_url(scope.get("root_path", ""))

        async def sse_writer() -> None:
            async with sse_stream_writer, write_stream_reader:
                await sse_stream_writer.send({"event": "endpoint", "data": endpoint_data})
                async for session_message in write_stream_reader:
                    await sse_stream_writer.send(
                        {
                            "event": "message",
                            "data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
                        }
                    )

        async def response_wrapper() -> None:
            response = EventSourceResponse(content=sse_stream_reader, data_sender_callable=sse_writer)
            await response(scope, receive, send)
            await self.close()

        async with anyio.create_task_group() as tg:
            tg.start_soon(response_wrapper)
            yield read_stream, write_stream

    async def send(self, message: SessionMessage | Exception) -> None:
        if self.closed or self._read_stream_writer is None:
            raise ClosedResourceError
        await self._read_stream_writer.send(message)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close(self.session_id)
        if self._read_stream_writer is not None:
            await self._read_stream_writer.aclose()
        if self._write_stream_reader is not None:
            await self._write_stream_reader.aclose()


class SessionTransportManager:
    """Owns every live SSE session of one MCP server instance."""

    def __init__(self, server: Server, endpoint: str) -> None:
        self._server: Server = server
        self._endpoint: str = endpoint
        self._channels: dict[str, SseSessionChannel] = {}

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._channels

    @property
    def session_ids(self) -> list[str]:
        return list(self._channels)

    def get(self, session_id: str | None) -> SseSessionChannel:
        channel = self._channels.get(session_id) if session_id else None
        if channel is None:
            raise SessionNotFoundError(session_id)
        return channel

    def open_session(self) -> SseSessionChannel:
        session_id = uuid4().hex
        channel = SseSessionChannel(session_id, self._endpoint, on_close=self.remove_session)
        self._channels[session_id] = channel
        DebugLogger.debug_connection(self, session_id, "registered")
        return channel

    def remove_session(self, session_id: str) -> None:
        if self._channels.pop(session_id, None) is not None:
            DebugLogger.debug_connection(self, session_id, "removed")

    async def handle_sse(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI handler for ``GET {mount}/sse``; returns once the client disconnects."""
        channel = self.open_session()
        logger.info("New SSE connection established (session %s)", channel.session_id)
        try:
            async with channel.connect(scope, receive, send) as (read_stream, write_stream):
                await self._server.run(
                    read_stream,
                    write_stream,
                    self._server.create_initialization_options(),
                )
        finally:
            self.remove_session(channel.session_id)
            await channel.close()
            logger.info("SSE connection closed (session %s)", channel.session_id)

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI handler for ``POST {mount}/messages?sessionId=<id>``."""
        request = Request(scope, receive)
        session_id = request.query_params.get(SESSION_ID_PARAM)
        if not session_id:
            response = JSONResponse({"error": f"Missing {SESSION_ID_PARAM} query parameter"}, status_code=400)
            await response(scope, receive, send)
            return

        try:
            channel = self.get(session_id)
        except SessionNotFoundError:
            logger.error("Transport not found for session %s", session_id)
            await JSONResponse({"error": "Session not found"}, status_code=404)(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            body = await request.body()
            try:
                message = types.JSONRPCMessage.model_validate_json(body)
            except ValidationError as err:
                logger.error("Failed to parse message for session %s: %s", session_id, err)
                await Response("Could not parse message", status_code=400)(scope, receive, tracking_send)
                await channel.send(err)
                return

            await Response("Accepted", status_code=202)(scope, receive, tracking_send)
            await channel.send(SessionMessage(message))
        except (BrokenResourceError, ClosedResourceError):
            logger.warning("Session %s closed while delivering a message", session_id)
            if not response_started:
                await JSONResponse({"error": "Session not found"}, status_code=404)(scope, receive, send)
        except Exception as e:
            logger.error("Error handling message for session %s: %s", session_id, e, exc_info=True)
            if not response_started:
                await JSONResponse({"error": "Internal server error"}, status_code=500)(scope, receive, send)

    async def close_all(self) -> None:
        channels = list(self._channels.values())
        self._channels.clear()
        for channel in channels:
            await channel.close()
