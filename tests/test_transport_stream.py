#!/usr/bin/env python3
"""Loopback tests for the netstring stream transport."""
import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from steadysock.client_constants import CLOSE_NOTICE
from steadysock.manager import ConnectionManager
from steadysock.protocol import GOODBYE_MESSAGE, encode_netstring, is_goodbye, read_netstring
from steadysock.retry_policy import RetryLimits
from steadysock.transport import ReadyState
from steadysock.transport_stream import StreamConnection, open_stream

pytestmark = pytest.mark.integration


class EchoServer:
    """Netstring echo server recording what it receives."""

    def __init__(self) -> None:
        self.received: list[bytes] = []
        self.goodbye = asyncio.Event()
        self.echo = True

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                content = await read_netstring(reader)
                if content is None:
                    break
                if is_goodbye(content):
                    self.goodbye.set()
                    break
                self.received.append(content)
                if content == CLOSE_NOTICE.encode():
                    # The client closes right after the notice.
                    self.echo = False
                if self.echo:
                    writer.write(encode_netstring(content))
                    await writer.drain()
        finally:
            writer.close()


async def start_tcp(handler) -> tuple[asyncio.AbstractServer, str]:
    """Start a loopback TCP server and return it with its target URL."""
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, f"tcp://127.0.0.1:{port}"


@pytest.mark.asyncio
async def test_open_stream_rejects_missing_port() -> None:
    """Test open_stream validates tcp targets."""
    with pytest.raises(ValueError):
        await open_stream("tcp://127.0.0.1")


@pytest.mark.asyncio
async def test_echo_and_clean_close() -> None:
    """Test messages round-trip and close() sends notice then goodbye."""
    echo = EchoServer()
    server, target = await start_tcp(echo.handle)
    messages: list[bytes] = []
    opened = asyncio.Event()
    on_close = MagicMock()
    manager = ConnectionManager(RetryLimits(delay=0.0))
    try:
        manager.connect(
            target,
            on_open=lambda client: opened.set(),
            on_message=messages.append,
            on_close=on_close,
        )
        connection = manager.connection
        await asyncio.wait_for(opened.wait(), timeout=5)

        assert manager.send("hello") is True
        assert manager.send(b"\x00bin") is True
        for _ in range(100):
            if len(messages) == 2:
                break
            await asyncio.sleep(0.01)
        assert messages == [b"hello", b"\x00bin"]

        manager.close("final")
        event = await asyncio.wait_for(connection.wait_closed(), timeout=5)
        await asyncio.wait_for(echo.goodbye.wait(), timeout=5)
    finally:
        server.close()
        await server.wait_closed()

    assert echo.received[-2:] == [CLOSE_NOTICE.encode(), b"final"]
    assert event.code == 1000
    assert event.was_clean is True
    on_close.assert_called_once_with(event)


@pytest.mark.asyncio
async def test_server_goodbye_is_clean_close() -> None:
    """Test a goodbye from the server closes cleanly and is terminal without retry."""

    async def say_goodbye(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.write(GOODBYE_MESSAGE)
        await writer.drain()
        writer.close()

    server, target = await start_tcp(say_goodbye)
    closed = asyncio.Event()
    events = []

    def on_close(event) -> None:
        events.append(event)
        closed.set()

    manager = ConnectionManager()
    try:
        manager.connect(target, on_close=on_close, retry_on_close=False)
        await asyncio.wait_for(closed.wait(), timeout=5)
    finally:
        server.close()
        await server.wait_closed()

    assert events[0].code == 1000
    assert events[0].reason == "goodbye"


@pytest.mark.asyncio
async def test_refused_connection_reports_error_then_close() -> None:
    """Test a refused connection raises error and an abnormal close."""
    server, target = await start_tcp(EchoServer().handle)
    server.close()
    await server.wait_closed()

    connection = StreamConnection(target)
    connection.on_error = MagicMock()
    connection.start()
    event = await asyncio.wait_for(connection.wait_closed(), timeout=5)

    connection.on_error.assert_called_once()
    assert isinstance(connection.on_error.call_args.args[0], ConnectionError)
    assert event.code == 1006
    assert connection.ready_state is ReadyState.CLOSED


@pytest.mark.asyncio
async def test_reconnects_after_server_drops_connection() -> None:
    """Test the manager reconnects to the same TCP target after an abrupt drop."""
    connections = 0

    async def drop_first(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        nonlocal connections
        connections += 1
        if connections == 1:
            writer.close()
            return
        writer.write(encode_netstring(b"welcome back"))
        await writer.drain()
        await reader.read()
        writer.close()

    server, target = await start_tcp(drop_first)
    received = asyncio.Event()
    opens = []
    manager = ConnectionManager(RetryLimits(delay=0.0))
    try:
        manager.connect(
            target,
            on_open=opens.append,
            on_message=lambda message: received.set(),
        )
        await asyncio.wait_for(received.wait(), timeout=5)
        assert len(opens) == 2
        assert manager.lifetime_attempts == 1
        assert manager.attempts == 0
        manager.close(retry_on_future_close=False)
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_unix_socket_echo(temp_socket_path: Path) -> None:
    """Test the transport also works over a Unix domain socket."""
    echo = EchoServer()
    server = await asyncio.start_unix_server(echo.handle, path=str(temp_socket_path))
    messages: list[bytes] = []
    got = asyncio.Event()
    manager = ConnectionManager()

    def on_message(message: bytes) -> None:
        messages.append(message)
        got.set()

    try:
        manager.connect(
            f"unix://{temp_socket_path}",
            on_open=lambda client: client.send("ping"),
            on_message=on_message,
        )
        await asyncio.wait_for(got.wait(), timeout=5)
        connection = manager.connection
        manager.close()
        await asyncio.wait_for(connection.wait_closed(), timeout=5)
    finally:
        server.close()
        await server.wait_closed()

    assert messages == [b"ping"]
