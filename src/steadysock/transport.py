#!/usr/bin/env python3
"""Transport handle boundary.

A Connection is one physical duplex stream. It starts establishing itself
as soon as it is created and reports progress through four signal slots,
``on_open``, ``on_message``, ``on_error`` and ``on_close``, which the
connection manager assigns. Concrete transports subclass Connection and
implement ``_run``, ``_transmit`` and ``_shutdown``.

Use open_connection() to create a handle for a target URL.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Optional, Union
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]

# Close codes, following the WebSocket registry.
NORMAL_CLOSURE: int = 1000
ABNORMAL_CLOSURE: int = 1006

WEBSOCKET_SCHEMES = ("ws", "wss")
STREAM_SCHEMES = ("tcp", "unix")
SUPPORTED_SCHEMES = WEBSOCKET_SCHEMES + STREAM_SCHEMES


class ReadyState(IntEnum):
    """Readiness of a transport handle."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


@dataclass(frozen=True)
class CloseEvent:
    """Details of a closed connection.

    Attributes:
        code: Close code; 1000 for a normal closure, 1006 when the
            stream ended without a closing handshake.
        reason: Human readable reason, possibly empty.
        was_clean: True if the closing handshake completed.
    """

    code: int
    reason: str = ""
    was_clean: bool = False


class TransportError(Exception):
    """
    Exception raised for invalid operations on a transport handle.

    Raised when sending on a handle that is not open.
    """

    pass


class Connection:
    """Base class for a physical duplex connection.

    Signals are raised from the connection's own task, in the order the
    underlying stream produces them, and ``on_close`` is raised exactly
    once.

    Attributes:
        target: The URL this connection was opened for.
        ready_state: Current readiness.
        close_requested: True once close() was called locally.
    """

    def __init__(self, target: str) -> None:
        self.target = target
        self.ready_state = ReadyState.CONNECTING
        self.close_requested = False
        self.on_open: Optional[Callable[[], Any]] = None
        self.on_message: Optional[Callable[[Payload], Any]] = None
        self.on_error: Optional[Callable[[BaseException], Any]] = None
        self.on_close: Optional[Callable[[CloseEvent], Any]] = None
        self._closed = asyncio.Event()
        self._close_event: CloseEvent | None = None
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Begin establishing the connection on the running loop."""
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._finish)

    def send(self, payload: Payload) -> None:
        """Queue ``payload`` for transmission.

        Raises:
            TransportError: If the connection is not open.
        """
        if self.ready_state is not ReadyState.OPEN:
            raise TransportError(f"Cannot send on {self.ready_state.name} connection")
        self._transmit(payload)

    def close(self) -> None:
        """Begin closing; ``on_close`` is raised once shutdown completes.

        A connection still establishing itself is aborted.
        """
        if self.ready_state >= ReadyState.CLOSING:
            return
        self.close_requested = True
        connecting = self.ready_state is ReadyState.CONNECTING
        self.ready_state = ReadyState.CLOSING
        if connecting and self._task is not None:
            self._task.cancel()
        else:
            self._shutdown()

    async def wait_closed(self) -> CloseEvent:
        """Wait until ``on_close`` has been raised and return its event."""
        await self._closed.wait()
        assert self._close_event is not None
        return self._close_event

    def _finish(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Connection to %s failed: %r", self.target, task.exception())
        # No-op when _run already reported the close.
        self._signal_close(CloseEvent(ABNORMAL_CLOSURE, "connection aborted"))

    async def _run(self) -> None:
        raise NotImplementedError

    def _transmit(self, payload: Payload) -> None:
        raise NotImplementedError

    def _shutdown(self) -> None:
        raise NotImplementedError

    def _signal_open(self) -> None:
        if self.close_requested:
            return
        self.ready_state = ReadyState.OPEN
        if self.on_open is not None:
            self.on_open()

    def _signal_message(self, payload: Payload) -> None:
        if self.on_message is not None:
            self.on_message(payload)

    def _signal_error(self, error: BaseException) -> None:
        if self.on_error is not None:
            self.on_error(error)

    def _signal_close(self, event: CloseEvent) -> None:
        if self._close_event is not None:
            return
        self.ready_state = ReadyState.CLOSED
        self._close_event = event
        try:
            if self.on_close is not None:
                self.on_close(event)
        finally:
            self._closed.set()


def open_connection(target: str) -> Connection:
    """Create and start a connection for ``target``.

    The scheme selects the transport: ``ws`` and ``wss`` use WebSockets,
    ``tcp`` and ``unix`` use netstring-framed streams.

    Args:
        target: URL such as ``ws://host/path``, ``tcp://host:port`` or
            ``unix:///path/to/socket``.

    Returns:
        The started Connection, in CONNECTING state.

    Raises:
        ValueError: If the scheme is not supported.
    """
    scheme = urlsplit(target).scheme
    if scheme in WEBSOCKET_SCHEMES:
        from steadysock.transport_websocket import WebSocketConnection

        connection: Connection = WebSocketConnection(target)
    elif scheme in STREAM_SCHEMES:
        from steadysock.transport_stream import StreamConnection

        connection = StreamConnection(target)
    else:
        raise ValueError(f"Unsupported target scheme: {target!r}")
    logger.debug("Opening %s connection to %s", scheme, target)
    connection.start()
    return connection
