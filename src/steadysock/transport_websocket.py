"""WebSocket transport.

We use the `websockets` library. Reading and writing run as two loops
over the same socket: the connection task reads inbound frames while a
sender task drains an outbox, which keeps ``send`` synchronous for the
connection manager. A local close is queued behind pending sends so the
close notice and final payload go out before the closing handshake.
"""

from __future__ import annotations

import asyncio
import logging

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosedError, InvalidHandshake, InvalidURI

from steadysock.transport import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    CloseEvent,
    Connection,
    Payload,
)

logger = logging.getLogger(__name__)

# Outbox marker that asks the sender to perform the closing handshake.
_CLOSE = object()


class WebSocketConnection(Connection):
    """Connection to a ``ws://`` or ``wss://`` endpoint."""

    def __init__(self, target: str) -> None:
        super().__init__(target)
        self._outbox: asyncio.Queue[object] = asyncio.Queue()

    async def _run(self) -> None:
        try:
            ws = await websockets.connect(self.target)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            self._signal_error(e)
            self._signal_close(CloseEvent(ABNORMAL_CLOSURE, str(e)))
            return

        self._signal_open()
        sender = asyncio.create_task(self._send_loop(ws))
        sender.add_done_callback(self._sender_done)
        try:
            async for message in ws:
                self._signal_message(message)
        except ConnectionClosedError as e:
            if not self.close_requested:
                self._signal_error(e)
        finally:
            sender.cancel()
            await ws.close()

        code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
        reason = ws.close_reason or ""
        self._signal_close(
            CloseEvent(code, reason, was_clean=code == NORMAL_CLOSURE)
        )

    async def _send_loop(self, ws: ClientConnection) -> None:
        while True:
            item = await self._outbox.get()
            if item is _CLOSE:
                await ws.close()
                return
            try:
                await ws.send(item)
            except websockets.ConnectionClosed as e:
                logger.warning("Dropped message to %s: %s", self.target, e)
                return

    def _sender_done(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Sender for %s failed: %r", self.target, task.exception())

    def _transmit(self, payload: Payload) -> None:
        self._outbox.put_nowait(payload)

    def _shutdown(self) -> None:
        self._outbox.put_nowait(_CLOSE)
