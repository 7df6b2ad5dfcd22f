#!/usr/bin/env python3
"""Netstring-framed stream transport.

This module provides StreamConnection, a Connection over a plain asyncio
stream: TCP for ``tcp://host:port`` targets and Unix domain sockets for
``unix:///path`` targets. Messages are framed with netstrings (see
protocol.py) and a local close is announced with the goodbye message.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlsplit

from steadysock.protocol import (
    GOODBYE_MESSAGE,
    ProtocolError,
    encode_netstring,
    is_goodbye,
    read_netstring,
    to_bytes,
)
from steadysock.transport import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    CloseEvent,
    Connection,
    Payload,
    TransportError,
)

logger = logging.getLogger(__name__)


async def open_stream(target: str) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open the asyncio stream described by ``target``.

    Args:
        target: ``tcp://host:port`` or ``unix:///path/to/socket``.

    Returns:
        Tuple of (StreamReader, StreamWriter) for the connection.

    Raises:
        ValueError: If the target is malformed.
        ConnectionError: If the connection fails (refused, not found, etc).
    """
    parts = urlsplit(target)
    try:
        if parts.scheme == "unix":
            if not parts.path:
                raise ValueError(f"Missing socket path in {target!r}")
            return await asyncio.open_unix_connection(parts.path)
        if parts.scheme == "tcp":
            if parts.hostname is None or parts.port is None:
                raise ValueError(f"Missing host or port in {target!r}")
            return await asyncio.open_connection(parts.hostname, parts.port)
    except OSError as e:
        raise ConnectionError(f"Failed to connect to {target}: {e}") from e
    raise ValueError(f"Unsupported stream scheme: {target!r}")


class StreamConnection(Connection):
    """Connection carrying netstring-framed messages over a stream."""

    def __init__(self, target: str) -> None:
        super().__init__(target)
        self._writer: asyncio.StreamWriter | None = None

    async def _run(self) -> None:
        try:
            reader, writer = await open_stream(self.target)
        except (ConnectionError, ValueError) as e:
            self._signal_error(e)
            self._signal_close(CloseEvent(ABNORMAL_CLOSURE, str(e)))
            return

        self._writer = writer
        self._signal_open()
        event = CloseEvent(ABNORMAL_CLOSURE, "connection lost")
        try:
            while True:
                content = await read_netstring(reader)
                if content is None:
                    if self.close_requested:
                        event = CloseEvent(NORMAL_CLOSURE, "closed", was_clean=True)
                    break
                if is_goodbye(content):
                    logger.debug("Goodbye received from %s", self.target)
                    event = CloseEvent(NORMAL_CLOSURE, "goodbye", was_clean=True)
                    break
                self._signal_message(content)
        except (ProtocolError, OSError) as e:
            if self.close_requested:
                event = CloseEvent(NORMAL_CLOSURE, "closed", was_clean=True)
            else:
                self._signal_error(e)
                event = CloseEvent(ABNORMAL_CLOSURE, str(e))
        finally:
            writer.close()
        self._signal_close(event)

    def _transmit(self, payload: Payload) -> None:
        data = to_bytes(payload)
        if is_goodbye(data):
            raise TransportError("Empty payloads are reserved for the goodbye message")
        try:
            frame = encode_netstring(data)
        except ProtocolError as e:
            raise TransportError(str(e)) from e
        assert self._writer is not None
        self._writer.write(frame)

    def _shutdown(self) -> None:
        assert self._writer is not None
        try:
            self._writer.write(GOODBYE_MESSAGE)
        except OSError:
            pass
        self._writer.close()
