#!/usr/bin/env python3
"""Command line session for steadysock.

This module provides run_client, which keeps a ConnectionManager connected
to a target, prints every inbound message to stdout and sends the
configured messages each time the connection opens. It returns when the
connection closes terminally or when SIGINT/SIGTERM asks for shutdown.

See manager.py for the reconnect behavior.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Sequence

import click

from steadysock.client_constants import CLOSE_TIMEOUT
from steadysock.manager import ConnectionManager
from steadysock.retry_policy import RetryLimits
from steadysock.transport import CloseEvent, Payload

logger = logging.getLogger(__name__)


def format_message(message: Payload) -> str:
    """Render an inbound message for display, decoding bytes as UTF-8."""
    if isinstance(message, bytes):
        return message.decode("utf-8", errors="replace")
    return message


async def run_client(
    target: str,
    limits: RetryLimits,
    messages: Sequence[str] = (),
    retry_on_close: bool = True,
) -> int:
    """Run a client session against ``target``.

    Args:
        target: URL of the remote endpoint.
        limits: Retry ceilings and delay for the manager.
        messages: Messages sent on every successful open.
        retry_on_close: Reconnect after unexpected closes.

    Returns:
        Exit status: 1 if retries were exhausted, 0 otherwise.
    """
    finished = asyncio.Event()
    manager = ConnectionManager(limits)

    def on_open(client: ConnectionManager) -> None:
        click.echo(f"Connected to {client.target}", err=True)
        for message in messages:
            client.send(message)

    def on_close(event: CloseEvent | None) -> None:
        if event is None:
            click.echo("Giving up: retry attempts exhausted", err=True)
        else:
            click.echo(f"Connection closed ({event.code})", err=True)
        finished.set()

    # Register signal handlers for clean shutdown
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, finished.set)
    loop.add_signal_handler(signal.SIGTERM, finished.set)

    manager.connect(
        target,
        on_open=on_open,
        on_message=lambda message: click.echo(format_message(message)),
        on_close=on_close,
        retry_on_close=retry_on_close,
    )
    await finished.wait()

    connection = manager.connection
    manager.close(retry_on_future_close=False)
    if connection is not None:
        try:
            await asyncio.wait_for(connection.wait_closed(), timeout=CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for %s to close", target)
    return 1 if manager.exhausted else 0
