#!/usr/bin/env python3
"""Connection manager: one logical connection over reconnecting transports.

The manager holds at most one physical Connection. It binds its own signal
handlers onto every new connection and fans each signal out to the
caller's callbacks in a fixed order: the specific callback, then
``on_all_events``, then ``on_result``. When a connection closes
unexpectedly the manager's supervisor task reconnects to the same target
after the retry policy's delay, until the policy's limits are exhausted.

All methods must be called from the event loop thread; signal handlers
run on that loop as well, so no locking is involved.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Callable

from steadysock.callbacks import SIGNALS, Callbacks, Handler, resolve_callbacks
from steadysock.client_constants import CLOSE_NOTICE
from steadysock.client_retry import ConnectionDropped, ReconnectSchedule, Sleep
from steadysock.client_state import ClientState, ClientStatus
from steadysock.retry_policy import RetryLimits
from steadysock.transport import (
    CloseEvent,
    Connection,
    Payload,
    ReadyState,
    TransportError,
    open_connection,
)

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Maintains a single logical duplex stream to a remote endpoint.

    Args:
        limits: Retry ceilings and delay; defaults to RetryLimits().
        transport: Factory creating a started Connection for a target.
        sleep: Coroutine function used for the reconnect delay.
    """

    def __init__(
        self,
        limits: RetryLimits | None = None,
        transport: Callable[[str], Connection] = open_connection,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.limits = limits if limits is not None else RetryLimits()
        self._open_transport = transport
        self._sleep = sleep
        self._state = ClientState()

    @property
    def connection(self) -> Connection | None:
        """The held transport handle, if any."""
        return self._state.connection

    @property
    def target(self) -> str:
        return self._state.target

    @property
    def callbacks(self) -> Callbacks:
        return self._state.callbacks

    @property
    def retry_on_close(self) -> bool:
        return self._state.retry_on_close

    @property
    def attempts(self) -> int:
        """Reconnect attempts in the current episode."""
        return self._state.counters.attempts

    @property
    def lifetime_attempts(self) -> int:
        """Reconnect attempts since this manager was created."""
        return self._state.counters.lifetime_attempts

    @property
    def exhausted(self) -> bool:
        """True if the last episode ended because retries ran out."""
        return self._state.exhausted

    @property
    def status(self) -> ClientStatus:
        state = self._state
        if state.connection is not None:
            if state.connection.ready_state is ReadyState.OPEN:
                return ClientStatus.OPEN
            return ClientStatus.CONNECTING
        if state.supervisor is not None and not state.supervisor.done():
            return ClientStatus.RECONNECT_PENDING
        return ClientStatus.IDLE

    def connect(
        self,
        target: str,
        callbacks: Callbacks | None = None,
        retry_on_close: bool = True,
        **handlers: Handler,
    ) -> None:
        """Connect to ``target``, or rebind callbacks if already connected.

        Every signal gets a handler installed, even for events the caller
        left without a callback. The attempt count is reset by the open
        signal, not here.

        Args:
            target: URL passed to the transport factory.
            callbacks: Handler set; keyword handlers such as
                ``on_message=...`` override its fields.
            retry_on_close: Reconnect when the connection closes
                unexpectedly.

        Raises:
            ValueError: If the transport factory rejects the target.
        """
        state = self._state
        state.target = target
        state.retry_on_close = retry_on_close
        state.callbacks = resolve_callbacks(callbacks, handlers)
        state.exhausted = False

        if state.connection is not None:
            self._bind(state.connection)
            return

        self._cancel_reconnect()
        connection = self._open()
        state.supervisor = asyncio.get_running_loop().create_task(self._supervise(connection))

    def add_callbacks(self, callbacks: Callbacks | None = None, **handlers: Handler) -> None:
        """Add or replace callbacks on the held connection.

        The bound signal handlers dispatch through the current callback
        set, so merging is enough: added callbacks take effect at once and
        are kept for later reconnects. Without a held connection the
        callbacks are dropped; use connect() to bind unconditionally.
        """
        state = self._state
        if state.connection is None:
            logger.warning("No connection held; callbacks were not added")
            return
        state.callbacks = state.callbacks.merged(resolve_callbacks(callbacks, handlers))

    def send(self, payload: Payload) -> bool:
        """Send ``payload`` if the held connection is open.

        Delivery is at most once: a payload that cannot be sent is logged
        and dropped.

        Returns:
            True if the payload was handed to the transport.
        """
        connection = self._state.connection
        if connection is None or connection.ready_state is not ReadyState.OPEN:
            logger.error("Connection is not open. Unable to send message.")
            return False
        try:
            connection.send(payload)
        except TransportError as e:
            logger.error("Unable to send message: %s", e)
            return False
        return True

    def close(self, payload: Payload | None = None, retry_on_future_close: bool = True) -> None:
        """Close the held connection and stop reconnecting.

        If the connection is open, the close notice and then ``payload``
        (when given) are sent before the protocol close. The close this
        causes never reconnects. It is reported through ``on_close``,
        ``on_all_events`` and ``on_result``, unless a later connect() has
        started a new session by the time the transport reports it.

        Args:
            payload: Final message sent after the close notice.
            retry_on_future_close: Stored as the retry-on-close flag.
        """
        state = self._state
        connection = state.connection
        if connection is not None:
            if connection.ready_state is ReadyState.OPEN:
                logger.info("Closing the connection to %s", state.target)
                self.send(CLOSE_NOTICE)
                if payload:
                    self.send(payload)
            connection.close()
        state.connection = None
        state.retry_on_close = retry_on_future_close
        self._cancel_reconnect()

    def _open(self) -> Connection:
        state = self._state
        connection = self._open_transport(state.target)
        state.connection = connection
        self._bind(connection)
        return connection

    def _bind(self, connection: Connection) -> None:
        handlers: dict[str, Callable[..., Any]] = {
            "open": self._handle_open,
            "message": self._handle_message,
            "error": self._handle_error,
            "close": self._handle_close,
        }
        for signal in SIGNALS:
            setattr(connection, f"on_{signal}", partial(handlers[signal], connection))

    def _cancel_reconnect(self) -> None:
        supervisor = self._state.supervisor
        if supervisor is not None and not supervisor.done():
            supervisor.cancel()
        self._state.supervisor = None
        self._state.dropped = None

    async def _supervise(self, connection: Connection) -> None:
        state = self._state
        schedule = ReconnectSchedule(state.counters, self.limits)
        try:
            async for attempt in schedule.retrying(self._sleep):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        connection = self._open()
                    await self._watch(connection)
        except ConnectionDropped:
            self._notify_exhausted()

    async def _watch(self, connection: Connection) -> None:
        event = await connection.wait_closed()
        if self._state.dropped is connection:
            self._state.dropped = None
            raise ConnectionDropped(event)

    def _superseded(self) -> bool:
        state = self._state
        if state.connection is not None:
            return True
        return state.supervisor is not None and not state.supervisor.done()

    def _notify_exhausted(self) -> None:
        self._state.exhausted = True
        callbacks = self._state.callbacks
        callbacks.fire("close", None)
        callbacks.fire("all_events")
        callbacks.fire("result")

    def _handle_open(self, connection: Connection) -> None:
        logger.info("Connected to %s", connection.target)
        self._state.counters.reset()
        callbacks = self._state.callbacks
        callbacks.fire("open", self)
        callbacks.fire("all_events")

    def _handle_message(self, connection: Connection, message: Payload) -> None:
        callbacks = self._state.callbacks
        callbacks.fire("message", message)
        callbacks.fire("all_events", message)
        callbacks.fire("result", message)

    def _handle_error(self, connection: Connection, error: BaseException) -> None:
        logger.error("Connection error on %s: %s", connection.target, error)
        callbacks = self._state.callbacks
        callbacks.fire("error", error)
        callbacks.fire("all_events", error)
        callbacks.fire("result", error)

    def _handle_close(self, connection: Connection, event: CloseEvent) -> None:
        state = self._state
        logger.info("Connection to %s closed: %s %s", connection.target, event.code, event.reason)
        if state.connection is connection:
            state.connection = None
        elif connection.close_requested and self._superseded():
            # Released by close(); a later connect() owns the callbacks now.
            logger.debug("Ignoring close of released connection to %s", connection.target)
            return
        if state.retry_on_close and not connection.close_requested:
            state.dropped = connection
            return
        logger.warning("Connection closed and no more retries will be attempted.")
        callbacks = state.callbacks
        callbacks.fire("close", event)
        callbacks.fire("all_events")
        callbacks.fire("result")
