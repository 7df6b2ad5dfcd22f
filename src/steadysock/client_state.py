#!/usr/bin/env python3
"""Connection manager state.

This module provides the dataclasses that group everything a
ConnectionManager mutates: the held connection, the target, the callback
set, the retry counters and flag, and the supervisor task that owns
reconnection.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

from steadysock.callbacks import Callbacks

if TYPE_CHECKING:
    from steadysock.transport import Connection


class ClientStatus(Enum):
    """Lifecycle status of a manager."""

    IDLE = auto()
    CONNECTING = auto()
    OPEN = auto()
    RECONNECT_PENDING = auto()


@dataclass
class RetryCounters:
    """Reconnect attempt counters.

    Attributes:
        attempts: Attempts in the current episode; reset on every open.
        lifetime_attempts: Attempts since creation; never reset.
    """

    attempts: int = 0
    lifetime_attempts: int = 0

    def record_attempt(self) -> None:
        """Count one reconnect attempt against both counters."""
        self.attempts += 1
        self.lifetime_attempts += 1

    def reset(self) -> None:
        """Start a new episode."""
        self.attempts = 0


@dataclass
class ClientState:
    """State for one logical connection.

    Attributes:
        target: Address used by connect and every reconnect.
        callbacks: Handler set rebound onto each new connection.
        connection: The held transport handle, or None.
        retry_on_close: Whether an unexpected close triggers a reconnect.
        counters: Reconnect attempt counters.
        supervisor: Task that watches the held connection and performs
            delayed reconnects, or None.
        dropped: Connection whose close was handed to the reconnect
            procedure and not yet consumed by the supervisor.
        exhausted: True once retries ran out; cleared by connect.
    """

    target: str = ""
    callbacks: Callbacks = field(default_factory=Callbacks)
    connection: Connection | None = None
    retry_on_close: bool = True
    counters: RetryCounters = field(default_factory=RetryCounters)
    supervisor: asyncio.Task[None] | None = None
    dropped: Connection | None = None
    exhausted: bool = False
