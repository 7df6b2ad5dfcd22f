#!/usr/bin/env python3
"""Reconnect procedure for the connection manager.

This module adapts the retry policy onto tenacity. The manager's
supervisor task treats every physical connection as one tenacity attempt:
an attempt ends by raising ConnectionDropped when a close should be
retried, tenacity's ``after`` hook counts the attempt and consults the
policy, and the ``stop`` and ``wait`` hooks act on that decision.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type

from steadysock.client_state import RetryCounters
from steadysock.retry_policy import RetryDecision, RetryLimits, should_retry
from steadysock.transport import CloseEvent

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ConnectionDropped(Exception):
    """
    Raised inside a reconnect attempt when its connection closed unexpectedly.

    Attributes:
        event: The close event reported by the transport.
    """

    def __init__(self, event: CloseEvent) -> None:
        super().__init__(f"Connection closed with code {event.code}")
        self.event = event


class ReconnectSchedule:
    """Tenacity hooks driven by the retry policy.

    Args:
        counters: Attempt counters shared with the manager, which resets
            the per-episode count on every open signal.
        limits: Ceilings and delay passed to the policy.
    """

    def __init__(self, counters: RetryCounters, limits: RetryLimits) -> None:
        self.counters = counters
        self.limits = limits
        self.decision: RetryDecision | None = None

    def record_attempt(self, retry_state: RetryCallState) -> None:
        """Count a dropped connection and decide whether to reconnect."""
        self.counters.record_attempt()
        self.decision = should_retry(
            self.counters.attempts, self.counters.lifetime_attempts, self.limits
        )
        if self.decision.permit:
            logger.info(
                "Retrying connection (attempt %d/%d) - (overall attempt %d/%d)",
                self.counters.attempts,
                self.limits.max_attempts,
                self.counters.lifetime_attempts,
                self.limits.max_lifetime_attempts,
            )
        else:
            logger.error("Maximum retry attempts reached. Unable to reconnect.")

    def exhausted(self, retry_state: RetryCallState) -> bool:
        return self.decision is not None and not self.decision.permit

    def delay(self, retry_state: RetryCallState) -> float:
        return self.decision.delay if self.decision is not None else self.limits.delay

    def retrying(self, sleep: Sleep = asyncio.sleep) -> AsyncRetrying:
        """Build the AsyncRetrying loop used by the supervisor task.

        Args:
            sleep: Coroutine function used for the reconnect delay.

        Returns:
            An AsyncRetrying that retries only ConnectionDropped and
            re-raises it once the policy refuses another attempt.
        """
        return AsyncRetrying(
            retry=retry_if_exception_type(ConnectionDropped),
            after=self.record_attempt,
            stop=self.exhausted,
            wait=self.delay,
            sleep=sleep,
            reraise=True,
        )
