"""Retry decision for reconnecting after an unexpected close.

The policy is a pure function of the two attempt counters and the
configured limits. Both counters are incremented by the caller before
asking, so the first retry of an episode is evaluated with
``attempts == 1``.
"""

from __future__ import annotations

from dataclasses import dataclass

from steadysock.client_constants import (
    MAX_LIFETIME_RETRY_ATTEMPTS,
    MAX_RETRY_ATTEMPTS,
    RETRY_DELAY,
)


@dataclass(frozen=True)
class RetryLimits:
    """Immutable retry ceilings and delay.

    Attributes:
        max_attempts: Reconnect attempts allowed per episode.
        max_lifetime_attempts: Reconnect attempts allowed per manager.
        delay: Seconds to wait before each reconnect attempt.
    """

    max_attempts: int = MAX_RETRY_ATTEMPTS
    max_lifetime_attempts: int = MAX_LIFETIME_RETRY_ATTEMPTS
    delay: float = RETRY_DELAY

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.max_lifetime_attempts < 0:
            raise ValueError(
                f"max_lifetime_attempts must be >= 0, got {self.max_lifetime_attempts}"
            )
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a retry evaluation."""

    permit: bool
    delay: float


def should_retry(
    attempts: int, lifetime_attempts: int, limits: RetryLimits
) -> RetryDecision:
    """Decide whether another reconnect attempt is allowed.

    Args:
        attempts: Attempts in the current episode, already incremented.
        lifetime_attempts: Attempts since the manager was created,
            already incremented.
        limits: The configured ceilings and delay.

    Returns:
        A RetryDecision. The delay is the fixed configured interval
        regardless of the attempt number.
    """
    permit = (
        attempts <= limits.max_attempts
        and lifetime_attempts <= limits.max_lifetime_attempts
    )
    return RetryDecision(permit=permit, delay=limits.delay)
