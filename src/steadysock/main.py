"""CLI handling for steadysock.

This module provides the command-line interface, handling argument
parsing via click, logging configuration, and running a client session
against the target URL. Retry limits can also be set through environment
variables.

Usage:
    steadysock TARGET [--send TEXT]... [--no-retry] [--verbose]
"""

import sys
from urllib.parse import urlsplit

import click

from steadysock.client_constants import (
    MAX_LIFETIME_RETRY_ATTEMPTS,
    MAX_RETRY_ATTEMPTS,
    RETRY_DELAY,
)
from steadysock.main_logging import configure_logging
from steadysock.retry_policy import RetryLimits
from steadysock.transport import SUPPORTED_SCHEMES


@click.command()
@click.argument("target")
@click.option(
    "--send",
    "messages",
    multiple=True,
    help="Message to send each time the connection opens (repeatable)",
)
@click.option(
    "--no-retry",
    is_flag=True,
    help="Do not reconnect when the connection closes",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=0),
    default=MAX_RETRY_ATTEMPTS,
    show_default=True,
    envvar="STEADYSOCK_MAX_ATTEMPTS",
    help="Reconnect attempts allowed between two successful opens",
)
@click.option(
    "--max-lifetime-attempts",
    type=click.IntRange(min=0),
    default=MAX_LIFETIME_RETRY_ATTEMPTS,
    show_default=True,
    envvar="STEADYSOCK_MAX_LIFETIME_ATTEMPTS",
    help="Reconnect attempts allowed for the whole session",
)
@click.option(
    "--retry-delay",
    type=click.FloatRange(min=0),
    default=RETRY_DELAY,
    show_default=True,
    envvar="STEADYSOCK_RETRY_DELAY",
    help="Seconds to wait before each reconnect attempt",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)
def main(
    target: str,
    messages: tuple[str, ...],
    no_retry: bool,
    max_attempts: int,
    max_lifetime_attempts: int,
    retry_delay: float,
    verbose: bool,
) -> None:
    """Keep a connection to TARGET open, printing every message received.

    TARGET is a ws://, wss://, tcp://host:port or unix:///path URL.
    """
    if urlsplit(target).scheme not in SUPPORTED_SCHEMES:
        raise click.BadParameter(
            "expected a ws://, wss://, tcp:// or unix:// URL", param_hint="TARGET"
        )

    configure_logging(verbose)

    limits = RetryLimits(
        max_attempts=max_attempts,
        max_lifetime_attempts=max_lifetime_attempts,
        delay=retry_delay,
    )
    sys.exit(_run(target, limits, messages, not no_retry))


def _run(target: str, limits: RetryLimits, messages: tuple[str, ...], retry_on_close: bool) -> int:
    """Run the client session to completion.

    Args:
        target: URL of the remote endpoint.
        limits: RetryLimits for the session.
        messages: Messages sent on every open.
        retry_on_close: Reconnect after unexpected closes.

    Returns:
        The session's exit status.
    """
    import asyncio
    from steadysock.client import run_client

    try:
        return asyncio.run(run_client(target, limits, messages, retry_on_close))
    except KeyboardInterrupt:
        return 130
