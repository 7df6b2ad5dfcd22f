#!/usr/bin/env python3
"""Defaults for connection manager retry configuration.

These constants control the flat-delay reconnection behavior used when
the connection to the remote endpoint is lost unexpectedly.
"""

# Maximum reconnect attempts within one episode (between two opens).
MAX_RETRY_ATTEMPTS: int = 4

# Maximum reconnect attempts for the whole life of a manager instance.
MAX_LIFETIME_RETRY_ATTEMPTS: int = 20

# Delay before every reconnect attempt in seconds.
RETRY_DELAY: float = 10.0

# Text notice sent to the peer before a caller-initiated close.
CLOSE_NOTICE: str = "closing the connection!"

# Seconds the CLI waits for the closing handshake before giving up.
CLOSE_TIMEOUT: float = 2.0
