#!/usr/bin/env python3
"""
Netstring framing for stream transport messages.

Each message travels as a netstring: ASCII decimal length, a colon, the
raw payload bytes and a trailing comma. Example: "5:hello," carries the
5-byte message "hello". Text payloads are encoded as UTF-8 before framing;
the receiver always gets bytes.

The empty netstring "0:," is reserved as the goodbye message. A peer sends
it before closing on purpose, which lets the other side report a clean
closure instead of an abnormal one. Consequently an empty payload cannot
be sent as a regular message.
"""
import asyncio
from typing import Union

# Maximum size of a single message payload in bytes (10 MB).
MAX_CONTENT_SIZE: int = 10485760

# Maximum digits in the length field; bounds parsing work on bad input.
MAX_LENGTH_DIGITS: int = 8

# Goodbye message: empty netstring signaling an intentional close.
GOODBYE_MESSAGE: bytes = b"0:,"


class ProtocolError(Exception):
    """
    Exception raised for framing errors.

    Raised when netstring parsing fails due to invalid format, a size
    violation, or the stream ending in the middle of a message.
    """

    pass


def to_bytes(payload: Union[str, bytes]) -> bytes:
    """Return ``payload`` as bytes, encoding text as UTF-8."""
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def encode_netstring(data: bytes) -> bytes:
    """
    Encode raw bytes as a netstring.

    Args:
        data: Message payload bytes.

    Returns:
        Netstring-encoded bytes in format "<length>:<content>,".

    Raises:
        ProtocolError: If data exceeds MAX_CONTENT_SIZE.
    """
    if len(data) > MAX_CONTENT_SIZE:
        raise ProtocolError(f"Content size {len(data)} exceeds limit {MAX_CONTENT_SIZE}")
    return f"{len(data)}:".encode("ascii") + data + b","


async def read_netstring(reader: asyncio.StreamReader) -> bytes | None:
    """
    Read and decode one netstring from an async stream.

    Args:
        reader: asyncio StreamReader to read from.

    Returns:
        Decoded payload bytes, or None if the stream ended cleanly before
        the first byte of a message.

    Raises:
        ProtocolError: On invalid format, size violation, or a stream that
            ends partway through a message.
    """
    length_bytes = b""
    while len(length_bytes) < MAX_LENGTH_DIGITS + 1:
        byte = await reader.read(1)
        if not byte:
            if not length_bytes:
                return None
            raise ProtocolError("Connection closed while reading length field")
        if byte == b":":
            break
        if not byte.isdigit():
            raise ProtocolError(f"Invalid character in length field: {byte!r}")
        length_bytes += byte
    else:
        raise ProtocolError("Length field exceeds maximum digits")
    if not length_bytes:
        raise ProtocolError("Empty length field")
    length = int(length_bytes.decode("ascii"))
    if length > MAX_CONTENT_SIZE:
        raise ProtocolError(f"Content size {length} exceeds limit {MAX_CONTENT_SIZE}")
    try:
        content = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise ProtocolError(f"Connection closed after {len(e.partial)} of {length} bytes") from e
    comma = await reader.read(1)
    if comma != b",":
        raise ProtocolError(f"Expected comma terminator, got {comma!r}")
    return content


def is_goodbye(content: bytes) -> bool:
    """
    Check if decoded content is the goodbye message.

    Args:
        content: Decoded netstring content.

    Returns:
        True if content is empty bytes.
    """
    return content == b""
