#!/usr/bin/env python3
"""Pytest fixtures for steadysock tests.

Provides a scriptable fake transport, a recording sleep for reconnect
delays, and temporary socket paths.
"""

from collections.abc import Generator
from pathlib import Path

import pytest

from conftest_transport import FakeTransport, RecordingSleep


@pytest.fixture
def transport() -> FakeTransport:
    """Create a fake transport factory recording every connection."""
    return FakeTransport()


@pytest.fixture
def sleep() -> RecordingSleep:
    """Create a sleep replacement that records delays and returns at once."""
    return RecordingSleep()


@pytest.fixture
def temp_socket_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary path for Unix domain socket testing."""
    socket_path = tmp_path / "test.sock"
    yield socket_path
    if socket_path.exists():
        socket_path.unlink()
