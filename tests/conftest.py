"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest
from hypothesis import settings

from tcpsocket import TcpSocket
from tcpsocket.transports.inmemory import InMemoryTransport
from tests.helpers import RecordingCallback

# Create a profile named "no_deadline" with deadline disabled.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")


@pytest.fixture
def transport() -> InMemoryTransport:
    """Engine-less in-memory transport recording every command in transport.sent."""
    return InMemoryTransport(record=True)


@pytest.fixture
def sock(transport: InMemoryTransport) -> TcpSocket:
    """Fresh socket wired to the in-memory transport."""
    s = TcpSocket()
    s.set_output_gate(transport)
    return s


@pytest.fixture
def recorder(sock: TcpSocket) -> RecordingCallback:
    """Recording callback registered on `sock` with user data "token"."""
    cb = RecordingCallback(sock)
    sock.set_callback(cb, "token")
    return cb
