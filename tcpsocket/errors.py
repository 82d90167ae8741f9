from __future__ import annotations


class SocketError(RuntimeError):
    """Raised when a socket is used in a way its current state forbids."""


class ProtocolViolation(SocketError):
    """An indication that does not belong to the TCP indication vocabulary."""
