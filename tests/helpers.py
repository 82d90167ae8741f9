"""Test helpers shared across modules."""

from __future__ import annotations

from typing import Any

from tcpsocket import SocketCallback, TcpSocket


class RecordingCallback(SocketCallback):
    """Callback that remembers every event, plus the socket state seen at call time."""

    def __init__(self, sock: TcpSocket | None = None) -> None:
        self.sock = sock
        self.events: list[tuple[Any, ...]] = []
        self.states_seen: list[Any] = []

    def _record(self, *event: Any) -> None:
        self.events.append(event)
        if self.sock is not None:
            self.states_seen.append(self.sock.state)

    def socket_data_arrived(self, socket_id, user_data, msg, urgent):
        self._record("data", socket_id, user_data, msg.binary, urgent)

    def socket_available(self, socket_id, user_data, info):
        self._record("available", socket_id, user_data, info)

    def socket_established(self, socket_id, user_data):
        self._record("established", socket_id, user_data)

    def socket_peer_closed(self, socket_id, user_data):
        self._record("peer_closed", socket_id, user_data)

    def socket_closed(self, socket_id, user_data):
        self._record("closed", socket_id, user_data)

    def socket_failure(self, socket_id, user_data, code):
        self._record("failure", socket_id, user_data, code)

    def socket_status_arrived(self, socket_id, user_data, status):
        self._record("status", socket_id, user_data, status)

    def socket_deleted(self, socket_id, user_data):
        self._record("deleted", socket_id, user_data)

    def names(self) -> list[str]:
        return [e[0] for e in self.events]
