"""Property tests over the socket state space."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tcpsocket import (
    ConnectInfo,
    IndicationKind,
    MessageBuilder,
    SocketError,
    SocketState,
    TcpSocket,
)
from tcpsocket.transports.inmemory import InMemoryTransport

SEND_STATES = {SocketState.CONNECTED, SocketState.CONNECTING, SocketState.PEER_CLOSED}
SILENT_ABORT_STATES = {SocketState.NOT_BOUND, SocketState.BOUND, SocketState.CLOSED, SocketState.ERROR}

OPERATIONS = [
    "bind", "listen", "connect", "send", "close", "abort", "status", "renew", "accept",
    "established", "peer_closed", "closed", "refused", "data",
]


def fresh() -> tuple[TcpSocket, InMemoryTransport]:
    t = InMemoryTransport(record=True)
    s = TcpSocket()
    s.set_output_gate(t)
    return s, t


def apply(sock: TcpSocket, op: str) -> None:
    b = MessageBuilder(sock.socket_id)
    if op == "bind":
        sock.bind(8080)
    elif op == "listen":
        sock.listen()
    elif op == "connect":
        sock.connect("10.0.0.1", 80)
    elif op == "send":
        sock.send(b"x")
    elif op == "close":
        sock.close()
    elif op == "abort":
        sock.abort()
    elif op == "status":
        sock.request_status()
    elif op == "renew":
        sock.renew()
    elif op == "accept":
        sock.accept(sock.socket_id + 1000)
    elif op == "established":
        sock.dispatch(b.established(ConnectInfo("10.0.0.2", 5000, "10.0.0.1", 80)).build())
    elif op == "peer_closed":
        sock.dispatch(b.peer_closed().build())
    elif op == "closed":
        sock.dispatch(b.closed().build())
    elif op == "refused":
        sock.dispatch(b.failure(IndicationKind.CONNECTION_REFUSED).build())
    elif op == "data":
        sock.dispatch(b.data(b"y").build())


class TestStateSpace:
    """Invariants over arbitrary operation sequences."""

    @given(st.lists(st.sampled_from(OPERATIONS), max_size=30))
    def test_state_always_defined(self, ops: list[str]) -> None:
        """Whatever happens, the state is one of the nine states; failed calls change nothing."""
        sock, transport = fresh()
        for op in ops:
            before = (sock.state, sock.socket_id, len(transport.sent))
            try:
                apply(sock, op)
            except SocketError:
                assert (sock.state, sock.socket_id, len(transport.sent)) == before
            assert sock.state in set(SocketState)

    @given(st.lists(st.sampled_from(["connect", "listen", "bind", "send", "abort", "closed"]), max_size=20))
    def test_open_at_most_once_without_renew(self, ops: list[str]) -> None:
        """connect()/listen() succeed at most once per socket id."""
        sock, transport = fresh()
        for op in ops:
            try:
                apply(sock, op)
            except SocketError:
                pass
        opens = [m for m in transport.sent if m.kind in ("OPEN_ACTIVE", "OPEN_PASSIVE")]
        assert len(opens) <= 1


class TestPerStateRules:
    """Precondition table, checked in every one of the nine states."""

    @pytest.mark.parametrize("state", list(SocketState))
    def test_send(self, state: SocketState) -> None:
        sock, transport = fresh()
        sock.state = state
        if state in SEND_STATES:
            sock.send(b"x")
            assert len(transport.sent) == 1
        else:
            with pytest.raises(SocketError):
                sock.send(b"x")
            assert transport.sent == []
        assert sock.state == state

    @pytest.mark.parametrize("state", list(SocketState))
    def test_bind(self, state: SocketState) -> None:
        sock, _ = fresh()
        sock.state = state
        if state == SocketState.NOT_BOUND:
            sock.bind(80)
            assert sock.state == SocketState.BOUND
        else:
            with pytest.raises(SocketError):
                sock.bind(80)
            assert sock.state == state

    @pytest.mark.parametrize("state", list(SocketState))
    def test_abort(self, state: SocketState) -> None:
        sock, transport = fresh()
        sock.state = state
        sock.abort()
        assert sock.state == SocketState.CLOSED
        assert len(transport.sent) == (0 if state in SILENT_ABORT_STATES else 1)
