from __future__ import annotations
import logging
from dataclasses import replace
from enum import IntEnum
from typing import Any, Callable, Optional

from .builder import MessageBuilder
from .callback import SocketCallback
from .errors import SocketError, ProtocolViolation
from .ids import IdentityAllocator, default_allocator
from .message import (
    Message, IndicationKind, FAILURE_KINDS, ConnectInfo, AvailableInfo, StatusInfo,
    PROTOCOL_TCP,
)
from .transport import Transport

logger = logging.getLogger(__name__)

# called with (socket, old_id) after renew() changed the id
RenewHook = Callable[["TcpSocket", int], None]


class SocketState(IntEnum):
    NOT_BOUND      = 0
    BOUND          = 1
    LISTENING      = 2
    CONNECTING     = 3
    CONNECTED      = 4
    PEER_CLOSED    = 5
    LOCALLY_CLOSED = 6
    CLOSED         = 7
    ERROR          = 8


_SEND_STATES = frozenset({SocketState.CONNECTED, SocketState.CONNECTING, SocketState.PEER_CLOSED})
_CLOSE_STATES = frozenset({SocketState.CONNECTED, SocketState.PEER_CLOSED,
                           SocketState.CONNECTING, SocketState.LISTENING})
_NO_ABORT_STATES = frozenset({SocketState.NOT_BOUND, SocketState.BOUND,
                              SocketState.CLOSED, SocketState.ERROR})


def _check_port(port: int, allow_unspecified: bool, what: str) -> None:
    if allow_unspecified and port == -1:
        return
    if not isinstance(port, int) or port < 0 or port > 65535:
        raise SocketError(f"{what}: invalid port number {port!r}")


class TcpSocket:
    """
    Application-side handle of one TCP connection living in an external engine.

    The socket never talks TCP itself. It checks that each call is legal in
    the current state, turns it into a command for the engine, and turns
    the engine's indications back into state changes and callback calls.

    Typical active open:

        sock = TcpSocket()
        sock.set_output_gate(transport)
        sock.set_callback(my_callback)
        sock.connect("10.0.0.1", 80)
        ...
        # for every indication with sock.belongs_to_socket(msg):
        sock.dispatch(msg)

    Nothing here blocks; connect(), send(), close() only queue a command and
    the outcome arrives later as an indication.
    """

    def __init__(self, *, allocator: Optional[IdentityAllocator] = None, _socket_id: Optional[int] = None):
        # ids are never chosen by the user; _socket_id is only for from_indication()
        self._allocator = allocator or default_allocator()
        self.socket_id: int = self._allocator.next_id() if _socket_id is None else _socket_id
        self.state = SocketState.NOT_BOUND

        self.local_addr: Optional[str] = None
        self.remote_addr: Optional[str] = None
        self.local_port = -1
        self.remote_port = -1

        self._algorithm_class = ""
        self.auto_accept = True

        self._cb: Optional[SocketCallback] = None
        self._user_data: Any = None
        self._gate: Optional[Transport] = None
        self._deleted = False
        self._on_renew: Optional[RenewHook] = None

    @classmethod
    def from_indication(cls, msg: Message, *, allocator: Optional[IdentityAllocator] = None) -> "TcpSocket":
        """
        Socket for a connection the engine announced (AVAILABLE or ESTABLISHED
        on a new id, e.g. from a forking listener). Starts out CONNECTED with
        the endpoints already filled in, so the peer can be inspected before
        the indication is dispatched.
        """
        if not msg.is_indication():
            raise ProtocolViolation(f"cannot build a socket from {msg.env.type} {msg.kind}")

        sock = cls(allocator=allocator, _socket_id=msg.socket_id)
        # the state proper is left to dispatch(); CONNECTED whatever the kind
        sock.state = SocketState.CONNECTED
        if msg.kind == IndicationKind.AVAILABLE:
            sock._set_endpoints(AvailableInfo.from_payload(msg.env.payload))
        elif msg.kind == IndicationKind.ESTABLISHED:
            sock._set_endpoints(ConnectInfo.from_payload(msg.env.payload))
        return sock

    def __repr__(self) -> str:
        return (f"TcpSocket(id={self.socket_id}, state={self.state.name}, "
                f"local={self.local_addr}:{self.local_port}, remote={self.remote_addr}:{self.remote_port})")

    # ---- configuration ----
    def set_output_gate(self, gate: Transport) -> None:
        self._gate = gate

    def set_callback(self, callback: Optional[SocketCallback], user_data: Any = None) -> None:
        self._cb = callback
        self._user_data = user_data

    def set_renew_hook(self, hook: Optional[RenewHook]) -> None:
        """Let the owner of this socket follow id changes made by renew()."""
        self._on_renew = hook

    @property
    def algorithm_class(self) -> str:
        return self._algorithm_class

    def set_algorithm_class(self, name: str) -> None:
        """Pick the engine-side TCP variant. Only before connect()/listen()."""
        if self.state not in (SocketState.NOT_BOUND, SocketState.BOUND):
            raise SocketError(f"TcpSocket.set_algorithm_class(): too late, state is {self.state.name}")
        self._algorithm_class = name

    @staticmethod
    def state_name(state: int) -> str:
        try:
            return SocketState(state).name
        except ValueError:
            return "unknown"

    # ---- commands ----
    def _send_to_engine(self, msg: Message) -> None:
        if self._gate is None:
            raise SocketError("TcpSocket: set_output_gate() must be invoked before socket can be used")
        logger.debug("socket %d -> %s (%s)", self.socket_id, msg.env.name, msg.socket_id)
        self._gate.send(msg)

    def _builder(self, socket_id: Optional[int] = None) -> MessageBuilder:
        return MessageBuilder(self.socket_id if socket_id is None else socket_id, PROTOCOL_TCP)

    def _transition(self, state: SocketState) -> None:
        if state != self.state:
            logger.debug("socket %d: %s -> %s", self.socket_id, self.state.name, state.name)
        self.state = state

    def bind(self, local_port: int = -1, local_addr: Optional[str] = None) -> None:
        """Record the local endpoint. Port -1 is only allowed together with an address."""
        if self.state != SocketState.NOT_BOUND:
            raise SocketError("TcpSocket.bind(): socket already bound")
        _check_port(local_port, local_addr is not None, "TcpSocket.bind()")

        self.local_addr = local_addr
        self.local_port = local_port
        self._transition(SocketState.BOUND)

    def listen(self, fork: bool = True) -> None:
        """Passive open. With fork, every incoming connection gets its own socket id."""
        if self.state != SocketState.BOUND:
            raise SocketError("TcpSocket: must call bind() before listen()" if self.state == SocketState.NOT_BOUND
                              else "TcpSocket.listen(): connect() or listen() already called")

        msg = self._builder().open_passive(self.local_addr, self.local_port, fork, self._algorithm_class).build()
        self._send_to_engine(msg)
        self._transition(SocketState.LISTENING)

    def listen_once(self) -> None:
        self.listen(fork=False)

    def accept(self, socket_id: int) -> None:
        """Accept a connection the engine announced; addressed to socket_id, not to this socket."""
        self._send_to_engine(self._builder(socket_id).accept().build())

    def connect(self, remote_addr: Optional[str], remote_port: int) -> None:
        if self.state not in (SocketState.NOT_BOUND, SocketState.BOUND):
            raise SocketError("TcpSocket.connect(): connect() or listen() already called (need renew()?)")
        _check_port(remote_port, False, "TcpSocket.connect() remote")

        self.remote_addr = remote_addr
        self.remote_port = remote_port

        msg = self._builder().open_active(self.local_addr, self.local_port,
                                          self.remote_addr, self.remote_port, self._algorithm_class).build()
        self._send_to_engine(msg)
        self._transition(SocketState.CONNECTING)

    def send(self, data: bytes) -> None:
        # CONNECTING: the engine queues until established. PEER_CLOSED: half-close, we may still write.
        if self.state not in _SEND_STATES:
            raise SocketError(f"TcpSocket.send(): socket not connected or connecting, state is {self.state.name}")
        self._send_to_engine(self._builder().send(data).build())

    def send_command(self, msg: Message) -> None:
        """Send a command built elsewhere; it is re-addressed to this socket."""
        if not msg.is_command():
            raise SocketError(f"TcpSocket.send_command(): {msg.kind} is not a command")
        if msg.socket_id != self.socket_id:
            msg = replace(msg, env=replace(msg.env, socket_id=self.socket_id))
        self._send_to_engine(msg)

    def close(self) -> None:
        if self.state not in _CLOSE_STATES:
            raise SocketError(f"TcpSocket.close(): not connected or close() already called (state={self.state.name})")

        self._send_to_engine(self._builder().close().build())
        self._transition(SocketState.LOCALLY_CLOSED if self.state == SocketState.CONNECTED else SocketState.CLOSED)

    def abort(self) -> None:
        if self.state not in _NO_ABORT_STATES:
            self._send_to_engine(self._builder().abort().build())
        self._transition(SocketState.CLOSED)

    def request_status(self) -> None:
        self._send_to_engine(self._builder().status().build())

    def renew(self) -> None:
        """Forget the old connection: fresh socket id, no endpoints, NOT_BOUND."""
        old_id = self.socket_id
        self.socket_id = self._allocator.next_id()
        self.local_addr = self.remote_addr = None
        self.local_port = self.remote_port = -1
        self._transition(SocketState.NOT_BOUND)
        if self._on_renew is not None:
            self._on_renew(self, old_id)

    def destroy(self) -> None:
        """Tell the callback this socket is gone. Does not close the connection."""
        if self._deleted:
            return
        self._deleted = True
        if self._cb is not None:
            self._cb.socket_deleted(self.socket_id, self._user_data)

    # ---- indications ----
    def belongs_to_socket(self, msg: Message) -> bool:
        return msg.socket_id == self.socket_id

    def _set_endpoints(self, info: ConnectInfo) -> None:
        self.local_addr = info.local_addr
        self.local_port = info.local_port
        self.remote_addr = info.remote_addr
        self.remote_port = info.remote_port

    def dispatch(self, msg: Message) -> None:
        """Apply one indication: update state first, then call the callback."""
        if not self.belongs_to_socket(msg):
            raise SocketError(f"TcpSocket.dispatch(): message for socket {msg.socket_id} "
                              f"given to socket {self.socket_id}")
        if not msg.is_indication():
            raise ProtocolViolation(f"TcpSocket.dispatch(): {msg.env.type} {msg.kind} is not an indication")

        cb = self._cb
        kind = msg.kind

        if kind == IndicationKind.DATA or kind == IndicationKind.URGENT_DATA:
            if cb:
                cb.socket_data_arrived(self.socket_id, self._user_data, msg, kind == IndicationKind.URGENT_DATA)

        elif kind == IndicationKind.AVAILABLE:
            info = AvailableInfo.from_payload(msg.env.payload)
            # With auto_accept off, the callback decides and calls accept() itself.
            if self.auto_accept:
                self.accept(info.new_socket_id)
            if cb:
                cb.socket_available(self.socket_id, self._user_data, info)

        elif kind == IndicationKind.ESTABLISHED:
            # Only active opens and non-forking listeners get here; forked
            # connections arrive on a new id and need TcpSocket.from_indication().
            info = ConnectInfo.from_payload(msg.env.payload)
            self._transition(SocketState.CONNECTED)
            self._set_endpoints(info)
            if cb:
                cb.socket_established(self.socket_id, self._user_data)

        elif kind == IndicationKind.PEER_CLOSED:
            self._transition(SocketState.PEER_CLOSED)
            if cb:
                cb.socket_peer_closed(self.socket_id, self._user_data)

        elif kind == IndicationKind.CLOSED:
            self._transition(SocketState.CLOSED)
            if cb:
                cb.socket_closed(self.socket_id, self._user_data)

        elif kind in FAILURE_KINDS:
            self._transition(SocketState.ERROR)
            if cb:
                cb.socket_failure(self.socket_id, self._user_data, kind)

        elif kind == IndicationKind.STATUS:
            if cb:
                cb.socket_status_arrived(self.socket_id, self._user_data,
                                         StatusInfo(self.socket_id, dict(msg.env.payload)))

        else:
            raise ProtocolViolation(f"TcpSocket: invalid indication kind {kind!r}")
