
from __future__ import annotations
import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..builder import MessageBuilder
from ..ids import IdentityAllocator, default_allocator
from ..message import Message, CommandKind, IndicationKind, ConnectInfo, AvailableInfo, PROTOCOL_TCP
from .inmemory import InMemoryTransport

logger = logging.getLogger(__name__)

EPHEMERAL_PORTS = range(49152, 65536)

@dataclass
class _Conn:
    socket_id: int
    local_addr: Optional[str]
    local_port: int
    remote_addr: Optional[str] = None
    remote_port: int = -1
    state: str = "CLOSED"        # LISTEN | SYN_SENT | SYN_RCVD | ESTABLISHED | CLOSE_WAIT | FIN_WAIT | CLOSED
    fork: bool = True
    peer: Optional[int] = None
    local_closed: bool = False
    peer_closed: bool = False
    outbox: List[bytes] = field(default_factory=list)
    bytes_sent: int = 0
    bytes_received: int = 0
    algorithm_class: str = ""

    def info(self) -> ConnectInfo:
        return ConnectInfo(self.local_addr, self.local_port, self.remote_addr, self.remote_port)


class LoopbackEngine:
    """
    Stand-in engine that connects sockets of one InMemoryTransport to each other.

    Active opens are matched with passive opens on the same port, SEND is
    delivered as DATA to the other side, CLOSE becomes PEER_CLOSED there and
    CLOSED once both sides closed, ABORT resets the other side. There are no
    segments, timers or windows. Indications are queued on the transport,
    never dispatched from inside send(), so a socket is never re-entered.
    """

    def __init__(self, transport: InMemoryTransport, *, address: str = "127.0.0.1",
                 allocator: Optional[IdentityAllocator] = None):
        self.transport = transport
        self.address = address
        self._allocator = allocator or default_allocator()
        self._conns: Dict[int, _Conn] = {}
        self._listeners: Dict[int, int] = {}     # port -> listening socket id
        self._ports = itertools.cycle(EPHEMERAL_PORTS)
        transport.attach_engine(self.handle)

    # ---- command handling ----
    def handle(self, msg: Message) -> None:
        if msg.env.protocol != PROTOCOL_TCP or not msg.is_command():
            logger.debug("loopback: ignoring %s %s for protocol %s", msg.env.type, msg.kind, msg.env.protocol)
            return

        kind = msg.kind
        if kind == CommandKind.OPEN_PASSIVE:
            self._open_passive(msg)
        elif kind == CommandKind.OPEN_ACTIVE:
            self._open_active(msg)
        elif kind == CommandKind.ACCEPT:
            self._accept(msg.socket_id)
        elif kind == CommandKind.SEND:
            self._send(msg)
        elif kind == CommandKind.CLOSE:
            self._close(msg.socket_id)
        elif kind == CommandKind.ABORT:
            self._abort(msg.socket_id)
        elif kind == CommandKind.STATUS:
            self._status(msg.socket_id)
        else:
            logger.warning("loopback: unknown command %r", kind)

    def _indicate(self, builder: MessageBuilder) -> None:
        self.transport.deliver(builder.build())

    def _open_passive(self, msg: Message) -> None:
        p = msg.env.payload
        port = p["local_port"]
        if port in self._listeners:
            logger.warning("loopback: port %d already has a listener", port)
            self._indicate(MessageBuilder(msg.socket_id).failure(IndicationKind.CONNECTION_REFUSED, "address in use"))
            return
        self._conns[msg.socket_id] = _Conn(
            socket_id=msg.socket_id,
            local_addr=p.get("local_addr") or self.address,
            local_port=port,
            state="LISTEN",
            fork=bool(p.get("fork", True)),
            algorithm_class=p.get("algorithm_class", ""),
        )
        self._listeners[port] = msg.socket_id

    def _open_active(self, msg: Message) -> None:
        p = msg.env.payload
        local_port = p.get("local_port", -1)
        client = _Conn(
            socket_id=msg.socket_id,
            local_addr=p.get("local_addr") or self.address,
            local_port=local_port if local_port != -1 else next(self._ports),
            remote_addr=p.get("remote_addr"),
            remote_port=p["remote_port"],
            state="SYN_SENT",
            algorithm_class=p.get("algorithm_class", ""),
        )
        self._conns[client.socket_id] = client

        listener_id = self._listeners.get(client.remote_port)
        if listener_id is None:
            del self._conns[client.socket_id]
            self._indicate(MessageBuilder(client.socket_id).failure(IndicationKind.CONNECTION_REFUSED))
            return

        listener = self._conns[listener_id]
        if listener.fork:
            server_id = self._allocator.next_id()
        else:
            # the listening connection itself becomes the server side
            server_id = listener_id
            del self._listeners[listener.local_port]

        server = _Conn(
            socket_id=server_id,
            local_addr=client.remote_addr or listener.local_addr,
            local_port=listener.local_port,
            remote_addr=client.local_addr,
            remote_port=client.local_port,
            state="SYN_RCVD",
            peer=client.socket_id,
            algorithm_class=listener.algorithm_class,
        )
        self._conns[server_id] = server
        client.peer = server_id

        info = AvailableInfo(server.local_addr, server.local_port, server.remote_addr, server.remote_port, server_id)
        self._indicate(MessageBuilder(listener_id).available(info))

    def _accept(self, socket_id: int) -> None:
        server = self._conns.get(socket_id)
        if server is None or server.state != "SYN_RCVD":
            logger.warning("loopback: ACCEPT for unknown connection %d", socket_id)
            return
        client = self._conns.get(server.peer)
        if client is None:
            self._indicate(MessageBuilder(socket_id).failure(IndicationKind.CONNECTION_RESET))
            del self._conns[socket_id]
            return

        server.state = client.state = "ESTABLISHED"
        self._indicate(MessageBuilder(server.socket_id).established(server.info()))
        self._indicate(MessageBuilder(client.socket_id).established(client.info()))
        for conn in (client, server):
            pending, conn.outbox = conn.outbox, []
            for data in pending:
                self._deliver_data(conn, data)

    def _deliver_data(self, conn: _Conn, data: bytes) -> None:
        peer = self._conns.get(conn.peer) if conn.peer is not None else None
        if peer is None:
            return
        conn.bytes_sent += len(data)
        peer.bytes_received += len(data)
        self._indicate(MessageBuilder(peer.socket_id).data(data))

    def _send(self, msg: Message) -> None:
        conn = self._conns.get(msg.socket_id)
        if conn is None or conn.local_closed:
            logger.warning("loopback: SEND on closed or unknown connection %d", msg.socket_id)
            return
        if conn.state in ("SYN_SENT", "SYN_RCVD"):
            conn.outbox.append(msg.binary or b"")
            return
        self._deliver_data(conn, msg.binary or b"")

    def _close(self, socket_id: int) -> None:
        conn = self._conns.get(socket_id)
        if conn is None:
            logger.warning("loopback: CLOSE for unknown connection %d", socket_id)
            return

        if conn.state in ("LISTEN", "SYN_SENT", "SYN_RCVD"):
            if conn.state == "LISTEN":
                self._listeners.pop(conn.local_port, None)
            self._drop(conn)
            self._indicate(MessageBuilder(socket_id).closed())
            return

        conn.local_closed = True
        conn.state = "FIN_WAIT" if not conn.peer_closed else "CLOSED"
        peer = self._conns.get(conn.peer) if conn.peer is not None else None
        if peer is not None:
            peer.peer_closed = True
            if not peer.local_closed:
                peer.state = "CLOSE_WAIT"
                self._indicate(MessageBuilder(peer.socket_id).peer_closed())
        if peer is None or peer.local_closed:
            self._drop(conn)
            self._indicate(MessageBuilder(socket_id).closed())
            if peer is not None:
                self._drop(peer)
                self._indicate(MessageBuilder(peer.socket_id).closed())

    def _abort(self, socket_id: int) -> None:
        conn = self._conns.get(socket_id)
        if conn is None:
            return
        if conn.state == "LISTEN":
            self._listeners.pop(conn.local_port, None)
        peer = self._conns.get(conn.peer) if conn.peer is not None else None
        self._drop(conn)
        self._indicate(MessageBuilder(socket_id).closed())
        if peer is not None:
            self._drop(peer)
            self._indicate(MessageBuilder(peer.socket_id).failure(IndicationKind.CONNECTION_RESET))

    def _status(self, socket_id: int) -> None:
        conn = self._conns.get(socket_id)
        fields = {"state": "CLOSED"} if conn is None else {
            "state":           conn.state,
            "local_addr":      conn.local_addr,
            "local_port":      conn.local_port,
            "remote_addr":     conn.remote_addr,
            "remote_port":     conn.remote_port,
            "bytes_sent":      conn.bytes_sent,
            "bytes_received":  conn.bytes_received,
            "algorithm_class": conn.algorithm_class,
        }
        self._indicate(MessageBuilder(socket_id).status_info(fields))

    def _drop(self, conn: _Conn) -> None:
        conn.state = "CLOSED"
        self._conns.pop(conn.socket_id, None)
