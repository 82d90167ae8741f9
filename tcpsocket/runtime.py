
from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Optional

from .callback import SocketCallback
from .errors import SocketError
from .ids import IdentityAllocator
from .message import Message, IndicationKind, PROTOCOL_TCP
from .socket_map import SocketMap
from .tcp_socket import TcpSocket
from .transport import Transport

logger = logging.getLogger(__name__)

NewSocketHook = Callable[[TcpSocket], None]

_ANNOUNCING_KINDS = frozenset({IndicationKind.AVAILABLE, IndicationKind.ESTABLISHED})

class SocketRuntime:
    """
    Owns the sockets sharing one transport and feeds them their indications.

    All dispatching happens on one thread: either the caller's, through
    poll()/drain(), or the receive thread started by start(). Never both.
    """

    def __init__(self, transport: Transport, *,
                 algorithm_class: str = "",
                 auto_accept: bool = True,
                 on_new_socket: Optional[NewSocketHook] = None,
                 allocator: Optional[IdentityAllocator] = None):
        self.transport = transport
        self.algorithm_class = algorithm_class
        self.auto_accept = auto_accept
        self.on_new_socket = on_new_socket
        self.sockets = SocketMap()
        self._allocator = allocator
        self.engine: Any = None   # in-process engine, when the factory made one
        self.running = False
        self.error: Optional[SocketError] = None   # what stopped the receive thread
        self.rx_thread: Optional[threading.Thread] = None

    # ---- sockets ----
    def _adopt(self, sock: TcpSocket) -> TcpSocket:
        sock.set_output_gate(self.transport)
        sock.auto_accept = self.auto_accept
        sock.set_renew_hook(self.sockets.rekey)
        self.sockets.add_socket(sock)
        return sock

    def new_socket(self, callback: Optional[SocketCallback] = None, user_data: Any = None) -> TcpSocket:
        sock = TcpSocket(allocator=self._allocator)
        if self.algorithm_class:
            sock.set_algorithm_class(self.algorithm_class)
        sock.set_callback(callback, user_data)
        return self._adopt(sock)

    def renew(self, sock: TcpSocket) -> None:
        """Same as sock.renew(); the map follows the new id either way."""
        sock.renew()

    def release(self, sock: TcpSocket) -> None:
        """Forget a socket and destroy it. The connection itself is left alone."""
        self.sockets.remove_socket(sock)
        sock.set_renew_hook(None)
        sock.destroy()

    # ---- routing ----
    def process(self, msg: Message) -> Optional[TcpSocket]:
        """Route one indication. Returns the socket it went to, if any."""
        if msg.env.protocol != PROTOCOL_TCP:
            logger.debug("ignoring %s message for socket %d", msg.env.protocol, msg.socket_id)
            return None

        sock = self.sockets.find_socket_for(msg)
        if sock is None:
            if msg.kind not in _ANNOUNCING_KINDS:
                logger.warning("dropping %s for unknown socket %d", msg.kind, msg.socket_id)
                return None
            # connection forked off a listener: new id, new socket
            sock = self._adopt(TcpSocket.from_indication(msg, allocator=self._allocator))
            logger.debug("new socket %d from %s", sock.socket_id, msg.kind)
            if self.on_new_socket is not None:
                self.on_new_socket(sock)

        sock.dispatch(msg)
        return sock

    def poll(self, timeout: Optional[float] = 0.0) -> bool:
        """Process at most one indication. False if none arrived."""
        msg = self.transport.recv(timeout=timeout)
        if msg is None:
            return False
        self.process(msg)
        return True

    def drain(self, limit: Optional[int] = None) -> int:
        """Process queued indications until none is left (or limit reached)."""
        n = 0
        while (limit is None or n < limit) and self.poll(0):
            n += 1
        return n

    # ---- receive thread ----
    def start(self):
        """
        Dispatch on a background thread until stop().

        A SocketError raised while dispatching (a usage violation or an
        indication outside the vocabulary) ends the thread: it is logged and
        kept in self.error, and running turns False. Exceptions from
        application callbacks are logged and the loop goes on.
        """
        if self.running:
            return
        self.error = None
        self.transport.start()
        self.running = True
        self.rx_thread = threading.Thread(target=self._rx_loop, daemon=True)
        self.rx_thread.start()

    def stop(self):
        self.running = False
        if self.rx_thread:
            self.rx_thread.join(timeout=1)
            self.rx_thread = None

    def close(self) -> None:
        """Stop receiving, destroy every socket, stop the transport."""
        self.stop()
        self.sockets.delete_sockets()
        self.transport.stop()

    def _rx_loop(self):
        while self.running:
            try:
                self.poll(timeout=0.1)
            except SocketError as e:
                logger.exception("fatal error while dispatching, receive thread stopped")
                self.error = e
                self.running = False
                return
            except Exception:
                # a broken indication must not kill the loop for every other socket
                logger.exception("failed to process indication")
